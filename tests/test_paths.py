"""Tests for tile naming."""

from pathlib import Path

import pytest

from gridist.errors import ConfigError
from gridist.paths import is_gif, tile_path


class TestIsGif:
    """Tests for is_gif."""

    @pytest.mark.parametrize("name", ["a.gif", "a.GIF", "dir/b.Gif", Path("c.gif")])
    def test_gif_extensions(self, name) -> None:
        assert is_gif(name)

    @pytest.mark.parametrize("name", ["a.png", "a.jpg", "gif", "a.gif.png", "a"])
    def test_other_extensions(self, name) -> None:
        assert not is_gif(name)


class TestTilePath:
    """Tests for tile_path."""

    def test_keeps_source_extension(self) -> None:
        assert tile_path("photo.png", 3) == Path("photo.3.png")

    def test_keeps_extension_case(self) -> None:
        assert tile_path("Photo.JPG", 0) == Path("Photo.0.JPG")

    def test_output_dir(self, tmp_path) -> None:
        assert tile_path("images/photo.png", 5, tmp_path) == tmp_path / "photo.5.png"

    def test_only_last_extension_replaced(self) -> None:
        assert tile_path("my.photo.png", 1) == Path("my.photo.1.png")

    def test_explicit_extension(self) -> None:
        assert tile_path("anim.GIF", 2, ".", "gif") == Path("anim.2.gif")

    def test_missing_extension_raises(self) -> None:
        with pytest.raises(ConfigError, match="extension"):
            tile_path("photo", 0)
