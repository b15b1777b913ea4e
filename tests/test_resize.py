"""Tests for canvas sizing and crop boxes."""

import pytest

from gridist.errors import BoundsError, ConfigError
from gridist.layout import DEFAULT_CONFIG, SLOT_COUNT, GridConfig
from gridist.resize import CanvasGeometry, compute_offsets, compute_target_size

WIDTH = DEFAULT_CONFIG.container_width
MIN_HEIGHT = DEFAULT_CONFIG.minimum_height


class TestComputeTargetSize:
    """Tests for compute_target_size."""

    def test_wide_source_covers_layout(self) -> None:
        # scale = max(928/2000, 491/500) = 0.982
        assert compute_target_size(2000, 500, WIDTH, MIN_HEIGHT) == (1964, 491)

    def test_small_wide_source_upscaled(self) -> None:
        assert compute_target_size(200, 50, WIDTH, MIN_HEIGHT) == (1964, 491)

    def test_exact_aspect_matches_layout(self) -> None:
        assert compute_target_size(WIDTH, MIN_HEIGHT, WIDTH, MIN_HEIGHT) == (WIDTH, MIN_HEIGHT)
        assert compute_target_size(WIDTH * 2, MIN_HEIGHT * 2, WIDTH, MIN_HEIGHT) == (WIDTH, MIN_HEIGHT)

    def test_tall_source_locked_to_width(self) -> None:
        assert compute_target_size(100, 100, WIDTH, MIN_HEIGHT) == (928, 928)
        assert compute_target_size(1000, 3000, WIDTH, MIN_HEIGHT) == (928, 2784)

    @pytest.mark.parametrize(
        "size",
        [(1000, 300), (333, 100), (1923, 1017), (7, 3), (4000, 2113), (929, 491), (2, 1)],
    )
    def test_cover_branch_never_undersized(self, size) -> None:
        width, height = size
        assert width / height >= WIDTH / MIN_HEIGHT
        target = compute_target_size(width, height, WIDTH, MIN_HEIGHT)
        assert target[0] >= WIDTH
        assert target[1] >= MIN_HEIGHT

    @pytest.mark.parametrize("size", [(100, 100), (333, 1000), (3, 7), (927, 491), (1, 5000)])
    def test_fit_branch_width_is_container_width(self, size) -> None:
        width, height = size
        assert compute_target_size(width, height, WIDTH, MIN_HEIGHT)[0] == WIDTH

    @pytest.mark.parametrize("size", [(0, 100), (100, 0), (-5, 10)])
    def test_non_positive_source_rejected(self, size) -> None:
        with pytest.raises(ConfigError):
            compute_target_size(size[0], size[1], WIDTH, MIN_HEIGHT)


class TestComputeOffsets:
    """Tests for compute_offsets."""

    def test_centers_wide_canvas(self) -> None:
        assert compute_offsets((1964, 491), WIDTH, MIN_HEIGHT) == (518, 0)

    def test_centers_tall_canvas(self) -> None:
        assert compute_offsets((928, 928), WIDTH, MIN_HEIGHT) == (0, 218)

    def test_truncates_odd_difference(self) -> None:
        assert compute_offsets((931, 494), WIDTH, MIN_HEIGHT) == (1, 1)

    def test_never_negative(self) -> None:
        assert compute_offsets((900, 400), WIDTH, MIN_HEIGHT) == (0, 0)


class TestCanvasGeometry:
    """Tests for CanvasGeometry and its crop boxes."""

    def test_for_source(self) -> None:
        geometry = CanvasGeometry.for_source(DEFAULT_CONFIG, 200, 100)
        assert geometry.size == (982, 491)
        assert geometry.offset == (27, 0)

    def test_slot_boxes_include_offset(self) -> None:
        geometry = CanvasGeometry.for_source(DEFAULT_CONFIG, 200, 100)
        assert geometry.slot_box(0) == (43, 37, 465, 137)
        assert geometry.slot_box(5) == (517, 375, 939, 475)

    def test_all_boxes_inside_canvas_for_many_sources(self) -> None:
        for width, height in [(1, 1), (50, 2000), (2000, 50), (640, 480), (13, 7)]:
            geometry = CanvasGeometry.for_source(DEFAULT_CONFIG, width, height)
            for index in range(SLOT_COUNT):
                left, upper, right, lower = geometry.slot_box(index)
                assert right - left == DEFAULT_CONFIG.cut_width
                assert lower - upper == DEFAULT_CONFIG.cut_height
                assert right <= geometry.size[0]
                assert lower <= geometry.size[1]

    def test_undersized_canvas_raises_bounds_error(self) -> None:
        geometry = CanvasGeometry(DEFAULT_CONFIG, (WIDTH, 300), (0, 0))
        assert geometry.slot_box(1) == (490, 37, 912, 137)
        with pytest.raises(BoundsError, match="Slot 2"):
            geometry.slot_box(2)

    def test_narrow_canvas_raises_bounds_error(self) -> None:
        geometry = CanvasGeometry(DEFAULT_CONFIG, (900, MIN_HEIGHT), (0, 0))
        geometry.slot_box(0)
        with pytest.raises(BoundsError):
            geometry.slot_box(1)

    def test_custom_config(self) -> None:
        config = GridConfig(
            container_width=200, cut_width=80, cut_height=20,
            padding_top=5, padding_horizontal=10, padding_bottom=5, margin_bottom=4,
        )
        # card_height = 30, minimum_height = 98
        geometry = CanvasGeometry.for_source(config, 400, 196)
        assert geometry.size == (200, 98)
        assert geometry.slot_box(3) == (110, 39, 190, 59)
