"""Output file naming for grid tiles."""

from pathlib import Path
from typing import Optional, Union

from .errors import ConfigError

GIF_EXTENSION = "gif"


def is_gif(path: Union[str, Path]) -> bool:
    return Path(path).suffix.lower() == "." + GIF_EXTENSION


def tile_path(
    source: Union[str, Path],
    index: int,
    output_dir: Union[str, Path] = ".",
    extension: Optional[str] = None,
) -> Path:
    """
    Return <output_dir>/<stem>.<index>.<ext> for one tile of source.

    The extension defaults to the source's own, without the dot and with its
    original case.
    """
    source = Path(source)
    if not source.stem:
        raise ConfigError(f"Input path has no file stem: {source}")
    if extension is None:
        extension = source.suffix[1:]
        if not extension:
            raise ConfigError(f"Input path has no file extension: {source}")
    return Path(output_dir) / f"{source.stem}.{index}.{extension}"
