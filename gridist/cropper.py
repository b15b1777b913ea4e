"""
Entry points that pick the static or animated pipeline for an input.
"""

import logging
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Tuple, Union

from PIL import Image

from .animated_cropper import crop_animation, crop_gif_file
from .errors import EncodeError
from .gif_io import read_gif
from .layout import DEFAULT_CONFIG, SLOT_COUNT, GridConfig
from .paths import GIF_EXTENSION, is_gif, tile_path
from .static_cropper import OPAQUE_FORMATS, crop_image, crop_image_file, load_image

logger = logging.getLogger(__name__)

Tile = Tuple[str, bytes]


def crop_file(
    path: Union[str, Path],
    config: GridConfig = DEFAULT_CONFIG,
    output_dir: Union[str, Path] = ".",
    max_workers: Optional[int] = None,
) -> List[Path]:
    """Crop an image or GIF file into six tiles written to output_dir."""
    if is_gif(path):
        logger.info("Processing GIF file")
        return crop_gif_file(path, config, output_dir, max_workers)
    logger.info("Processing static image file")
    return crop_image_file(path, config, output_dir, max_workers)


def crop_bytes(
    data: bytes,
    filename: str,
    config: GridConfig = DEFAULT_CONFIG,
    max_workers: Optional[int] = None,
) -> List[Tile]:
    """
    Crop an in-memory image into six (name, bytes) tiles.

    filename decides the pipeline and the tile names, exactly as a path on disk
    would; nothing touches the file system.
    """
    if is_gif(filename):
        encoded = crop_animation(read_gif(data), config, max_workers)
        names = [tile_path(filename, index, "", GIF_EXTENSION).name for index in range(SLOT_COUNT)]
        return list(zip(names, encoded))

    names = [tile_path(filename, index, "").name for index in range(SLOT_COUNT)]
    image_format = Image.registered_extensions().get(Path(filename).suffix.lower())
    if image_format is None:
        raise EncodeError(f"No image format is registered for {filename}")
    tiles = crop_image(load_image(data), config, max_workers)
    return [(name, _encode_tile(tile, image_format)) for name, tile in zip(names, tiles)]


def _encode_tile(tile: Image.Image, image_format: str) -> bytes:
    if image_format in OPAQUE_FORMATS and tile.mode != "RGB":
        tile = tile.convert("RGB")
    output = BytesIO()
    try:
        tile.save(output, format=image_format)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"Failed to encode tile as {image_format}: {exc}") from exc
    return output.getvalue()
