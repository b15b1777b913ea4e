"""
Grid cropping for static raster images.
Resamples the source once and cuts the six tiles out of it in parallel.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, List, Optional, Tuple, Union

from PIL import Image

from .errors import DecodeError, EncodeError
from .layout import DEFAULT_CONFIG, SLOT_COUNT, GridConfig
from .parallel import default_workers, map_all
from .paths import tile_path
from .resize import CanvasGeometry

logger = logging.getLogger(__name__)

RESAMPLE = Image.Resampling.LANCZOS
ALPHA_MODES = frozenset({"RGBA", "LA", "PA", "RGBa", "La"})
OPAQUE_FORMATS = frozenset({"JPEG", "MPO", "PPM", "EPS"})


def load_image(source: Union[str, Path, BinaryIO, bytes]) -> Image.Image:
    """
    Fully decode a raster image into RGB, or RGBA when it carries any alpha.

    Raises:
        DecodeError: if the file is missing, unreadable or not an image
    """
    if isinstance(source, bytes):
        source = BytesIO(source)
    try:
        with Image.open(source) as image:
            image.load()
            has_alpha = image.mode in ALPHA_MODES or "transparency" in image.info
            return image.convert("RGBA" if has_alpha else "RGB")
    except (OSError, SyntaxError, ValueError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Failed to open image: {exc}") from exc


def resample(image: Image.Image, config: GridConfig) -> Tuple[CanvasGeometry, Image.Image]:
    """Resize image to the canvas the grid needs and return both."""
    geometry = CanvasGeometry.for_source(config, image.width, image.height)
    logger.info(
        "Resizing image %dx%d to %dx%d (offset x=%d, y=%d)",
        image.width, image.height, geometry.size[0], geometry.size[1], *geometry.offset,
    )
    return geometry, image.resize(geometry.size, RESAMPLE)


def crop_image(
    image: Image.Image,
    config: GridConfig = DEFAULT_CONFIG,
    max_workers: Optional[int] = None,
) -> List[Image.Image]:
    """
    Cut an image into the six grid tiles.

    Every slot is attempted; if any crop box falls outside the resampled canvas
    the BoundsError of the lowest such slot is raised once all are done.

    Returns:
        Six cut_width x cut_height images in slot order
    """
    geometry, canvas = resample(image, config)

    def cut(index: int) -> Image.Image:
        return canvas.crop(geometry.slot_box(index))

    with ThreadPoolExecutor(
        max_workers=max_workers or default_workers(), thread_name_prefix="gridist-slot"
    ) as executor:
        return map_all(cut, range(SLOT_COUNT), executor)


def save_tile(tile: Image.Image, path: Path) -> Path:
    """Save one tile, dropping alpha for formats that cannot store it."""
    image_format = Image.registered_extensions().get(path.suffix.lower())
    if image_format in OPAQUE_FORMATS and tile.mode != "RGB":
        tile = tile.convert("RGB")
    try:
        tile.save(path, format=image_format)
    except (OSError, ValueError, KeyError) as exc:
        raise EncodeError(f"Failed to save cropped image {path}: {exc}") from exc
    logger.debug("Saved tile %s", path)
    return path


def crop_image_file(
    path: Union[str, Path],
    config: GridConfig = DEFAULT_CONFIG,
    output_dir: Union[str, Path] = ".",
    max_workers: Optional[int] = None,
) -> List[Path]:
    """
    Crop a static image file into six tiles saved as <stem>.<index>.<ext>.

    Tiles whose crop succeeded are written even when a sibling fails; a failed
    run's output set should be treated as unusable as a whole.

    Returns:
        Paths of the six tiles in slot order
    """
    path = Path(path)
    targets = [tile_path(path, index, output_dir) for index in range(SLOT_COUNT)]
    logger.info("Starting image cropping process for: %s", path)
    image = load_image(path)
    logger.info("Original image dimensions: %dx%d", image.width, image.height)
    geometry, canvas = resample(image, config)
    Path(output_dir).mkdir(parents=True, exist_ok=True)

    def cut_and_save(index: int) -> Path:
        logger.debug("Processing grid segment %d/%d", index + 1, SLOT_COUNT)
        tile = canvas.crop(geometry.slot_box(index))
        return save_tile(tile, targets[index])

    with ThreadPoolExecutor(
        max_workers=max_workers or default_workers(), thread_name_prefix="gridist-slot"
    ) as executor:
        written = map_all(cut_and_save, range(SLOT_COUNT), executor)

    logger.info("Successfully created %d grid segments", len(written))
    return written
