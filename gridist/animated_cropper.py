"""
Grid cropping for animated GIFs.

Every frame is expanded to RGBA, resampled to the grid canvas, cut into the six
cells and re-quantized against one encoding palette. Each cell then becomes its
own infinitely looping GIF with the source's frame timing.

Three pools keep the work parallel without nested waits starving each other:
frames, pixel chunks of the per-cell quantization, and the six cell encoders.
"""

import logging
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np
from PIL import Image

from .errors import EncodeError
from .gif_io import AnimatedSource, Frame, encode_gif, read_gif
from .layout import DEFAULT_CONFIG, SLOT_COUNT, GridConfig
from .palette import Palette, PaletteIndex, expand, quantize
from .parallel import default_workers, map_fail_fast
from .paths import GIF_EXTENSION, tile_path
from .resize import CanvasGeometry

logger = logging.getLogger(__name__)

RESAMPLE = Image.Resampling.LANCZOS


def render_canvas(frame: Frame, palette: Palette, size: Sequence[int]) -> np.ndarray:
    """Expand a frame to RGBA and resample it to size; returns (h, w, 4) uint8."""
    rgba = expand(frame.buffer, palette, frame.transparent)
    image = Image.fromarray(rgba.reshape(frame.height, frame.width, 4))
    return np.asarray(image.resize(tuple(size), RESAMPLE))


def crop_frames(
    frames: Sequence[Frame],
    palette: Palette,
    geometry: CanvasGeometry,
    max_workers: Optional[int] = None,
    palette_index: Optional[PaletteIndex] = None,
) -> List[List[Frame]]:
    """
    Cut every frame into the six grid cells.

    All crop boxes are checked before any frame is touched, so an undersized
    canvas fails with BoundsError without doing pixel work.

    Args:
        frames: Source frames in decode order, all over palette
        palette: Encoding palette used for expansion and re-quantization
        geometry: Canvas size and grid placement for the source
        max_workers: Threads per pool
        palette_index: Nearest-color index of palette, built here when omitted

    Returns:
        Six frame lists in slot order; each keeps the source frame order, delays,
        disposal methods and transparent indexes
    """
    boxes = [geometry.slot_box(index) for index in range(SLOT_COUNT)]
    if palette_index is None:
        palette_index = PaletteIndex(palette)
    cut_width, cut_height = geometry.config.cut_size
    workers = max_workers or default_workers()

    with ThreadPoolExecutor(workers, thread_name_prefix="gridist-frame") as frame_pool, \
            ThreadPoolExecutor(workers, thread_name_prefix="gridist-chunk") as chunk_pool:

        def cut_frame(numbered: tuple) -> List[Frame]:
            position, frame = numbered
            canvas = render_canvas(frame, palette, geometry.size)
            cells = []
            for left, upper, right, lower in boxes:
                buffer = quantize(
                    canvas[upper:lower, left:right], palette_index, frame.transparent, chunk_pool
                )
                cells.append(Frame(
                    cut_width,
                    cut_height,
                    buffer,
                    delay=frame.delay,
                    disposal=frame.disposal,
                    transparent=frame.transparent,
                    needs_user_input=frame.needs_user_input,
                ))
            logger.debug("Processed frame %d/%d", position + 1, len(frames))
            return cells

        per_frame = map_fail_fast(cut_frame, enumerate(frames), frame_pool)

    return [[cells[index] for cells in per_frame] for index in range(SLOT_COUNT)]


def encode_cells(
    cells: Sequence[Sequence[Frame]],
    palette: Palette,
    executor: Executor,
) -> List[bytes]:
    """Encode each cell's frames into a looping GIF, in parallel and in slot order."""
    return map_fail_fast(lambda frames: encode_gif(frames, palette), cells, executor)


def crop_animation(
    animated: AnimatedSource,
    config: GridConfig = DEFAULT_CONFIG,
    max_workers: Optional[int] = None,
) -> List[bytes]:
    """
    Crop a decoded GIF into six encoded GIFs.

    Returns:
        GIF bytes for each slot, in slot order
    """
    geometry = CanvasGeometry.for_source(config, animated.width, animated.height)
    palette = animated.encoding_palette
    logger.info(
        "Creating grid from GIF with %d frames (canvas %dx%d, offset x=%d, y=%d)",
        len(animated.frames), geometry.size[0], geometry.size[1], *geometry.offset,
    )
    cells = crop_frames(
        animated.frames, palette, geometry, max_workers, palette_index=animated.palette_index
    )
    with ThreadPoolExecutor(SLOT_COUNT, thread_name_prefix="gridist-cell") as cell_pool:
        return encode_cells(cells, palette, cell_pool)


def crop_gif_file(
    path: Union[str, Path],
    config: GridConfig = DEFAULT_CONFIG,
    output_dir: Union[str, Path] = ".",
    max_workers: Optional[int] = None,
) -> List[Path]:
    """
    Crop a GIF file into six animated tiles saved as <stem>.<index>.gif.

    Nothing is written until every cell has been encoded.

    Returns:
        Paths of the six tiles in slot order
    """
    path = Path(path)
    targets = [tile_path(path, index, output_dir, GIF_EXTENSION) for index in range(SLOT_COUNT)]
    logger.info("Reading GIF file: %s", path)
    encoded = crop_animation(read_gif(path), config, max_workers)

    Path(output_dir).mkdir(parents=True, exist_ok=True)
    for target, data in zip(targets, encoded):
        try:
            target.write_bytes(data)
        except OSError as exc:
            raise EncodeError(f"Failed to write {target}: {exc}") from exc
        logger.debug("Saved tile %s", target)

    logger.info("Successfully created %d animated grid segments", len(targets))
    return targets
