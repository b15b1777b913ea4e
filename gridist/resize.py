"""
Canvas sizing for the card grid.
Works out how large the resampled source must be and where the grid sits on it.
"""

import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Tuple

from .errors import BoundsError, ConfigError
from .layout import GridConfig

logger = logging.getLogger(__name__)

Box = Tuple[int, int, int, int]


def compute_target_size(
    src_width: int,
    src_height: int,
    container_width: int,
    min_height: int,
) -> Tuple[int, int]:
    """
    Calculate the resampled size of a source image.

    Sources at least as wide (relative to their height) as the layout are scaled
    until both dimensions cover it. Narrower sources are scaled to the container
    width; their height can then fall short of min_height, which is reported later
    as a BoundsError when the lower cuts are taken.

    Args:
        src_width: Source width in pixels
        src_height: Source height in pixels
        container_width: Width the canvas must reach
        min_height: Height the canvas should reach

    Returns:
        (width, height) of the resampled canvas, truncated to whole pixels
    """
    if src_width <= 0 or src_height <= 0:
        raise ConfigError(f"Source dimensions must be positive. Got: {src_width}x{src_height}")

    aspect = Fraction(src_width, src_height)
    target_aspect = Fraction(container_width, min_height)

    if aspect >= target_aspect:
        scale = max(Fraction(container_width, src_width), Fraction(min_height, src_height))
        size = (int(src_width * scale), int(src_height * scale))
    else:
        scale = Fraction(container_width, src_width)
        size = (container_width, int(src_height * scale))

    logger.debug(
        "Resize %dx%d -> %dx%d (aspect %.2f)",
        src_width, src_height, size[0], size[1], float(aspect),
    )
    return size


def compute_offsets(
    target_size: Tuple[int, int],
    container_width: int,
    min_height: int,
) -> Tuple[int, int]:
    """Offsets that center the layout on the resampled canvas."""
    width, height = target_size
    return max(0, (width - container_width) // 2), max(0, (height - min_height) // 2)


@dataclass(frozen=True)
class CanvasGeometry:
    """Resampled canvas size plus the grid placement on it."""

    config: GridConfig
    size: Tuple[int, int]
    offset: Tuple[int, int]

    @classmethod
    def for_source(cls, config: GridConfig, src_width: int, src_height: int) -> "CanvasGeometry":
        size = compute_target_size(
            src_width, src_height, config.container_width, config.minimum_height
        )
        offset = compute_offsets(size, config.container_width, config.minimum_height)
        return cls(config, size, offset)

    def slot_box(self, index: int) -> Box:
        """
        Return the (left, upper, right, lower) crop box of a slot on the canvas.

        Raises:
            ConfigError: if index is not a valid slot
            BoundsError: if the box does not fit inside the canvas
        """
        base_x, base_y = self.config.slot_origin(index)
        left = base_x + self.offset[0]
        upper = base_y + self.offset[1]
        right = left + self.config.cut_width
        lower = upper + self.config.cut_height
        if right > self.size[0] or lower > self.size[1]:
            raise BoundsError(
                f"Slot {index} box {(left, upper, right, lower)} exceeds "
                f"canvas {self.size[0]}x{self.size[1]}"
            )
        return left, upper, right, lower
