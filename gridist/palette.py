"""
Indexed color support for GIF frames.

Provides the immutable Palette value, a nearest-color index over it, and the two
conversions every animated frame goes through: indexes to RGBA (expand) and RGBA
back to indexes (quantize).
"""

import logging
from concurrent.futures import Executor
from dataclasses import dataclass
from functools import cached_property
from typing import Iterable, Iterator, Optional, Sequence, Tuple, Union

import numpy as np

from .errors import PaletteError
from .parallel import map_fail_fast

logger = logging.getLogger(__name__)

MAX_COLORS = 256
ALPHA_THRESHOLD = 128  # alpha below this is treated as fully transparent
CHUNK_PIXELS = 4096

RGB = Tuple[int, int, int]
IndexBuffer = Union[bytes, bytearray, memoryview, np.ndarray]

DEFAULT_BASE_COLORS: Tuple[RGB, ...] = (
    (255, 0, 0),
    (0, 255, 0),
    (0, 0, 255),
    (255, 255, 0),
    (255, 0, 255),
    (0, 255, 255),
    (255, 255, 255),
    (0, 0, 0),
)
DEFAULT_GRAY_STEPS = 31


@dataclass(frozen=True)
class Palette:
    """Ordered RGB colors; the position of a color is its index."""

    data: bytes

    def __post_init__(self) -> None:
        data = bytes(self.data)
        if not data:
            raise PaletteError("Palette is empty")
        if len(data) % 3:
            raise PaletteError(
                f"Palette data ends with an incomplete color ({len(data)} bytes)"
            )
        if len(data) > MAX_COLORS * 3:
            raise PaletteError(
                f"Palette has {len(data) // 3} colors; at most {MAX_COLORS} are allowed"
            )
        object.__setattr__(self, "data", data)

    @classmethod
    def from_colors(cls, colors: Iterable[Sequence[int]]) -> "Palette":
        data = bytearray()
        for color in colors:
            if len(color) != 3:
                raise PaletteError(f"Palette colors must be RGB triples. Got: {color!r}")
            try:
                data.extend(color)
            except ValueError as exc:
                raise PaletteError(f"Color channel out of range in {color!r}") from exc
        return cls(bytes(data))

    def __len__(self) -> int:
        return len(self.data) // 3

    def __getitem__(self, index: int) -> RGB:
        if not 0 <= index < len(self):
            raise IndexError(f"Palette index {index} out of range")
        r, g, b = self.data[index * 3:index * 3 + 3]
        return r, g, b

    def __iter__(self) -> Iterator[RGB]:
        for index in range(len(self)):
            yield self[index]

    @cached_property
    def colors(self) -> np.ndarray:
        """Read-only (n, 3) uint8 view of the palette."""
        array = np.frombuffer(self.data, dtype=np.uint8).reshape(-1, 3)
        array.setflags(write=False)
        return array


def _build_default_palette() -> Palette:
    colors = list(DEFAULT_BASE_COLORS)
    colors.extend((i * 8, i * 8, i * 8) for i in range(DEFAULT_GRAY_STEPS))
    colors.extend([(0, 0, 0)] * (MAX_COLORS - len(colors)))
    return Palette.from_colors(colors)


DEFAULT_PALETTE = _build_default_palette()


class PaletteIndex:
    """
    Nearest-color lookup over a fixed palette.

    Distances are squared Euclidean in RGB. With at most 256 entries a full
    vectorised scan beats any tree, and argmin returning the first minimum
    means ties always go to the lowest palette index.

    Instances are never mutated after construction, so one index can be shared
    by any number of worker threads.
    """

    def __init__(self, palette: Palette) -> None:
        self.palette = palette
        colors = palette.colors.astype(np.int32)
        colors.setflags(write=False)
        self._colors = colors

    def nearest(self, rgb: Sequence[int], exclude: Optional[int] = None) -> int:
        """Return the palette index closest to one RGB color."""
        pixel = np.asarray([tuple(rgb[:3])], dtype=np.uint8)
        return int(self.nearest_many(pixel, exclude)[0])

    def nearest_many(self, rgb: np.ndarray, exclude: Optional[int] = None) -> np.ndarray:
        """
        Return the closest palette index for every row of an (n, 3) array.

        Colors are de-duplicated first; GIF frames rarely hold more than a few
        hundred distinct colors per chunk.

        Args:
            rgb: Pixels, one RGB color per row
            exclude: Palette index never returned, usually the transparent one

        Raises:
            PaletteError: if exclude leaves no color to choose from
        """
        pixels = np.asarray(rgb, dtype=np.uint8).reshape(-1, 3)
        if not len(pixels):
            return np.empty(0, dtype=np.uint8)
        excluded = exclude is not None and 0 <= exclude < len(self._colors)
        if excluded and len(self._colors) == 1:
            raise PaletteError("Palette has no color left besides the transparent index")
        packed = (
            (pixels[:, 0].astype(np.uint32) << 16)
            | (pixels[:, 1].astype(np.uint32) << 8)
            | pixels[:, 2].astype(np.uint32)
        )
        unique, inverse = np.unique(packed, return_inverse=True)
        unique_rgb = np.stack(
            ((unique >> 16) & 0xFF, (unique >> 8) & 0xFF, unique & 0xFF), axis=1
        ).astype(np.int32)
        diff = unique_rgb[:, None, :] - self._colors[None, :, :]
        distances = np.einsum("ijk,ijk->ij", diff, diff)
        if excluded:
            distances[:, exclude] = np.iinfo(distances.dtype).max
        nearest = np.argmin(distances, axis=1).astype(np.uint8)
        return nearest[inverse.reshape(-1)]


def _as_index_array(indices: IndexBuffer) -> np.ndarray:
    if isinstance(indices, (bytes, bytearray, memoryview)):
        return np.frombuffer(indices, dtype=np.uint8)
    return np.asarray(indices, dtype=np.uint8).reshape(-1)


def expand(
    indices: IndexBuffer,
    palette: Palette,
    transparent: Optional[int] = None,
) -> np.ndarray:
    """
    Convert palette indexes to an (n, 4) RGBA array.

    Indexes past the end of the palette expand to black. Alpha is binary, as in
    GIF: 0 for the transparent index, 255 for everything else.
    """
    lut = np.zeros((MAX_COLORS, 4), dtype=np.uint8)
    lut[:len(palette), :3] = palette.colors
    lut[:, 3] = 255
    if transparent is not None:
        lut[transparent, 3] = 0
    return lut[_as_index_array(indices)]


def quantize(
    rgba: np.ndarray,
    index: PaletteIndex,
    transparent: Optional[int] = None,
    executor: Optional[Executor] = None,
    chunk_pixels: int = CHUNK_PIXELS,
) -> bytes:
    """
    Convert RGBA pixels to palette indexes.

    Pixels with alpha below ALPHA_THRESHOLD become the transparent index (0 when
    there is none) without a color search. The remaining pixels get their
    nearest palette color other than the transparent index.

    Args:
        rgba: Array whose last axis holds R, G, B, A
        index: Nearest-color index of the target palette
        transparent: Index reserved for transparent pixels, if any
        executor: Optional pool to search chunks of pixels in parallel
        chunk_pixels: Pixels per chunk

    Returns:
        One index byte per pixel, in the input's row-major order
    """
    pixels = np.ascontiguousarray(rgba, dtype=np.uint8).reshape(-1, 4)
    total = len(pixels)
    output = np.empty(total, dtype=np.uint8)

    # Each chunk writes only its own slice of the output, so no locking.
    def quantize_span(span: Tuple[int, int]) -> None:
        start, stop = span
        chunk = pixels[start:stop]
        target = output[start:stop]
        opaque = chunk[:, 3] >= ALPHA_THRESHOLD
        target[~opaque] = 0 if transparent is None else transparent
        if opaque.any():
            target[opaque] = index.nearest_many(chunk[opaque, :3], exclude=transparent)

    spans = [(start, min(start + chunk_pixels, total)) for start in range(0, total, chunk_pixels)]
    if executor is None or len(spans) < 2:
        for span in spans:
            quantize_span(span)
    else:
        map_fail_fast(quantize_span, spans, executor)
    return output.tobytes()
