"""
GIF reading and writing at the frame level.

Reading lets Pillow composite every frame onto the logical screen as RGBA
(honouring frame offsets, disposal and transparency) and re-quantizes the result
against a single encoding palette, so each decoded Frame covers the whole canvas.
Pillow carries disposal and transparency over from earlier frames, so the values
each frame actually declares are read from the block stream itself.

Writing emits one image block per frame, exactly as given. Pillow's
save(save_all=True) merges identical consecutive frames and crops frames to the
changed region, which would break the frame-for-frame contract of the grid
output, so the container is assembled from GifImagePlugin's header and frame
writers instead.
"""

import logging
import struct
from contextlib import contextmanager
from dataclasses import dataclass, field
from io import BytesIO
from pathlib import Path
from typing import BinaryIO, Iterator, List, Optional, Sequence, Union

import numpy as np
from PIL import GifImagePlugin, Image, ImageSequence

from .errors import DecodeError, EncodeError, GridistError
from .palette import ALPHA_THRESHOLD, DEFAULT_PALETTE, Palette, PaletteIndex, quantize

logger = logging.getLogger(__name__)

GIF_TRAILER = b";"
LOOP_FOREVER = 0

EXTENSION_INTRODUCER = 0x21
IMAGE_SEPARATOR = 0x2C
TRAILER = 0x3B
GRAPHIC_CONTROL_LABEL = 0xF9
GRAPHIC_CONTROL_HEADER = b"!\xf9\x04"
USER_INPUT_FLAG = 0x02

Source = Union[str, Path, BinaryIO, bytes]


@dataclass(frozen=True)
class Frame:
    """One GIF frame as palette indexes."""

    width: int
    height: int
    buffer: bytes
    delay: int = 0  # centiseconds
    disposal: int = 0
    transparent: Optional[int] = None
    needs_user_input: bool = False
    left: int = 0
    top: int = 0

    def __post_init__(self) -> None:
        if len(self.buffer) != self.width * self.height:
            raise ValueError(
                f"Frame buffer holds {len(self.buffer)} pixels; "
                f"expected {self.width}x{self.height}"
            )
        if self.transparent is not None and not 0 <= self.transparent < 256:
            raise ValueError(f"Transparent index out of range: {self.transparent}")


@dataclass
class AnimatedSource:
    """A decoded GIF: logical screen size, frames and the palettes found."""

    width: int
    height: int
    frames: List[Frame] = field(default_factory=list)
    global_palette: Optional[Palette] = None
    local_palette: Optional[Palette] = None
    palette_index: Optional[PaletteIndex] = field(default=None, repr=False, compare=False)

    @property
    def encoding_palette(self) -> Palette:
        """Global palette, else the first frame's local palette, else the default."""
        if self.global_palette is not None:
            return self.global_palette
        if self.local_palette is not None:
            return self.local_palette
        return DEFAULT_PALETTE


@dataclass(frozen=True)
class GraphicControl:
    """Fields of the graphic control extension that precedes one image."""

    delay: int = 0
    disposal: int = 0
    transparent: Optional[int] = None
    needs_user_input: bool = False


NO_GRAPHIC_CONTROL = GraphicControl()


@dataclass
class BlockScan:
    """Color tables and per-image graphic controls found in a GIF block stream."""

    global_table: Optional[bytes] = None
    first_local_table: Optional[bytes] = None
    controls: List[GraphicControl] = field(default_factory=list)


def _color_table_length(flags: int) -> int:
    return 3 << ((flags & 0x07) + 1) if flags & 0x80 else 0


def _skip_sub_blocks(data: bytes, pos: int) -> int:
    while data[pos]:
        pos += data[pos] + 1
    return pos + 1


def scan_blocks(data: bytes) -> BlockScan:
    """
    Walk the blocks of a GIF and collect what Pillow does not report per frame.

    Images without a graphic control extension get NO_GRAPHIC_CONTROL. Bytes that
    start no known block are skipped, as Pillow's reader does.

    Raises:
        DecodeError: if a block runs past the end of the data
    """
    scan = BlockScan()
    try:
        table_length = _color_table_length(data[10])
        pos = 13
        if table_length:
            scan.global_table = data[pos:pos + table_length]
            pos += table_length

        pending = NO_GRAPHIC_CONTROL
        while pos < len(data):
            introducer = data[pos]
            if introducer == TRAILER:
                break
            if introducer == EXTENSION_INTRODUCER:
                label = data[pos + 1]
                pos += 2
                if label == GRAPHIC_CONTROL_LABEL and data[pos] >= 4:
                    packed, delay, transparent = struct.unpack_from("<BHB", data, pos + 1)
                    pending = GraphicControl(
                        delay=delay,
                        disposal=(packed >> 2) & 0x07,
                        transparent=transparent if packed & 0x01 else None,
                        needs_user_input=bool(packed & USER_INPUT_FLAG),
                    )
                pos = _skip_sub_blocks(data, pos)
            elif introducer == IMAGE_SEPARATOR:
                table_length = _color_table_length(data[pos + 9])
                pos += 10
                if table_length and not scan.controls:
                    scan.first_local_table = data[pos:pos + table_length]
                pos += table_length + 1  # color table, LZW minimum code size
                pos = _skip_sub_blocks(data, pos)
                scan.controls.append(pending)
                pending = NO_GRAPHIC_CONTROL
            else:
                pos += 1
    except (IndexError, struct.error) as exc:
        raise DecodeError(f"GIF block stream is truncated: {exc}") from exc
    return scan


@contextmanager
def _composited_frames() -> Iterator[None]:
    # Every frame comes out composited as RGB(A) instead of palette indexes
    # whose transparency Pillow tracks from the first frame only.
    previous = GifImagePlugin.LOADING_STRATEGY
    GifImagePlugin.LOADING_STRATEGY = GifImagePlugin.LoadingStrategy.RGB_ALWAYS
    try:
        yield
    finally:
        GifImagePlugin.LOADING_STRATEGY = previous


def _read_source(source: Source) -> bytes:
    if isinstance(source, bytes):
        return source
    if isinstance(source, (str, Path)):
        return Path(source).read_bytes()
    return source.read()


def _palette_of(table: Optional[bytes]) -> Optional[Palette]:
    return Palette(table) if table else None


def read_gif(source: Source) -> AnimatedSource:
    """
    Decode every frame of a GIF.

    Args:
        source: Path, binary file object or raw bytes of the GIF

    Returns:
        AnimatedSource with full-canvas frames over its encoding palette and the
        nearest-color index of that palette

    Raises:
        DecodeError: if the data is not a readable GIF
    """
    try:
        data = _read_source(source)
        with _composited_frames(), Image.open(BytesIO(data)) as image:
            if image.format != "GIF":
                raise DecodeError(f"Expected a GIF, got {image.format or 'unknown format'}")
            return _read_frames(image, scan_blocks(data))
    except GridistError:
        raise
    except (OSError, SyntaxError, ValueError, EOFError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Failed to read GIF: {exc}") from exc


def _read_frames(image: Image.Image, scan: BlockScan) -> AnimatedSource:
    width, height = image.size
    animated = AnimatedSource(
        width,
        height,
        global_palette=_palette_of(scan.global_table),
        local_palette=_palette_of(scan.first_local_table),
    )
    palette = animated.encoding_palette
    animated.palette_index = PaletteIndex(palette)

    # Index used for frames that show transparency without declaring any.
    screen_transparent = next(
        (control.transparent for control in scan.controls if control.transparent is not None),
        None,
    )

    for position, frame_image in enumerate(ImageSequence.Iterator(image)):
        if position >= len(scan.controls):
            raise DecodeError(f"GIF frame {position} has no image block")
        control = scan.controls[position]
        rgba = _frame_rgba(frame_image, screen_transparent)[:height, :width]

        transparent = control.transparent
        if transparent is None and (rgba[..., 3] < ALPHA_THRESHOLD).any():
            transparent = screen_transparent if screen_transparent is not None else 0

        buffer = quantize(rgba, animated.palette_index, transparent)
        animated.frames.append(Frame(
            width,
            height,
            buffer,
            delay=control.delay,
            disposal=control.disposal,
            transparent=transparent,
            needs_user_input=control.needs_user_input,
        ))

    logger.info(
        "Read GIF %dx%d with %d frames (%d-color palette)",
        width, height, len(animated.frames), len(palette),
    )
    return animated


def _frame_rgba(frame_image: Image.Image, screen_transparent: Optional[int]) -> np.ndarray:
    if frame_image.mode != "L":
        return np.asarray(frame_image.convert("RGBA"))
    # Pillow decodes GIFs without a usable color table as L, values being indexes.
    gray = np.asarray(frame_image)
    rgba = np.empty(gray.shape + (4,), dtype=np.uint8)
    rgba[..., :3] = gray[..., None]
    rgba[..., 3] = 255
    if screen_transparent is not None:
        rgba[gray == screen_transparent, 3] = 0
    return rgba


def _frame_image(frame: Frame, palette: Palette) -> Image.Image:
    image = Image.frombytes("P", (frame.width, frame.height), frame.buffer)
    image.putpalette(palette.data)
    return image


def _with_user_input(chunks: List[bytes]) -> List[bytes]:
    # getdata writes the graphic control extension, when there is one, as its
    # first chunk; Pillow has no parameter for the user input flag.
    control = chunks[0]
    if control.startswith(GRAPHIC_CONTROL_HEADER):
        flagged = control[:3] + bytes([control[3] | USER_INPUT_FLAG]) + control[4:]
        return [flagged] + chunks[1:]
    return [GRAPHIC_CONTROL_HEADER + bytes([USER_INPUT_FLAG, 0, 0, 0, 0])] + chunks


def encode_gif(frames: Sequence[Frame], palette: Palette, loop: int = LOOP_FOREVER) -> bytes:
    """
    Encode frames into a GIF that uses palette as its global color table.

    Every frame becomes one image block, in order, with its own delay, disposal,
    transparent index and user input flag. The logical screen takes the first
    frame's size.

    Raises:
        EncodeError: if there are no frames or Pillow fails to encode one
    """
    if not frames:
        raise EncodeError("No frames to encode.")

    try:
        images = [_frame_image(frame, palette) for frame in frames]
        header, _ = GifImagePlugin.getheader(images[0], info={"loop": loop})
        chunks = list(header)
        for frame, image in zip(frames, images):
            params = {"duration": frame.delay * 10, "disposal": frame.disposal}
            if frame.transparent is not None:
                params["transparency"] = frame.transparent
            frame_chunks = GifImagePlugin.getdata(image, offset=(frame.left, frame.top), **params)
            if frame.needs_user_input:
                frame_chunks = _with_user_input(frame_chunks)
            chunks.extend(frame_chunks)
    except (OSError, ValueError) as exc:
        raise EncodeError(f"Failed to encode GIF: {exc}") from exc

    chunks.append(GIF_TRAILER)
    return b"".join(chunks)
