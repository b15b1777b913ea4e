"""
Gridist - split an image or animated GIF into a 3-row, 2-column card grid.
Contains the geometry, palette and cropping logic used by the CLI and web server.
"""

__version__ = "0.1.0"

from .errors import (
    GridistError,
    ConfigError,
    DecodeError,
    BoundsError,
    EncodeError,
    PaletteError,
)
from .layout import CardSlot, GridConfig, DEFAULT_CONFIG, SLOT_COUNT
from .resize import CanvasGeometry, compute_target_size, compute_offsets
from .palette import (
    Palette,
    PaletteIndex,
    DEFAULT_PALETTE,
    expand,
    quantize,
)
from .gif_io import AnimatedSource, Frame, read_gif, encode_gif
from .static_cropper import crop_image, crop_image_file, load_image
from .animated_cropper import crop_frames, crop_animation, crop_gif_file
from .cropper import crop_file, crop_bytes

__all__ = [
    "__version__",
    "GridistError",
    "ConfigError",
    "DecodeError",
    "BoundsError",
    "EncodeError",
    "PaletteError",
    "CardSlot",
    "GridConfig",
    "DEFAULT_CONFIG",
    "SLOT_COUNT",
    "CanvasGeometry",
    "compute_target_size",
    "compute_offsets",
    "Palette",
    "PaletteIndex",
    "DEFAULT_PALETTE",
    "expand",
    "quantize",
    "AnimatedSource",
    "Frame",
    "read_gif",
    "encode_gif",
    "crop_image",
    "crop_image_file",
    "load_image",
    "crop_frames",
    "crop_animation",
    "crop_gif_file",
    "crop_file",
    "crop_bytes",
]
