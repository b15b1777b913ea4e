"""
Exception types raised by the grid cropper.
All of them derive from GridistError so callers can catch one type.
"""


class GridistError(Exception):
    """Base class for every error raised by gridist."""


class ConfigError(GridistError, ValueError):
    """Invalid grid geometry, slot index or input naming."""


class DecodeError(GridistError):
    """The source image could not be read or decoded."""


class BoundsError(GridistError):
    """A crop box does not fit inside the resampled canvas."""


class EncodeError(GridistError):
    """Output pixels or container bytes could not be produced."""


class PaletteError(GridistError, ValueError):
    """Malformed palette data."""
