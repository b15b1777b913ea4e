"""
Card grid geometry.
Describes the fixed 3-row, 2-column card layout and where each cut sits in it.
"""

from dataclasses import dataclass, fields
from typing import Iterator, NamedTuple, Tuple

from .errors import ConfigError

SLOT_COUNT = 6
COLUMNS = 2


class CardSlot(NamedTuple):
    """One cell of the grid, with its origin on the layout canvas."""

    index: int
    column: int
    row: int
    x: int
    y: int


@dataclass(frozen=True)
class GridConfig:
    """Dimensions and spacing of the card grid."""

    container_width: int = 928
    cut_width: int = 422
    cut_height: int = 100
    padding_top: int = 37
    padding_horizontal: int = 16
    padding_bottom: int = 16
    margin_bottom: int = 16

    def __post_init__(self) -> None:
        for field in fields(self):
            value = getattr(self, field.name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise ConfigError(f"{field.name} must be a positive integer. Got: {value!r}")
        if self.cut_width + 2 * self.padding_horizontal > self.container_width:
            raise ConfigError(
                f"cut_width ({self.cut_width}) plus horizontal padding "
                f"({self.padding_horizontal} on each side) exceeds "
                f"container_width ({self.container_width})"
            )

    @property
    def card_height(self) -> int:
        """Height of one card: top padding, cut and bottom padding."""
        return self.padding_top + self.cut_height + self.padding_bottom

    @property
    def y_offset(self) -> int:
        """Vertical distance between the tops of two consecutive rows."""
        return self.card_height + self.margin_bottom

    @property
    def minimum_height(self) -> int:
        """Smallest canvas height that holds all three rows."""
        return 3 * self.card_height + 2 * self.margin_bottom

    @property
    def cut_size(self) -> Tuple[int, int]:
        return self.cut_width, self.cut_height

    def slot_origin(self, index: int) -> Tuple[int, int]:
        """
        Return the top-left corner of a cut on the layout canvas.

        Even indexes sit in the left column, odd ones in the right column;
        index // 2 is the row counted from the top.

        Raises:
            ConfigError: if index is outside 0..5
        """
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < SLOT_COUNT:
            raise ConfigError(f"Invalid slot index {index!r}; expected 0..{SLOT_COUNT - 1}")
        if index % COLUMNS == 0:
            x = self.padding_horizontal
        else:
            x = self.container_width - self.cut_width - self.padding_horizontal
        y = self.padding_top + (index // COLUMNS) * self.y_offset
        return x, y

    def card_slots(self) -> Iterator[CardSlot]:
        """Yield the six slots in index order."""
        for index in range(SLOT_COUNT):
            x, y = self.slot_origin(index)
            yield CardSlot(index, index % COLUMNS, index // COLUMNS, x, y)


DEFAULT_CONFIG = GridConfig()
