"""Core data structures for the subtrans pipeline."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .errors import InvalidAddressError


@dataclass(frozen=True, order=True)
class TextAddress:
    """Position of a segment inside a subtitle document."""

    item_index: int
    line_index: int
    seg_index: int

    def __str__(self) -> str:
        return f"{self.item_index},{self.line_index},{self.seg_index}"

    @classmethod
    def parse(cls, value: str) -> "TextAddress":
        """Parse an ``item,line,seg`` triple such as ``"12, 0, 1"``."""

        parts = value.split(",")
        if len(parts) != 3:
            raise InvalidAddressError(
                f"Address '{value}' must be in format item,line,seg."
            )
        indices: List[int] = []
        for name, part in zip(("item", "line", "seg"), parts):
            try:
                indices.append(int(part.strip()))
            except ValueError as exc:
                raise InvalidAddressError(
                    f"Could not parse {name} index '{part.strip()}' in address '{value}'."
                ) from exc
        return cls(*indices)


@dataclass(frozen=True)
class TextUnit:
    """A single non-empty segment ready for translation."""

    item_index: int
    line_index: int
    seg_index: int
    text: str
    length: int

    @property
    def address(self) -> TextAddress:
        return TextAddress(self.item_index, self.line_index, self.seg_index)


@dataclass
class Batch:
    """A batch of units constrained by the provider's length budget."""

    batch_id: int
    units: List[TextUnit]

    @property
    def texts(self) -> List[str]:
        return [unit.text for unit in self.units]

    @property
    def length(self) -> int:
        return sum(unit.length for unit in self.units)
