"""Text unit extraction and resume offset lookup."""

from __future__ import annotations

from typing import Callable, List, Sequence

from .documents import SubtitleDocument
from .errors import AddressNotFoundError
from .structures import TextAddress, TextUnit


LengthMeasure = Callable[[str], int]


def extract_text_units(
    document: SubtitleDocument,
    measure_length: LengthMeasure,
) -> List[TextUnit]:
    """Walk items, lines and segments in order, skipping empty segments."""

    units: List[TextUnit] = []
    for item_index, item in enumerate(document.items):
        for line_index, line in enumerate(item.lines):
            for seg_index, segment in enumerate(line.segments):
                if segment.text == "":
                    continue
                units.append(
                    TextUnit(
                        item_index=item_index,
                        line_index=line_index,
                        seg_index=seg_index,
                        text=segment.text,
                        length=measure_length(segment.text),
                    )
                )
    return units


def find_unit_offset(units: Sequence[TextUnit], address: TextAddress) -> int:
    """Return the index of the unit located at ``address``.

    Addresses of empty segments are never extracted, so they are reported as
    not found just like out-of-range addresses.
    """

    for offset, unit in enumerate(units):
        if unit.address == address:
            return offset
    raise AddressNotFoundError(address)
