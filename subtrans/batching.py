"""Batching of text units under a provider length budget."""

from __future__ import annotations

from typing import List, Sequence

from .structures import Batch, TextUnit


class BatchBuilder:
    """Aggregates units into batches within a length budget.

    Packing is greedy and order preserving. A unit longer than the budget is
    never split; it is sent alone in its own batch.
    """

    def __init__(self, max_length: int) -> None:
        self.max_length = max(1, max_length)

    def build(self, units: Sequence[TextUnit]) -> List[Batch]:
        batches: List[Batch] = []
        batch_units: List[TextUnit] = []
        running_total = 0
        batch_id = 1

        for unit in units:
            if unit.length > self.max_length:
                if batch_units:
                    batches.append(Batch(batch_id=batch_id, units=batch_units))
                    batch_id += 1
                    batch_units = []
                    running_total = 0
                batches.append(Batch(batch_id=batch_id, units=[unit]))
                batch_id += 1
                continue

            if running_total + unit.length > self.max_length and batch_units:
                batches.append(Batch(batch_id=batch_id, units=batch_units))
                batch_id += 1
                batch_units = []
                running_total = 0

            batch_units.append(unit)
            running_total += unit.length

        if batch_units:
            batches.append(Batch(batch_id=batch_id, units=batch_units))

        return batches
