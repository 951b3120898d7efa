"""
Replacement item ordering -- calling-layer policy for whole-period updates.

Responsibility:
    A form that edits a period posts every row it shows, existing and new,
    together with each row's position when the page was rendered
    ("original index", -1 or missing for rows added in the browser).  The
    kernel's replace-all operation takes an already-ordered list, so this
    module turns the posted rows into that list.

Policy:
    - Rows with original_index >= 0 keep their original relative order
      (sorted by original_index; ties keep submission order).
    - Rows without an original index, or with a negative one, follow in
      submission order.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from balance_kernel.domain.dtos import PaymentItemData


@dataclass(frozen=True)
class ReplacementEntry:
    """One posted row: the item and where it sat when the form was rendered."""

    item: PaymentItemData
    original_index: int | None = None

    @property
    def is_existing(self) -> bool:
        return self.original_index is not None and self.original_index >= 0


def order_replacement_items(
    entries: Iterable[ReplacementEntry],
) -> list[PaymentItemData]:
    """Existing rows by original index, then new rows as submitted."""
    entries = list(entries)
    existing = sorted(
        (entry for entry in entries if entry.is_existing),
        key=lambda entry: entry.original_index,
    )
    new = [entry for entry in entries if not entry.is_existing]
    return [entry.item for entry in existing] + [entry.item for entry in new]
