from __future__ import annotations

from collections.abc import Iterable, Iterator

"""Entry-number deduplication.

A spreadsheet line with entry number ``E`` and quantity ``N`` stands for the
physical units ``E-1`` .. ``E-N``. The ledger holds every unit key already in
the store plus the ones queued during the current run; a line without an
entry number is never considered a duplicate.
"""

__all__ = [
    "unit_entry_number",
    "expand_units",
    "DedupLedger",
]


def unit_entry_number(entry_number: str | None, unit_index: int) -> str | None:
    if not entry_number:
        return None
    return f"{entry_number}-{unit_index}"


def expand_units(entry_number: str | None, quantity: int) -> Iterator[str | None]:
    """Yield one unit key per physical unit (1-based)."""
    for i in range(1, quantity + 1):
        yield unit_entry_number(entry_number, i)


class DedupLedger:
    def __init__(self, existing: Iterable[str] = ()) -> None:
        self._keys: set[str] = set(existing)

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def claim(self, key: str | None) -> bool:
        """Reserve ``key`` for insertion.

        Returns False when the key is already known (the unit must be
        skipped). A None key is always accepted and never recorded.
        """
        if key is None:
            return True
        if key in self._keys:
            return False
        self._keys.add(key)
        return True
