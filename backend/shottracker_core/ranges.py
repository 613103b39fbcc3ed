from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence

# Canonical rows of every DOPE table, in display order (note the 1000 -> 1200 gap).
STANDARD_DISTANCES: tuple[int, ...] = (100, 200, 300, 400, 500, 600, 700, 800, 900, 1000, 1200)


@dataclass(frozen=True)
class RangeEntry:
    """Scope adjustment recorded for one distance on a DOPE card."""

    distance: int
    elevation: Optional[float] = None
    windage: Optional[float] = None
    id: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return self.elevation is not None or self.windage is not None


@dataclass(frozen=True)
class ReconciledRangeRow:
    distance: int
    elevation: Optional[float]
    windage: Optional[float]
    has_data: bool
    entry_id: Optional[str] = None


def reconcile_ranges(
    entries: Iterable[RangeEntry],
    standard_distances: Sequence[int] = STANDARD_DISTANCES,
) -> List[ReconciledRangeRow]:
    """Left-join the standard distances against a card's recorded entries.

    One row is produced per standard distance, in the given order. Entries
    for other distances are ignored here; if two entries share a distance the
    later one wins.
    """

    by_distance: Dict[int, RangeEntry] = {}
    for entry in entries:
        by_distance[entry.distance] = entry

    rows: List[ReconciledRangeRow] = []
    for distance in standard_distances:
        entry = by_distance.get(distance)
        if entry is None:
            rows.append(ReconciledRangeRow(distance=distance, elevation=None, windage=None, has_data=False))
            continue
        rows.append(
            ReconciledRangeRow(
                distance=distance,
                elevation=entry.elevation,
                windage=entry.windage,
                has_data=entry.has_data,
                entry_id=entry.id,
            )
        )
    return rows


def upsert_range_entry(entries: Iterable[RangeEntry], entry: RangeEntry) -> List[RangeEntry]:
    """Return a new entry list with ``entry`` stored for its distance.

    An existing entry at the same distance is overwritten in place (keeping
    its id when the new entry has none); otherwise ``entry`` is appended.
    """

    result: List[RangeEntry] = []
    replaced = False
    for existing in entries:
        if existing.distance != entry.distance:
            result.append(existing)
            continue
        if replaced:
            continue
        result.append(entry if entry.id else replace(entry, id=existing.id))
        replaced = True
    if not replaced:
        result.append(entry)
    return result


def format_moa(value: Optional[float]) -> str:
    """Screen display of a stored MOA value (two decimal places)."""

    if value is None:
        return ""
    return f"{value:.2f}"
