from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Optional

from .scoring import ScoreResult, calculate_score, format_score
from .shots import ShotSequence


def _pick(row: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if key in row:
            return row[key]
    return None


def _optional_int(value: Any) -> Optional[int]:
    if value is None or value == "":
        return None
    return int(value)


def _optional_float(value: Any) -> Optional[float]:
    if value is None or value == "":
        return None
    return float(value)


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text or None


@dataclass
class SessionRecord:
    """A logged shooting session.

    ``total_score`` and ``v_count`` mirror the persisted columns; they are
    always derived from ``shots`` when the record is written.
    """

    name: str
    date: str  # ISO date, YYYY-MM-DD
    rifle: str
    calibre: str
    bullet_weight: Optional[int] = None  # grains
    distance: Optional[int] = None  # yards
    elevation: Optional[float] = None  # MOA
    windage: Optional[float] = None  # MOA
    shots: ShotSequence = field(default_factory=ShotSequence.empty)
    total_score: Optional[int] = None
    v_count: Optional[int] = None
    notes: Optional[str] = None
    photo_url: Optional[str] = None
    id: Optional[str] = None
    user_id: Optional[str] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SessionRecord":
        """Build a record from a database row or an API payload."""

        shots_raw = _pick(row, "shots")
        shots = ShotSequence.from_raw(shots_raw) if shots_raw is not None else ShotSequence.empty()
        total_raw = _pick(row, "total_score", "totalScore")
        return cls(
            id=_optional_text(_pick(row, "id")),
            user_id=_optional_text(_pick(row, "user_id", "userId")),
            name=str(_pick(row, "name") or ""),
            date=str(_pick(row, "date") or ""),
            rifle=str(_pick(row, "rifle") or ""),
            calibre=str(_pick(row, "calibre") or ""),
            bullet_weight=_optional_int(_pick(row, "bullet_weight", "bulletWeight")),
            distance=_optional_int(_pick(row, "distance")),
            elevation=_optional_float(_pick(row, "elevation")),
            windage=_optional_float(_pick(row, "windage")),
            shots=shots,
            total_score=None if total_raw is None else int(float(total_raw)),
            v_count=_optional_int(_pick(row, "v_count", "vCount")),
            notes=_optional_text(_pick(row, "notes")),
            photo_url=_optional_text(_pick(row, "photo_url", "photoUrl")),
            created_at=_optional_text(_pick(row, "created_at", "createdAt")),
        )

    @property
    def score(self) -> ScoreResult:
        return calculate_score(self.shots)

    def parsed_date(self) -> Optional[dt.date]:
        try:
            return dt.date.fromisoformat(self.date[:10])
        except ValueError:
            return None


@dataclass
class SessionFilters:
    name: Optional[str] = None
    rifle: Optional[str] = None
    distance: Optional[int] = None
    date_from: Optional[str] = None
    date_to: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return not (self.name or self.rifle or self.distance or self.date_from or self.date_to)

    def matches(self, record: SessionRecord) -> bool:
        if self.name and self.name.lower() not in record.name.lower():
            return False
        if self.rifle and self.rifle.lower() not in record.rifle.lower():
            return False
        if self.distance and record.distance != self.distance:
            return False
        # ISO dates compare correctly as strings, which matches the text column in the database.
        if self.date_from and record.date < self.date_from:
            return False
        if self.date_to and record.date > self.date_to:
            return False
        return True

    def apply(self, records: Iterable[SessionRecord]) -> List[SessionRecord]:
        return [record for record in records if self.matches(record)]


@dataclass(frozen=True)
class SessionStats:
    total: int
    average: float
    best: str


def summarise_sessions(records: Iterable[SessionRecord]) -> SessionStats:
    """Dashboard figures: session count, mean score and the best card."""

    scores = [record.score for record in records]
    if not scores:
        return SessionStats(total=0, average=0.0, best="0.0")

    average = sum(score.total_score for score in scores) / len(scores)
    best = max(scores, key=lambda score: (score.total_score, score.v_count))
    return SessionStats(total=len(scores), average=round(average, 1), best=format_score(best))
