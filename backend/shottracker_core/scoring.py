from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from .shots import Bullseye, ShotSequence

MARKER_SHOTS = 2


@dataclass(frozen=True)
class ScoreResult:
    total_score: int
    v_count: int


def _as_sequence(shots: ShotSequence | Iterable[Any]) -> ShotSequence:
    if isinstance(shots, ShotSequence):
        return shots
    return ShotSequence.from_raw(shots)


def calculate_score(shots: ShotSequence | Iterable[Any]) -> ScoreResult:
    """Total a score card.

    Bullseyes count 5 points and one V each, numbered rings count their value
    and unfired slots count nothing. Raw tokens are validated through
    :class:`ShotSequence`, so a malformed card raises ``InvalidShotError``
    instead of being scored as zero.
    """

    sequence = _as_sequence(shots)
    total = 0
    v_count = 0
    for shot in sequence:
        total += shot.points
        if isinstance(shot, Bullseye):
            v_count += 1
    return ScoreResult(total_score=total, v_count=v_count)


def remove_markers(result: ScoreResult, shots: ShotSequence | Iterable[Any]) -> ScoreResult:
    """Return ``result`` with the two marker (sighting) shots taken off.

    The recorded card is left untouched; both totals are clamped at zero.
    """

    sequence = _as_sequence(shots)
    markers = [sequence[index] for index in range(MARKER_SHOTS)]
    marker_points = sum(shot.points for shot in markers)
    marker_vs = sum(1 for shot in markers if isinstance(shot, Bullseye))
    return ScoreResult(
        total_score=max(0, result.total_score - marker_points),
        v_count=max(0, result.v_count - marker_vs),
    )


def format_score(result: ScoreResult) -> str:
    """Render a score in the ``total.vcount`` form used on score boards."""

    return f"{result.total_score}.{result.v_count}"
