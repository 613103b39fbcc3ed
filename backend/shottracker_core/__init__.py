"""Scoring, DOPE range and export logic shared by the API and scripts."""

from .scoring import ScoreResult, calculate_score, format_score, remove_markers
from .shots import Bullseye, InvalidShotError, Numeric, ShotSequence, Unfired, parse_shot
from .ranges import STANDARD_DISTANCES, RangeEntry, ReconciledRangeRow, reconcile_ranges
from .session import SessionFilters, SessionRecord, summarise_sessions
from .export import format_range_table_as_text, format_sessions_as_delimited
from .loader import DataStore

__all__ = [
    "Bullseye",
    "DataStore",
    "InvalidShotError",
    "Numeric",
    "RangeEntry",
    "ReconciledRangeRow",
    "STANDARD_DISTANCES",
    "ScoreResult",
    "SessionFilters",
    "SessionRecord",
    "ShotSequence",
    "Unfired",
    "calculate_score",
    "format_range_table_as_text",
    "format_score",
    "format_sessions_as_delimited",
    "parse_shot",
    "reconcile_ranges",
    "remove_markers",
    "summarise_sessions",
]
