"""Plain-text exports: the session spreadsheet and the printable DOPE table."""

from __future__ import annotations

import csv
import datetime as dt
import io
import re
from typing import Any, Dict, Iterable, List, Optional, Sequence

from .ranges import ReconciledRangeRow, reconcile_ranges
from .session import SessionFilters, SessionRecord
from .shots import SHOTS_PER_CARD

SESSION_COLUMNS: List[str] = [
    "Date",
    "Name",
    "Rifle",
    "Calibre",
    "Bullet Weight (gr)",
    "Distance (yards)",
    "Elevation (MOA)",
    "Windage (MOA)",
    "Total Score",
    "V Count",
    *[f"Shot {index}" for index in range(1, SHOTS_PER_CARD + 1)],
    "Notes",
]

RANGE_TABLE_HEADERS = ("Distance (yds)", "Windage (MOA)", "Elevation (MOA)")
NO_RANGE_DATA_BANNER = "*** No range data available ***"


def _number(value: Any) -> str:
    # Absent stays empty so "not recorded" is distinguishable from a recorded zero.
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _session_row(session: SessionRecord) -> List[str]:
    score = session.score
    return [
        session.date,
        session.name or "",
        session.rifle or "",
        session.calibre or "",
        _number(session.bullet_weight),
        _number(session.distance),
        _number(session.elevation),
        _number(session.windage),
        _number(score.total_score),
        _number(score.v_count),
        *session.shots.to_raw(),
        session.notes or "",
    ]


def format_sessions_as_delimited(sessions: Iterable[SessionRecord]) -> str:
    """Render sessions as CSV text with a header row.

    Fields containing a comma, quote or newline are quoted with inner quotes
    doubled; free-text notes depend on this.
    """

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(SESSION_COLUMNS)
    for session in sessions:
        writer.writerow(_session_row(session))
    return buffer.getvalue()


def parse_delimited_sessions(text: str) -> List[Dict[str, str]]:
    reader = csv.DictReader(io.StringIO(text))
    return [dict(row) for row in reader]


def _moa_cell(value: Optional[float]) -> str:
    return "" if value is None else f"{value:.1f}"


def format_range_table_as_text(
    profile_label: str,
    ranges: Sequence[ReconciledRangeRow],
    generated_at: dt.datetime | None = None,
) -> str:
    """Render a reconciled DOPE table as a fixed-width text block.

    Columns are Distance | Windage | Elevation. Values are shown to one
    decimal place and blank cells are space padded so rows stay aligned.
    Column widths grow to fit the widest cell.
    """

    rows = list(ranges) or reconcile_ranges([])
    stamp = generated_at or dt.datetime.now(dt.UTC)

    cells = [
        (str(row.distance), _moa_cell(row.windage), _moa_cell(row.elevation))
        for row in rows
    ]
    widths = [
        max([len(header)] + [len(cell[index]) for cell in cells])
        for index, header in enumerate(RANGE_TABLE_HEADERS)
    ]

    def _line(values: Sequence[str]) -> str:
        return " | ".join(value.rjust(width) for value, width in zip(values, widths))

    lines = [
        f"DOPE Card: {profile_label}",
        f"Generated: {stamp.strftime('%Y-%m-%d %H:%M')} UTC",
    ]
    if not any(row.has_data for row in rows):
        lines.append(NO_RANGE_DATA_BANNER)
    lines.append("")
    lines.append(_line(RANGE_TABLE_HEADERS))
    lines.append("-+-".join("-" * width for width in widths))
    lines.extend(_line(cell) for cell in cells)
    return "\n".join(lines) + "\n"


def _parse_moa(cell: str) -> Optional[float]:
    cell = cell.strip()
    return float(cell) if cell else None


def parse_range_table_text(text: str) -> List[ReconciledRangeRow]:
    """Read back the rows of a table produced by :func:`format_range_table_as_text`."""

    lines = text.splitlines()
    try:
        start = next(
            index for index, line in enumerate(lines) if line and set(line) <= {"-", "+"}
        )
    except StopIteration as exc:
        raise ValueError("range table separator line not found") from exc

    rows: List[ReconciledRangeRow] = []
    for line in lines[start + 1:]:
        if not line.strip():
            continue
        parts = line.split("|")
        if len(parts) != len(RANGE_TABLE_HEADERS):
            raise ValueError(f"malformed range table row: {line!r}")
        distance_cell, windage_cell, elevation_cell = parts
        windage = _parse_moa(windage_cell)
        elevation = _parse_moa(elevation_cell)
        rows.append(
            ReconciledRangeRow(
                distance=int(distance_cell.strip()),
                elevation=elevation,
                windage=windage,
                has_data=elevation is not None or windage is not None,
            )
        )
    return rows


def _slug(value: str) -> str:
    return re.sub(r"[^a-zA-Z0-9]", "_", value)


def export_filename(filters: SessionFilters | None = None, extension: str = "csv") -> str:
    """Download name describing the filters an export was taken with."""

    parts = ["shooting_sessions"]
    if filters is not None:
        if filters.rifle:
            parts.append(_slug(filters.rifle))
        if filters.distance:
            parts.append(f"{filters.distance}yds")
        date_from = (filters.date_from or "")[:10]
        date_to = (filters.date_to or "")[:10]
        if date_from and date_to:
            parts.append(f"{date_from}_to_{date_to}")
        elif date_from:
            parts.append(f"from_{date_from}")
        elif date_to:
            parts.append(f"to_{date_to}")
    return "_".join(parts) + f".{extension}"


def range_table_filename(profile_label: str) -> str:
    slug = _slug(profile_label.strip()) or "card"
    return f"dope_{slug}.txt"
