import csv
import datetime as dt
import io

from shottracker_core import SessionRecord, ShotSequence
from shottracker_core.export import (
    NO_RANGE_DATA_BANNER,
    SESSION_COLUMNS,
    export_filename,
    format_range_table_as_text,
    format_sessions_as_delimited,
    parse_delimited_sessions,
    parse_range_table_text,
    range_table_filename,
)
from shottracker_core.ranges import RangeEntry, ReconciledRangeRow, reconcile_ranges
from shottracker_core.session import SessionFilters

GENERATED_AT = dt.datetime(2025, 8, 9, 14, 30, tzinfo=dt.UTC)


def _session(**overrides) -> SessionRecord:
    values = dict(
        name="Club prone",
        date="2025-08-09",
        rifle="Tikka T3x",
        calibre="6.5 Creedmoor",
        bullet_weight=140,
        distance=600,
        elevation=10.25,
        windage=-1.5,
        shots=ShotSequence.from_raw(["V", "V", "3", "0", "", "2", "V", "1", "4", "0", "5", "V"]),
        notes=None,
    )
    values.update(overrides)
    return SessionRecord(**values)


def test_delimited_export_uses_fixed_column_order() -> None:
    text = format_sessions_as_delimited([_session()])

    rows = list(csv.reader(io.StringIO(text)))
    assert rows[0] == SESSION_COLUMNS
    assert rows[0][:10] == [
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
    ]
    assert rows[0][-1] == "Notes"
    assert rows[1][:10] == ["2025-08-09", "Club prone", "Tikka T3x", "6.5 Creedmoor", "140", "600", "10.25", "-1.5", "35", "4"]
    assert rows[1][10:22] == ["V", "V", "3", "0", "", "2", "V", "1", "4", "0", "5", "V"]


def test_absent_numbers_are_empty_but_zero_is_kept() -> None:
    text = format_sessions_as_delimited([_session(elevation=None, windage=0.0, bullet_weight=None)])

    record = parse_delimited_sessions(text)[0]
    assert record["Elevation (MOA)"] == ""
    assert record["Windage (MOA)"] == "0"
    assert record["Bullet Weight (gr)"] == ""
    assert "null" not in text
    assert "None" not in text


def test_notes_with_commas_and_quotes_round_trip() -> None:
    note = 'He said, "good group"'
    text = format_sessions_as_delimited([_session(notes=note)])

    assert '"He said, ""good group"""' in text
    assert parse_delimited_sessions(text)[0]["Notes"] == note


def test_multiline_notes_stay_in_one_field() -> None:
    note = "Wind picked up\nafter shot 6"
    text = format_sessions_as_delimited([_session(notes=note), _session(name="Second")])

    parsed = parse_delimited_sessions(text)
    assert len(parsed) == 2
    assert parsed[0]["Notes"] == note
    assert parsed[1]["Name"] == "Second"


def test_export_with_no_sessions_is_just_the_header() -> None:
    text = format_sessions_as_delimited([])

    assert text.strip().split(",")[0] == "Date"
    assert parse_delimited_sessions(text) == []


def test_range_table_lists_windage_before_elevation() -> None:
    rows = reconcile_ranges([RangeEntry(distance=300, elevation=3.2, windage=0.75)])

    text = format_range_table_as_text("Tikka T3x 6.5 Creedmoor", rows, generated_at=GENERATED_AT)

    lines = text.splitlines()
    assert lines[0] == "DOPE Card: Tikka T3x 6.5 Creedmoor"
    assert lines[1] == "Generated: 2025-08-09 14:30 UTC"
    assert NO_RANGE_DATA_BANNER not in text
    header = next(line for line in lines if line.startswith("Distance"))
    assert header.index("Windage") < header.index("Elevation")
    row_300 = next(line for line in lines if line.strip().startswith("300"))
    assert [cell.strip() for cell in row_300.split("|")] == ["300", "0.8", "3.2"]


def test_range_table_rows_are_aligned_with_blank_cells() -> None:
    rows = reconcile_ranges([RangeEntry(distance=300, elevation=3.2), RangeEntry(distance=1000, windage=-2.0)])

    text = format_range_table_as_text("Card", rows, generated_at=GENERATED_AT)

    table = text.splitlines()[3:]
    assert len({len(line) for line in table}) == 1
    row_100 = next(line for line in table if line.strip().startswith("100 "))
    assert row_100.replace("|", "").strip() == "100"


def test_empty_card_still_prints_full_table_with_banner() -> None:
    text = format_range_table_as_text("Card", reconcile_ranges([]), generated_at=GENERATED_AT)

    assert NO_RANGE_DATA_BANNER in text
    assert len(parse_range_table_text(text)) == 11


def test_zero_rows_fall_back_to_standard_table() -> None:
    text = format_range_table_as_text("Card", [], generated_at=GENERATED_AT)

    rows = parse_range_table_text(text)
    assert [row.distance for row in rows][-1] == 1200
    assert NO_RANGE_DATA_BANNER in text


def test_wide_distances_grow_the_column() -> None:
    rows = [
        ReconciledRangeRow(distance=123456789012345, elevation=1.0, windage=None, has_data=True),
        ReconciledRangeRow(distance=100, elevation=None, windage=None, has_data=False),
    ]

    text = format_range_table_as_text("Card", rows, generated_at=GENERATED_AT)

    table = text.splitlines()[3:]
    assert len({len(line) for line in table}) == 1
    assert "123456789012345" in text
    assert parse_range_table_text(text)[0].distance == 123456789012345


def test_range_table_round_trips_to_one_decimal() -> None:
    entries = [
        RangeEntry(distance=100, elevation=0.25, windage=0.0),
        RangeEntry(distance=300, elevation=3.2),
        RangeEntry(distance=800, windage=-1.44),
        RangeEntry(distance=1200, elevation=38.06, windage=4.5),
    ]
    rows = reconcile_ranges(entries)

    parsed = parse_range_table_text(format_range_table_as_text("Card", rows, generated_at=GENERATED_AT))

    assert [row.distance for row in parsed] == [row.distance for row in rows]
    for original, recovered in zip(rows, parsed):
        for field in ("elevation", "windage"):
            expected = getattr(original, field)
            value = getattr(recovered, field)
            if expected is None:
                assert value is None
            else:
                assert value == round(expected, 1) or abs(value - expected) <= 0.05
        assert recovered.has_data == original.has_data


def test_export_filename_describes_filters() -> None:
    assert export_filename() == "shooting_sessions.csv"
    filters = SessionFilters(rifle="Tikka T3x", distance=600, date_from="2025-01-01", date_to="2025-06-30")
    assert export_filename(filters) == "shooting_sessions_Tikka_T3x_600yds_2025-01-01_to_2025-06-30.csv"
    assert export_filename(SessionFilters(date_to="2025-06-30")) == "shooting_sessions_to_2025-06-30.csv"


def test_range_table_filename_is_slugged() -> None:
    assert range_table_filename("Match - Tikka 6.5") == "dope_Match___Tikka_6_5.txt"
