from shottracker_core.ranges import (
    STANDARD_DISTANCES,
    RangeEntry,
    format_moa,
    reconcile_ranges,
    upsert_range_entry,
)


def test_empty_card_yields_every_standard_distance_without_data() -> None:
    rows = reconcile_ranges([], STANDARD_DISTANCES)

    assert len(rows) == 11
    assert [row.distance for row in rows] == [100, 200, 300, 400, 500, 600, 700, 800, 900, 1000, 1200]
    assert not any(row.has_data for row in rows)
    assert all(row.elevation is None and row.windage is None for row in rows)


def test_partial_entry_keeps_elevation_without_windage() -> None:
    rows = reconcile_ranges([RangeEntry(distance=300, elevation=3.2)], STANDARD_DISTANCES)

    by_distance = {row.distance: row for row in rows}
    assert by_distance[300].elevation == 3.2
    assert by_distance[300].windage is None
    assert by_distance[300].has_data is True
    assert [row.distance for row in rows if row.has_data] == [300]


def test_entry_without_values_occupies_its_row_but_has_no_data() -> None:
    rows = reconcile_ranges(
        [RangeEntry(distance=500, id="r-1"), RangeEntry(distance=600, windage=0.5, id="r-2")]
    )

    by_distance = {row.distance: row for row in rows}
    assert by_distance[500].has_data is False
    assert by_distance[500].entry_id == "r-1"
    assert by_distance[600].has_data is True
    assert by_distance[600].windage == 0.5


def test_off_table_distances_are_dropped() -> None:
    rows = reconcile_ranges([RangeEntry(distance=150, elevation=1.0), RangeEntry(distance=1100, elevation=9.0)])

    assert len(rows) == len(STANDARD_DISTANCES)
    assert not any(row.has_data for row in rows)


def test_custom_distance_order_is_preserved() -> None:
    rows = reconcile_ranges([RangeEntry(distance=50, elevation=-0.5)], [300, 50, 25])

    assert [row.distance for row in rows] == [300, 50, 25]
    assert rows[1].elevation == -0.5


def test_later_duplicate_entry_wins() -> None:
    rows = reconcile_ranges([RangeEntry(distance=200, elevation=1.0), RangeEntry(distance=200, elevation=1.5)])

    assert rows[1].elevation == 1.5


def test_upsert_overwrites_existing_distance() -> None:
    entries = [RangeEntry(distance=100, elevation=0.2, id="a"), RangeEntry(distance=200, elevation=1.1, id="b")]

    updated = upsert_range_entry(entries, RangeEntry(distance=200, elevation=1.4, windage=0.3))

    assert len(updated) == 2
    assert updated[1] == RangeEntry(distance=200, elevation=1.4, windage=0.3, id="b")
    assert entries[1].elevation == 1.1


def test_upsert_appends_new_distance() -> None:
    entries = [RangeEntry(distance=100, elevation=0.2, id="a")]

    updated = upsert_range_entry(entries, RangeEntry(distance=700, windage=2.0))

    assert [entry.distance for entry in updated] == [100, 700]


def test_format_moa_uses_two_decimals() -> None:
    assert format_moa(3.2) == "3.20"
    assert format_moa(0.0) == "0.00"
    assert format_moa(None) == ""
