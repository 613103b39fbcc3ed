import pytest

from shottracker_core.shots import (
    BULLSEYE,
    UNFIRED,
    Bullseye,
    InvalidShotError,
    Numeric,
    ShotSequence,
    Unfired,
    parse_shot,
)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("V", BULLSEYE),
        ("v", BULLSEYE),
        ("", UNFIRED),
        ("  ", UNFIRED),
        (None, UNFIRED),
        ("0", Numeric(0)),
        (" 7 ", Numeric(7)),
        (10, Numeric(10)),
        (4.0, Numeric(4)),
    ],
)
def test_parse_shot_classifies_tokens(raw, expected) -> None:
    assert parse_shot(raw) == expected


@pytest.mark.parametrize("raw", ["11", "-1", "X", "M", "5.5", "²", True, 12, 3.5, []])
def test_parse_shot_rejects_unknown_tokens(raw) -> None:
    with pytest.raises(InvalidShotError):
        parse_shot(raw)


def test_points_follow_v_ring_convention() -> None:
    assert Bullseye().points == 5
    assert Unfired().points == 0
    assert Numeric(8).points == 8


def test_sequence_round_trips_to_stored_tokens() -> None:
    raw = ["V", "4", "", "10", "0", "v", "", "", "1", "2", "3", "5"]

    sequence = ShotSequence.from_raw(raw)

    assert len(sequence) == 12
    assert sequence[0] == BULLSEYE
    assert sequence[2] == UNFIRED
    assert sequence.to_raw() == ["V", "4", "", "10", "0", "V", "", "", "1", "2", "3", "5"]


def test_sequence_requires_twelve_shots() -> None:
    with pytest.raises(InvalidShotError, match="exactly 12"):
        ShotSequence.from_raw(["5"] * 10)


def test_sequence_rejects_a_bare_string() -> None:
    with pytest.raises(InvalidShotError):
        ShotSequence.from_raw("V45555555555")


def test_empty_sequence_is_all_unfired() -> None:
    sequence = ShotSequence.empty()

    assert all(shot == UNFIRED for shot in sequence)
    assert sequence == ShotSequence.from_raw([""] * 12)
