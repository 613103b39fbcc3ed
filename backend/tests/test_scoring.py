import pytest

from shottracker_core import InvalidShotError, ScoreResult, calculate_score, format_score, remove_markers


def test_mixed_card_totals_bullseyes_as_five() -> None:
    shots = ["V", "V", "3", "0", "", "2", "V", "1", "4", "0", "5", "V"]

    result = calculate_score(shots)

    assert result == ScoreResult(total_score=35, v_count=4)


def test_all_zero_and_all_unfired_cards_score_nothing() -> None:
    assert calculate_score([0] * 12) == ScoreResult(total_score=0, v_count=0)
    assert calculate_score([""] * 12) == ScoreResult(total_score=0, v_count=0)
    assert calculate_score([None] * 12) == ScoreResult(total_score=0, v_count=0)


def test_all_bullseye_card_is_the_maximum() -> None:
    result = calculate_score(["V"] * 12)

    assert result == ScoreResult(total_score=60, v_count=12)


def test_numeric_tokens_and_integers_score_the_same() -> None:
    as_text = calculate_score(["10", "9", "8", "7", "6", "5", "4", "3", "2", "1", "0", "v"])
    as_ints = calculate_score([10, 9, 8, 7, 6, 5, 4, 3, 2, 1, 0, "V"])

    assert as_text == as_ints == ScoreResult(total_score=60, v_count=1)


def test_calculate_score_is_repeatable() -> None:
    shots = ["V", "4", "5", "5", "V", "", "3", "5", "5", "4", "V", "5"]

    assert calculate_score(shots) == calculate_score(shots)


@pytest.mark.parametrize(
    "shots",
    [
        ["V"] * 11,
        ["V"] * 13,
        ["11"] + [""] * 11,
        ["X"] + [""] * 11,
        [-1] + [""] * 11,
        [True] + [""] * 11,
        [2.5] + [""] * 11,
    ],
)
def test_malformed_cards_are_rejected(shots) -> None:
    with pytest.raises(InvalidShotError):
        calculate_score(shots)


def test_remove_markers_takes_off_first_two_shots() -> None:
    shots = ["V", "4"] + ["0"] * 10
    base = calculate_score(shots)

    adjusted = remove_markers(base, shots)

    assert base == ScoreResult(total_score=9, v_count=1)
    assert adjusted == ScoreResult(total_score=0, v_count=0)


def test_remove_markers_leaves_later_bullseyes() -> None:
    shots = ["3", "", "V", "V", "5", "5", "5", "5", "5", "5", "5", "5"]
    base = calculate_score(shots)

    adjusted = remove_markers(base, shots)

    assert base == ScoreResult(total_score=53, v_count=2)
    assert adjusted == ScoreResult(total_score=50, v_count=2)


def test_remove_markers_clamps_at_zero() -> None:
    shots = ["V", "V"] + [""] * 10

    adjusted = remove_markers(ScoreResult(total_score=4, v_count=1), shots)

    assert adjusted == ScoreResult(total_score=0, v_count=0)


def test_remove_markers_does_not_touch_the_card() -> None:
    shots = ["V", "4"] + ["5"] * 10
    original = list(shots)

    remove_markers(calculate_score(shots), shots)

    assert shots == original


def test_format_score_uses_total_dot_vcount() -> None:
    assert format_score(ScoreResult(total_score=35, v_count=4)) == "35.4"
    assert format_score(ScoreResult(total_score=0, v_count=0)) == "0.0"
