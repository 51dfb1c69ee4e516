import pytest

from engine.errors import RejectReason
from engine.items import Challenge, Direction, make_item
from engine.ranking import (
    RankingError,
    RevealProgress,
    canonical_order,
    first_sequence_break,
    validate_full,
    validate_sequence_step,
)

ASC = Challenge("numbers", "value", Direction.ASCENDING)
DESC = Challenge("numbers", "value", Direction.DESCENDING)


def items(*values):
    return [make_item(f"i{index}", f"Item {index}", "numbers", {"value": value}) for index, value in enumerate(values)]


def test_canonical_order_ascending_and_descending():
    pool = items(5, 1, 3)
    assert [item.metric("value") for item in canonical_order(pool, ASC)] == [1, 3, 5]
    assert [item.metric("value") for item in canonical_order(pool, DESC)] == [5, 3, 1]


def test_canonical_order_keeps_input_order_for_ties():
    pool = items(2, 1, 2)
    assert [item.item_id for item in canonical_order(pool, ASC)] == ["i1", "i0", "i2"]
    assert [item.item_id for item in canonical_order(pool, DESC)] == ["i0", "i2", "i1"]


def test_sequence_step_accepts_equal_values():
    a, b = items(4, 4)
    assert validate_sequence_step(a, b, ASC)
    assert validate_sequence_step(a, b, DESC)


def test_validate_full_reports_first_divergence():
    assert validate_full(items(1, 2, 3), ASC) is None
    assert validate_full(items(1, 3, 2), ASC) == 1
    assert validate_full(items(3, 2, 1), DESC) is None
    assert validate_full(items(2, 2, 1), ASC) == 0


def test_validate_full_accepts_swapped_ties():
    assert validate_full(items(1, 2, 2, 3), ASC) is None
    assert first_sequence_break(items(1, 2, 2, 3), ASC) is None


def test_reveal_stops_counting_after_first_break():
    progress = RevealProgress(candidate=items(1, 3, 2, 4), challenge=ASC)
    steps = [progress.reveal_next() for _ in range(4)]
    assert [step.in_sequence for step in steps] == [True, True, False, True]
    assert [step.contributes for step in steps] == [True, True, False, False]
    assert progress.break_index == 2
    assert progress.is_complete()
    assert not progress.succeeded()


def test_reveal_success_and_exhaustion():
    progress = RevealProgress(candidate=items(9, 7, 7), challenge=DESC)
    for _ in range(3):
        progress.reveal_next()
    assert progress.succeeded()
    with pytest.raises(RankingError) as excinfo:
        progress.reveal_next()
    assert excinfo.value.reason is RejectReason.NOTHING_TO_REVEAL
