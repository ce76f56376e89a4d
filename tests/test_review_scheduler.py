# ABOUTME: Tests the lite spaced-repetition scheduler.
# ABOUTME: Covers multipliers, clamping, interval ordering, bookkeeping and due-queue helpers.

from dataclasses import replace
from datetime import datetime, timedelta, timezone
import itertools

import pytest

from src.common.schemas import MemoryState, Rating
from src.review.scheduler import (
    apply_review,
    due_items,
    init_state,
    is_due,
    next_interval,
    parse_rating,
    preview_intervals,
    review,
)

NOW = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


def test_init_state_defaults():
    state = init_state(now=NOW)
    assert state.stability == 0.5
    assert state.difficulty == 5.0
    assert state.due == NOW
    assert state.reps == 0 and state.lapses == 0
    assert not state.suspended


def test_good_rating_worked_example():
    result = review(2.0, 5.0, Rating.GOOD, now=NOW)
    assert result.stability == pytest.approx(3.2)
    assert result.difficulty == 5.0
    assert result.interval_days == 3
    assert result.due == NOW + timedelta(days=3)


@pytest.mark.parametrize(
    "rating, stability",
    [(Rating.AGAIN, 1.0), (Rating.HARD, 1.8), (Rating.GOOD, 3.2), (Rating.EASY, 4.4)],
)
def test_multipliers_per_rating(rating, stability):
    assert review(2.0, 5.0, rating, now=NOW).stability == pytest.approx(stability)


def test_difficulty_deltas():
    assert review(2.0, 5.0, Rating.EASY, now=NOW).difficulty == pytest.approx(4.8)
    assert review(2.0, 5.0, Rating.AGAIN, now=NOW).difficulty == pytest.approx(5.3)
    assert review(2.0, 5.0, Rating.HARD, now=NOW).difficulty == 5.0


def test_intervals_ordered_by_rating():
    intervals = preview_intervals(2.0, 5.0)
    assert intervals[Rating.EASY] > intervals[Rating.GOOD] > intervals[Rating.HARD] > intervals[Rating.AGAIN]
    assert intervals == {Rating.AGAIN: 1, Rating.HARD: 2, Rating.GOOD: 3, Rating.EASY: 5}


def test_stability_clamped_at_bounds():
    assert review(0.1, 5.0, Rating.AGAIN, now=NOW).stability == 0.3
    assert review(50.0, 5.0, Rating.EASY, now=NOW).stability == 60


def test_interval_never_below_one_day():
    assert next_interval(0.3, 5.0, Rating.AGAIN) == 1


def test_bounds_hold_for_every_rating_sequence():
    for sequence in itertools.product(list(Rating), repeat=5):
        s, d = 0.5, 5.0
        for rating in sequence * 4:
            result = review(s, d, rating, now=NOW)
            s, d = result.stability, result.difficulty
            assert 0.3 <= s <= 60
            assert 1.3 <= d <= 9.0


@pytest.mark.parametrize("value, expected", [(1, Rating.AGAIN), ("good", Rating.GOOD), ("4", Rating.EASY), (Rating.HARD, Rating.HARD)])
def test_parse_rating_accepts_known_forms(value, expected):
    assert parse_rating(value) is expected


@pytest.mark.parametrize("value", [0, 5, "great", True, 2.5, None])
def test_invalid_ratings_rejected(value):
    with pytest.raises(ValueError):
        review(2.0, 5.0, value, now=NOW)


def test_negative_state_rejected():
    with pytest.raises(ValueError):
        review(-1.0, 5.0, Rating.GOOD, now=NOW)


def test_apply_review_tracks_reps_lapses_and_snapshot():
    state = MemoryState(stability=2.0, difficulty=5.0, due=NOW - timedelta(days=3), reps=4, lapses=1)

    updated, snapshot = apply_review(state, Rating.AGAIN, now=NOW)

    assert updated.reps == 5
    assert updated.lapses == 2
    assert updated.last_review == NOW
    assert updated.stability == pytest.approx(1.0)
    assert updated.due == NOW + timedelta(days=1)
    assert snapshot.stability == 2.0
    assert snapshot.difficulty == 5.0
    assert snapshot.elapsed_days == 3
    assert snapshot.rating is Rating.AGAIN

    again, _ = apply_review(updated, Rating.GOOD, now=NOW + timedelta(days=1))
    assert again.lapses == 2
    assert again.reps == 6


def test_due_items_skips_suspended_and_sorts():
    older = MemoryState(stability=1.0, difficulty=5.0, due=NOW - timedelta(days=2))
    newer = MemoryState(stability=1.0, difficulty=5.0, due=NOW - timedelta(hours=1))
    future = MemoryState(stability=1.0, difficulty=5.0, due=NOW + timedelta(days=1))
    suspended = replace(older, suspended=True)

    assert due_items([newer, future, suspended, older], now=NOW) == [older, newer]
    assert is_due(newer, now=NOW)
    assert not is_due(future, now=NOW)
    assert not is_due(suspended, now=NOW)
