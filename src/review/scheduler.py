# ABOUTME: Implements the lite spaced-repetition scheduler (multiplicative stability, nudged difficulty).
# ABOUTME: Turns a memory state plus a recall rating into the next state, interval and due date.

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterable, List, Optional, Tuple, Union

from src.common.config import SchedulerConfig
from src.common.schemas import MemoryState, Rating, ReviewSnapshot

DEFAULT_CONFIG = SchedulerConfig()

RatingLike = Union[Rating, int, str]


@dataclass(frozen=True)
class ReviewResult:
    stability: float
    difficulty: float
    due: datetime
    interval_days: int


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def parse_rating(value: RatingLike) -> Rating:
    """Accept a Rating, 1..4 (int or digit string) or a rating name; reject anything else."""

    if isinstance(value, Rating):
        return value
    if isinstance(value, bool):
        raise ValueError(f"Invalid rating {value!r}. Expected 1-4 or again/hard/good/easy.")
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, int):
        try:
            return Rating(value)
        except ValueError:
            raise ValueError(f"Invalid rating {value!r}. Expected 1-4 or again/hard/good/easy.") from None
    if isinstance(value, str) and value.strip().upper() in Rating.__members__:
        return Rating[value.strip().upper()]
    raise ValueError(f"Invalid rating {value!r}. Expected 1-4 or again/hard/good/easy.")


def init_state(now: Optional[datetime] = None, config: SchedulerConfig = DEFAULT_CONFIG) -> MemoryState:
    """Memory state for an item scheduled for the first time; due immediately."""

    return MemoryState(
        stability=config.initial_stability,
        difficulty=config.initial_difficulty,
        due=now or _utcnow(),
    )


def review(
    stability: float,
    difficulty: float,
    rating: RatingLike,
    now: Optional[datetime] = None,
    config: SchedulerConfig = DEFAULT_CONFIG,
) -> ReviewResult:
    """
    Compute the post-review stability, difficulty and next due date.

    stability' = clamp(stability * multiplier[rating], 0.3, 60)
    difficulty' = clamp(difficulty + delta[rating], 1.3, 9.0)
    interval = max(1, round(stability' ** 1.07)) days
    """

    rating = parse_rating(rating)
    if stability < 0 or difficulty < 0:
        raise ValueError(f"Stability and difficulty must be non-negative, got s={stability}, d={difficulty}.")

    idx = int(rating) - 1
    new_stability = _clamp(stability * config.multipliers[idx], config.min_stability, config.max_stability)
    new_difficulty = _clamp(difficulty + config.difficulty_deltas[idx], config.min_difficulty, config.max_difficulty)
    # Half-up rounding, not banker's.
    interval_days = max(1, math.floor(math.pow(new_stability, config.interval_exponent) + 0.5))
    due = (now or _utcnow()) + timedelta(days=interval_days)
    return ReviewResult(stability=new_stability, difficulty=new_difficulty, due=due, interval_days=interval_days)


def next_interval(
    stability: float, difficulty: float, rating: RatingLike, config: SchedulerConfig = DEFAULT_CONFIG
) -> int:
    return review(stability, difficulty, rating, config=config).interval_days


def preview_intervals(
    stability: float, difficulty: float, config: SchedulerConfig = DEFAULT_CONFIG
) -> Dict[Rating, int]:
    """Interval in days each rating button would produce."""

    return {rating: next_interval(stability, difficulty, rating, config=config) for rating in Rating}


def apply_review(
    state: MemoryState,
    rating: RatingLike,
    now: Optional[datetime] = None,
    config: SchedulerConfig = DEFAULT_CONFIG,
) -> Tuple[MemoryState, ReviewSnapshot]:
    """
    Review a stored memory state.

    Returns the updated state (reps/lapses/last_review bookkeeping included)
    and a snapshot of the pre-update values for the review log.
    """

    rating = parse_rating(rating)
    now = now or _utcnow()
    anchor = state.last_review or state.due
    elapsed_days = max(0, math.floor((now - anchor).total_seconds() / 86400))

    snapshot = ReviewSnapshot(
        rating=rating,
        reviewed_at=now,
        stability=state.stability,
        difficulty=state.difficulty,
        elapsed_days=elapsed_days,
    )
    result = review(state.stability, state.difficulty, rating, now=now, config=config)
    updated = replace(
        state,
        stability=result.stability,
        difficulty=result.difficulty,
        due=result.due,
        reps=state.reps + 1,
        lapses=state.lapses + (1 if rating == Rating.AGAIN else 0),
        last_review=now,
    )
    return updated, snapshot


def is_due(state: MemoryState, now: Optional[datetime] = None) -> bool:
    return not state.suspended and (now or _utcnow()) >= state.due


def due_items(states: Iterable[MemoryState], now: Optional[datetime] = None) -> List[MemoryState]:
    """Unsuspended states that are due, oldest due date first."""

    now = now or _utcnow()
    return sorted((s for s in states if is_due(s, now)), key=lambda s: s.due)
