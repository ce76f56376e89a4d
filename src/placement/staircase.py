# ABOUTME: Implements the onboarding placement staircase over a single ability scalar.
# ABOUTME: Converges theta from easy/hard judgments and maps it to a band, vocab index and confidence.

from __future__ import annotations

import math
from dataclasses import dataclass, replace
from typing import Optional

from src.common.config import PlacementConfig
from src.common.schemas import (
    BANDS,
    OUTCOME_EASY,
    OUTCOMES,
    LevelEstimate,
    PlacementEvent,
    PlacementState,
)

DEFAULT_CONFIG = PlacementConfig()

# Inclusive upper bounds for A1..C1; anything above the last is C2.
BAND_CUTS = (-2.0, -1.0, 0.2, 1.2, 2.2)

# Frequency-rank windows (lower rank = more frequent) used to pick placement words.
BAND_RANK_WINDOWS = {
    "A1": (1, 1500),
    "A2": (1000, 2500),
    "B1": (1500, 3500),
    "B2": (3000, 7000),
    "C1": (6000, 15000),
    "C2": (12000, 1000000),
}


@dataclass(frozen=True)
class DifficultyWindow:
    band: str
    min_freq_rank: int
    max_freq_rank: int


def start(config: PlacementConfig = DEFAULT_CONFIG) -> PlacementState:
    """Fresh staircase assuming a mid-level learner."""

    return PlacementState(theta=0.0, step=config.initial_step, n=0)


def pick_difficulty(state: PlacementState, config: PlacementConfig = DEFAULT_CONFIG) -> float:
    return max(-config.pick_bound, min(config.pick_bound, state.theta))


def update(
    state: PlacementState,
    outcome: str,
    item_id: Optional[str] = None,
    freq_rank: Optional[int] = None,
) -> PlacementState:
    """
    Apply one easy/hard judgment.

    theta moves by the current step, n increments, and the step halves every
    second response regardless of the outcome pattern. When ``item_id`` is
    given the item is remembered so the next pick can skip it.
    """

    if outcome not in OUTCOMES:
        raise ValueError(f"Invalid placement outcome {outcome!r}. Expected one of: {', '.join(OUTCOMES)}.")

    theta = state.theta + (state.step if outcome == OUTCOME_EASY else -state.step)
    n = state.n + 1
    step = state.step * 0.5 if n % 2 == 0 else state.step

    seen = state.seen_item_ids
    history = state.history
    if item_id is not None:
        if item_id not in seen:
            seen = seen + (item_id,)
        event = PlacementEvent(
            item_id=item_id,
            outcome=outcome,
            band=theta_to_band(state.theta),
            freq_rank=freq_rank,
        )
        history = history + (event,)
    return replace(state, theta=theta, step=step, n=n, seen_item_ids=seen, history=history)


def should_stop(state: PlacementState, config: PlacementConfig = DEFAULT_CONFIG) -> bool:
    converged = state.n >= config.min_responses and state.step <= config.stop_step
    return converged or state.n >= config.max_responses


def theta_to_band(theta: float) -> str:
    for band, cut in zip(BANDS, BAND_CUTS):
        if theta <= cut:
            return band
    return BANDS[-1]


def theta_to_vocab_index(theta: float) -> float:
    """10 * sigmoid(theta), written to stay finite for any float theta."""

    return 10.0 * 0.5 * (1.0 + math.tanh(0.5 * theta))


def confidence_from_step(step: float, config: PlacementConfig = DEFAULT_CONFIG) -> float:
    """Map the remaining step size onto [confidence_floor, 1]; smaller steps mean more confidence."""

    min_step = config.confidence_min_step
    max_step = config.initial_step
    clamped = max(min_step, min(max_step, step))
    if clamped <= config.stop_step:
        return 1.0
    normalized = (max_step - clamped) / (max_step - min_step)
    shaped = normalized ** config.confidence_gamma
    return config.confidence_floor + shaped * (1.0 - config.confidence_floor)


def to_estimate(state: PlacementState, config: PlacementConfig = DEFAULT_CONFIG) -> LevelEstimate:
    return LevelEstimate(
        band=theta_to_band(state.theta),
        vocab_index=theta_to_vocab_index(state.theta),
        confidence=confidence_from_step(state.step, config=config),
    )


def difficulty_for_theta(theta: float) -> DifficultyWindow:
    band = theta_to_band(theta)
    low, high = BAND_RANK_WINDOWS[band]
    return DifficultyWindow(band=band, min_freq_rank=low, max_freq_rank=high)
