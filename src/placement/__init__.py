# ABOUTME: Exposes the onboarding placement staircase.
# ABOUTME: Groups the staircase state transitions, level mapping and placement item picking.

from .items import next_placement_item
from .staircase import (
    DifficultyWindow,
    confidence_from_step,
    difficulty_for_theta,
    pick_difficulty,
    should_stop,
    start,
    theta_to_band,
    theta_to_vocab_index,
    to_estimate,
    update,
)

__all__ = [
    "DifficultyWindow",
    "confidence_from_step",
    "difficulty_for_theta",
    "next_placement_item",
    "pick_difficulty",
    "should_stop",
    "start",
    "theta_to_band",
    "theta_to_vocab_index",
    "to_estimate",
    "update",
]
