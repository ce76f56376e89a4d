# ABOUTME: Exposes the spaced-repetition review scheduler.
# ABOUTME: Groups state initialization, review updates and due-queue helpers.

from .scheduler import (
    ReviewResult,
    apply_review,
    due_items,
    init_state,
    is_due,
    next_interval,
    parse_rating,
    preview_intervals,
    review,
)

__all__ = [
    "ReviewResult",
    "apply_review",
    "due_items",
    "init_state",
    "is_due",
    "next_interval",
    "parse_rating",
    "preview_intervals",
    "review",
]
