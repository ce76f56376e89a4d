# ABOUTME: Exposes the two-phase adaptive ability estimator.
# ABOUTME: Groups IRT math, item bank helpers, the session state machine and knowledge reporting.

from .engine import (
    finish_screening,
    next_item,
    record_cat_response,
    record_screening_response,
    should_stop,
    start_session,
    summary,
)
from .irt import fisher_information, prob_know, select_best_item, sigmoid, update_theta_map
from .item_bank import build_cat_pool, build_screening_items, load_item_bank, prepare_item_bank
from .report import item_probability, knowledge_report

__all__ = [
    "build_cat_pool",
    "build_screening_items",
    "finish_screening",
    "fisher_information",
    "item_probability",
    "knowledge_report",
    "load_item_bank",
    "next_item",
    "prepare_item_bank",
    "prob_know",
    "record_cat_response",
    "record_screening_response",
    "select_best_item",
    "should_stop",
    "sigmoid",
    "start_session",
    "summary",
    "update_theta_map",
]
