# ABOUTME: Makes the shared common package importable across engines.
# ABOUTME: Re-exports learner-state schemas, config loading and calibration metrics for convenience.

from .config import AssessmentConfig, LexiTraceConfig, PlacementConfig, SchedulerConfig, load_config
from .evaluation import evaluate_predictions
from .schemas import (
    AssessmentItem,
    AssessmentResponse,
    AssessmentSession,
    LevelEstimate,
    MemoryState,
    PlacementState,
    Rating,
    ThetaState,
)

__all__ = [
    "AssessmentConfig",
    "AssessmentItem",
    "AssessmentResponse",
    "AssessmentSession",
    "LevelEstimate",
    "LexiTraceConfig",
    "MemoryState",
    "PlacementConfig",
    "PlacementState",
    "Rating",
    "SchedulerConfig",
    "ThetaState",
    "evaluate_predictions",
    "load_config",
]
