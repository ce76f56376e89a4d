# ABOUTME: Loads tunable thresholds for the scheduler, staircase and assessment engines from YAML.
# ABOUTME: Each section maps onto a frozen dataclass whose defaults mirror configs/lexitrace.yaml.

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Tuple

import yaml


@dataclass(frozen=True)
class SchedulerConfig:
    """Review scheduler constants."""

    initial_stability: float = 0.5
    initial_difficulty: float = 5.0
    min_stability: float = 0.3
    max_stability: float = 60.0
    min_difficulty: float = 1.3
    max_difficulty: float = 9.0
    interval_exponent: float = 1.07
    multipliers: Tuple[float, float, float, float] = (0.5, 0.9, 1.6, 2.2)  # again, hard, good, easy
    difficulty_deltas: Tuple[float, float, float, float] = (0.3, 0.0, 0.0, -0.2)


@dataclass(frozen=True)
class PlacementConfig:
    """Staircase stopping rule and confidence mapping."""

    initial_step: float = 1.0
    min_responses: int = 8
    stop_step: float = 0.25
    max_responses: int = 12
    pick_bound: float = 2.5
    confidence_floor: float = 0.3
    confidence_min_step: float = 0.125
    confidence_gamma: float = 1.25


@dataclass(frozen=True)
class AssessmentConfig:
    """Screening composition, CAT pool and stopping rule."""

    real_count: int = 60
    pseudo_ratio: float = 0.25
    zipf_bands: Tuple[int, ...] = (7, 6, 5, 4, 3)
    screening_guess: float = 0.05
    false_alarm_cap: float = 0.5
    screening_variance: float = 0.7
    pool_size: int = 200
    cat_guess: float = 0.25
    target_se: float = 0.30
    max_cat_responses: int = 30
    max_exposure: int = 3
    exposure_penalty: float = 0.01
    repeat_items: bool = False
    report_guess: float = 0.05
    report_page_size: int = 5000


@dataclass(frozen=True)
class LexiTraceConfig:
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    placement: PlacementConfig = field(default_factory=PlacementConfig)
    assessment: AssessmentConfig = field(default_factory=AssessmentConfig)


_TUPLE_FIELDS = {"multipliers", "difficulty_deltas", "zipf_bands"}


def _section(raw: dict, name: str) -> dict:
    values = dict(raw.get(name) or {})
    for key in _TUPLE_FIELDS & values.keys():
        values[key] = tuple(values[key])
    return values


def load_config(config_path: Path) -> LexiTraceConfig:
    """Read a YAML config; missing sections fall back to defaults."""

    with open(config_path) as f:
        cfg = yaml.safe_load(f) or {}

    try:
        scheduler = SchedulerConfig(**_section(cfg, "scheduler"))
        placement = PlacementConfig(**_section(cfg, "placement"))
        assessment = AssessmentConfig(**_section(cfg, "assessment"))
    except TypeError as exc:
        raise ValueError(f"Invalid config {config_path}: {exc}") from exc
    if len(scheduler.multipliers) != 4 or len(scheduler.difficulty_deltas) != 4:
        raise ValueError("scheduler.multipliers and scheduler.difficulty_deltas need one value per rating (4).")
    return LexiTraceConfig(scheduler=scheduler, placement=placement, assessment=assessment)
