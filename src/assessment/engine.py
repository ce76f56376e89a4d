# ABOUTME: Drives the two-phase adaptive assessment as an explicit screening -> cat -> done state machine.
# ABOUTME: Screening seeds theta from bias-corrected yes/no hits; the CAT loop refines it item by item.

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone
from typing import Dict, List, Optional

import pandas as pd

from src.common.config import AssessmentConfig
from src.common.schemas import (
    KIND_YESNO_PSEUDO,
    KIND_YESNO_REAL,
    STAGE_CAT,
    STAGE_DONE,
    STAGE_SCREENING,
    AssessmentItem,
    AssessmentResponse,
    AssessmentSession,
    LevelEstimate,
)
from src.placement.staircase import theta_to_band, theta_to_vocab_index

from .irt import select_best_item, update_theta_map
from .item_bank import build_cat_pool, build_screening_items

DEFAULT_CONFIG = AssessmentConfig()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _check_outcome(outcome: int) -> int:
    if isinstance(outcome, bool) or outcome not in (0, 1):
        raise ValueError(f"Outcome must be 0 or 1, got {outcome!r}.")
    return int(outcome)


def _require_stage(session: AssessmentSession, stage: str) -> None:
    if session.stage != stage:
        raise ValueError(f"Session is in stage '{session.stage}', not '{stage}'.")


def copy_session(session: AssessmentSession) -> AssessmentSession:
    """Copy with fresh item and response lists; the records inside are frozen."""

    return replace(
        session,
        screening_items=list(session.screening_items),
        cat_pool=list(session.cat_pool),
        responses=list(session.responses),
    )


def start_session(
    bank: pd.DataFrame,
    config: AssessmentConfig = DEFAULT_CONFIG,
    seed: Optional[int] = None,
    now: Optional[datetime] = None,
) -> AssessmentSession:
    """
    Open a session in the screening stage with a stratified yes/no item set.

    With nothing to screen the session goes straight through finish_screening,
    so it lands in the CAT stage or, if the pool is empty too, in done.
    """

    items = build_screening_items(
        bank,
        real_count=config.real_count,
        pseudo_ratio=config.pseudo_ratio,
        bands=config.zipf_bands,
        guess=config.screening_guess,
        seed=seed,
    )
    session = AssessmentSession(stage=STAGE_SCREENING, theta=0.0, variance=1.0, screening_items=items)
    if not items:
        session = finish_screening(session, bank, config=config, now=now)
    return session


def pending_screening_items(session: AssessmentSession) -> List[AssessmentItem]:
    answered = {r.item_id for r in session.responses}
    return [item for item in session.screening_items if item.item_id not in answered]


def record_screening_response(
    session: AssessmentSession,
    item_id: str,
    outcome: int,
    bank: pd.DataFrame,
    config: AssessmentConfig = DEFAULT_CONFIG,
    now: Optional[datetime] = None,
) -> AssessmentSession:
    """
    Log an "I know this word" answer during screening and return the new session.

    Once the last screening item is answered the session moves to the CAT
    stage through finish_screening; no adaptive step happens before that.
    """

    _require_stage(session, STAGE_SCREENING)
    outcome = _check_outcome(outcome)
    if item_id not in {item.item_id for item in session.screening_items}:
        raise ValueError(f"Unknown screening item '{item_id}'.")
    if any(r.item_id == item_id for r in session.responses):
        raise ValueError(f"Screening item '{item_id}' was already answered.")

    session = copy_session(session)
    session.responses.append(
        AssessmentResponse(item_id=item_id, theta_before=session.theta, outcome=outcome, answered_at=now or _utcnow())
    )
    if not pending_screening_items(session):
        session = finish_screening(session, bank, config=config, now=now)
    return session


def screening_rates(session: AssessmentSession, config: AssessmentConfig = DEFAULT_CONFIG) -> Dict[str, float]:
    """False-alarm rate on pseudowords and bias-corrected hit rate on real words."""

    kinds = {item.item_id: item.kind for item in session.screening_items}
    real = [r.outcome for r in session.responses if kinds.get(r.item_id) == KIND_YESNO_REAL]
    pseudo = [r.outcome for r in session.responses if kinds.get(r.item_id) == KIND_YESNO_PSEUDO]

    false_alarm = min(config.false_alarm_cap, sum(pseudo) / len(pseudo)) if pseudo else 0.0
    if real:
        hit_rate = sum(real) / len(real)
        corrected = max(0.0, min(1.0, (hit_rate - false_alarm) / max(1e-6, 1.0 - false_alarm)))
    else:
        hit_rate = corrected = 0.5
    return {"hit_rate": hit_rate, "false_alarm_rate": false_alarm, "corrected_hit_rate": corrected}


def finish_screening(
    session: AssessmentSession,
    bank: pd.DataFrame,
    config: AssessmentConfig = DEFAULT_CONFIG,
    now: Optional[datetime] = None,
) -> AssessmentSession:
    """
    Seed theta from the corrected hit rate and materialize the CAT pool once.

    theta0 = clamp((corrected - 0.5) * 6, -3, 3) with the post-screening
    variance from config. An empty pool completes the session immediately.
    """

    _require_stage(session, STAGE_SCREENING)
    rates = screening_rates(session, config=config)

    session = copy_session(session)
    session.false_alarm_rate = rates["false_alarm_rate"]
    session.theta = max(-3.0, min(3.0, (rates["corrected_hit_rate"] - 0.5) * 6.0))
    session.variance = config.screening_variance
    session.cat_pool = build_cat_pool(bank, size=config.pool_size, guess=config.cat_guess)
    session.stage = STAGE_CAT
    if next_item(session, config=config) is None:
        session = _complete(session, now)
    return session


def cat_responses(session: AssessmentSession) -> List[AssessmentResponse]:
    pool_ids = {item.item_id for item in session.cat_pool}
    return [r for r in session.responses if r.item_id in pool_ids]


def next_item(session: AssessmentSession, config: AssessmentConfig = DEFAULT_CONFIG) -> Optional[AssessmentItem]:
    """
    Item to present next; does not change the session.

    Screening yields the next unanswered yes/no item. The CAT stage yields
    the eligible pool item with the highest exposure-penalised information
    at the current theta. None when the session is done or nothing is left.
    """

    if session.stage == STAGE_DONE:
        return None
    if session.stage == STAGE_SCREENING:
        pending = pending_screening_items(session)
        return pending[0] if pending else None

    administered = () if config.repeat_items else {r.item_id for r in cat_responses(session)}
    return select_best_item(
        session.theta,
        session.cat_pool,
        max_exposure=config.max_exposure,
        exposure_penalty=config.exposure_penalty,
        exclude_ids=administered,
    )


def record_cat_response(
    session: AssessmentSession,
    item_id: str,
    outcome: int,
    config: AssessmentConfig = DEFAULT_CONFIG,
    now: Optional[datetime] = None,
) -> AssessmentSession:
    """
    Log a CAT answer and return the updated session.

    Runs the MAP update, bumps the item's exposure and completes the session
    when the stopping rule fires or no eligible item remains.
    """

    _require_stage(session, STAGE_CAT)
    outcome = _check_outcome(outcome)
    index = next((i for i, item in enumerate(session.cat_pool) if item.item_id == item_id), None)
    if index is None:
        raise ValueError(f"Unknown CAT item '{item_id}'.")
    if session.cat_pool[index].exposure >= config.max_exposure:
        raise ValueError(f"CAT item '{item_id}' reached its exposure cap of {config.max_exposure}.")
    if not config.repeat_items and any(r.item_id == item_id for r in session.responses):
        raise ValueError(f"CAT item '{item_id}' was already administered in this session.")

    session = copy_session(session)
    item = session.cat_pool[index]
    now = now or _utcnow()
    session.responses.append(
        AssessmentResponse(item_id=item_id, theta_before=session.theta, outcome=outcome, answered_at=now)
    )
    updated = update_theta_map(session.theta_state, item.b, item.g, outcome)
    session.theta, session.variance = updated.theta, updated.variance
    session.cat_pool[index] = item.exposed()

    if should_stop(session, config=config) or next_item(session, config=config) is None:
        session = _complete(session, now)
    return session


def should_stop(session: AssessmentSession, config: AssessmentConfig = DEFAULT_CONFIG) -> bool:
    """True once the standard error target or the CAT response cap is reached; always True when done."""

    if session.stage == STAGE_DONE:
        return True
    if session.stage != STAGE_CAT:
        return False
    return session.standard_error <= config.target_se or len(cat_responses(session)) >= config.max_cat_responses


def _complete(session: AssessmentSession, now: Optional[datetime] = None) -> AssessmentSession:
    return replace(session, stage=STAGE_DONE, completed_at=now or _utcnow())


def summary(session: AssessmentSession) -> Dict:
    """Durable ability summary to persist once the session is done."""

    se = session.standard_error
    estimate = LevelEstimate(
        band=theta_to_band(session.theta),
        vocab_index=theta_to_vocab_index(session.theta),
        confidence=max(0.3, 1.0 - se),
        theta=session.theta,
        theta_var=session.variance,
    )
    return {
        "stage": session.stage,
        "theta": session.theta,
        "variance": session.variance,
        "standard_error": se,
        "false_alarm_rate": session.false_alarm_rate,
        "cat_responses": len(cat_responses(session)),
        "completed_at": session.completed_at,
        "estimate": estimate,
    }
