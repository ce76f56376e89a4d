# ABOUTME: Item-response math for the adaptive assessment: 1PL-with-guessing probability and Fisher information.
# ABOUTME: Provides the single-step MAP ability update and maximum-information item selection.

from __future__ import annotations

from typing import Iterable, Optional, Sequence

import numpy as np

from src.common.schemas import AssessmentItem, ThetaState

EPS = 1e-9
MIN_VARIANCE = 0.02
MAX_VARIANCE = 1.0


def sigmoid(x):
    """Logistic function via tanh so large |x| never overflows."""

    return 0.5 * (1.0 + np.tanh(0.5 * np.asarray(x, dtype=float)))


def prob_know(theta, b, g):
    """P(correct | theta) = g + (1 - g) * sigmoid(theta - b). Broadcasts over arrays."""

    g = np.asarray(g, dtype=float)
    return g + (1.0 - g) * sigmoid(np.asarray(theta, dtype=float) - np.asarray(b, dtype=float))


def _slope(theta, b, g):
    g = np.asarray(g, dtype=float)
    q = sigmoid(np.asarray(theta, dtype=float) - np.asarray(b, dtype=float))
    p = g + (1.0 - g) * q
    dp = (1.0 - g) * q * (1.0 - q)
    return p, dp


def fisher_information(theta, b, g):
    """Item information at theta; peaks near theta == b and shrinks as the guessing floor rises."""

    p, dp = _slope(theta, b, g)
    return dp * dp / (p * (1.0 - p) + EPS)


def update_theta_map(
    state: ThetaState,
    b: float,
    g: float,
    y: int,
    prior_mean: Optional[float] = None,
) -> ThetaState:
    """
    One Newton-Raphson step on the log posterior after observing ``y``.

    The Gaussian prior has variance ``state.variance`` and mean ``prior_mean``;
    by default the current estimate is the prior mean, so the running
    posterior is carried forward as the prior of the next step. Pass
    ``prior_mean=0.0`` for the zero-mean population prior, where the
    gradient carries the ``-theta / variance`` term. The returned variance
    is -1/Hessian clamped to [0.02, 1.0].
    """

    if y not in (0, 1) or isinstance(y, bool):
        raise ValueError(f"Outcome must be 0 or 1, got {y!r}.")
    if state.variance <= 0:
        raise ValueError(f"Variance must be positive, got {state.variance}.")

    theta, variance = state.theta, state.variance
    mu = theta if prior_mean is None else prior_mean
    p, dp = _slope(theta, b, g)
    denom = p * (1.0 - p) + EPS
    grad = (y - p) * dp / denom - (theta - mu) / variance
    hess = -(dp * dp) / denom - 1.0 / variance

    theta_new = theta - grad / (hess - EPS)
    variance_new = min(MAX_VARIANCE, max(MIN_VARIANCE, -1.0 / (hess - EPS)))
    return ThetaState(theta=float(theta_new), variance=float(variance_new))


def select_best_item(
    theta: float,
    candidates: Sequence[AssessmentItem],
    max_exposure: int = 3,
    exposure_penalty: float = 0.01,
    exclude_ids: Iterable[str] = (),
) -> Optional[AssessmentItem]:
    """
    Pick the eligible candidate with the highest exposure-penalised information.

    Eligible means exposure below ``max_exposure`` and not in ``exclude_ids``.
    Ties keep the earlier candidate. Returns None when nothing is eligible.
    """

    excluded = set(exclude_ids)
    eligible = [c for c in candidates if c.exposure < max_exposure and c.item_id not in excluded]
    if not eligible:
        return None

    b = np.array([c.b for c in eligible], dtype=float)
    g = np.array([c.g for c in eligible], dtype=float)
    exposure = np.array([c.exposure for c in eligible], dtype=float)
    scores = fisher_information(theta, b, g) - exposure_penalty * exposure
    return eligible[int(np.argmax(scores))]
