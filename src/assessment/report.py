# ABOUTME: Turns a finished ability estimate into calibrated per-word knowledge probabilities.
# ABOUTME: Reports interval bands, vocabulary size, Zipf-band coverage and response calibration.

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Tuple

import numpy as np
import pandas as pd

from src.common.evaluation import evaluate_predictions
from src.common.schemas import AssessmentSession

from .irt import prob_know
from .item_bank import prepare_item_bank

Z_95 = 1.96


@dataclass(frozen=True)
class ItemProbability:
    p: float
    ci68: Tuple[float, float]
    ci95: Tuple[float, float]


def item_probability(theta: float, variance: float, b: float, g: float) -> ItemProbability:
    """Probability of knowing an item with bands at theta +/- SE and theta +/- 1.96 SE."""

    if variance < 0:
        raise ValueError(f"Variance must be non-negative, got {variance}.")
    se = float(np.sqrt(variance))
    return ItemProbability(
        p=float(prob_know(theta, b, g)),
        ci68=(float(prob_know(theta - se, b, g)), float(prob_know(theta + se, b, g))),
        ci95=(float(prob_know(theta - Z_95 * se, b, g)), float(prob_know(theta + Z_95 * se, b, g))),
    )


def probability_frame(theta: float, variance: float, bank: pd.DataFrame, guess: float = 0.05) -> pd.DataFrame:
    """Vectorized item_probability over a whole lexeme bank."""

    df = prepare_item_bank(bank)
    se = float(np.sqrt(variance))
    b = df["b"].to_numpy(dtype=float)
    out = pd.DataFrame({"lexeme_id": df["lexeme_id"], "lemma": df["lemma"], "freq_rank": df["freq_rank"], "zipf": df["zipf"]})
    out["p"] = prob_know(theta, b, guess)
    out["ci68_low"] = prob_know(theta - se, b, guess)
    out["ci68_high"] = prob_know(theta + se, b, guess)
    out["ci95_low"] = prob_know(theta - Z_95 * se, b, guess)
    out["ci95_high"] = prob_know(theta + Z_95 * se, b, guess)
    return out


def coverage_by_zipf(probabilities: pd.DataFrame) -> pd.DataFrame:
    """Mean knowledge probability per rounded Zipf band, rarest band first."""

    if probabilities.empty:
        return pd.DataFrame(columns=["zipf", "coverage", "count"])
    bands = probabilities.assign(zipf_band=np.rint(probabilities["zipf"]).astype(int))
    coverage = (
        bands.groupby("zipf_band")
        .agg(coverage=("p", "mean"), count=("p", "size"))
        .reset_index()
        .rename(columns={"zipf_band": "zipf"})
        .sort_values("zipf")
        .reset_index(drop=True)
    )
    return coverage


def knowledge_report(
    theta: float,
    variance: float,
    bank: pd.DataFrame,
    guess: float = 0.05,
    page: int = 1,
    page_size: int = 5000,
) -> Dict:
    """
    Full-bank knowledge report for an ability estimate.

    vocab_size is the expected number of known words (sum of p over the
    bank); coverage_by_zipf is diagnostic only. Per-word rows are paginated
    in frequency order.
    """

    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}.")
    page = max(1, int(page))
    probabilities = probability_frame(theta, variance, bank, guess=guess)
    start = (page - 1) * page_size
    rows: List[Dict] = probabilities.iloc[start : start + page_size].to_dict(orient="records")
    return {
        "theta": theta,
        "standard_error": float(np.sqrt(variance)),
        "vocab_size": float(probabilities["p"].sum()),
        "coverage_by_zipf": coverage_by_zipf(probabilities).to_dict(orient="records"),
        "per_word": {"page": page, "page_size": page_size, "total": len(probabilities), "items": rows},
    }


def responses_to_predictions(session: AssessmentSession) -> pd.DataFrame:
    """
    Pair each scored response with the probability predicted before it was answered.

    Uses theta_before from the audit record so every prediction is out of
    sample with respect to its own outcome.
    """

    items = {item.item_id: item for item in list(session.screening_items) + list(session.cat_pool)}
    rows = []
    for response in session.responses:
        item = items.get(response.item_id)
        if item is None or item.lexeme_id is None:
            continue
        rows.append(
            {
                "item_id": response.item_id,
                "kind": item.kind,
                "y_true": response.outcome,
                "y_pred": float(prob_know(response.theta_before, item.b, item.g)),
            }
        )
    return pd.DataFrame(rows, columns=["item_id", "kind", "y_true", "y_pred"])


def calibration_summary(session: AssessmentSession) -> Dict[str, float]:
    predictions = responses_to_predictions(session)
    return evaluate_predictions(predictions, metrics=["auc", "brier", "log_loss", "calibration_ece"])
