# ABOUTME: Scores predicted recall probabilities against observed binary outcomes.
# ABOUTME: Provides discrimination (AUC/AP), Brier, log-loss and binned calibration helpers.

from typing import Iterable, Mapping

import numpy as np
import pandas as pd
from sklearn.metrics import average_precision_score, brier_score_loss, log_loss, roc_auc_score

SUPPORTED_METRICS = ("auc", "average_precision", "brier", "log_loss", "calibration_ece")


def evaluate_predictions(predictions: pd.DataFrame, metrics: Iterable[str]) -> Mapping[str, float]:
    """
    Evaluate a predictions frame using the requested metric names.

    Parameters
    ----------
    predictions : pd.DataFrame
        Expected columns: ['y_true', 'y_pred'] plus optional metadata such as 'item_id'.
    metrics : Iterable[str]
        Any of SUPPORTED_METRICS.
    """

    metrics = list(metrics)
    unknown = [m for m in metrics if m not in SUPPORTED_METRICS]
    if unknown:
        raise ValueError(f"Unsupported metric '{unknown[0]}'. Expected one of: {', '.join(SUPPORTED_METRICS)}.")

    if predictions is None or len(predictions) == 0:
        return {metric: np.nan for metric in metrics}

    y_true = predictions["y_true"].astype(int)
    y_pred = predictions["y_pred"].astype(float).clip(0.0, 1.0)
    single_class = y_true.nunique() < 2

    results = {}
    for metric in metrics:
        if metric == "auc":
            # Ranking metrics are undefined with one observed class.
            results[metric] = np.nan if single_class else float(roc_auc_score(y_true, y_pred))
        elif metric == "average_precision":
            results[metric] = np.nan if single_class else float(average_precision_score(y_true, y_pred))
        elif metric == "brier":
            results[metric] = float(brier_score_loss(y_true, y_pred, pos_label=1))
        elif metric == "log_loss":
            results[metric] = float(log_loss(y_true, y_pred.clip(1e-6, 1 - 1e-6), labels=[0, 1]))
        else:
            results[metric] = expected_calibration_error(y_true, y_pred)
    return results


def calibration_table(y_true: pd.Series, y_pred: pd.Series, num_bins: int = 10) -> pd.DataFrame:
    """Bin predictions into equal-width buckets and compare mean prediction with observed rate."""

    y_true = pd.Series(y_true, dtype=float).reset_index(drop=True)
    y_pred = pd.Series(y_pred, dtype=float).clip(0.0, 1.0).reset_index(drop=True)
    edges = np.linspace(0.0, 1.0, num_bins + 1)
    # Right edge is closed so p == 1.0 lands in the top bucket.
    bins = np.clip(np.digitize(y_pred, edges) - 1, 0, num_bins - 1)

    frame = pd.DataFrame({"bin": bins, "y_true": y_true, "y_pred": y_pred})
    table = (
        frame.groupby("bin")
        .agg(count=("y_true", "size"), observed=("y_true", "mean"), predicted=("y_pred", "mean"))
        .reset_index()
    )
    table["lower"] = edges[table["bin"]]
    table["upper"] = edges[table["bin"] + 1]
    return table[["bin", "lower", "upper", "count", "predicted", "observed"]]


def expected_calibration_error(y_true: pd.Series, y_pred: pd.Series, num_bins: int = 10) -> float:
    total = len(y_true)
    if total == 0:
        return np.nan
    table = calibration_table(y_true, y_pred, num_bins=num_bins)
    gaps = (table["observed"] - table["predicted"]).abs()
    return float((table["count"] / total * gaps).sum())
