# ABOUTME: Tests per-word knowledge probabilities, vocabulary size and calibration reporting.
# ABOUTME: Ensures interval ordering, pagination, Zipf coverage and out-of-sample response scoring.

from datetime import datetime, timezone

import numpy as np
import pandas as pd
import pytest

from src.common.schemas import STAGE_CAT, AssessmentItem, AssessmentResponse, AssessmentSession
from src.assessment.report import (
    calibration_summary,
    coverage_by_zipf,
    item_probability,
    knowledge_report,
    probability_frame,
    responses_to_predictions,
)

NOW = datetime(2024, 5, 2, 12, 0, tzinfo=timezone.utc)


def _bank(size=300):
    ranks = list(range(1, size + 1))
    return pd.DataFrame({"lexeme_id": [f"w{r}" for r in ranks], "lemma": [f"word{r}" for r in ranks], "freq_rank": ranks})


def test_item_probability_intervals_nest_around_point():
    result = item_probability(0.5, 0.09, b=0.0, g=0.05)
    assert result.ci95[0] <= result.ci68[0] <= result.p <= result.ci68[1] <= result.ci95[1]
    assert 0.05 <= result.ci95[0] and result.ci95[1] <= 1.0


def test_zero_variance_collapses_intervals():
    result = item_probability(0.0, 0.0, b=0.0, g=0.0)
    assert result.p == pytest.approx(0.5)
    assert result.ci68 == (result.p, result.p)
    assert result.ci95 == (result.p, result.p)


def test_negative_variance_rejected():
    with pytest.raises(ValueError):
        item_probability(0.0, -0.1, b=0.0, g=0.05)


def test_probability_frame_is_monotone_in_frequency():
    frame = probability_frame(0.0, 0.25, _bank())
    assert list(frame.columns) == [
        "lexeme_id", "lemma", "freq_rank", "zipf", "p", "ci68_low", "ci68_high", "ci95_low", "ci95_high"
    ]
    assert np.all(np.diff(frame["p"].to_numpy()) <= 1e-12)


def test_knowledge_report_sums_probabilities_and_paginates():
    bank = _bank()
    result = knowledge_report(0.0, 0.25, bank, page=2, page_size=100)
    frame = probability_frame(0.0, 0.25, bank)

    assert result["vocab_size"] == pytest.approx(frame["p"].sum())
    assert 0 < result["vocab_size"] <= len(bank)
    assert result["standard_error"] == pytest.approx(0.5)
    assert result["per_word"]["total"] == 300
    assert result["per_word"]["page"] == 2
    assert [row["lexeme_id"] for row in result["per_word"]["items"]][:2] == ["w101", "w102"]
    assert len(result["per_word"]["items"]) == 100


def test_vocab_size_grows_with_ability():
    bank = _bank()
    low = knowledge_report(-2.0, 0.1, bank)["vocab_size"]
    high = knowledge_report(2.0, 0.1, bank)["vocab_size"]
    assert high > low


def test_page_size_must_be_positive():
    with pytest.raises(ValueError):
        knowledge_report(0.0, 0.1, _bank(), page_size=0)


def test_coverage_by_zipf_groups_rounded_bands():
    probabilities = pd.DataFrame({"zipf": [6.9, 7.0, 5.1, 4.6], "p": [0.9, 1.0, 0.6, 0.4]})
    coverage = coverage_by_zipf(probabilities)
    assert list(coverage["zipf"]) == [5, 7]
    assert list(coverage["count"]) == [2, 2]
    assert coverage.loc[coverage["zipf"] == 7, "coverage"].iloc[0] == pytest.approx(0.95)
    assert coverage_by_zipf(probabilities.iloc[0:0]).empty


def _scored_session():
    items = [
        AssessmentItem(item_id="mc4-a", kind="mc4", b=-1.0, g=0.25, lexeme_id="a"),
        AssessmentItem(item_id="mc4-b", kind="mc4", b=1.5, g=0.25, lexeme_id="b"),
    ]
    pseudo = AssessmentItem(item_id="pseudo-0", kind="yesno_pseudo", b=0.0, g=0.05, pseudoword="blorin")
    responses = [
        AssessmentResponse(item_id="pseudo-0", theta_before=0.0, outcome=0, answered_at=NOW),
        AssessmentResponse(item_id="mc4-a", theta_before=0.0, outcome=1, answered_at=NOW),
        AssessmentResponse(item_id="mc4-b", theta_before=0.4, outcome=0, answered_at=NOW),
    ]
    return AssessmentSession(stage=STAGE_CAT, screening_items=[pseudo], cat_pool=items, responses=responses)


def test_predictions_skip_pseudowords_and_use_theta_before():
    predictions = responses_to_predictions(_scored_session())
    assert list(predictions["item_id"]) == ["mc4-a", "mc4-b"]
    expected = 0.25 + 0.75 / (1.0 + np.exp(-(0.4 - 1.5)))
    assert predictions.loc[1, "y_pred"] == pytest.approx(expected)


def test_calibration_summary_reports_metrics():
    metrics = calibration_summary(_scored_session())
    assert set(metrics) == {"auc", "brier", "log_loss", "calibration_ece"}
    assert metrics["auc"] == pytest.approx(1.0)
    assert 0.0 <= metrics["brier"] <= 1.0

    empty = calibration_summary(AssessmentSession())
    assert all(np.isnan(v) for v in empty.values())
