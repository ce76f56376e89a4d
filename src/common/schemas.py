# ABOUTME: Defines canonical learner-state records shared by the scheduler, placement and assessment engines.
# ABOUTME: Centralizes memory, placement, ability and assessment audit schemas plus their dict round-trips.

from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
from datetime import datetime
from enum import IntEnum
from typing import Any, Dict, List, Mapping, Optional, Tuple

BANDS: Tuple[str, ...] = ("A1", "A2", "B1", "B2", "C1", "C2")

OUTCOME_EASY = "easy"
OUTCOME_HARD = "hard"
OUTCOMES = (OUTCOME_EASY, OUTCOME_HARD)

KIND_YESNO_REAL = "yesno_real"
KIND_YESNO_PSEUDO = "yesno_pseudo"
KIND_MC4 = "mc4"
KIND_RECALL = "recall"
ITEM_KINDS = (KIND_YESNO_REAL, KIND_YESNO_PSEUDO, KIND_MC4, KIND_RECALL)

STAGE_SCREENING = "screening"
STAGE_CAT = "cat"
STAGE_DONE = "done"
STAGES = (STAGE_SCREENING, STAGE_CAT, STAGE_DONE)


class Rating(IntEnum):
    """Recall-quality grade given after a review."""

    AGAIN = 1
    HARD = 2
    GOOD = 3
    EASY = 4


@dataclass(frozen=True)
class MemoryState:
    """Per learner x item memory record driven by the review scheduler."""

    stability: float
    difficulty: float
    due: datetime
    reps: int = 0
    lapses: int = 0
    suspended: bool = False
    last_review: Optional[datetime] = None


@dataclass(frozen=True)
class ReviewSnapshot:
    """Immutable audit of the memory state as it was before a review."""

    rating: Rating
    reviewed_at: datetime
    stability: float
    difficulty: float
    elapsed_days: int


@dataclass(frozen=True)
class PlacementEvent:
    item_id: str
    outcome: str
    band: str
    freq_rank: Optional[int] = None


@dataclass(frozen=True)
class PlacementState:
    """Staircase scratch state kept between onboarding requests."""

    theta: float = 0.0
    step: float = 1.0
    n: int = 0
    seen_item_ids: Tuple[str, ...] = ()
    history: Tuple[PlacementEvent, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["kind"] = "placement"
        payload["seen_item_ids"] = list(self.seen_item_ids)
        payload["history"] = [asdict(event) for event in self.history]
        return payload

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "PlacementState":
        kind = payload.get("kind", "placement")
        if kind != "placement":
            raise ValueError(f"Expected a placement state, got kind='{kind}'.")
        return cls(
            theta=float(payload.get("theta", 0.0)),
            step=float(payload.get("step", 1.0)),
            n=int(payload.get("n", 0)),
            seen_item_ids=tuple(payload.get("seen_item_ids") or ()),
            history=tuple(PlacementEvent(**event) for event in payload.get("history") or ()),
        )


@dataclass(frozen=True)
class LevelEstimate:
    """Durable ability summary persisted once placement or assessment ends."""

    band: str
    vocab_index: float  # 0..10
    confidence: float  # 0..1
    theta: Optional[float] = None
    theta_var: Optional[float] = None


@dataclass(frozen=True)
class ThetaState:
    theta: float = 0.0
    variance: float = 1.0

    @property
    def standard_error(self) -> float:
        return self.variance ** 0.5


@dataclass(frozen=True)
class AssessmentItem:
    """Item presented during an assessment session with its IRT parameters."""

    item_id: str
    kind: str
    b: float
    g: float
    lexeme_id: Optional[str] = None
    lemma: Optional[str] = None
    pseudoword: Optional[str] = None
    zipf: Optional[float] = None
    exposure: int = 0

    def exposed(self) -> "AssessmentItem":
        return replace(self, exposure=self.exposure + 1)


@dataclass(frozen=True)
class AssessmentResponse:
    """Append-only audit record, one per presented item."""

    item_id: str
    theta_before: float
    outcome: int
    answered_at: datetime


@dataclass
class AssessmentSession:
    """Explicit state of a two-phase assessment (screening -> cat -> done)."""

    stage: str = STAGE_SCREENING
    theta: float = 0.0
    variance: float = 1.0
    screening_items: List[AssessmentItem] = field(default_factory=list)
    cat_pool: List[AssessmentItem] = field(default_factory=list)
    responses: List[AssessmentResponse] = field(default_factory=list)
    false_alarm_rate: Optional[float] = None
    completed_at: Optional[datetime] = None

    @property
    def theta_state(self) -> ThetaState:
        return ThetaState(theta=self.theta, variance=self.variance)

    @property
    def standard_error(self) -> float:
        return self.variance ** 0.5

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": "assessment",
            "stage": self.stage,
            "theta": self.theta,
            "variance": self.variance,
            "screening_items": [asdict(item) for item in self.screening_items],
            "cat_pool": [asdict(item) for item in self.cat_pool],
            "responses": [
                {**asdict(response), "answered_at": response.answered_at.isoformat()}
                for response in self.responses
            ],
            "false_alarm_rate": self.false_alarm_rate,
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "AssessmentSession":
        kind = payload.get("kind", "assessment")
        if kind != "assessment":
            raise ValueError(f"Expected an assessment session, got kind='{kind}'.")
        stage = payload.get("stage", STAGE_SCREENING)
        if stage not in STAGES:
            raise ValueError(f"Unknown assessment stage '{stage}'. Expected one of: {', '.join(STAGES)}.")
        completed_at = payload.get("completed_at")
        return cls(
            stage=stage,
            theta=float(payload.get("theta", 0.0)),
            variance=float(payload.get("variance", 1.0)),
            screening_items=[AssessmentItem(**item) for item in payload.get("screening_items") or ()],
            cat_pool=[AssessmentItem(**item) for item in payload.get("cat_pool") or ()],
            responses=[
                AssessmentResponse(
                    item_id=row["item_id"],
                    theta_before=float(row["theta_before"]),
                    outcome=int(row["outcome"]),
                    answered_at=datetime.fromisoformat(row["answered_at"]),
                )
                for row in payload.get("responses") or ()
            ],
            false_alarm_rate=payload.get("false_alarm_rate"),
            completed_at=datetime.fromisoformat(completed_at) if completed_at else None,
        )
