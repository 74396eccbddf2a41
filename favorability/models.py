# favorability/models.py
# ------------------------------------------------------------
# Value objects passed between catalog, aggregator, search and
# composer. All models are frozen: produced once per computation,
# returned to the caller, never mutated.
# ------------------------------------------------------------

import datetime as dt
from enum import Enum
from typing import Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator, model_validator

TIERS = ("strong", "favorable", "steady", "mixed", "caution")


class FactorKind(str, Enum):
    TRANSIT = "transit"
    PROGRESSION = "progression"
    PLANETARY_PAIR = "planetary_pair"
    TITHI = "tithi"
    NAKSHATRA = "nakshatra"
    YOGA = "yoga"
    KARANA = "karana"
    VARA = "vara"


class Factor(BaseModel):
    """One astronomical/calendrical signal for a single sampled date."""
    model_config = ConfigDict(frozen=True)

    kind: FactorKind
    identity: str
    weight: float = 0.0      # resolved from the catalog by the aggregator
    present: bool = True
    strength: float = 1.0

    @field_validator("identity")
    @classmethod
    def _identity_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("identity must be a non-empty string")
        return v

    @field_validator("weight", "strength")
    @classmethod
    def _unit_interval(cls, v: float, info: ValidationInfo) -> float:
        # NaN fails the comparison too
        if not (0.0 <= v <= 1.0):
            raise ValueError(f"{info.field_name} must be within [0, 1], got {v}")
        return v

    @property
    def key(self) -> Tuple[str, str]:
        return self.kind.value, self.identity


class ScoreBreakdown(BaseModel):
    model_config = ConfigDict(frozen=True)

    factors: Tuple[Factor, ...] = ()
    category_scores: Dict[str, float] = Field(default_factory=dict)
    raw_score: float = 0.0
    normalized_score: float = 0.0

    @field_validator("normalized_score")
    @classmethod
    def _in_range(cls, v: float) -> float:
        if not (0.0 <= v <= 100.0):
            raise ValueError(f"normalized_score must be within [0, 100], got {v}")
        return v

    @property
    def present_factors(self) -> Tuple[Factor, ...]:
        return tuple(f for f in self.factors if f.present)


class RatingBand(BaseModel):
    """A rating label with its inclusive lower bound; `rank` 0 is the lowest band."""
    model_config = ConfigDict(frozen=True)

    label: str
    min_score: float = Field(ge=0.0, le=100.0)
    tier: str
    rank: int = Field(ge=0)

    @field_validator("tier")
    @classmethod
    def _known_tier(cls, v: str) -> str:
        if v not in TIERS:
            raise ValueError(f"tier must be one of {TIERS}, got {v!r}")
        return v

    def __lt__(self, other: "RatingBand") -> bool:
        return self.rank < other.rank

    def __le__(self, other: "RatingBand") -> bool:
        return self.rank <= other.rank

    def __gt__(self, other: "RatingBand") -> bool:
        return self.rank > other.rank

    def __ge__(self, other: "RatingBand") -> bool:
        return self.rank >= other.rank


class TimingSample(BaseModel):
    """Score and rating for one sampled date."""
    model_config = ConfigDict(frozen=True)

    date: dt.date
    breakdown: ScoreBreakdown
    rating: RatingBand

    @property
    def score(self) -> float:
        return self.breakdown.normalized_score


class Window(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: dt.date
    end_date: dt.date
    score: float = Field(ge=0.0, le=100.0)
    rating: RatingBand
    samples: int = Field(default=1, ge=1)
    advice: Optional[str] = None

    @model_validator(mode="after")
    def _ordered(self) -> "Window":
        if self.end_date < self.start_date:
            raise ValueError(f"window ends ({self.end_date}) before it starts ({self.start_date})")
        return self


class OptimalDateType(str, Enum):
    ALIGNMENT_MATCH = "AlignmentMatch"
    PEAK_SCORE = "PeakScore"


class OptimalDate(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: dt.date
    type: OptimalDateType
    significance: str
    score: Optional[float] = None


class Counseling(BaseModel):
    model_config = ConfigDict(frozen=True)

    current_advice: str
    long_term_planning: str
    decision_making: str


def _utcnow() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


class TimingAnalysis(BaseModel):
    model_config = ConfigDict(frozen=True)

    domain: str
    catalog_version: str
    reference_date: dt.date
    horizon_days: int
    current_timing: TimingSample
    future_windows: Tuple[Window, ...] = ()
    challenging_periods: Tuple[Window, ...] = ()
    optimal_dates: Tuple[OptimalDate, ...] = ()
    counseling: Counseling
    skipped_dates: Tuple[dt.date, ...] = ()
    complete: bool = True
    generated_at: dt.datetime = Field(default_factory=_utcnow)

    @model_validator(mode="after")
    def _date_ordered(self) -> "TimingAnalysis":
        for name in ("future_windows", "challenging_periods"):
            starts = [w.start_date for w in getattr(self, name)]
            if starts != sorted(starts):
                raise ValueError(f"{name} must be ordered by start_date")
        return self
