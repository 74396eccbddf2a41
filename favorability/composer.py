# favorability/composer.py
# ------------------------------------------------------------
# Deterministic advice text keyed by rating tier + dominant factor.
# Tiers: strong > favorable > steady > mixed > caution
# ------------------------------------------------------------

from typing import Optional, Sequence, Tuple

from .catalog import FactorCatalog
from .models import Counseling, Factor, FactorKind, RatingBand, TimingSample, Window
from .scoring import dominant_factors

CURRENT_ADVICE = {
    "strong": "Current timing is favorable - proceed with {subject} decisions and commitments.",
    "favorable": "Current timing is favorable - proceed with {subject} decisions and commitments.",
    "steady": "Current timing is moderate - proceed with awareness of potential challenges.",
    "mixed": "Current timing is moderate - proceed with awareness of potential challenges.",
    "caution": "Current timing suggests caution with major {subject} decisions.",
}

LONG_TERM = {
    "strong": "Consider moving forward with {subject} plans and commitments.",
    "favorable": "Consider moving forward with {subject} plans and commitments.",
    "steady": "Use this period to strengthen the foundation of your {subject} plans before committing.",
    "mixed": "Use this period to strengthen the foundation of your {subject} plans before committing.",
    "caution": "Focus on strengthening the foundation of your {subject} plans and revisit major steps later.",
}

DECISION = {
    "strong": "Proceed with confidence - astrological timing strongly supports positive outcomes.",
    "favorable": "Proceed with planning but maintain flexibility for adjustments.",
    "steady": "Proceed with planning but maintain flexibility for adjustments.",
    "mixed": "Consider waiting for more favorable timing or seek additional counseling.",
    "caution": "Consider waiting for more favorable timing or seek additional counseling.",
}

CHALLENGING_ADVICE = "Consider postponing major {subject} decisions during this period."


def describe_factor(f: Factor) -> str:
    """'SATURN:H10' -> 'Saturn in house 10', 'VENUS:TRINE' -> 'Venus trine', ..."""
    if f.kind in (FactorKind.TRANSIT, FactorKind.PROGRESSION):
        planet, _, qualifier = f.identity.partition(":")
        prefix = "progressed " if f.kind == FactorKind.PROGRESSION else ""
        name = prefix + planet.capitalize()
        if not qualifier:
            return name
        if qualifier.upper().startswith("H") and qualifier[1:].isdigit():
            return f"{name} in house {int(qualifier[1:])}"
        return f"{name} {qualifier.lower()}"
    if f.kind == FactorKind.PLANETARY_PAIR:
        return "-".join(p.strip().capitalize() for p in f.identity.split("-")) + " alignment"
    if f.kind == FactorKind.TITHI:
        return f"tithi {f.identity}"
    return f"{f.identity} {f.kind.value}"


class RecommendationComposer:
    def __init__(self, catalog: FactorCatalog):
        self.catalog = catalog
        self.subject = catalog.subject or catalog.domain

    def _fill(self, template: str) -> str:
        return template.format(subject=self.subject)

    def current_advice(self, sample: TimingSample) -> str:
        text = self._fill(CURRENT_ADVICE[sample.rating.tier])
        top = dominant_factors(sample.breakdown, self.catalog, top_n=1)
        if top:
            text += f" Key influence: {describe_factor(top[0][0])}."
        return text

    def long_term_planning(self, rating: RatingBand, windows: Sequence[Window] = ()) -> str:
        text = self._fill(LONG_TERM[rating.tier])
        if windows:
            nxt = windows[0]
            text += (f" The next favorable window begins {nxt.start_date.isoformat()}"
                     f" ({nxt.rating.label}, score {nxt.score:g}).")
        return text

    def decision_making(self, rating: RatingBand) -> str:
        return DECISION[rating.tier]

    def challenging_advice(self) -> str:
        return self._fill(CHALLENGING_ADVICE)

    def annotate(self, windows: Sequence[Window]) -> Tuple[Window, ...]:
        advice = self.challenging_advice()
        return tuple(w.model_copy(update={"advice": advice}) for w in windows)

    def compose(self, current: TimingSample, windows: Optional[Sequence[Window]] = None) -> Counseling:
        return Counseling(
            current_advice=self.current_advice(current),
            long_term_planning=self.long_term_planning(current.rating, windows or ()),
            decision_making=self.decision_making(current.rating),
        )
