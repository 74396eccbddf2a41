# favorability/ratings.py
# ------------------------------------------------------------
# Score -> rating band. Bands come from a catalog and already
# partition [0, 100]; lower bounds are inclusive, so a score that
# sits exactly on a boundary belongs to the higher band.
# ------------------------------------------------------------

import math
from bisect import bisect_right
from typing import Iterable, List, Sequence, Tuple

from .errors import CatalogError, ContractError
from .models import RatingBand


class RatingClassifier:
    def __init__(self, bands: Sequence[RatingBand]):
        ordered = sorted(bands, key=lambda b: b.min_score)
        if not ordered or ordered[0].min_score != 0.0:
            raise CatalogError("Rating bands must start at 0")
        self.bands: Tuple[RatingBand, ...] = tuple(ordered)
        self._mins: List[float] = [b.min_score for b in ordered]

    @property
    def lowest(self) -> RatingBand:
        return self.bands[0]

    @property
    def highest(self) -> RatingBand:
        return self.bands[-1]

    def classify(self, score: float) -> RatingBand:
        if isinstance(score, bool) or not isinstance(score, (int, float)) or math.isnan(score):
            raise ContractError(f"score must be a number, got {score!r}")
        if not (0.0 <= score <= 100.0):
            raise ContractError(f"score {score} outside [0, 100]")
        return self.bands[bisect_right(self._mins, score) - 1]

    def top(self, n: int) -> Tuple[RatingBand, ...]:
        """The n highest bands, best first."""
        return tuple(reversed(self.bands[-n:])) if n > 0 else ()

    def labels(self) -> List[str]:
        return [b.label for b in reversed(self.bands)]


def classify(score: float, bands: Iterable[RatingBand]) -> RatingBand:
    return RatingClassifier(list(bands)).classify(score)
