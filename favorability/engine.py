# favorability/engine.py
# ------------------------------------------------------------
# One engine per (catalog, provider). analyze() = current timing
# + horizon scan + counseling, returned as a fresh TimingAnalysis.
# ------------------------------------------------------------

import datetime as dt
import logging
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from .alignment import AlignmentPredicate
from .catalog import FactorCatalog, get_catalog
from .composer import RecommendationComposer
from .errors import CurrentTimingError, ProviderError
from .models import Factor, RatingBand, ScoreBreakdown, TimingAnalysis
from .providers import PositionProvider
from .ratings import RatingClassifier
from .scoring import aggregate
from .windows import WindowSearch

logger = logging.getLogger(__name__)


class TimingEngine:
    def __init__(self, catalog: FactorCatalog, provider: PositionProvider,
                 alignments: Optional[Sequence[AlignmentPredicate]] = None,
                 max_workers: Optional[int] = None):
        self.catalog = catalog
        self.provider = provider
        self.classifier = RatingClassifier(catalog.ratings)
        self.composer = RecommendationComposer(catalog)
        self.search = WindowSearch(catalog, provider, alignments, self.classifier, max_workers)

    def classify(self, score: float) -> RatingBand:
        return self.classifier.classify(score)

    def aggregate(self, factors: Iterable[Union[Factor, Mapping[str, Any]]]) -> ScoreBreakdown:
        return aggregate(factors, self.catalog)

    def analyze(self, reference_date: dt.date, horizon_days: Optional[int] = None) -> TimingAnalysis:
        horizon = self.catalog.search.horizon_days if horizon_days is None else horizon_days

        try:
            current = self.search.evaluate(reference_date)
        except ProviderError as ex:
            raise CurrentTimingError(
                f"Could not compute {self.catalog.domain} timing for {reference_date.isoformat()}: {ex}"
            ) from ex

        # sample 0 is the reference date
        result = self.search.run(reference_date, horizon, known={reference_date: current})

        challenging = self.composer.annotate(result.challenging_periods)
        analysis = TimingAnalysis(
            domain=self.catalog.domain,
            catalog_version=self.catalog.version,
            reference_date=reference_date,
            horizon_days=horizon,
            current_timing=current.sample,
            future_windows=result.future_windows,
            challenging_periods=challenging,
            optimal_dates=result.optimal_dates,
            counseling=self.composer.compose(current.sample, result.future_windows),
            skipped_dates=result.skipped_dates,
            complete=not result.skipped_dates,
        )
        logger.info(
            "%s timing %s: score=%s rating=%s windows=%d challenging=%d optimal=%d skipped=%d",
            self.catalog.domain, reference_date.isoformat(), current.sample.score,
            current.sample.rating.label, len(analysis.future_windows), len(challenging),
            len(analysis.optimal_dates), len(analysis.skipped_dates),
        )
        return analysis


def build_engine(domain: str, provider: PositionProvider, max_workers: Optional[int] = None) -> TimingEngine:
    """Engine for a loaded catalog; CatalogError when the domain has none."""
    return TimingEngine(get_catalog(domain), provider, max_workers=max_workers)
