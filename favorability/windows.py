# favorability/windows.py
# ------------------------------------------------------------
# Horizon scan: sample [start, start + horizon] every step days,
# score each sample, then merge consecutive samples into
# favorable / challenging windows and pick discrete optimal dates.
# - a failed sample (ProviderError) is skipped and breaks contiguity
# - favorable window score = max of run, challenging = min of run
# - parallel evaluation is re-sorted by date before merging
# ------------------------------------------------------------

import datetime as dt
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from .alignment import AlignmentPredicate
from .catalog import FactorCatalog
from .errors import ProviderError, WindowSearchError
from .models import Factor, FactorKind, OptimalDate, OptimalDateType, TimingSample, Window
from .providers import PositionProvider
from .ratings import RatingClassifier
from .scoring import aggregate

logger = logging.getLogger(__name__)

_TYPE_ORDER = {OptimalDateType.ALIGNMENT_MATCH: 0, OptimalDateType.PEAK_SCORE: 1}


@dataclass(frozen=True)
class Evaluation:
    sample: TimingSample
    aligned: Tuple[AlignmentPredicate, ...] = ()


@dataclass(frozen=True)
class SearchResult:
    evaluations: Tuple[Tuple[dt.date, Optional[Evaluation]], ...]
    future_windows: Tuple[Window, ...] = ()
    challenging_periods: Tuple[Window, ...] = ()
    optimal_dates: Tuple[OptimalDate, ...] = ()
    skipped_dates: Tuple[dt.date, ...] = field(default_factory=tuple)

    @property
    def samples(self) -> List[TimingSample]:
        return [ev.sample for _, ev in self.evaluations if ev is not None]


def sample_dates(start: dt.date, horizon_days: int, step_days: int = 1) -> List[dt.date]:
    """start, start+step, ... up to and including start+horizon."""
    if horizon_days < 0 or step_days < 1:
        raise ValueError("horizon_days must be >= 0 and step_days >= 1")
    return [start + dt.timedelta(days=off) for off in range(0, horizon_days + 1, step_days)]


class WindowSearch:
    def __init__(self, catalog: FactorCatalog, provider: PositionProvider,
                 alignments: Optional[Sequence[AlignmentPredicate]] = None,
                 classifier: Optional[RatingClassifier] = None,
                 max_workers: Optional[int] = None):
        self.catalog = catalog
        self.provider = provider
        self.alignments = tuple(catalog.alignments if alignments is None else alignments)
        self.classifier = classifier or RatingClassifier(catalog.ratings)
        self.settings = catalog.search
        self.max_workers = max_workers

    # ---- single sample ----
    def evaluate(self, when: dt.date) -> Evaluation:
        """Score one date. ProviderError propagates to the caller."""
        factors: List[Factor] = list(self.provider.factors_for(when, self.catalog.kind_categories))
        aligned = tuple(a for a in self.alignments if a.is_aligned(when))
        for a in aligned:
            factors.append(Factor(kind=FactorKind.PLANETARY_PAIR, identity=a.pair, strength=1.0))
        breakdown = aggregate(factors, self.catalog)
        sample = TimingSample(date=when, breakdown=breakdown,
                              rating=self.classifier.classify(breakdown.normalized_score))
        return Evaluation(sample=sample, aligned=aligned)

    def _try(self, when: dt.date) -> Optional[Evaluation]:
        try:
            return self.evaluate(when)
        except ProviderError as ex:
            logger.warning("Skipping %s sample %s: %s", self.catalog.domain, when.isoformat(), ex)
            return None

    def _evaluate_all(self, dates: Sequence[dt.date],
                      known: Dict[dt.date, Evaluation]) -> List[Tuple[dt.date, Optional[Evaluation]]]:
        todo = [d for d in dates if d not in known]
        results: Dict[dt.date, Optional[Evaluation]] = dict(known)
        if self.max_workers and self.max_workers > 1 and len(todo) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                futures = {pool.submit(self._try, d): d for d in todo}
                for fut in as_completed(futures):
                    results[futures[fut]] = fut.result()
        else:
            for d in todo:
                results[d] = self._try(d)
        return sorted(((d, results[d]) for d in dates), key=lambda item: item[0])

    # ---- full scan ----
    def run(self, start: dt.date, horizon_days: Optional[int] = None,
            known: Optional[Dict[dt.date, Evaluation]] = None) -> SearchResult:
        horizon = self.settings.horizon_days if horizon_days is None else horizon_days
        dates = sample_dates(start, horizon, self.settings.step_days)
        known = dict(known or {})
        evaluations = self._evaluate_all(dates, known)

        skipped = tuple(d for d, ev in evaluations if ev is None)
        if len(skipped) == len(evaluations):
            raise WindowSearchError(
                f"Every sampled date failed for '{self.catalog.domain}' "
                f"({len(skipped)} of {len(dates)} samples)", skipped=list(skipped))

        favorable = self._runs(evaluations, lambda s: s.score >= self.settings.favorable)
        challenging = self._runs(evaluations, lambda s: s.score <= self.settings.challenging)

        return SearchResult(
            evaluations=tuple(evaluations),
            future_windows=tuple(self._window(r, best=True) for r in favorable[:self.settings.window_cap]),
            challenging_periods=tuple(self._window(r, best=False) for r in challenging),
            optimal_dates=self._optimal_dates(evaluations),
            skipped_dates=skipped,
        )

    @staticmethod
    def _runs(evaluations: Sequence[Tuple[dt.date, Optional[Evaluation]]],
              keep: Callable[[TimingSample], bool]) -> List[List[TimingSample]]:
        runs: List[List[TimingSample]] = []
        current: List[TimingSample] = []
        for _, ev in evaluations:
            if ev is not None and keep(ev.sample):
                current.append(ev.sample)
                continue
            if current:
                runs.append(current)
                current = []
        if current:
            runs.append(current)
        return runs

    def _window(self, run: List[TimingSample], best: bool) -> Window:
        score = max(s.score for s in run) if best else min(s.score for s in run)
        return Window(
            start_date=run[0].date,
            end_date=run[-1].date,
            score=score,
            rating=self.classifier.classify(score),
            samples=len(run),
        )

    def _optimal_dates(self, evaluations: Sequence[Tuple[dt.date, Optional[Evaluation]]]) -> Tuple[OptimalDate, ...]:
        out: List[OptimalDate] = []
        for i, (when, ev) in enumerate(evaluations):
            if ev is None:
                continue
            s = ev.sample
            for a in ev.aligned:
                out.append(OptimalDate(date=when, type=OptimalDateType.ALIGNMENT_MATCH,
                                       significance=a.significance, score=s.score))
            if s.score < self.settings.peak:
                continue
            prev = evaluations[i - 1][1] if i > 0 else None
            nxt = evaluations[i + 1][1] if i + 1 < len(evaluations) else None
            if prev is not None and s.score <= prev.sample.score:
                continue
            if nxt is not None and s.score < nxt.sample.score:
                continue
            out.append(OptimalDate(
                date=when, type=OptimalDateType.PEAK_SCORE,
                significance=f"Peak {self.catalog.subject} timing ({s.rating.label}, {s.score:g})",
                score=s.score,
            ))
        out.sort(key=lambda o: (o.date, _TYPE_ORDER[o.type]))
        if self.settings.optimal_cap is not None:
            out = out[:self.settings.optimal_cap]
        return tuple(out)
