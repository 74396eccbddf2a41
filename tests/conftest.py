import datetime as dt
import os
import threading

import pytest

from favorability.catalog import FactorCatalog, catalogs_dir, load_catalog, reload_catalogs
from favorability.errors import ProviderError
from favorability.models import Factor, FactorKind
from favorability.providers import PositionProvider

START = dt.date(2024, 3, 1)


class ScriptedProvider(PositionProvider):
    """
    One transit factor per date whose strength is score/100, so with the
    test catalog (SCORE weight 1.0, scale 100) a date scores exactly its
    scripted value. None means the provider fails for that date.
    """

    def __init__(self, scores, start=START, default=0.0):
        self.by_date = {start + dt.timedelta(days=i): s for i, s in enumerate(scores)}
        self.default = default
        self.calls = []
        self._lock = threading.Lock()

    def get_transits(self, when):
        with self._lock:
            self.calls.append(when)
        score = self.by_date.get(when, self.default)
        if score is None:
            raise ProviderError(f"no positions for {when}", when)
        return [Factor(kind=FactorKind.TRANSIT, identity="SCORE", strength=score / 100.0)]


class EmptyProvider(PositionProvider):
    def get_transits(self, when):
        return []


def catalog_dict(**overrides):
    base = {
        "id": "test_timing",
        "version": "0.1.0",
        "domain": "test",
        "subject": "testing",
        "category_weights": {"main": 0.8, "alignment": 0.2},
        "kind_categories": {"transit": "main", "planetary_pair": "alignment"},
        "planet_weights": {"SCORE": 1.0},
        "pair_weights": {"VENUS-JUPITER": 1.0},
        "normalization": {"scale": 125},
        "ratings": [
            {"label": "Excellent", "min": 80, "tier": "strong"},
            {"label": "Very Good", "min": 70, "tier": "favorable"},
            {"label": "Good", "min": 60, "tier": "steady"},
            {"label": "Moderate", "min": 50, "tier": "mixed"},
            {"label": "Challenging", "min": 40, "tier": "caution"},
            {"label": "Difficult", "min": 0, "tier": "caution"},
        ],
        "search": {"favorable": 70, "challenging": 40, "window_cap": 10,
                   "horizon_days": 9, "step_days": 1, "peak": 85},
    }
    base.update(overrides)
    return base


@pytest.fixture
def scripted():
    return ScriptedProvider


@pytest.fixture
def empty_provider():
    return EmptyProvider()


@pytest.fixture
def test_catalog():
    # main category weight 0.8 x scale 125 = 100 points for a full-strength SCORE factor
    return FactorCatalog.from_dict(catalog_dict())


@pytest.fixture
def make_catalog():
    def _make(**overrides):
        return FactorCatalog.from_dict(catalog_dict(**overrides))
    return _make


@pytest.fixture
def shipped():
    def _load(domain):
        return load_catalog(os.path.join(catalogs_dir(), f"{domain}.json"))
    return _load


@pytest.fixture
def restore_cache():
    yield
    reload_catalogs()
