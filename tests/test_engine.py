import datetime as dt

import pytest

from favorability.engine import TimingEngine, build_engine
from favorability.errors import CatalogError, CurrentTimingError, FactorContractError
from favorability.models import Factor, FactorKind, OptimalDateType
from favorability.providers import StaticChartProvider

from conftest import START

CAREER_CHART = {"planets": [{"name": "Saturn", "house": 10}, {"name": "Jupiter", "house": 10}]}


def test_career_scenario_rates_in_top_two_bands(shipped):
    engine = TimingEngine(shipped("career"), StaticChartProvider(CAREER_CHART))
    res = engine.analyze(dt.date(2024, 9, 1), horizon_days=30)

    top_two = {b.label for b in engine.classifier.top(2)}
    assert res.current_timing.rating.label in top_two
    assert res.current_timing.score == 76.0
    assert "favorable" in res.counseling.current_advice
    assert "Saturn in house 10" in res.counseling.current_advice
    # every day scores the same, so the whole horizon is one favorable window
    (w,) = res.future_windows
    assert (w.start_date, w.end_date, w.samples) == (dt.date(2024, 9, 1), dt.date(2024, 10, 1), 31)
    assert res.complete and res.skipped_dates == ()


def test_zero_factors_scenario(shipped, empty_provider):
    engine = TimingEngine(shipped("career"), empty_provider)
    res = engine.analyze(START, horizon_days=5)
    assert res.current_timing.score == 0.0
    assert res.current_timing.rating == engine.classifier.lowest
    assert "caution" in res.counseling.current_advice
    assert res.future_windows == ()
    (period,) = res.challenging_periods
    assert period.advice == "Consider postponing major career decisions during this period."


def test_analyze_is_deterministic(shipped):
    engine = TimingEngine(shipped("marriage"), StaticChartProvider({
        "planets": [{"name": "Venus", "house": 7}, {"name": "Moon", "house": 5}],
        "transits": [{"planet": "JUPITER", "aspect": "TRINE", "strength": 0.8}],
    }))
    first = engine.analyze(dt.date(2024, 2, 10), horizon_days=40)
    second = engine.analyze(dt.date(2024, 2, 10), horizon_days=40)
    assert first.model_dump(exclude={"generated_at"}) == second.model_dump(exclude={"generated_at"})
    assert first.model_dump_json(exclude={"generated_at"}) == second.model_dump_json(exclude={"generated_at"})


def test_marriage_alignment_days_are_optimal(shipped):
    engine = TimingEngine(shipped("marriage"), StaticChartProvider({"planets": [{"name": "Venus", "house": 7}]}))
    res = engine.analyze(dt.date(2024, 3, 1), horizon_days=30)
    matches = [o.date.day for o in res.optimal_dates if o.type == OptimalDateType.ALIGNMENT_MATCH]
    assert matches == [7, 15, 22, 28]
    assert all(o.significance.startswith("Venus-Jupiter") for o in res.optimal_dates
               if o.type == OptimalDateType.ALIGNMENT_MATCH)


def test_reference_failure_is_current_timing_error(test_catalog, scripted):
    engine = TimingEngine(test_catalog, scripted([None, 80, 80]))
    with pytest.raises(CurrentTimingError) as ei:
        engine.analyze(START, horizon_days=2)
    assert ei.value.to_dict()["error"] == "current_timing_unavailable"


def test_later_samples_failing_still_returns_current_timing(test_catalog, scripted):
    engine = TimingEngine(test_catalog, scripted([80, None, None, None]))
    res = engine.analyze(START, horizon_days=3)
    assert res.current_timing.score == 80.0
    assert not res.complete
    assert res.skipped_dates == tuple(START + dt.timedelta(days=i) for i in (1, 2, 3))
    (w,) = res.future_windows
    assert (w.start_date, w.end_date, w.samples) == (START, START, 1)
    assert res.counseling.current_advice.startswith("Current timing is favorable")


def test_partial_failures_mark_analysis_incomplete(test_catalog, scripted):
    provider = scripted([80, 80, None, 80])
    res = TimingEngine(test_catalog, provider).analyze(START, horizon_days=3)
    assert not res.complete
    assert res.skipped_dates == (START + dt.timedelta(days=2),)
    assert len(res.future_windows) == 2
    # the reference sample is evaluated once
    assert provider.calls.count(START) == 1


def test_default_horizon_from_catalog(test_catalog, scripted):
    res = TimingEngine(test_catalog, scripted([60] * 10)).analyze(START)
    assert res.horizon_days == 9
    assert res.domain == "test" and res.catalog_version == "0.1.0"


def test_classify_and_aggregate_passthrough(shipped, empty_provider):
    engine = TimingEngine(shipped("marriage"), empty_provider)
    assert engine.classify(45).label == "Challenging"
    bd = engine.aggregate([Factor(kind=FactorKind.TRANSIT, identity="SUN:CONJUNCTION")])
    assert bd.normalized_score == 60.0
    with pytest.raises(FactorContractError):
        engine.aggregate([{"kind": "transit", "identity": "SUN", "strength": 7}])


def test_build_engine(restore_cache, empty_provider):
    engine = build_engine("fasting", empty_provider)
    assert engine.catalog.domain == "fasting"
    with pytest.raises(CatalogError):
        build_engine("numerology", empty_provider)
