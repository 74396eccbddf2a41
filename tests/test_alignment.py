import datetime as dt

import pytest
import swisseph as swe

from favorability import alignment
from favorability.alignment import (AlignmentPredicate, AngularAlignment, DayOfMonthAlignment, WeekdayAlignment,
                                    abs_min_angle, build_alignment, canonical_pair)
from favorability.errors import ProviderError


def test_day_of_month_membership():
    a = DayOfMonthAlignment("Venus-Jupiter", [15, 22])
    assert a.is_aligned(dt.date(2024, 5, 15))
    assert a.is_aligned(dt.date(2024, 5, 22))
    assert not a.is_aligned(dt.date(2024, 5, 10))


def test_predicate_is_pure():
    a = DayOfMonthAlignment("Venus-Jupiter", [7, 15, 22, 28])
    d = dt.date(2025, 2, 28)
    assert a.is_aligned(d) == a.is_aligned(d) is True


def test_aligned_dates():
    a = DayOfMonthAlignment("Venus-Jupiter", [7, 15])
    dates = [dt.date(2024, 1, 1) + dt.timedelta(days=i) for i in range(31)]
    assert a.aligned_dates(dates) == [dt.date(2024, 1, 7), dt.date(2024, 1, 15)]


def test_day_out_of_range():
    with pytest.raises(ValueError):
        DayOfMonthAlignment("Venus-Jupiter", [0, 15])
    with pytest.raises(ValueError):
        DayOfMonthAlignment("Venus-Jupiter", [32])


def test_weekday_alignment():
    a = WeekdayAlignment("Sun-Jupiter", ["thursday", "Sunday"])
    assert a.is_aligned(dt.date(2024, 1, 4))       # Thursday
    assert a.is_aligned(dt.date(2024, 1, 7))       # Sunday
    assert not a.is_aligned(dt.date(2024, 1, 5))
    with pytest.raises(ValueError):
        WeekdayAlignment("Sun-Jupiter", ["Funday"])


def test_angular_alignment_with_injected_positions():
    table = {
        dt.date(2024, 1, 1): {"VENUS": 10.0, "JUPITER": 131.0},    # 121 deg, trine within orb
        dt.date(2024, 1, 2): {"VENUS": 10.0, "JUPITER": 110.0},    # 100 deg
        dt.date(2024, 1, 3): {"VENUS": 359.0, "JUPITER": 1.5},     # 2.5 deg across 0
    }
    a = AngularAlignment("Venus-Jupiter", angles=(0, 60, 120), orb=3.0, positions=table.__getitem__)
    assert a.is_aligned(dt.date(2024, 1, 1))
    assert not a.is_aligned(dt.date(2024, 1, 2))
    assert a.is_aligned(dt.date(2024, 1, 3))
    assert a.separation(dt.date(2024, 1, 3)) == pytest.approx(2.5)


def test_angular_needs_two_bodies():
    with pytest.raises(ValueError):
        AngularAlignment("Venus", positions=lambda d: {})
    with pytest.raises(ValueError):
        AngularAlignment("Venus-Jupiter", orb=0, positions=lambda d: {})


def test_angular_rejects_unknown_bodies():
    with pytest.raises(ValueError) as ei:
        AngularAlignment("Venus-Pluto", positions=lambda d: {})
    assert "PLUTO" in str(ei.value)


def test_missing_position_is_provider_error():
    a = AngularAlignment("Venus-Jupiter", positions=lambda d: {"VENUS": 10.0})
    with pytest.raises(ProviderError):
        a.is_aligned(dt.date(2024, 1, 1))


def test_swisseph_failure_is_provider_error(monkeypatch):
    def boom(when):
        raise swe.Error("ephemeris file not found")

    monkeypatch.setattr(alignment, "body_longitudes_on", boom)
    with pytest.raises(ProviderError):
        AngularAlignment("Venus-Jupiter").is_aligned(dt.date(2024, 1, 1))


def test_predicate_base_is_abstract():
    with pytest.raises(TypeError):
        AlignmentPredicate("Venus-Jupiter")


def test_names_and_pairs():
    assert canonical_pair("Venus-Jupiter") == canonical_pair("JUPITER - venus") == "JUPITER-VENUS"
    a = DayOfMonthAlignment("Venus-Jupiter", [15])
    assert a.name == "Jupiter-Venus Alignment"
    assert a.significance == "Jupiter-Venus alignment"
    assert abs_min_angle(350.0, 10.0) == pytest.approx(20.0)


def test_build_alignment():
    a = build_alignment({"type": "weekday", "pair": "Moon-Saturn", "weekdays": ["Monday"],
                         "significance": "vrata day"})
    assert isinstance(a, WeekdayAlignment)
    assert a.significance == "vrata day"
    with pytest.raises(ValueError):
        build_alignment({"type": "lunar_phase", "pair": "Sun-Moon"})
