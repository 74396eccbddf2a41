# favorability/providers.py
# ------------------------------------------------------------
# Position providers: the engine's only source of per-date factors.
#   get_transits(date)     -> [Factor]
#   get_progressions(date) -> {identity: Factor}
#   get_panchang(date)     -> [Factor]   (calendar factors)
# Failures for a date must surface as ProviderError; the engine
# skips that sample and never retries.
# ------------------------------------------------------------

import abc
import datetime as dt
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import swisseph as swe
from pydantic import ValidationError

from .alignment import abs_min_angle
from .ephemeris import WEEKDAYS, body_positions, panchang, to_utc_jd, whole_sign_house
from .errors import ChartContractError, FactorContractError, ProviderError
from .models import Factor, FactorKind

# Western aspect angles used for transit/progression -> natal contacts
ASPECT_ANGLES: Dict[str, float] = {
    "CONJUNCTION": 0.0,
    "SEXTILE": 60.0,
    "SQUARE": 90.0,
    "TRINE": 120.0,
    "QUINCUNX": 150.0,
    "OPPOSITION": 180.0,
}

PANCHANG_KINDS: Dict[str, FactorKind] = {
    "tithi": FactorKind.TITHI,
    "nakshatra": FactorKind.NAKSHATRA,
    "yoga": FactorKind.YOGA,
    "karana": FactorKind.KARANA,
    "vara": FactorKind.VARA,
}

CALENDAR_KINDS = frozenset(PANCHANG_KINDS.values())

PROGRESSED_BODIES = ("Sun", "Moon", "Venus", "Mars")


def make_factor(kind: FactorKind, identity: str, strength: float = 1.0, present: bool = True) -> Factor:
    try:
        return Factor(kind=kind, identity=identity, strength=strength, present=present)
    except ValidationError as ex:
        raise FactorContractError(f"Invalid {kind.value} factor '{identity}': {ex}") from ex


class PositionProvider(abc.ABC):
    """Base collaborator. Subclasses must serve transits; the other getters default to empty."""

    @abc.abstractmethod
    def get_transits(self, when: dt.date) -> List[Factor]:
        ...

    def get_progressions(self, when: dt.date) -> Dict[str, Factor]:
        return {}

    def get_panchang(self, when: dt.date) -> List[Factor]:
        return []

    def factors_for(self, when: dt.date, kinds: Optional[Iterable[FactorKind]] = None) -> List[Factor]:
        """Every factor for `when`; families outside `kinds` are not requested."""
        wanted = set(FactorKind) if kinds is None else set(kinds)
        out: List[Factor] = []
        if FactorKind.TRANSIT in wanted:
            out.extend(self.get_transits(when))
        if FactorKind.PROGRESSION in wanted:
            out.extend(self.get_progressions(when).values())
        if wanted & CALENDAR_KINDS:
            out.extend(self.get_panchang(when))
        return out


# ------------ static chart ------------
def _check_planets(chart: Any, required: Sequence[str], need_longitude: bool = False,
                   allow_empty: bool = False) -> List[Dict[str, Any]]:
    if not isinstance(chart, Mapping):
        raise ChartContractError("chart must be a mapping")
    planets = chart.get("planets", [] if allow_empty else None)
    if not isinstance(planets, list) or (not planets and not allow_empty):
        raise ChartContractError("chart has no 'planets' list")
    seen = set()
    for p in planets:
        if not isinstance(p, Mapping) or not isinstance(p.get("name"), str):
            raise ChartContractError(f"planet entry without a name: {p!r}")
        house = p.get("house")
        if isinstance(house, bool) or not isinstance(house, int) or not (1 <= house <= 12):
            raise ChartContractError(f"planet {p['name']} has invalid house {house!r} (expected 1..12)")
        if need_longitude and not isinstance(p.get("longitude"), (int, float)):
            raise ChartContractError(f"planet {p['name']} has no longitude")
        seen.add(p["name"].upper())
    missing = [r for r in required if r.upper() not in seen]
    if missing:
        raise ChartContractError(f"chart is missing required planets: {', '.join(missing)}")
    return list(planets)


class StaticChartProvider(PositionProvider):
    """
    Serves the same positions for every date.
    chart = {"planets": [{"name": "Saturn", "house": 10}, ...],
             "transits": [{"planet": "VENUS", "aspect": "TRINE", "strength": 0.8}],
             "progressions": [{"planet": "SUN", "aspect": "TRINE"}],
             "panchang": {"tithi": 11, "nakshatra": "Rohini", "vara": "Thursday"}}
    """

    def __init__(self, chart: Mapping[str, Any], required: Sequence[str] = ()):
        # a Panchang-only chart may omit planets
        panchang_only = isinstance(chart, Mapping) and "panchang" in chart and not required
        self.planets = _check_planets(chart, required, allow_empty=panchang_only)
        self.chart = chart
        self._transits = self._build_transits()
        self._progressions = self._build_progressions()
        self._panchang = self._build_panchang()

    @staticmethod
    def _contact_identity(entry: Mapping[str, Any]) -> str:
        planet = str(entry.get("planet", "")).upper()
        if "aspect" in entry:
            return f"{planet}:{str(entry['aspect']).upper()}"
        if "house" in entry:
            return f"{planet}:H{int(entry['house'])}"
        return planet

    def _build_transits(self) -> List[Factor]:
        out = [make_factor(FactorKind.TRANSIT, f"{p['name'].upper()}:H{p['house']}",
                           float(p.get("strength", 1.0)))
               for p in self.planets]
        for t in self.chart.get("transits", []) or []:
            out.append(make_factor(FactorKind.TRANSIT, self._contact_identity(t),
                                   float(t.get("strength", 1.0)), bool(t.get("present", True))))
        return out

    def _build_progressions(self) -> Dict[str, Factor]:
        out: Dict[str, Factor] = {}
        for p in self.chart.get("progressions", []) or []:
            f = make_factor(FactorKind.PROGRESSION, self._contact_identity(p), float(p.get("strength", 1.0)))
            out[f.identity] = f
        return out

    def _build_panchang(self) -> List[Factor]:
        pc = self.chart.get("panchang", {}) or {}
        return [make_factor(kind, str(pc[key])) for key, kind in PANCHANG_KINDS.items() if key in pc]

    def _has_panchang(self) -> bool:
        return bool(self.chart.get("panchang"))

    def get_transits(self, when: dt.date) -> List[Factor]:
        return list(self._transits)

    def get_progressions(self, when: dt.date) -> Dict[str, Factor]:
        return dict(self._progressions)

    def get_panchang(self, when: dt.date) -> List[Factor]:
        out = list(self._panchang)
        # vara follows the sampled date unless the chart pins it
        if self._has_panchang() and "vara" not in self.chart["panchang"]:
            out.append(make_factor(FactorKind.VARA, WEEKDAYS[when.weekday()]))
        return out


# ------------ swisseph-backed ------------
def contacts(moving: Mapping[str, float], natal: Mapping[str, float], orb: float) -> Dict[str, float]:
    """
    Moving body -> natal body aspects. Returns {'BODY:ASPECT': strength}
    keeping the tightest contact per identity (strength = 1 - diff/orb).
    """
    out: Dict[str, float] = {}
    for m_name, m_lon in moving.items():
        for n_lon in natal.values():
            sep = abs_min_angle(m_lon, n_lon)
            for aspect, angle in ASPECT_ANGLES.items():
                diff = abs(sep - angle)
                if diff <= orb:
                    ident = f"{m_name.upper()}:{aspect}"
                    strength = round(max(0.0, 1.0 - diff / max(orb, 1e-6)), 3)
                    out[ident] = max(out.get(ident, 0.0), strength)
    return out


class SwissEphProvider(PositionProvider):
    """Transits, secondary progressions and Panchang computed with pyswisseph."""

    def __init__(self, natal: Mapping[str, Any], tz_hours: float = 0.0, ayanamsha: str = "Lahiri",
                 orb_deg: float = 6.0, transit_bodies: Optional[Iterable[str]] = None):
        self.planets = _check_planets(natal, ("Sun", "Moon"), need_longitude=True)
        asc = natal.get("ascendant", {})
        if not isinstance(asc, Mapping) or not isinstance(asc.get("sign_num"), int):
            raise ChartContractError("natal chart has no ascendant sign_num")
        if "julian_day_ut" not in natal:
            raise ChartContractError("natal chart has no julian_day_ut (needed for progressions)")
        self.natal = natal
        self.asc_sign = int(asc["sign_num"])
        self.tz_hours = tz_hours
        self.ayanamsha = ayanamsha
        self.orb_deg = orb_deg
        self.transit_bodies = set(transit_bodies) if transit_bodies else None
        self.natal_lons = {p["name"]: float(p["longitude"]) for p in self.planets}
        self.birth = dt.datetime.strptime(natal["birth_date"], "%Y-%m-%d").date() if natal.get("birth_date") else None

    def _positions(self, jd_ut: float, when: dt.date) -> Dict[str, Dict[str, float]]:
        try:
            return body_positions(jd_ut, self.ayanamsha)
        except swe.Error as ex:
            raise ProviderError(f"swisseph failed for {when.isoformat()}: {ex}", when) from ex

    def get_transits(self, when: dt.date) -> List[Factor]:
        pos = self._positions(to_utc_jd(when, "12:00", self.tz_hours), when)
        if self.transit_bodies:
            pos = {k: v for k, v in pos.items() if k in self.transit_bodies}
        out = [make_factor(FactorKind.TRANSIT, f"{name.upper()}:H{whole_sign_house(self.asc_sign, p['sign_num'])}")
               for name, p in pos.items()]
        hits = contacts({k: v["longitude"] for k, v in pos.items()}, self.natal_lons, self.orb_deg)
        out.extend(make_factor(FactorKind.TRANSIT, ident, s) for ident, s in sorted(hits.items()))
        return out

    def get_progressions(self, when: dt.date) -> Dict[str, Factor]:
        if self.birth is None or when < self.birth:
            return {}
        # secondary progression: one day after birth per year of life
        age_years = (when - self.birth).days / 365.2425
        pos = self._positions(float(self.natal["julian_day_ut"]) + age_years, when)
        moving = {k: pos[k]["longitude"] for k in PROGRESSED_BODIES}
        hits = contacts(moving, self.natal_lons, 1.0)
        return {ident: make_factor(FactorKind.PROGRESSION, ident, s) for ident, s in sorted(hits.items())}

    def get_panchang(self, when: dt.date) -> List[Factor]:
        try:
            pc = panchang(when, self.tz_hours, self.ayanamsha)
        except swe.Error as ex:
            raise ProviderError(f"swisseph failed for {when.isoformat()}: {ex}", when) from ex
        return [make_factor(kind, str(pc[key])) for key, kind in PANCHANG_KINDS.items()]
