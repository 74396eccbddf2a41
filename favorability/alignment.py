# favorability/alignment.py
# ------------------------------------------------------------
# Periodic-alignment predicates: is_aligned(date) -> bool
# - day_of_month : closed list of days (stand-in for real ephemeris)
# - weekday      : planet-ruled weekdays (charity / vrata days)
# - angular      : true separation of two bodies via swisseph
# All predicates are referentially transparent per date.
# ------------------------------------------------------------

import abc
import datetime as dt
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

import swisseph as swe

from .ephemeris import BODIES, WEEKDAYS, body_longitudes_on
from .errors import ProviderError

BODY_NAMES = frozenset(name.upper() for name, _ in BODIES)

# Planetary weekday rulers (vara lords)
WEEKDAY_LORD: Dict[str, str] = {
    "Sunday": "SUN", "Monday": "MOON", "Tuesday": "MARS", "Wednesday": "MERCURY",
    "Thursday": "JUPITER", "Friday": "VENUS", "Saturday": "SATURN",
}


def canonical_pair(pair: str) -> str:
    """'Venus-Jupiter' and 'JUPITER-VENUS' both become 'JUPITER-VENUS'."""
    parts = [p.strip().upper() for p in pair.split("-") if p.strip()]
    return "-".join(sorted(parts))


def abs_min_angle(a: float, b: float) -> float:
    """Smallest absolute angle between a and b (0..180)."""
    d = abs(a - b) % 360.0
    return d if d <= 180.0 else 360.0 - d


class AlignmentPredicate(abc.ABC):
    """Base strategy. Subclasses only implement `is_aligned`."""

    type_name = "base"

    def __init__(self, pair: str, significance: str = ""):
        self.pair = canonical_pair(pair)
        self.significance = significance or f"{self.label} alignment"

    @property
    def label(self) -> str:
        return "-".join(p.capitalize() for p in self.pair.split("-"))

    @property
    def name(self) -> str:
        return f"{self.label} Alignment"

    @abc.abstractmethod
    def is_aligned(self, when: dt.date) -> bool:
        """True when the pair is favorably aligned on `when`."""

    def aligned_dates(self, dates: Iterable[dt.date]) -> List[dt.date]:
        return [d for d in dates if self.is_aligned(d)]

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.pair!r})"


class DayOfMonthAlignment(AlignmentPredicate):
    type_name = "day_of_month"

    def __init__(self, pair: str, days: Sequence[int], significance: str = ""):
        super().__init__(pair, significance)
        bad = [d for d in days if not (1 <= int(d) <= 31)]
        if bad:
            raise ValueError(f"day_of_month alignment {self.pair}: days out of range {bad}")
        self.days = frozenset(int(d) for d in days)

    def is_aligned(self, when: dt.date) -> bool:
        return when.day in self.days


class WeekdayAlignment(AlignmentPredicate):
    type_name = "weekday"

    def __init__(self, pair: str, weekdays: Sequence[str], significance: str = ""):
        super().__init__(pair, significance)
        names = [w.strip().capitalize() for w in weekdays]
        bad = [w for w in names if w not in WEEKDAYS]
        if bad:
            raise ValueError(f"weekday alignment {self.pair}: unknown weekdays {bad}")
        self.weekdays = frozenset(WEEKDAYS.index(w) for w in names)

    def is_aligned(self, when: dt.date) -> bool:
        return when.weekday() in self.weekdays


PositionsFn = Callable[[dt.date], Mapping[str, float]]


def _ephemeris_positions(when: dt.date) -> Mapping[str, float]:
    try:
        return body_longitudes_on(when)
    except swe.Error as ex:
        raise ProviderError(f"swisseph failed for {when.isoformat()}: {ex}", when) from ex


class AngularAlignment(AlignmentPredicate):
    """Aligned when the pair's separation is within `orb` of any of `angles`."""
    type_name = "angular"

    def __init__(self, pair: str, angles: Sequence[float] = (0.0, 60.0, 120.0), orb: float = 3.0,
                 significance: str = "", positions: Optional[PositionsFn] = None):
        super().__init__(pair, significance)
        bodies = self.pair.split("-")
        if len(bodies) != 2:
            raise ValueError(f"angular alignment needs exactly two bodies, got {self.pair!r}")
        unknown = [b for b in bodies if b not in BODY_NAMES]
        if unknown:
            raise ValueError(f"angular alignment {self.pair}: unknown bodies {unknown} "
                             f"(expected one of {sorted(BODY_NAMES)})")
        if orb <= 0:
            raise ValueError("angular alignment orb must be positive")
        self.bodies: Tuple[str, str] = (bodies[0], bodies[1])
        self.angles = tuple(float(a) for a in angles)
        self.orb = float(orb)
        self._positions = positions or _ephemeris_positions

    def separation(self, when: dt.date) -> float:
        pos = self._positions(when)
        a, b = self.bodies
        try:
            return abs_min_angle(float(pos[a]), float(pos[b]))
        except KeyError as ex:
            raise ProviderError(f"no position for {ex.args[0]} on {when.isoformat()}", when) from ex

    def is_aligned(self, when: dt.date) -> bool:
        sep = self.separation(when)
        return any(abs(sep - ang) <= self.orb for ang in self.angles)


ALIGNMENT_TYPES: Dict[str, Any] = {
    DayOfMonthAlignment.type_name: DayOfMonthAlignment,
    WeekdayAlignment.type_name: WeekdayAlignment,
    AngularAlignment.type_name: AngularAlignment,
}


def build_alignment(cfg: Mapping[str, Any]) -> AlignmentPredicate:
    """Build one predicate from a catalog `alignments` entry."""
    kind = cfg.get("type")
    pair = cfg.get("pair", "")
    significance = cfg.get("significance", "")
    if kind == "day_of_month":
        return DayOfMonthAlignment(pair, cfg.get("days", []), significance)
    if kind == "weekday":
        return WeekdayAlignment(pair, cfg.get("weekdays", []), significance)
    if kind == "angular":
        return AngularAlignment(pair, cfg.get("angles", (0.0, 60.0, 120.0)),
                                float(cfg.get("orb", 3.0)), significance)
    raise ValueError(f"Unknown alignment type {kind!r} (expected one of {sorted(ALIGNMENT_TYPES)})")


def build_alignments(cfgs: Iterable[Mapping[str, Any]]) -> Tuple[AlignmentPredicate, ...]:
    return tuple(build_alignment(c) for c in cfgs)
