# favorability/ephemeris.py
# ------------------------------------------------------------
# Thin pyswisseph layer used by the position provider adapter:
# sidereal longitudes, natal chart dict, Panchang elements.
# Chart dicts keep the shape {"ascendant": {...}, "planets": [...]}.
# ------------------------------------------------------------

import datetime as dt
import math
from typing import Any, Dict, List, Tuple

import pytz
import swisseph as swe

WEEKDAYS: List[str] = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]

SIGNS: List[str] = [
    "Aries", "Taurus", "Gemini", "Cancer", "Leo", "Virgo",
    "Libra", "Scorpio", "Sagittarius", "Capricorn", "Aquarius", "Pisces"
]

AYAN_MAP: Dict[str, int] = {
    "Lahiri": swe.SIDM_LAHIRI,
    "Raman": swe.SIDM_RAMAN,
    "Krishnamurti": swe.SIDM_KRISHNAMURTI,
}

# Rahu = mean node; Ketu derived (opposite point)
BODIES: List[Tuple[str, Any]] = [
    ("Sun", swe.SUN),
    ("Moon", swe.MOON),
    ("Mercury", swe.MERCURY),
    ("Venus", swe.VENUS),
    ("Mars", swe.MARS),
    ("Jupiter", swe.JUPITER),
    ("Saturn", swe.SATURN),
    ("Rahu", swe.MEAN_NODE),
    ("Ketu", None),
]

NAKSHATRA_NAMES: List[str] = [
    "Ashwini", "Bharani", "Krittika", "Rohini", "Mrigashira", "Ardra", "Punarvasu",
    "Pushya", "Ashlesha", "Magha", "Purva Phalguni", "Uttara Phalguni", "Hasta",
    "Chitra", "Swati", "Vishakha", "Anuradha", "Jyeshtha", "Moola", "Purva Ashadha",
    "Uttara Ashadha", "Shravana", "Dhanishtha", "Shatabhisha", "Purva Bhadrapada",
    "Uttara Bhadrapada", "Revati",
]
YOGA_NAMES: List[str] = [
    "Vishkambha", "Priti", "Ayushman", "Saubhagya", "Shobhana", "Atiganda", "Sukarma",
    "Dhriti", "Shoola", "Ganda", "Vriddhi", "Dhruva", "Vyaghata", "Harshana", "Vajra",
    "Siddhi", "Vyatipata", "Variyan", "Parigha", "Shiva", "Siddha", "Sadhya", "Shubha",
    "Shukla", "Brahma", "Indra", "Vaidhriti",
]
MOBILE_KARANAS: List[str] = ["Bava", "Balava", "Kaulava", "Taitila", "Garaja", "Vanija", "Vishti"]
NAK_SIZE = 360.0 / 27.0
TITHI_SIZE = 12.0
KARANA_SIZE = 6.0


def normalize(deg: float) -> float:
    return deg % 360.0


def sign_num_of(longitude: float) -> int:
    # 0..360 -> 1..12
    return int(math.floor(normalize(longitude)) // 30) + 1


def pick_ayan(ayanamsha: str) -> int:
    return AYAN_MAP.get(ayanamsha, swe.SIDM_LAHIRI)


def to_utc_jd(when: dt.date, time_str: str = "12:00", tz_hours: float = 0.0) -> float:
    """Local date + 'HH:MM' at a fixed UTC offset -> Julian day (UT)."""
    local = dt.datetime.strptime(f"{when.isoformat()} {time_str}", "%Y-%m-%d %H:%M")
    offset_min = int(round(tz_hours * 60))
    dt_utc = pytz.FixedOffset(offset_min).localize(local).astimezone(pytz.utc)
    return swe.julday(dt_utc.year, dt_utc.month, dt_utc.day,
                      dt_utc.hour + dt_utc.minute / 60.0 + dt_utc.second / 3600.0)


def _calc_lon(jd_ut: float, body_id: int, flags: int) -> Tuple[float, float]:
    """(longitude, longitude speed); tolerant of both calc_ut return shapes."""
    res = swe.calc_ut(jd_ut, body_id, flags | swe.FLG_SPEED)
    xx = res[0] if isinstance(res, tuple) and len(res) == 2 else res
    lon = float(xx[0])
    spd = float(xx[3]) if len(xx) > 3 else 0.0
    return normalize(lon), spd


def body_positions(jd_ut: float, ayanamsha: str = "Lahiri") -> Dict[str, Dict[str, float]]:
    """Sidereal longitude/speed/sign for the nine grahas."""
    swe.set_sid_mode(pick_ayan(ayanamsha), 0, 0)
    flags = swe.FLG_SWIEPH | swe.FLG_SIDEREAL
    out: Dict[str, Dict[str, float]] = {}
    for name, body_id in BODIES:
        if name == "Ketu":
            rahu = out["Rahu"]
            lon, spd = normalize(rahu["longitude"] + 180.0), rahu["speed"]
        else:
            lon, spd = _calc_lon(jd_ut, body_id, flags)
        out[name] = {"longitude": lon, "speed": spd, "sign_num": sign_num_of(lon)}
    return out


def body_longitudes_on(when: dt.date, tz_hours: float = 0.0, ayanamsha: str = "Lahiri") -> Dict[str, float]:
    """Upper-case body name -> sidereal longitude at local noon."""
    pos = body_positions(to_utc_jd(when, "12:00", tz_hours), ayanamsha)
    return {name.upper(): p["longitude"] for name, p in pos.items()}


def whole_sign_house(asc_sign: int, body_sign: int) -> int:
    return (body_sign - asc_sign) % 12 + 1


def natal_chart(dob: str, tob: str, lat: float, lon: float, tz: float, ayanamsha: str = "Lahiri") -> Dict[str, Any]:
    """Natal chart dict: sidereal ascendant + planets with whole-sign houses."""
    birth = dt.datetime.strptime(dob, "%Y-%m-%d").date()
    jd_ut = to_utc_jd(birth, tob, tz)
    swe.set_sid_mode(pick_ayan(ayanamsha), 0, 0)
    ayan = swe.get_ayanamsa_ut(jd_ut)
    _cusps, ascmc = swe.houses(jd_ut, lat, lon, b'P')
    asc = normalize(ascmc[0] - ayan)
    asc_sign = sign_num_of(asc)

    planets = []
    for name, p in body_positions(jd_ut, ayanamsha).items():
        planets.append({
            "name": name,
            "longitude": round(p["longitude"], 4),
            "sign": SIGNS[p["sign_num"] - 1],
            "sign_num": p["sign_num"],
            "house": whole_sign_house(asc_sign, p["sign_num"]),
            "retro": p["speed"] < 0,
        })
    return {
        "ayanamsha": ayanamsha,
        "birth_date": dob,
        "julian_day_ut": jd_ut,
        "ascendant": {"degree": round(asc, 4), "sign": SIGNS[asc_sign - 1], "sign_num": asc_sign},
        "planets": planets,
    }


def karana_name(delta_deg: float) -> str:
    k = int(normalize(delta_deg) // KARANA_SIZE)  # 0..59
    if k == 0:
        return "Kimstughna"
    if k >= 57:
        return ["Shakuni", "Chatushpada", "Naga"][k - 57]
    return MOBILE_KARANAS[(k - 1) % 7]


def panchang(when: dt.date, tz_hours: float = 0.0, ayanamsha: str = "Lahiri") -> Dict[str, Any]:
    """Tithi / nakshatra / yoga / karana / vara at local noon of `when`."""
    pos = body_positions(to_utc_jd(when, "12:00", tz_hours), ayanamsha)
    sun, moon = pos["Sun"]["longitude"], pos["Moon"]["longitude"]
    delta = normalize(moon - sun)
    yoga_val = normalize(sun + moon)
    return {
        "tithi": int(delta // TITHI_SIZE) + 1,
        "nakshatra": NAKSHATRA_NAMES[int(moon // NAK_SIZE) % 27],
        "yoga": YOGA_NAMES[int(yoga_val // NAK_SIZE) % 27],
        "karana": karana_name(delta),
        "vara": WEEKDAYS[when.weekday()],
    }
