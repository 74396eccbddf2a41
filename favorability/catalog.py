# favorability/catalog.py
# ------------------------------------------------------------
# Factor catalogs: versioned, immutable weight tables per domain
# - JSON-only catalogs in /catalogs (override: FAVORABILITY_CATALOG_DIR)
# - Shape checked with jsonschema, invariants checked on construction
# - Bad files are skipped by reload_catalogs() and reported
# ------------------------------------------------------------

import json
import logging
import math
import os
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Dict, List, Mapping, Optional, Tuple

from jsonschema import Draft7Validator

from .alignment import AlignmentPredicate, build_alignments, canonical_pair
from .errors import CatalogError
from .models import TIERS, FactorKind, RatingBand

logger = logging.getLogger(__name__)

CATEGORY_SUM_TOLERANCE = 1e-5

_WEIGHT = {"type": "number", "minimum": 0, "maximum": 1}
_WEIGHT_TABLE = {"type": "object", "additionalProperties": _WEIGHT}

CATALOG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "title": "Factor Catalog",
    "type": "object",
    "required": ["id", "version", "domain", "category_weights", "kind_categories", "ratings"],
    "properties": {
        "id": {"type": "string", "minLength": 1},
        "version": {"type": "string", "minLength": 1},
        "domain": {"type": "string", "minLength": 1},
        "subject": {"type": "string"},
        "description": {"type": "string"},
        "category_weights": _WEIGHT_TABLE,
        "kind_categories": {
            "type": "object",
            "propertyNames": {"enum": [k.value for k in FactorKind]},
            "additionalProperties": {"type": "string"},
        },
        "planet_weights": _WEIGHT_TABLE,
        "aspect_weights": _WEIGHT_TABLE,
        "house_weights": {
            "type": "object",
            "propertyNames": {"pattern": "^([1-9]|1[0-2])$"},
            "additionalProperties": _WEIGHT,
        },
        "pair_weights": _WEIGHT_TABLE,
        "factor_weights": {
            "type": "object",
            "propertyNames": {"enum": [k.value for k in FactorKind]},
            "additionalProperties": _WEIGHT_TABLE,
        },
        "default_weight": _WEIGHT,
        "normalization": {
            "type": "object",
            "properties": {
                "scale": {"type": "number", "exclusiveMinimum": 0},
                "cap_categories": {"type": "boolean"},
            },
            "additionalProperties": False,
        },
        "ratings": {
            "type": "array",
            "minItems": 1,
            "items": {
                "type": "object",
                "required": ["label", "min", "tier"],
                "properties": {
                    "label": {"type": "string", "minLength": 1},
                    "min": {"type": "number"},
                    "tier": {"enum": list(TIERS)},
                },
                "additionalProperties": False,
            },
        },
        "search": {
            "type": "object",
            "properties": {
                "favorable": {"type": "number"},
                "challenging": {"type": "number"},
                "window_cap": {"type": "integer", "minimum": 1},
                "horizon_days": {"type": "integer", "minimum": 0},
                "step_days": {"type": "integer", "minimum": 1},
                "peak": {"type": "number"},
                "optimal_cap": {"type": ["integer", "null"], "minimum": 1},
            },
            "additionalProperties": False,
        },
        "alignments": {
            "type": "array",
            "items": {
                "type": "object",
                "required": ["type", "pair"],
                "properties": {
                    "type": {"enum": ["day_of_month", "weekday", "angular"]},
                    "pair": {"type": "string", "minLength": 1},
                    "significance": {"type": "string"},
                    "days": {"type": "array", "items": {"type": "integer"}},
                    "weekdays": {"type": "array", "items": {"type": "string"}},
                    "angles": {"type": "array", "items": {"type": "number"}},
                    "orb": {"type": "number"},
                },
                "additionalProperties": False,
            },
        },
    },
    "additionalProperties": False,
}

_SCHEMA_VALIDATOR = Draft7Validator(CATALOG_SCHEMA)


def catalogs_dir() -> str:
    env = os.getenv("FAVORABILITY_CATALOG_DIR")
    if env:
        return env
    base = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    return os.path.join(base, "catalogs")


# ------------ identity helpers ------------
_STRUCTURED_KINDS = {FactorKind.TRANSIT, FactorKind.PROGRESSION}


def canonical_identity(kind: FactorKind, identity: str) -> str:
    """Normalize an identity so catalog keys and provider output compare equal."""
    if kind == FactorKind.PLANETARY_PAIR:
        return canonical_pair(identity)
    if kind in _STRUCTURED_KINDS:
        return ":".join(part.strip().upper() for part in identity.split(":"))
    return identity.strip().casefold()


def _frozen(d: Mapping[Any, Any]) -> Mapping[Any, Any]:
    return MappingProxyType(dict(d))


@dataclass(frozen=True)
class SearchSettings:
    favorable: float = 70.0
    challenging: float = 40.0
    window_cap: int = 10
    horizon_days: int = 365
    step_days: int = 1
    peak: float = 85.0
    optimal_cap: Optional[int] = None

    def problems(self) -> List[str]:
        out: List[str] = []
        if not (0.0 <= self.challenging < self.favorable <= 100.0):
            out.append(f"thresholds must satisfy 0 <= challenging ({self.challenging}) "
                       f"< favorable ({self.favorable}) <= 100")
        if not (0.0 <= self.peak <= 100.0):
            out.append(f"peak threshold {self.peak} outside [0, 100]")
        if self.window_cap < 1 or self.step_days < 1 or self.horizon_days < 0:
            out.append("window_cap and step_days must be >= 1, horizon_days >= 0")
        if self.optimal_cap is not None and self.optimal_cap < 1:
            out.append("optimal_cap must be >= 1 when set")
        return out


@dataclass(frozen=True)
class FactorCatalog:
    """Read-only weight tables for one domain. Build via `FactorCatalog.from_dict`."""
    id: str
    version: str
    domain: str
    category_weights: Mapping[str, float]
    kind_categories: Mapping[FactorKind, str]
    ratings: Tuple[RatingBand, ...]
    subject: str = ""
    description: str = ""
    planet_weights: Mapping[str, float] = field(default_factory=lambda: _frozen({}))
    aspect_weights: Mapping[str, float] = field(default_factory=lambda: _frozen({}))
    house_weights: Mapping[int, float] = field(default_factory=lambda: _frozen({}))
    pair_weights: Mapping[str, float] = field(default_factory=lambda: _frozen({}))
    factor_weights: Mapping[FactorKind, Mapping[str, float]] = field(default_factory=lambda: _frozen({}))
    default_weight: float = 0.0
    scale: float = 100.0
    cap_categories: bool = False
    search: SearchSettings = field(default_factory=SearchSettings)
    alignments: Tuple[AlignmentPredicate, ...] = ()

    def __post_init__(self) -> None:
        problems = self._invariant_problems()
        if problems:
            raise CatalogError(f"Catalog '{self.id}' v{self.version} is invalid", self.id, problems)

    # ---- invariants ----
    def _invariant_problems(self) -> List[str]:
        out: List[str] = []
        if not self.category_weights:
            out.append("category_weights must not be empty")
        total = math.fsum(self.category_weights.values())
        if abs(total - 1.0) > CATEGORY_SUM_TOLERANCE:
            out.append(f"category_weights sum to {total:.6f}, expected 1.0")
        for kind, cat in self.kind_categories.items():
            if cat not in self.category_weights:
                out.append(f"kind '{kind.value}' maps to undeclared category '{cat}'")
        if self.alignments and FactorKind.PLANETARY_PAIR not in self.kind_categories:
            out.append("alignments require a category for 'planetary_pair'")
        if not (0.0 <= self.default_weight <= 1.0):
            out.append(f"default_weight {self.default_weight} outside [0, 1]")
        if self.scale <= 0:
            out.append("normalization scale must be positive")
        out.extend(_rating_problems(self.ratings))
        out.extend(self.search.problems())
        return out

    # ---- lookups ----
    def category_of(self, kind: FactorKind) -> Optional[str]:
        return self.kind_categories.get(kind)

    def category_weight(self, category: str) -> float:
        return self.category_weights.get(category, 0.0)

    def weight(self, kind: FactorKind, identity: str) -> float:
        """
        Weight for (kind, identity) in [0, 1].
        Explicit factor_weights win; transit/progression identities resolve
        'PLANET:ASPECT', 'PLANET:H<n>' or 'PLANET' through the relevance
        tables; pairs resolve through pair_weights. Unknown -> default_weight.
        """
        ident = canonical_identity(kind, identity)
        explicit = self.factor_weights.get(kind, {})
        if ident in explicit:
            return explicit[ident]
        if kind == FactorKind.PLANETARY_PAIR:
            return self.pair_weights.get(ident, self.default_weight)
        if kind in _STRUCTURED_KINDS:
            return self._structured_weight(ident)
        return self.default_weight

    def _structured_weight(self, ident: str) -> float:
        planet, _, qualifier = ident.partition(":")
        if planet not in self.planet_weights:
            return self.default_weight
        p_w = self.planet_weights[planet]
        if not qualifier:
            return p_w
        if qualifier.startswith("H") and qualifier[1:].isdigit():
            house = int(qualifier[1:])
            if house not in self.house_weights:
                return self.default_weight
            return p_w * self.house_weights[house]
        if qualifier not in self.aspect_weights:
            return self.default_weight
        return p_w * self.aspect_weights[qualifier]

    def summary(self) -> Dict[str, Any]:
        return {
            "id": self.id, "version": self.version, "domain": self.domain,
            "subject": self.subject,
            "categories": dict(self.category_weights),
            "ratings": [{"label": b.label, "min": b.min_score, "tier": b.tier} for b in reversed(self.ratings)],
            "thresholds": {"favorable": self.search.favorable, "challenging": self.search.challenging},
            "alignments": [a.name for a in self.alignments],
        }

    # ---- construction ----
    @classmethod
    def from_dict(cls, obj: Any) -> "FactorCatalog":
        problems = schema_problems(obj)
        if problems:
            cid = obj.get("id") if isinstance(obj, dict) else None
            raise CatalogError("Catalog failed schema validation", cid, problems)

        try:
            alignments = build_alignments(obj.get("alignments", []))
        except ValueError as ex:
            raise CatalogError("Catalog has an invalid alignment", obj["id"], [str(ex)]) from ex

        norm = obj.get("normalization", {})
        search = SearchSettings(**obj.get("search", {}))
        factor_weights = {
            FactorKind(kind): _frozen({canonical_identity(FactorKind(kind), k): float(v) for k, v in table.items()})
            for kind, table in obj.get("factor_weights", {}).items()
        }
        return cls(
            id=obj["id"],
            version=obj["version"],
            domain=obj["domain"],
            subject=obj.get("subject", obj["domain"]),
            description=obj.get("description", ""),
            category_weights=_frozen({k: float(v) for k, v in obj["category_weights"].items()}),
            kind_categories=_frozen({FactorKind(k): v for k, v in obj["kind_categories"].items()}),
            planet_weights=_frozen({k.upper(): float(v) for k, v in obj.get("planet_weights", {}).items()}),
            aspect_weights=_frozen({k.upper(): float(v) for k, v in obj.get("aspect_weights", {}).items()}),
            house_weights=_frozen({int(k): float(v) for k, v in obj.get("house_weights", {}).items()}),
            pair_weights=_frozen({canonical_pair(k): float(v) for k, v in obj.get("pair_weights", {}).items()}),
            factor_weights=_frozen(factor_weights),
            default_weight=float(obj.get("default_weight", 0.0)),
            scale=float(norm.get("scale", 100.0)),
            cap_categories=bool(norm.get("cap_categories", False)),
            ratings=_build_bands(obj["ratings"]),
            search=search,
            alignments=alignments,
        )


def schema_problems(obj: Any) -> List[str]:
    """Return jsonschema messages (empty list when the shape is valid)."""
    errors = sorted(_SCHEMA_VALIDATOR.iter_errors(obj), key=lambda e: list(e.path))
    return [f"{'/'.join(str(p) for p in e.path) or '<root>'}: {e.message}" for e in errors]


def _build_bands(items: List[Dict[str, Any]]) -> Tuple[RatingBand, ...]:
    ordered = sorted(items, key=lambda r: float(r["min"]))
    out = []
    for rank, r in enumerate(ordered):
        try:
            out.append(RatingBand(label=r["label"], min_score=float(r["min"]), tier=r["tier"], rank=rank))
        except ValueError as ex:
            raise CatalogError("Catalog has an invalid rating band", None, [str(ex)]) from ex
    return tuple(out)


def _rating_problems(bands: Tuple[RatingBand, ...]) -> List[str]:
    """Bands (ascending) must partition [0, 100]: first at 0, strictly increasing, unique labels."""
    out: List[str] = []
    if not bands:
        return ["ratings must not be empty"]
    if bands[0].min_score != 0.0:
        out.append(f"lowest rating band '{bands[0].label}' starts at {bands[0].min_score}, expected 0")
    for lo, hi in zip(bands, bands[1:]):
        if hi.min_score <= lo.min_score:
            out.append(f"rating bands '{lo.label}' and '{hi.label}' overlap at {hi.min_score}")
    labels = [b.label for b in bands]
    if len(set(labels)) != len(labels):
        out.append("rating labels must be unique")
    return out


# ------------ loader / cache ------------
CATALOG_CACHE: Dict[str, FactorCatalog] = {}
CATALOG_ERRORS: List[Dict[str, Any]] = []


def load_catalog(path: str) -> FactorCatalog:
    """Load one catalog file; raises CatalogError on any problem."""
    fname = os.path.basename(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
    except (OSError, json.JSONDecodeError) as ex:
        raise CatalogError(f"Could not read catalog file '{fname}'", None, [str(ex)]) from ex
    return FactorCatalog.from_dict(obj)


def load_catalogs(directory: Optional[str] = None) -> Tuple[Dict[str, FactorCatalog], List[Dict[str, Any]]]:
    """Load every *.json catalog in the directory, skipping invalid files."""
    cd = directory or catalogs_dir()
    out: Dict[str, FactorCatalog] = {}
    errors: List[Dict[str, Any]] = []
    if not os.path.isdir(cd):
        errors.append({"file": cd, "error": "catalog directory not found"})
        return out, errors

    for fname in sorted(os.listdir(cd)):
        if not fname.lower().endswith(".json"):
            continue
        try:
            cat = load_catalog(os.path.join(cd, fname))
        except CatalogError as ex:
            logger.warning("Skipping catalog %s: %s", fname, ex)
            errors.append({"file": fname, "error": str(ex)})
            continue
        if cat.domain in out:
            errors.append({"file": fname, "error": f"Duplicate catalog domain '{cat.domain}' (already loaded)"})
            continue
        out[cat.domain] = cat
    return out, errors


def reload_catalogs(directory: Optional[str] = None) -> Dict[str, Any]:
    """Reload into CATALOG_CACHE and return a summary including validation errors (non-fatal)."""
    global CATALOG_ERRORS
    loaded, errors = load_catalogs(directory)
    CATALOG_CACHE.clear()
    CATALOG_CACHE.update(loaded)
    CATALOG_ERRORS = errors
    logger.info("Loaded %d catalog(s): %s", len(loaded), ", ".join(sorted(loaded)) or "-")
    return {"count": len(CATALOG_CACHE), "ids": sorted(CATALOG_CACHE), "errors": CATALOG_ERRORS}


def get_catalog(domain: str) -> FactorCatalog:
    if not CATALOG_CACHE:
        reload_catalogs()
    cat = CATALOG_CACHE.get(domain)
    if cat is None:
        raise CatalogError(f"No valid catalog loaded for domain '{domain}'", domain)
    return cat
