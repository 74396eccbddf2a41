# favorability/scoring.py
# ------------------------------------------------------------
# Factor set + catalog -> ScoreBreakdown (pure)
#   per category:  sum_c = Σ weight(f) × strength(f)   (present only)
#   optional cap:  sum_c <= 1.0 (Panchang-style point allotments)
#   raw          = Σ category_weight[c] × sum_c
#   normalized   = clamp(scale × raw, 0, 100)
# ------------------------------------------------------------

import math
from typing import Any, Dict, Iterable, List, Mapping, Tuple, Union

from pydantic import ValidationError

from .catalog import FactorCatalog
from .errors import FactorContractError
from .models import Factor, ScoreBreakdown

FactorLike = Union[Factor, Mapping[str, Any]]


def _coerce(f: FactorLike) -> Factor:
    if isinstance(f, Factor):
        # model_construct() bypasses validation; re-check the strength contract here
        if not (0.0 <= f.strength <= 1.0):
            raise FactorContractError(f"Factor {f.kind.value}:{f.identity} strength {f.strength} outside [0, 1]")
        return f
    try:
        return Factor.model_validate(f)
    except ValidationError as ex:
        raise FactorContractError(f"Invalid factor {f!r}: {ex}") from ex


def resolve(factors: Iterable[FactorLike], catalog: FactorCatalog) -> List[Factor]:
    """Validate factors and stamp each with its catalog weight (input order kept)."""
    out: List[Factor] = []
    for f in factors:
        factor = _coerce(f)
        if catalog.category_of(factor.kind) is None:
            raise FactorContractError(
                f"Catalog '{catalog.id}' has no category for factor kind '{factor.kind.value}' ({factor.identity})"
            )
        out.append(factor.model_copy(update={"weight": catalog.weight(factor.kind, factor.identity)}))
    return out


def aggregate(factors: Iterable[FactorLike], catalog: FactorCatalog) -> ScoreBreakdown:
    resolved = resolve(factors, catalog)

    sums: Dict[str, float] = {c: 0.0 for c in catalog.category_weights}
    for f in resolved:
        if f.present:
            sums[catalog.category_of(f.kind)] += f.weight * f.strength
    if catalog.cap_categories:
        sums = {c: min(v, 1.0) for c, v in sums.items()}

    raw = math.fsum(catalog.category_weight(c) * v for c, v in sums.items())
    normalized = round(max(0.0, min(100.0, raw * catalog.scale)), 2)
    category_scores = {c: round(catalog.category_weight(c) * v * catalog.scale, 3) for c, v in sums.items()}

    return ScoreBreakdown(
        factors=tuple(resolved),
        category_scores=category_scores,
        raw_score=round(raw, 6),
        normalized_score=normalized,
    )


def contribution(factor: Factor, catalog: FactorCatalog) -> float:
    """Points a single (resolved) factor adds before category capping."""
    if not factor.present:
        return 0.0
    cat = catalog.category_of(factor.kind)
    return factor.weight * factor.strength * catalog.category_weight(cat) * catalog.scale


def dominant_factors(breakdown: ScoreBreakdown, catalog: FactorCatalog, top_n: int = 3) -> List[Tuple[Factor, float]]:
    """Present factors ranked by contribution; ties keep breakdown order."""
    ranked = [(f, round(contribution(f, catalog), 3)) for f in breakdown.factors]
    ranked = [r for r in ranked if r[1] > 0.0]
    ranked.sort(key=lambda r: r[1], reverse=True)
    return ranked[:top_n]
