# favorability/main.py
import datetime as dt
import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .catalog import CATALOG_CACHE, FactorCatalog, get_catalog, reload_catalogs
from .engine import TimingEngine
from .ephemeris import natal_chart
from .errors import CatalogError, ContractError, TimingError
from .providers import StaticChartProvider, SwissEphProvider
from .ratings import RatingClassifier
from .scoring import aggregate, dominant_factors

logger = logging.getLogger(__name__)

app = FastAPI(title="Favorability Timing Engine")


class ChartIn(BaseModel):
    dob: str      # "YYYY-MM-DD"
    tob: str      # "HH:MM" 24h
    lat: float
    lon: float
    tz: float     # e.g. 5.5
    ayanamsha: str = "Lahiri"


class AnalyzeIn(ChartIn):
    reference_date: str                      # "YYYY-MM-DD"
    horizon_days: Optional[int] = Field(default=None, ge=0, le=1095)


class StaticAnalyzeIn(BaseModel):
    chart: Dict[str, Any]
    reference_date: str
    horizon_days: Optional[int] = Field(default=None, ge=0, le=1095)


class FactorsIn(BaseModel):
    factors: List[Dict[str, Any]]


def _catalog(domain: str) -> FactorCatalog:
    try:
        return get_catalog(domain)
    except CatalogError as ex:
        raise HTTPException(status_code=404, detail=f"{ex}. Call /catalogs/reload or check /catalogs/list.") from ex


def _date(value: str) -> dt.date:
    try:
        return dt.datetime.strptime(value, "%Y-%m-%d").date()
    except ValueError as ex:
        raise HTTPException(status_code=422, detail=f"Invalid date '{value}' (expected YYYY-MM-DD)") from ex


def _birth(body: ChartIn) -> None:
    try:
        dt.datetime.strptime(f"{body.dob} {body.tob}", "%Y-%m-%d %H:%M")
    except ValueError as ex:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid birth data '{body.dob} {body.tob}' (expected YYYY-MM-DD and HH:MM)",
        ) from ex


@app.exception_handler(ContractError)
async def contract_error(_request: Request, ex: ContractError):
    return JSONResponse(status_code=422, content={"error": "contract_violation", "detail": str(ex)})


@app.exception_handler(TimingError)
async def timing_error(_request: Request, ex: TimingError):
    logger.warning("Timing analysis failed: %s", ex)
    return JSONResponse(status_code=503, content=ex.to_dict())


@app.get("/")
def root():
    return {"message": "Favorability API running!"}


# ----- catalog endpoints -----
@app.post("/catalogs/reload")
def catalogs_reload():
    return reload_catalogs()


@app.get("/catalogs/list")
def catalogs_list():
    if not CATALOG_CACHE:
        reload_catalogs()
    return {
        "count": len(CATALOG_CACHE),
        "ids": sorted(CATALOG_CACHE),
        "catalogs": [CATALOG_CACHE[d].summary() for d in sorted(CATALOG_CACHE)],
    }


# ----- timing endpoints -----
@app.post("/timing/{domain}/classify")
def timing_classify(domain: str, score: float):
    return RatingClassifier(_catalog(domain).ratings).classify(score).model_dump()


@app.post("/timing/{domain}/aggregate")
def timing_aggregate(domain: str, body: FactorsIn):
    catalog = _catalog(domain)
    breakdown = aggregate(body.factors, catalog)
    return {
        "domain": catalog.domain,
        "catalog_version": catalog.version,
        **breakdown.model_dump(mode="json"),
        "dominant": [{"identity": f.identity, "kind": f.kind.value, "points": pts}
                     for f, pts in dominant_factors(breakdown, catalog)],
    }


@app.post("/timing/{domain}/analyze")
def timing_analyze(domain: str, body: AnalyzeIn,
                   orb_deg: float = Query(6.0, gt=0, le=15),
                   workers: int = Query(1, ge=1, le=8)):
    """
    Natal chart from birth data, then a horizon scan with swisseph
    transits / progressions / Panchang for every sampled day.
    """
    catalog = _catalog(domain)
    ref = _date(body.reference_date)
    _birth(body)
    natal = natal_chart(body.dob, body.tob, body.lat, body.lon, body.tz, body.ayanamsha)
    provider = SwissEphProvider(natal, tz_hours=body.tz, ayanamsha=body.ayanamsha, orb_deg=orb_deg)
    engine = TimingEngine(catalog, provider, max_workers=workers)
    return engine.analyze(ref, body.horizon_days).model_dump(mode="json")


@app.post("/timing/{domain}/analyze/static")
def timing_analyze_static(domain: str, body: StaticAnalyzeIn):
    catalog = _catalog(domain)
    ref = _date(body.reference_date)
    engine = TimingEngine(catalog, StaticChartProvider(body.chart))
    return engine.analyze(ref, body.horizon_days).model_dump(mode="json")
