# favorability/errors.py
# ------------------------------------------------------------
# Error taxonomy for the timing engine
# - configuration (bad catalogs) -> fatal at load
# - contract (bad factors / charts) -> surfaced to caller
# - provider (per-date position failures) -> absorbed per sample
# - timing (current timing / window search could not complete)
# ------------------------------------------------------------

from typing import Any, Dict, List, Optional


class FavorabilityError(Exception):
    """Base class for every error raised by the timing engine."""


class CatalogError(FavorabilityError):
    """A factor catalog failed schema or invariant validation."""

    def __init__(self, message: str, catalog_id: Optional[str] = None, problems: Optional[List[str]] = None):
        self.catalog_id = catalog_id
        self.problems = list(problems or [])
        if self.problems:
            message = f"{message}: " + "; ".join(self.problems)
        super().__init__(message)


class ContractError(FavorabilityError, ValueError):
    """Input handed to the engine violates its contract."""


class FactorContractError(ContractError):
    pass


class ChartContractError(ContractError):
    pass


class ProviderError(FavorabilityError):
    """The position provider could not produce factors for a date."""

    def __init__(self, message: str, when: Any = None):
        self.when = when
        super().__init__(message)


class TimingError(FavorabilityError):
    kind = "timing"

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "detail": str(self)}


class CurrentTimingError(TimingError):
    """Could not compute the timing for the reference date."""
    kind = "current_timing_unavailable"


class WindowSearchError(TimingError):
    """Could not complete the horizon scan (every sample failed)."""
    kind = "window_search_incomplete"

    def __init__(self, message: str, skipped: Optional[List[Any]] = None):
        self.skipped = list(skipped or [])
        super().__init__(message)

    def to_dict(self) -> Dict[str, Any]:
        out = super().to_dict()
        out["skipped_dates"] = [d.isoformat() for d in self.skipped]
        return out
