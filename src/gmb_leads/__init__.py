from .config import LeadSearchConfig, resolve_api_key
from .errors import (
    ConfigurationError,
    ContentError,
    LeadSearchError,
    QuotaError,
    TransportError,
)
from .schema import Coordinates, Lead, RankBand, SearchParams
from .session import LeadSearchSession
from .workflow import run_lead_search, search

__all__ = [
    "run_lead_search",
    "search",
    "LeadSearchSession",
    "LeadSearchConfig",
    "resolve_api_key",
    "Coordinates",
    "Lead",
    "RankBand",
    "SearchParams",
    "LeadSearchError",
    "ConfigurationError",
    "ContentError",
    "QuotaError",
    "TransportError",
]
