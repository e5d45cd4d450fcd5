from .distance import filter_within_radius, parse_distance_km, parse_distance_meters
from .main import parse_leads_from_markdown, parse_table
from .schema import LAYOUTS, RowRejection, TableLayout, TableParseResult, get_layout

__all__ = [
    "parse_leads_from_markdown",
    "parse_table",
    "filter_within_radius",
    "parse_distance_km",
    "parse_distance_meters",
    "LAYOUTS",
    "get_layout",
    "RowRejection",
    "TableLayout",
    "TableParseResult",
]
