import logging
import re
from typing import Iterable, List, Optional

from ..schema import Lead

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_TOLERANCE = 1.05

_LEADING_NUMBER = re.compile(r"^[+-]?(\d+(?:\.\d*)?|\.\d+)")


def _split_distance(distance: str) -> Optional[tuple[float, str]]:
    if not distance:
        return None
    clean = distance.lower().replace(",", "").strip()
    match = _LEADING_NUMBER.match(clean)
    if not match:
        return None
    return float(match.group(0)), clean


def parse_distance_km(distance: str) -> Optional[float]:
    """
    "350 m" -> 0.35, "1.2 km" -> 1.2, "5" -> 5.0 (no unit: already km).
    None when the text does not start with a number.
    """
    parsed = _split_distance(distance)
    if parsed is None:
        return None
    value, clean = parsed
    if clean.endswith("km"):
        return value
    if clean.endswith("m"):
        return value / 1000
    return value


def parse_distance_meters(distance: str) -> Optional[float]:
    """parse_distance_km expressed in metres ("5" -> 5000.0)."""
    distance_km = parse_distance_km(distance)
    if distance_km is None:
        return None
    return distance_km * 1000


def filter_within_radius(
    leads: Iterable[Lead],
    radius_km: float,
    tolerance: float = DEFAULT_RADIUS_TOLERANCE,
) -> List[Lead]:
    """Drop leads farther than radius_km * tolerance. Unknown distances are kept."""
    limit = radius_km * tolerance
    kept: List[Lead] = []
    for lead in leads:
        distance_km = parse_distance_km(lead.distance)
        if distance_km is not None and distance_km > limit:
            logger.debug(
                "Dropping %s: %.3f km is outside %.3f km", lead.business_name, distance_km, limit
            )
            continue
        kept.append(lead)
    return kept
