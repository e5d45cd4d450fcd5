import logging
import unicodedata
from typing import Dict, Iterable, Iterator, List, Tuple

from ..parse.distance import parse_distance_meters
from ..schema import Lead, LeadStats

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "business_name",
    "phone_number",
    "address",
    "rank",
    "website",
    "location_link",
    "rating",
    "distance",
    "keyword",
}


def _normalize_for_dedupe(name: str) -> str:
    normalized = unicodedata.normalize("NFKC", name).strip()
    return " ".join(normalized.split()).casefold()


def _sort_value(lead: Lead, key: str):
    if key == "distance":
        meters = parse_distance_meters(lead.distance)
        return meters if meters is not None else 0.0
    return getattr(lead, key)


class LeadCollection:
    """
    フロー3: 統合 (Merge)

    検索ごとのリードを蓄積する。事業者名 (大文字小文字を区別しない) で重複を除き、
    追加のみ可能。clear() でのみ空になる。
    """

    def __init__(self, leads: Iterable[Lead] = ()):
        self._leads: List[Lead] = []
        self._seen: set[str] = set()
        self.merge(leads)

    def merge(self, leads: Iterable[Lead]) -> List[Lead]:
        added: List[Lead] = []
        for lead in leads:
            dedupe_key = _normalize_for_dedupe(lead.business_name)
            if dedupe_key in self._seen:
                continue
            self._seen.add(dedupe_key)
            self._leads.append(lead)
            added.append(lead)
        logger.debug(f"Merged {len(added)} new leads ({len(self._leads)} total)")
        return added

    def clear(self) -> None:
        self._leads.clear()
        self._seen.clear()

    @property
    def leads(self) -> Tuple[Lead, ...]:
        return tuple(self._leads)

    def __len__(self) -> int:
        return len(self._leads)

    def __iter__(self) -> Iterator[Lead]:
        return iter(tuple(self._leads))

    def sorted_by(self, key: str = "rank", descending: bool = False) -> List[Lead]:
        if key not in SORTABLE_FIELDS:
            raise ValueError(f"Cannot sort leads by {key!r}")
        return sorted(
            self._leads, key=lambda lead: _sort_value(lead, key), reverse=descending
        )

    def by_keyword(self) -> Dict[str, List[Lead]]:
        grouped: Dict[str, List[Lead]] = {}
        for lead in self._leads:
            grouped.setdefault(lead.keyword, []).append(lead)
        return grouped

    def stats(self) -> LeadStats:
        total = len(self._leads)
        average = (
            round(sum(lead.rating for lead in self._leads) / total, 1) if total else 0.0
        )
        return LeadStats(
            total=total,
            average_rating=average,
            unique_keywords=len({lead.keyword for lead in self._leads}),
        )
