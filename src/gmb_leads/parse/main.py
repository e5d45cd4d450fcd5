import logging
import re
import time
import uuid
from typing import List, Literal, Optional

from ..schema import NO_LOCATION_LINK, NO_WEBSITE, NOT_AVAILABLE, Lead
from .schema import RowRejection, TableLayout, TableParseResult, get_layout

logger = logging.getLogger(__name__)

HEADER_LABELS = {"business name", "business", "name"}

_SEPARATOR_CELL = re.compile(r"^:?-+:?$")
_EMPHASIS_MARKERS = re.compile(r"\*\*|__|`")
_EMPHASIS_WRAP = re.compile(r"^[*_]+(.*?)[*_]+$")
_MARKDOWN_LINK = re.compile(r"^\[([^\]]*)\]\(([^)\s]+)\)$")
_FIRST_FLOAT = re.compile(r"(\d+(?:\.\d+)?|\.\d+)")
_NON_DIGITS = re.compile(r"\D")


def split_row(line: str) -> List[str]:
    """Split a pipe row into stripped cells, dropping the empty outer cells."""
    cells = [cell.strip() for cell in line.split("|")]
    if cells and cells[0] == "":
        cells = cells[1:]
    if cells and cells[-1] == "":
        cells = cells[:-1]
    return cells


def is_separator_row(line: str) -> bool:
    cells = [cell for cell in split_row(line.strip()) if cell]
    return bool(cells) and all(_SEPARATOR_CELL.match(cell) for cell in cells)


def clean_business_name(raw: str) -> str:
    name = _EMPHASIS_MARKERS.sub("", raw).strip()
    match = _EMPHASIS_WRAP.match(name)
    if match:
        name = match.group(1).strip()
    return name


def _is_header_cell(cell: str) -> bool:
    return clean_business_name(cell).lower() in HEADER_LABELS


def _unwrap_link(cell: str) -> str:
    cell = cell.strip("<>")
    match = _MARKDOWN_LINK.match(cell)
    if match:
        return match.group(2)
    return cell


def parse_rank(cell: str, fallback: int) -> int:
    digits = _NON_DIGITS.sub("", cell)
    if not digits:
        return fallback
    rank = int(digits)
    return rank if rank >= 1 else fallback


def parse_rating(cell: str) -> float:
    match = _FIRST_FLOAT.search(cell)
    if not match:
        return 0.0
    return min(float(match.group(1)), 5.0)


def _candidate_lines(
    lines: List[str],
    layout: TableLayout,
    strategy: Literal["scan", "after_separator"],
) -> List[tuple[int, str]]:
    candidates: List[tuple[int, str]] = []

    if strategy == "after_separator":
        seen_separator = False
        for line_number, line in enumerate(lines, start=1):
            if not seen_separator:
                seen_separator = "|" in line and is_separator_row(line)
                continue
            if "|" in line:
                candidates.append((line_number, line))
        return candidates

    for line_number, line in enumerate(lines, start=1):
        if line.count("|") < layout.min_pipes:
            continue
        if is_separator_row(line):
            continue
        cells = split_row(line.strip())
        if cells and _is_header_cell(cells[0]):
            continue
        candidates.append((line_number, line))
    return candidates


def _cell(cells: List[str], layout: TableLayout, column: str) -> str:
    if column not in layout.columns:
        return ""
    index = layout.index_of(column)
    return cells[index] if index < len(cells) else ""


def _new_lead_id(index: int) -> str:
    return f"l-{int(time.time() * 1000)}-{index}-{uuid.uuid4().hex[:6]}"


def parse_table(
    text: Optional[str],
    keyword: str,
    *,
    layout: TableLayout | str = "with_address",
    rank_offset: int = 1,
    strategy: Literal["scan", "after_separator"] = "scan",
    sort_by_rank: bool = True,
) -> TableParseResult:
    """
    Extract leads from a markdown table embedded in free text.

    Never raises for malformed input: rows that do not fit the layout are
    returned as rejections instead. Unparseable ranks fall back to
    ``candidate index + rank_offset`` so they stay inside the requested band.
    """
    if isinstance(layout, str):
        layout = get_layout(layout)
    if not text:
        return TableParseResult(leads=[], rejected=[])

    leads: List[Lead] = []
    rejected: List[RowRejection] = []

    candidates = _candidate_lines(text.splitlines(), layout, strategy)
    for index, (line_number, line) in enumerate(candidates):
        cells = split_row(line.strip())

        reason = None
        if len(cells) < layout.min_cells:
            reason = f"expected at least {layout.min_cells} cells, got {len(cells)}"
        else:
            name = clean_business_name(cells[0])
            if not name:
                reason = "empty business name"
            elif name.lower() in HEADER_LABELS:
                reason = "header row"
            elif _SEPARATOR_CELL.match(name):
                reason = "separator artifact"

        if reason is not None:
            logger.debug("Rejected row %d (%s): %s", line_number, reason, line)
            rejected.append(
                RowRejection(line_number=line_number, line=line, reason=reason)
            )
            continue

        leads.append(
            Lead(
                id=_new_lead_id(index),
                business_name=name,
                phone_number=_cell(cells, layout, "phone") or NOT_AVAILABLE,
                address=_cell(cells, layout, "address") or NOT_AVAILABLE,
                rank=parse_rank(_cell(cells, layout, "rank"), index + rank_offset),
                website=_unwrap_link(_cell(cells, layout, "website")) or NO_WEBSITE,
                location_link=_unwrap_link(_cell(cells, layout, "maps"))
                or NO_LOCATION_LINK,
                rating=parse_rating(_cell(cells, layout, "rating")),
                distance=_cell(cells, layout, "distance") or NOT_AVAILABLE,
                keyword=keyword,
            )
        )

    if sort_by_rank:
        leads.sort(key=lambda lead: lead.rank)

    return TableParseResult(leads=leads, rejected=rejected)


def parse_leads_from_markdown(
    text: Optional[str],
    keyword: str,
    *,
    layout: TableLayout | str = "with_address",
    rank_offset: int = 1,
    strategy: Literal["scan", "after_separator"] = "scan",
    sort_by_rank: bool = True,
) -> List[Lead]:
    result = parse_table(
        text,
        keyword,
        layout=layout,
        rank_offset=rank_offset,
        strategy=strategy,
        sort_by_rank=sort_by_rank,
    )
    if result.rejected:
        logger.info(
            f"Parsed {len(result.leads)} leads, rejected {len(result.rejected)} rows"
        )
    return result.leads
