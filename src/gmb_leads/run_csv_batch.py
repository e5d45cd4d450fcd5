import asyncio
import csv
import json
import uuid
from logging import getLogger
from typing import Iterator, List, Optional

from pydantic import ValidationError

from src.infra.langfuse_observation import search_trace

from .config import LeadSearchConfig
from .schema import Coordinates, Lead, SearchParams
from .session import LeadSearchSession
from .workflow import run_lead_search

logger = getLogger(__name__)


def read_search_rows(csv_path: str) -> Iterator[SearchParams]:
    """
    CSVから検索条件を読み込む (keyword, location, radius_km[, latitude, longitude])
    不正な行は警告を出してスキップする。
    """
    with open(csv_path, newline="", encoding="utf-8") as f:
        reader = csv.DictReader(f)
        for row in reader:
            keyword = (row.get("keyword") or "").strip()
            location = (row.get("location") or "").strip()
            radius = (row.get("radius_km") or "").strip()
            if not keyword or not location or not radius:
                logger.warning(
                    "Skipping row with missing keyword, location or radius_km: %s", row
                )
                continue

            latitude = (row.get("latitude") or "").strip()
            longitude = (row.get("longitude") or "").strip()
            try:
                coords = (
                    Coordinates(latitude=float(latitude), longitude=float(longitude))
                    if latitude and longitude
                    else None
                )
                yield SearchParams(
                    keyword=keyword,
                    location=location,
                    radius_km=float(radius),
                    coords=coords,
                )
            except (ValueError, ValidationError) as e:
                logger.warning("Skipping invalid row %s: %s", row, e)


async def _run_batch(
    rows: List[SearchParams], config: LeadSearchConfig, session_id: str
) -> List[Lead]:
    def runner(params: SearchParams):
        return run_lead_search(
            params,
            config,
            span_context=search_trace(
                "lead_search_csv_batch",
                session_id,
                keyword=params.keyword,
                location=params.location,
            ),
        )

    session = LeadSearchSession(runner, max_auto_retries=config.max_auto_retries)
    try:
        for params in rows:
            logger.info("Searching %s near %s", params.keyword, params.location)
            await session.search(params)
            await session.wait_idle()
            if session.error:
                logger.warning(
                    "Search failed for %s near %s: %s",
                    params.keyword,
                    params.location,
                    session.error,
                )
        return list(session.collection.leads)
    finally:
        await session.aclose()


def run_lead_search_csv(
    csv_path: str,
    output_path: Optional[str] = None,
    session_id: Optional[str] = None,
    config: Optional[LeadSearchConfig] = None,
) -> List[Lead]:
    """
    CSVファイルから検索条件をバッチ実行し、重複を除いたリードを出力する
    Args:
        csv_path (str): 入力CSV (keyword, location, radius_km)
        output_path (str, optional): 出力ファイルパス (JSON Lines形式)
        session_id (str, optional): LangfuseセッションID
    """

    if config is None:
        config = LeadSearchConfig.from_env()
    if session_id is None:
        session_id = f"lead-search-{uuid.uuid4()}"

    rows = list(read_search_rows(csv_path))
    leads = asyncio.run(_run_batch(rows, config, session_id))

    for lead in leads:
        print(json.dumps(lead.model_dump(by_alias=True), ensure_ascii=False))
    if output_path:
        write_leads_jsonl(leads, output_path)
        logger.info("Finished writing %d leads to %s", len(leads), output_path)
    return leads


def write_leads_jsonl(leads: List[Lead], output_path: str) -> None:
    with open(output_path, "w", encoding="utf-8") as out:
        for lead in leads:
            out.write(json.dumps(lead.model_dump(by_alias=True), ensure_ascii=False) + "\n")
