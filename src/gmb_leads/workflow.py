import logging
from typing import List, Optional

from src.infra.langfuse_observation import WithSpanContext, with_langfuse_span

from .config import LeadSearchConfig
from .errors import (
    QUOTA_MESSAGE,
    ContentError,
    LeadSearchError,
    QuotaError,
    is_quota_hint,
)
from .fetch import ProspectFetcher
from .parse import filter_within_radius, parse_table
from .schema import (
    Coordinates,
    Lead,
    RankBand,
    SearchFailed,
    SearchOutcome,
    SearchParams,
    SearchQuotaExceeded,
    SearchSucceeded,
)

logger = logging.getLogger(__name__)


def _select_leads(
    raw_text: str, params: SearchParams, config: LeadSearchConfig
) -> List[Lead]:
    parsed = parse_table(
        raw_text,
        params.keyword,
        layout=config.layout,
        rank_offset=params.rank_band.start,
        strategy=config.candidate_strategy,
        sort_by_rank=config.sort_by_rank,
    )
    leads = parsed.leads
    if parsed.rejected:
        logger.info(
            f"Parsed {len(leads)} leads, rejected {len(parsed.rejected)} rows "
            f"for keyword={params.keyword!r}"
        )

    if config.enforce_radius:
        within = filter_within_radius(leads, params.radius_km, config.radius_tolerance)
        if leads and not within:
            raise ContentError(
                f"Results found but all were outside {params.radius_km:g}km. "
                "Try a larger radius."
            )
        leads = within

    if not leads:
        if is_quota_hint(raw_text):
            raise QuotaError(QUOTA_MESSAGE, config.quota_fallback_seconds)
        raise ContentError("No businesses found in range. Try different keywords.")

    return leads


def run_lead_search(
    params: SearchParams,
    config: LeadSearchConfig,
    *,
    fetcher: Optional[ProspectFetcher] = None,
    span_context: WithSpanContext | None = None,
) -> SearchOutcome:
    """
    Lead Search Workflow メインエントリポイント

    キーワード・地点・半径を入力として、取得 → 解析 → 半径フィルタを行い、
    結果をタグ付きの SearchOutcome として返す。分類済みのエラーは例外ではなく
    SearchQuotaExceeded / SearchFailed として返す。

    Args:
        params (SearchParams): 検索条件
        config (LeadSearchConfig): 実行設定

    Returns:
        SearchOutcome: 成功・クォータ超過・失敗のいずれか
    """
    if fetcher is None:
        fetcher = ProspectFetcher(config)

    with with_langfuse_span(
        span_name="run_lead_search",
        span_context=span_context,
    ) as obs:
        obs.set_input(params.model_dump(mode="json"))
        try:
            raw_text = fetcher.fetch_raw_text(
                params,
                span_context={"parent_span": obs.span},
            )
            leads = _select_leads(raw_text, params, config)
            return obs.finish(SearchSucceeded(leads=leads))
        except QuotaError as e:
            return obs.finish(
                SearchQuotaExceeded(message=str(e), retry_after_seconds=e.retry_after)
            )
        except LeadSearchError as e:
            return obs.finish(SearchFailed(kind=e.kind, message=str(e)))
        except Exception as e:
            obs.error(e)
            raise


def search(
    keyword: str,
    location: str,
    radius_km: float,
    coords: Optional[Coordinates] = None,
    *,
    config: Optional[LeadSearchConfig] = None,
    rank_band: Optional[RankBand] = None,
) -> List[Lead]:
    """Raise-based entry point: returns leads or raises a LeadSearchError subclass."""
    if config is None:
        config = LeadSearchConfig.from_env()
    params = SearchParams(
        keyword=keyword,
        location=location,
        radius_km=radius_km,
        coords=coords,
        rank_band=rank_band or RankBand(),
    )
    return run_lead_search(params, config).unwrap()
