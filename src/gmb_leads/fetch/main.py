import logging

from src.infra.langfuse_observation import WithSpanContext
from src.infra.llm import generate_grounded_text

from ..config import LeadSearchConfig
from ..errors import (
    MISSING_KEY_MESSAGE,
    ConfigurationError,
    ContentError,
    QuotaError,
    classify_exception,
)
from ..parse.schema import get_layout
from ..schema import SearchParams
from .prompt import SYSTEM_PROMPT, build_search_prompt

logger = logging.getLogger(__name__)

NO_TABLE_MESSAGE = (
    "The model returned no lead table. Try a broader keyword or a larger radius."
)


class ProspectFetcher:
    """
    フロー1: 取得 (Fetch)

    Google Maps グラウンディング付きで1回だけ生成リクエストを送り、
    Markdownテーブルを含む生テキストを返す。失敗はすべて型付きエラーに分類する。
    """

    def __init__(self, config: LeadSearchConfig):
        self.config = config

    def fetch_raw_text(
        self,
        params: SearchParams,
        *,
        span_context: WithSpanContext | None = None,
    ) -> str:
        if not self.config.api_key:
            raise ConfigurationError(MISSING_KEY_MESSAGE)

        layout = get_layout(self.config.layout)
        prompt = build_search_prompt(params, layout)
        coords = params.coords

        try:
            text = generate_grounded_text(
                model=self.config.model,
                prompt=prompt,
                generation_name="fetch_gmb_leads",
                api_key=self.config.api_key,
                system_prompt=SYSTEM_PROMPT,
                latitude=coords.latitude if coords else None,
                longitude=coords.longitude if coords else None,
                temperature=self.config.temperature,
                max_tokens=self.config.max_output_tokens,
                metadata={
                    "keyword": params.keyword,
                    "location": params.location,
                    "radius_km": params.radius_km,
                    "rank_band": params.rank_band.model_dump(),
                },
                parent_span=span_context.get("parent_span") if span_context else None,
            )
        except Exception as e:
            error = classify_exception(
                e, fallback_retry_after=self.config.quota_fallback_seconds
            )
            if isinstance(error, QuotaError):
                logger.warning(
                    f"Quota exhausted for keyword={params.keyword!r}, "
                    f"retry after {error.retry_after}s"
                )
            else:
                logger.error(f"GMB scan failed ({error.kind}): {e}")
            if error is e:
                raise
            raise error from e

        self._check_content(text)
        return text

    def _check_content(self, text: str | None) -> None:
        if text is None or not text.strip():
            raise ContentError(NO_TABLE_MESSAGE)
        if len(text.strip()) < self.config.min_response_chars or "|" not in text:
            logger.warning(f"Response without table markers: {text[:200]!r}")
            raise ContentError(NO_TABLE_MESSAGE)
