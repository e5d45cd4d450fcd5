import os
from typing import Literal, Mapping, Optional

from pydantic import BaseModel, Field

from src.infra.llm import DEFAULT_MODEL, ModelName

from .errors import DEFAULT_QUOTA_RETRY_SECONDS

API_KEY_ENV_VARS = ("GEMINI_API_KEY", "GOOGLE_API_KEY", "API_KEY")
MODEL_ENV_VAR = "GMB_LEADS_MODEL"

LayoutName = Literal["basic", "with_distance", "with_address"]
CandidateStrategy = Literal["scan", "after_separator"]


def _usable_key(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value or value == "undefined" or len(value) < 5:
        return None
    return value


def resolve_api_key(
    explicit: Optional[str] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Optional[str]:
    """
    Resolve the Gemini API key.

    Order: explicit value, then GEMINI_API_KEY, GOOGLE_API_KEY, API_KEY.
    Blank values, the literal "undefined" and anything shorter than 5
    characters are skipped.
    """
    key = _usable_key(explicit)
    if key:
        return key

    if environ is None:
        environ = os.environ
    for name in API_KEY_ENV_VARS:
        key = _usable_key(environ.get(name))
        if key:
            return key
    return None


class LeadSearchConfig(BaseModel):
    api_key: Optional[str] = None
    model: ModelName = DEFAULT_MODEL
    temperature: float = Field(0.1, ge=0, le=2)
    max_output_tokens: int = Field(8192, ge=1)
    quota_fallback_seconds: int = Field(DEFAULT_QUOTA_RETRY_SECONDS, ge=0)
    min_response_chars: int = Field(20, ge=0)
    enforce_radius: bool = True
    radius_tolerance: float = Field(1.05, ge=1)
    layout: LayoutName = "with_address"
    candidate_strategy: CandidateStrategy = "scan"
    sort_by_rank: bool = True
    max_auto_retries: int = Field(1, ge=0)

    @classmethod
    def from_env(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "LeadSearchConfig":
        if environ is None:
            environ = os.environ
        values = {"api_key": resolve_api_key(overrides.pop("api_key", None), environ)}
        model = environ.get(MODEL_ENV_VAR)
        if model:
            values["model"] = model
        values.update(overrides)
        return cls(**values)
