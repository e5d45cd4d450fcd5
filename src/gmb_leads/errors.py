import math
import re
from typing import Optional

DEFAULT_QUOTA_RETRY_SECONDS = 60

QUOTA_MESSAGE = "API Quota limit reached. Retrying shortly..."
CONFIGURATION_MESSAGE = (
    "API Key Invalid. Set GEMINI_API_KEY (or GOOGLE_API_KEY / API_KEY) "
    "to a valid Gemini key and restart."
)
MISSING_KEY_MESSAGE = (
    "System API Key is not detected. Set GEMINI_API_KEY (or GOOGLE_API_KEY / "
    "API_KEY) in the environment or .env file."
)
FALLBACK_TRANSPORT_MESSAGE = "Connection failed. Please try again."

_QUOTA_MARKERS = ("429", "RESOURCE_EXHAUSTED")
_QUOTA_HINTS = ("quota", "rate limit", "resource_exhausted")
_AUTH_MARKERS = (
    "api key not valid",
    "api_key_invalid",
    "api key not found",
    "invalid api key",
)
_RETRY_IN_PATTERN = re.compile(r"retry in\s+(\d+(?:\.\d+)?)\s*s", re.IGNORECASE)
_RETRY_DELAY_PATTERN = re.compile(
    r"retryDelay['\"]?\s*[:=]\s*['\"]?(\d+(?:\.\d+)?)s", re.IGNORECASE
)


class LeadSearchError(Exception):
    kind = "transport"


class ConfigurationError(LeadSearchError):
    kind = "configuration"


class ContentError(LeadSearchError):
    kind = "content"


class TransportError(LeadSearchError):
    kind = "transport"


class QuotaError(LeadSearchError):
    kind = "quota"

    def __init__(self, message: str, retry_after: int):
        super().__init__(message)
        self.retry_after = retry_after


def parse_retry_after(message: str) -> Optional[int]:
    """Extract the server-suggested wait ("retry in 12.5s") rounded up to whole seconds."""
    for pattern in (_RETRY_IN_PATTERN, _RETRY_DELAY_PATTERN):
        match = pattern.search(message)
        if match:
            return math.ceil(float(match.group(1)))
    return None


def is_quota_message(message: str) -> bool:
    if any(marker in message for marker in _QUOTA_MARKERS):
        return True
    return "quota" in message.lower()


def is_quota_hint(text: str) -> bool:
    """Word-level limit hints in model reply text. Status codes are not checked here."""
    lowered = text.lower()
    return any(hint in lowered for hint in _QUOTA_HINTS)


def is_credential_message(message: str) -> bool:
    lowered = message.lower()
    return any(marker in lowered for marker in _AUTH_MARKERS)


def classify_exception(
    exc: BaseException,
    *,
    fallback_retry_after: int = DEFAULT_QUOTA_RETRY_SECONDS,
) -> LeadSearchError:
    """
    Map any failure of the generation call onto the typed taxonomy.

    Quota markers win over credential markers when both appear.
    """
    if isinstance(exc, LeadSearchError):
        return exc

    message = str(exc) or ""
    if is_quota_message(message) or getattr(exc, "status_code", None) == 429:
        retry_after = parse_retry_after(message)
        if retry_after is None:
            retry_after = fallback_retry_after
        return QuotaError(QUOTA_MESSAGE, retry_after)

    if is_credential_message(message):
        return ConfigurationError(CONFIGURATION_MESSAGE)

    return TransportError(message or FALLBACK_TRANSPORT_MESSAGE)
