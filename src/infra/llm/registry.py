from dataclasses import dataclass
from typing import Literal


@dataclass(frozen=True)
class GeminiModel:
    """A Gemini model that can answer with the Google Maps grounding tool attached."""

    model_id: str

    @property
    def litellm_name(self) -> str:
        # LiteLLM routes the 'gemini/' prefix to the Google AI Studio API
        return f"gemini/{self.model_id}"

    @property
    def langfuse_name(self) -> str:
        return f"google/{self.model_id}"


ModelName = Literal[
    "gemini/gemini-2.5-flash",
    "gemini/gemini-2.5-flash-lite",
    "gemini/gemini-2.5-pro",
]

MAPS_GROUNDED_MODELS: dict[ModelName, GeminiModel] = {
    "gemini/gemini-2.5-flash": GeminiModel("gemini-2.5-flash"),
    "gemini/gemini-2.5-flash-lite": GeminiModel("gemini-2.5-flash-lite"),
    "gemini/gemini-2.5-pro": GeminiModel("gemini-2.5-pro"),
}

DEFAULT_MODEL: ModelName = "gemini/gemini-2.5-flash"


def get_model(model_name: ModelName) -> GeminiModel:
    try:
        return MAPS_GROUNDED_MODELS[model_name]
    except KeyError:
        raise ValueError(
            f"Unknown model {model_name!r}; expected one of "
            f"{', '.join(MAPS_GROUNDED_MODELS)}"
        ) from None
