from typing import Any, Dict, Optional

import litellm
from langfuse import LangfuseSpan, get_client

from .registry import ModelName, get_model

MAPS_GROUNDING_TOOL: Dict[str, Any] = {"googleMaps": {}}


def build_maps_tool_config(
    latitude: Optional[float], longitude: Optional[float]
) -> Optional[Dict[str, Any]]:
    """Anchor the Google Maps tool to a point; None when no coordinates are known."""
    if latitude is None or longitude is None:
        return None
    return {
        "retrievalConfig": {
            "latLng": {"latitude": latitude, "longitude": longitude},
        }
    }


def generate_grounded_text(
    model: ModelName,
    prompt: str,
    generation_name: str,
    *,
    api_key: Optional[str] = None,
    system_prompt: Optional[str] = None,
    latitude: Optional[float] = None,
    longitude: Optional[float] = None,
    temperature: Optional[float] = None,
    max_tokens: Optional[int] = None,
    metadata: Optional[Dict[str, Any]] = None,
    parent_span: LangfuseSpan | None = None,
) -> str:
    """
    Generate free text with the Google Maps grounding tool attached and trace
    it as a Langfuse Generation.

    Args:
        model: The model name (from registry).
        prompt: User prompt.
        generation_name: Name of the Langfuse generation.
        api_key: Provider API key. Falls back to LiteLLM's own env lookup when None.
        system_prompt: Optional system prompt.
        latitude: Optional latitude anchor for the Maps tool.
        longitude: Optional longitude anchor for the Maps tool.
        temperature: Sampling temperature.
        max_tokens: The maximum number of tokens to generate.
        metadata: Optional metadata for the Langfuse generation.
        parent_span: Optional parent span; the generation is nested under it.

    Returns:
        The raw text of the first choice ("" when the model sent nothing).
    """
    model_adapter = get_model(model)
    tool_config = build_maps_tool_config(latitude, longitude)

    if metadata is None:
        metadata = {}
    if max_tokens is not None:
        metadata["max_tokens"] = max_tokens
    if temperature is not None:
        metadata["temperature"] = temperature
    metadata["tools"] = [MAPS_GROUNDING_TOOL]
    metadata["anchored"] = tool_config is not None

    if parent_span is not None:
        cm = parent_span.start_as_current_observation(
            name=generation_name,
            as_type="generation",
            model=model_adapter.langfuse_name,
            input={"system": system_prompt, "prompt": prompt},
            metadata=metadata,
        )
    else:
        cm = get_client().start_as_current_observation(
            name=generation_name,
            as_type="generation",
            model=model_adapter.langfuse_name,
            input={"system": system_prompt, "prompt": prompt},
            metadata=metadata,
        )

    with cm as generation:
        try:
            messages = []
            if system_prompt:
                messages.append({"role": "system", "content": system_prompt})
            messages.append({"role": "user", "content": prompt})

            extra: Dict[str, Any] = {}
            if tool_config is not None:
                # Merged verbatim into the Gemini request body
                extra["extra_body"] = {"toolConfig": tool_config}

            response = litellm.completion(
                model=model_adapter.litellm_name,
                messages=messages,
                tools=[MAPS_GROUNDING_TOOL],
                temperature=temperature,
                max_tokens=max_tokens,
                api_key=api_key,
                **extra,
            )

            if hasattr(response, "usage"):
                usage = response.usage
                generation.update(
                    usage_details={
                        "input": getattr(usage, "prompt_tokens", 0),
                        "output": getattr(usage, "completion_tokens", 0),
                        "total": getattr(usage, "total_tokens", 0),
                    }
                )

            content = response.choices[0].message.content or ""
            generation.update(output=content)
            return content

        except Exception as e:
            generation.update(status_message=str(e), level="ERROR")
            raise
