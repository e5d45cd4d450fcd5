from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Literal, TypedDict, TypeVar

from langfuse import LangfuseSpan, get_client

ObservationLevel = Literal["DEBUG", "DEFAULT", "WARNING", "ERROR"]

# Outcome status -> span level
OUTCOME_LEVELS: dict[str, ObservationLevel] = {
    "ok": "DEFAULT",
    "quota_exceeded": "WARNING",
    "failed": "ERROR",
}


class TraceInit(TypedDict, total=False):
    name: str | None
    user_id: str | None
    session_id: str | None
    version: str | None
    metadata: Any | None
    tags: list[str] | None
    public: bool | None


class WithSpanContext(TypedDict, total=False):
    """
    Where a span goes: a fresh trace (`trace_init`) or under `parent_span`.

    ```
    span_context = search_trace("lead_search_cli", session_id, keyword="plumbers")
    # or, inside an open span:
    span_context = {"parent_span": obs.span}
    ```
    """

    parent_span: LangfuseSpan | None
    trace_init: TraceInit | None


def search_trace(
    name: str, session_id: str | None = None, **metadata: Any
) -> WithSpanContext:
    """Span context that opens a new trace tagged with the search inputs."""
    trace_init: TraceInit = {"name": name, "tags": ["lead_search"]}
    if session_id:
        trace_init["session_id"] = session_id
    if metadata:
        trace_init["metadata"] = metadata
    return {"trace_init": trace_init}


T = TypeVar("T")


@dataclass(frozen=True)
class ObservationHandle:
    span: LangfuseSpan
    owns_trace: bool

    def set_input(self, input: Any) -> None:
        self.span.update(input=input)
        if self.owns_trace:
            self.span.update_trace(input=input)

    def set_output(self, output: Any) -> None:
        self.span.update(output=output)
        if self.owns_trace:
            self.span.update_trace(output=output)

    def finish(self, value: T) -> T:
        """Record a result (pydantic models are dumped as JSON) and hand it back."""
        if hasattr(value, "model_dump"):
            dumped = value.model_dump(mode="json")
            self.set_output(dumped)
            status = dumped.get("status") if isinstance(dumped, dict) else None
            if status in OUTCOME_LEVELS and status != "ok":
                self.span.update(
                    level=OUTCOME_LEVELS[status],
                    status_message=dumped.get("message"),
                )
        else:
            self.set_output(value)
        return value

    def error(self, exc: BaseException) -> None:
        self.span.update(level="ERROR", status_message=str(exc))


@contextmanager
def with_langfuse_span(
    span_name: str,
    span_context: WithSpanContext | None = None,
) -> Iterator[ObservationHandle]:
    """Open a Langfuse span, nested under `parent_span` or as the root of a new trace.

    ```
    with with_langfuse_span("run_lead_search", search_trace("lead_search_cli")) as obs:
        obs.set_input(params.model_dump(mode="json"))
        return obs.finish(outcome)
    ```
    """

    span_context = span_context or {}
    parent_span = span_context.get("parent_span")
    trace_init = span_context.get("trace_init")

    source = parent_span if parent_span is not None else get_client()
    with source.start_as_current_observation(name=span_name, as_type="span") as span:
        if trace_init is not None:
            span.update_trace(**trace_init)

        yield ObservationHandle(span=span, owns_trace=trace_init is not None)
