import importlib
import os
import sys
from contextlib import contextmanager
from types import SimpleNamespace

import pytest


def _ensure_repo_on_path() -> None:
    root = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
    if root not in sys.path:
        sys.path.append(root)


_ensure_repo_on_path()
os.environ.setdefault("LANGFUSE_TRACING_ENABLED", "false")


class FakeSpan:
    def __init__(self, name: str, recorder: list):
        self.name = name
        self.updates: list = []
        self.trace_updates: list = []
        self._recorder = recorder

    def update(self, **kwargs):
        self.updates.append(kwargs)

    def update_trace(self, **kwargs):
        self.trace_updates.append(kwargs)

    @contextmanager
    def start_as_current_observation(self, *, name, **kwargs):
        child = FakeSpan(name, self._recorder)
        self._recorder.append((name, kwargs, child))
        yield child


class FakeLangfuse:
    def __init__(self):
        self.observations: list = []

    @contextmanager
    def start_as_current_observation(self, *, name, **kwargs):
        span = FakeSpan(name, self.observations)
        self.observations.append((name, kwargs, span))
        yield span


@pytest.fixture(autouse=True)
def fake_langfuse(monkeypatch):
    import src.infra.langfuse_observation as observation
    grounded = importlib.import_module("src.infra.llm.generate_grounded_text")

    client = FakeLangfuse()
    monkeypatch.setattr(observation, "get_client", lambda: client)
    monkeypatch.setattr(grounded, "get_client", lambda: client)
    return client


def make_completion(content, prompt_tokens=10, completion_tokens=20):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))],
        usage=SimpleNamespace(
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            total_tokens=prompt_tokens + completion_tokens,
        ),
    )


@pytest.fixture
def fake_completion(monkeypatch):
    """Replace litellm.completion; set .reply (text) or .error (exception)."""
    grounded = importlib.import_module("src.infra.llm.generate_grounded_text")

    state = SimpleNamespace(reply="", error=None, calls=[])

    def _completion(**kwargs):
        state.calls.append(kwargs)
        if state.error is not None:
            raise state.error
        return make_completion(state.reply)

    monkeypatch.setattr(grounded.litellm, "completion", _completion)
    return state


THREE_ROW_TABLE = """Here are the plumbers I found near Austin:

| Business Name | Phone | Address | Rank | Website | Maps Link | Rating | Distance |
|---|---|---|---|---|---|---|---|
| **Zilker Plumbing** | 512-555-0103 | 3 Barton Springs Rd | 3 | https://zilker.example | https://maps.google.com/?cid=3 | 4.2 | 2.5 km |
| Acme Plumbing | 512-555-0101 | 1 Congress Ave | 1 | https://acme.example | https://maps.google.com/?cid=1 | 4.8 | 800 m |
| `Lone Star Pipes` | 512-555-0102 | 2 Lamar Blvd | 2 | | https://maps.google.com/?cid=2 | 4.5 | 1.2 km |

Let me know if you need more results.
"""


@pytest.fixture
def three_row_table():
    return THREE_ROW_TABLE
