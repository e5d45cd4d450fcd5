import importlib
import json

import pytest
from litellm.llms.custom_httpx.http_handler import HTTPHandler

grounded = importlib.import_module("src.infra.llm.generate_grounded_text")


class RequestCaptured(Exception):
    pass


@pytest.fixture
def gemini_requests(monkeypatch):
    """Record the JSON body LiteLLM sends to Gemini, then stop the call."""
    bodies = []

    def _post(self, url, data=None, json=None, **kwargs):
        body = json if json is not None else data
        if isinstance(body, (str, bytes)):
            body = _loads(body)
        bodies.append(body)
        raise RequestCaptured(url)

    monkeypatch.setattr(HTTPHandler, "post", _post)
    return bodies


def _loads(raw):
    return json.loads(raw)


def _call(**kwargs):
    with pytest.raises(Exception):
        grounded.generate_grounded_text(
            "gemini/gemini-2.5-flash",
            "List plumbers near Austin.",
            "fetch_gmb_leads",
            api_key="test-key-123",
            **kwargs,
        )


def test_coordinates_reach_gemini_request(gemini_requests):
    _call(latitude=30.27, longitude=-97.74)

    assert gemini_requests
    body = gemini_requests[0]
    assert body["toolConfig"] == {
        "retrievalConfig": {"latLng": {"latitude": 30.27, "longitude": -97.74}}
    }
    assert {"googleMaps": {}} in body["tools"]


def test_name_only_request_has_no_anchor(gemini_requests):
    _call()

    assert gemini_requests
    assert "toolConfig" not in gemini_requests[0]
