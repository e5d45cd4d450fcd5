import pytest

from src.gmb_leads.config import LeadSearchConfig
from src.gmb_leads.errors import ConfigurationError, ContentError, QuotaError
from src.gmb_leads.schema import (
    RankBand,
    SearchFailed,
    SearchParams,
    SearchQuotaExceeded,
    SearchSucceeded,
)
from src.gmb_leads.workflow import run_lead_search, search
from src.infra.langfuse_observation import search_trace


@pytest.fixture
def config():
    return LeadSearchConfig(api_key="test-key-123")


def _params(**overrides):
    values = {"keyword": "plumbers", "location": "Austin", "radius_km": 10}
    values.update(overrides)
    return SearchParams(**values)


def test_end_to_end_three_rows(fake_completion, config, three_row_table):
    fake_completion.reply = three_row_table

    outcome = run_lead_search(_params(), config)

    assert isinstance(outcome, SearchSucceeded)
    assert [lead.rank for lead in outcome.leads] == [1, 2, 3]
    assert all(lead.keyword == "plumbers" for lead in outcome.leads)


def test_search_entry_point_returns_leads(fake_completion, config, three_row_table):
    fake_completion.reply = three_row_table

    leads = search("plumbers", "Austin", 10, config=config)

    assert len(leads) == 3
    assert leads[0].business_name == "Acme Plumbing"


def test_radius_backstop_drops_far_rows(fake_completion, config):
    fake_completion.reply = """
| Business Name | Phone | Address | Rank | Website | Maps Link | Rating | Distance |
|---|---|---|---|---|---|---|---|
| Close | 1 | a | 1 | w | m | 4 | 10.4 km |
| Far | 2 | b | 2 | w | m | 4 | 11 km |
"""

    outcome = run_lead_search(_params(), config)

    assert [lead.business_name for lead in outcome.unwrap()] == ["Close"]


def test_all_rows_outside_radius(fake_completion, config):
    fake_completion.reply = """
| Business Name | Phone | Address | Rank | Website | Maps Link | Rating | Distance |
|---|---|---|---|---|---|---|---|
| Far | 2 | b | 2 | w | m | 4 | 30 km |
"""

    outcome = run_lead_search(_params(radius_km=5), config)

    assert isinstance(outcome, SearchFailed)
    assert outcome.kind == "content"
    assert "outside 5km" in outcome.message


def test_radius_backstop_can_be_disabled(fake_completion):
    fake_completion.reply = """
| Business Name | Phone | Address | Rank | Website | Maps Link | Rating | Distance |
|---|---|---|---|---|---|---|---|
| Far | 2 | b | 2 | w | m | 4 | 30 km |
"""
    config = LeadSearchConfig(api_key="test-key-123", enforce_radius=False)

    outcome = run_lead_search(_params(radius_km=5), config)

    assert isinstance(outcome, SearchSucceeded)


def test_table_without_valid_rows(fake_completion, config):
    fake_completion.reply = "| Business Name | Phone |\n|---|---|\nNo listings matched."

    outcome = run_lead_search(_params(), config)

    assert isinstance(outcome, SearchFailed)
    assert outcome.kind == "content"
    with pytest.raises(ContentError):
        outcome.unwrap()


def test_reply_hinting_at_limit_becomes_quota(fake_completion, config):
    fake_completion.reply = "| I could not finish: the daily quota for Maps grounding was reached |"

    outcome = run_lead_search(_params(), config)

    assert isinstance(outcome, SearchQuotaExceeded)
    assert outcome.retry_after_seconds == 60


def test_quota_outcome(fake_completion, config):
    fake_completion.error = RuntimeError("429 Too Many Requests, retry in 4.2s")

    outcome = run_lead_search(_params(), config)

    assert outcome == SearchQuotaExceeded(
        message="API Quota limit reached. Retrying shortly...", retry_after_seconds=5
    )
    with pytest.raises(QuotaError) as excinfo:
        outcome.unwrap()
    assert excinfo.value.retry_after == 5


def test_missing_key_outcome(fake_completion):
    outcome = run_lead_search(_params(), LeadSearchConfig(api_key=None))

    assert isinstance(outcome, SearchFailed)
    assert outcome.kind == "configuration"
    with pytest.raises(ConfigurationError):
        outcome.unwrap()


def test_rank_band_offsets_fallback_rank(fake_completion, config):
    fake_completion.reply = """
| Business Name | Phone | Address | Rank | Website | Maps Link | Rating | Distance |
|---|---|---|---|---|---|---|---|
| First | 1 | a | ? | w | m | 4 | 1 km |
"""

    outcome = run_lead_search(_params(rank_band=RankBand(start=6, end=30)), config)

    assert outcome.unwrap()[0].rank == 6


def test_workflow_span_records_input_and_output(fake_completion, fake_langfuse, config, three_row_table):
    fake_completion.reply = three_row_table

    run_lead_search(_params(), config, span_context={"trace_init": {"name": "test"}})

    name, _, span = fake_langfuse.observations[0]
    assert name == "run_lead_search"
    assert {"name": "test"} in span.trace_updates
    outputs = [update["output"] for update in span.updates if "output" in update]
    assert outputs[-1]["status"] == "ok"
    assert len(outputs[-1]["leads"]) == 3


def test_failed_outcome_marks_span(fake_completion, fake_langfuse, config):
    fake_completion.error = RuntimeError("429 Too Many Requests")

    run_lead_search(
        _params(),
        config,
        span_context=search_trace("lead_search_cli", "session-1", keyword="plumbers"),
    )

    _, _, span = fake_langfuse.observations[0]
    assert span.trace_updates[0] == {
        "name": "lead_search_cli",
        "tags": ["lead_search"],
        "session_id": "session-1",
        "metadata": {"keyword": "plumbers"},
    }
    assert {
        "level": "WARNING",
        "status_message": "API Quota limit reached. Retrying shortly...",
    } in span.updates


def test_phone_number_with_429_is_not_a_quota_hint(fake_completion, config):
    fake_completion.reply = """
| Business Name | Phone | Rank | Website | Rating |
|---|---|---|---|---|
| Acme Plumbing | (512) 429-0101 | 1 | https://acme.example | 4.8 |
"""

    outcome = run_lead_search(_params(), config)

    assert isinstance(outcome, SearchFailed)
    assert outcome.kind == "content"
