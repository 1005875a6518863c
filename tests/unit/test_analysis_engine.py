"""
Unit tests for AnalysisEngine

Uses a deterministic fake LLM client: no network, no API key.
"""
import asyncio
import json
import random
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import httpx
import openai
import pytest

from teampulse.core.errors import AnalysisParseError, AnalysisRequestError
from teampulse.models.schemas.analysis import AnalysisResult, AnalysisType
from teampulse.models.schemas.unified import ServiceType
from teampulse.services.analysis.engine import AnalysisEngine
from teampulse.services.analysis.fallback import FALLBACK_SUMMARY
from teampulse.services.analysis.parsing import parse_response, strip_code_fence
from teampulse.services.analysis.variants import VARIANTS

UTC = timezone.utc
START = datetime(2024, 1, 8, 9, 0, tzinfo=UTC)

VALID_RESPONSE = {
    "summary": "Healthy team with heavy Slack usage",
    "keyFindings": ["Most activity happens before noon"],
    "recommendations": ["Move status updates to async threads"],
    "riskFactors": [{"factor": "Late meetings", "severity": "HIGH", "impact": "Fatigue", "mitigation": "Reschedule"}],
    "opportunities": [{"area": "Threads", "potential": "Less noise", "implementation": "Team agreement"}],
    "confidenceScore": 88,
    "analysisDepth": 92,
}


@pytest.fixture
def records(make_message, make_meeting):
    messages = [
        make_message(user_id=f"U{i % 3}", at=START + timedelta(minutes=17 * i)) for i in range(12)
    ]
    messages.append(make_message(service=ServiceType.DISCORD, user_id="U1", at=START + timedelta(days=1)))
    meetings = [make_meeting(organizer_id="U0", participants=["U1", "U2"], start=START + timedelta(hours=2))]
    return messages, meetings


def engine_with(fake_llm, *responses, **kwargs):
    kwargs.setdefault("tz", UTC)
    return AnalysisEngine(fake_llm(*responses), **kwargs)


# ============================================================================
# HAPPY PATH
# ============================================================================

@pytest.mark.asyncio
async def test_valid_response_is_used(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, json.dumps(VALID_RESPONSE))

    result = await engine.run("comprehensive", messages, meetings)

    assert result.is_fallback is False
    assert result.type is AnalysisType.COMPREHENSIVE
    assert result.insights.summary == "Healthy team with heavy Slack usage"
    assert result.insights.risk_factors[0].severity == "high"
    assert result.metrics.confidence_score == 88
    assert result.metrics.analysis_depth == 92
    assert result.data_source.services == [ServiceType.SLACK, ServiceType.DISCORD, ServiceType.TEAMS]
    assert result.data_source.message_count == 13
    assert result.data_source.meeting_count == 1
    assert result.data_source.time_range.start == START
    assert result.data_source.time_range.end == START + timedelta(days=1)


@pytest.mark.asyncio
async def test_variant_budget_and_prompt_are_sent(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, json.dumps(VALID_RESPONSE))

    await engine.run(AnalysisType.PRODUCTIVITY, messages, meetings)

    call = engine.llm_client.calls[0]
    assert call["temperature"] == 0.2
    assert call["max_tokens"] == 1500
    assert call["system_prompt"] == VARIANTS[AnalysisType.PRODUCTIVITY].system_prompt
    assert "platform_switch_ratio" in call["user_prompt"]
    assert "productivitySummary" in call["user_prompt"]


@pytest.mark.parametrize("analysis_type,budget", [
    ("comprehensive", (0.3, 2000)),
    ("productivity", (0.2, 1500)),
    ("burnout", (0.3, 1800)),
    ("team_dynamics", (0.3, 1600)),
    ("communication", (0.3, 1500)),
])
def test_variant_budgets(analysis_type, budget):
    variant = VARIANTS[AnalysisType(analysis_type)]
    assert (variant.temperature, variant.max_tokens) == budget


@pytest.mark.asyncio
async def test_variant_summary_key_wins(fake_llm, records):
    messages, meetings = records
    response = dict(VALID_RESPONSE, burnoutSummary="Two people work late every day")
    engine = engine_with(fake_llm, json.dumps(response))

    result = await engine.run("burnout", messages, meetings)

    assert result.insights.summary == "Two people work late every day"


@pytest.mark.asyncio
async def test_missing_fields_use_defaults(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, "{}")

    result = await engine.run("team_dynamics", messages, meetings)

    assert result.is_fallback is False
    assert result.insights.summary == "Team dynamics analysis result"
    assert result.insights.key_findings == []
    assert result.metrics.confidence_score == 75
    assert result.metrics.analysis_depth == VARIANTS[AnalysisType.TEAM_DYNAMICS].analysis_depth


@pytest.mark.asyncio
async def test_scores_are_clamped(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, json.dumps({"confidenceScore": 140, "analysisDepth": -5}))

    result = await engine.run("communication", messages, meetings)

    assert result.metrics.confidence_score == 100
    assert result.metrics.analysis_depth == 0


@pytest.mark.asyncio
async def test_data_quality_never_comes_from_the_model(fake_llm, make_message):
    messages = [make_message(content="", channel_id=None)]
    engine = engine_with(fake_llm, json.dumps({"dataQualityScore": 100}))

    result = await engine.run("comprehensive", messages, [])

    # 2 of 4 message checks, 100 for the empty meeting side
    assert result.metrics.data_quality_score == 75


@pytest.mark.asyncio
async def test_code_fenced_json_is_accepted(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, "```json\n" + json.dumps(VALID_RESPONSE) + "\n```")

    result = await engine.run("comprehensive", messages, meetings)

    assert result.is_fallback is False


def test_camel_case_serialization():
    result = AnalysisResult.model_validate({
        "id": "x",
        "type": "burnout",
        "insights": {"summary": "s", "keyFindings": ["a"]},
        "metrics": {"confidenceScore": 1, "dataQualityScore": 2, "analysisDepth": 3},
        "generatedAt": START,
        "dataSource": {},
    })
    dumped = result.model_dump(by_alias=True)

    assert dumped["insights"]["keyFindings"] == ["a"]
    assert dumped["metrics"]["confidenceScore"] == 1
    assert "isFallback" in dumped


# ============================================================================
# FALLBACK
# ============================================================================

@pytest.mark.asyncio
@pytest.mark.parametrize("text", [
    "",
    "   ",
    "I'm sorry, I can't produce JSON today.",
    '{"summary": "truncated',
    "[1, 2, 3]",
    '"just a string"',
    "null",
    '{"keyFindings": "not a list"}',
    '{"riskFactors": [{"factor": "x", "severity": "catastrophic"}]}',
    "[" * 5000,
])
async def test_unusable_responses_fall_back(fake_llm, records, text):
    messages, meetings = records
    engine = engine_with(fake_llm, text)

    result = await engine.run("productivity", messages, meetings)

    assert result.is_fallback is True
    assert result.metrics.confidence_score == 75
    assert result.metrics.analysis_depth == 70
    assert result.insights.summary == FALLBACK_SUMMARY.format(title="Productivity analysis")
    assert result.insights.key_findings[0].startswith("13 messages and 1 meetings")


@pytest.mark.asyncio
async def test_network_error_falls_back_without_leaking_error_text(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, ConnectionError("connection reset by peer 10.0.0.7"))

    result = await engine.run("comprehensive", messages, meetings)

    assert result.is_fallback is True
    assert result.metrics.confidence_score == 75
    assert "10.0.0.7" not in result.insights.summary
    assert all("10.0.0.7" not in finding for finding in result.insights.key_findings)
    assert result.data_source.message_count == 13


@pytest.mark.asyncio
async def test_burnout_fallback_keeps_its_risk_factor(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, "not json")

    result = await engine.run("burnout", messages, meetings)

    assert result.insights.risk_factors[0].factor == "After-hours activity"


@pytest.mark.asyncio
@pytest.mark.parametrize("seed", range(25))
async def test_fuzzed_responses_always_yield_valid_result(fake_llm, records, seed):
    rng = random.Random(seed)
    base = json.dumps(VALID_RESPONSE)
    mutation = rng.choice(["truncate", "garble", "noise", "scores"])
    if mutation == "truncate":
        text = base[: rng.randint(0, len(base))]
    elif mutation == "garble":
        chars = list(base)
        for _ in range(rng.randint(1, 10)):
            chars[rng.randrange(len(chars))] = rng.choice('{}[]",:x0 ')
        text = "".join(chars)
    elif mutation == "noise":
        text = "".join(chr(rng.randint(0, 0x2FFF)) for _ in range(rng.randint(0, 200)))
    else:
        text = json.dumps(dict(VALID_RESPONSE, confidenceScore=rng.uniform(-1e6, 1e6), analysisDepth=None))

    messages, meetings = records
    result = await engine_with(fake_llm, text).run("comprehensive", messages, meetings)

    AnalysisResult.model_validate(result.model_dump())
    assert 0 <= result.metrics.confidence_score <= 100
    assert 0 <= result.metrics.analysis_depth <= 100
    assert 0 <= result.metrics.data_quality_score <= 100


# ============================================================================
# ERRORS / RETRIES
# ============================================================================

@pytest.mark.asyncio
async def test_no_client_raises(records):
    messages, meetings = records
    with pytest.raises(AnalysisRequestError):
        await AnalysisEngine(None).run("comprehensive", messages, meetings)


@pytest.mark.asyncio
async def test_unknown_type_raises_value_error(fake_llm, records):
    messages, meetings = records
    with pytest.raises(ValueError):
        await engine_with(fake_llm, "{}").run("vibes", messages, meetings)


@pytest.mark.asyncio
async def test_non_retryable_error_propagates(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, AnalysisRequestError("bad key", retryable=False, status_code=401), max_retries=3)

    with pytest.raises(AnalysisRequestError) as exc_info:
        await engine.run("comprehensive", messages, meetings)

    assert exc_info.value.status_code == 401
    assert len(engine.llm_client.calls) == 1


@pytest.mark.asyncio
async def test_transient_errors_are_retried_with_backoff(fake_llm, records):
    messages, meetings = records
    engine = engine_with(
        fake_llm,
        AnalysisRequestError("rate limited", retryable=True, status_code=429),
        AnalysisRequestError("bad gateway", retryable=True, status_code=502),
        json.dumps(VALID_RESPONSE),
        max_retries=2,
        initial_delay=0.5,
    )

    with patch("teampulse.services.analysis.engine.asyncio.sleep", new_callable=AsyncMock) as sleep:
        result = await engine.run("comprehensive", messages, meetings)

    assert result.is_fallback is False
    assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]
    assert len(engine.llm_client.calls) == 3


@pytest.mark.asyncio
async def test_exhausted_retries_fall_back(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, AnalysisRequestError("503", retryable=True, status_code=503), max_retries=1)

    with patch("teampulse.services.analysis.engine.asyncio.sleep", new_callable=AsyncMock):
        result = await engine.run("comprehensive", messages, meetings)

    assert result.is_fallback is True
    assert len(engine.llm_client.calls) == 2


CHAT_REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    httpx.ConnectError("connection refused"),
    httpx.ReadTimeout("timed out"),
    openai.APIConnectionError(request=CHAT_REQUEST),
    openai.APITimeoutError(request=CHAT_REQUEST),
], ids=["connect", "read-timeout", "api-connection", "api-timeout"])
async def test_transport_errors_from_any_client_fall_back(fake_llm, records, error):
    messages, meetings = records
    engine = engine_with(fake_llm, error, max_retries=0)

    result = await engine.run("comprehensive", messages, meetings)

    assert result.is_fallback is True
    assert result.metrics.confidence_score == 75


@pytest.mark.asyncio
async def test_transport_errors_are_retried(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, httpx.ConnectError("connection refused"), json.dumps(VALID_RESPONSE), max_retries=1)

    with patch("teampulse.services.analysis.engine.asyncio.sleep", new_callable=AsyncMock):
        result = await engine.run("comprehensive", messages, meetings)

    assert result.is_fallback is False
    assert len(engine.llm_client.calls) == 2


@pytest.mark.asyncio
async def test_unexpected_client_error_is_wrapped(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, KeyError("choices"))

    with pytest.raises(AnalysisRequestError):
        await engine.run("comprehensive", messages, meetings)


# ============================================================================
# TIMEOUT / CANCELLATION
# ============================================================================

class SlowClient:
    def __init__(self, delay: float):
        self.delay = delay
        self.cancelled = False

    async def complete(self, system_prompt, user_prompt, temperature, max_tokens):
        try:
            await asyncio.sleep(self.delay)
        except asyncio.CancelledError:
            self.cancelled = True
            raise
        return json.dumps(VALID_RESPONSE)


@pytest.mark.asyncio
async def test_timeout_falls_back(records):
    messages, meetings = records
    client = SlowClient(delay=5)
    engine = AnalysisEngine(client, tz=UTC)

    result = await engine.run("comprehensive", messages, meetings, timeout=0.05)

    assert result.is_fallback is True
    assert client.cancelled is True


@pytest.mark.asyncio
async def test_cancel_event_abandons_request(records):
    messages, meetings = records
    client = SlowClient(delay=5)
    engine = AnalysisEngine(client, tz=UTC)
    cancel = asyncio.Event()

    asyncio.get_running_loop().call_later(0.05, cancel.set)
    result = await engine.run("burnout", messages, meetings, cancel_event=cancel)

    assert result.is_fallback is True
    assert client.cancelled is True


@pytest.mark.asyncio
async def test_already_cancelled_skips_the_request(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, json.dumps(VALID_RESPONSE))
    cancel = asyncio.Event()
    cancel.set()

    result = await engine.run("comprehensive", messages, meetings, cancel_event=cancel)

    assert result.is_fallback is True
    assert engine.llm_client.calls == []


@pytest.mark.asyncio
async def test_cancel_event_unused_when_request_finishes(fake_llm, records):
    messages, meetings = records
    engine = engine_with(fake_llm, json.dumps(VALID_RESPONSE))

    result = await engine.run("comprehensive", messages, meetings, cancel_event=asyncio.Event())

    assert result.is_fallback is False


# ============================================================================
# PARSING
# ============================================================================

def test_strip_code_fence():
    assert strip_code_fence("```\n{}\n```") == "{}"
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence("{}") == "{}"


@pytest.mark.parametrize("text", [None, 42, "", "[]", "{"])
def test_parse_response_rejects(text):
    with pytest.raises(AnalysisParseError):
        parse_response(text)
