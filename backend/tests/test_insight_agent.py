"""
Unit tests for the insight generation agent and its output parsing.

These tests use in-memory stubs only and do NOT perform real HTTP calls.
"""
import json
from typing import Any, Dict, List, Optional

import pytest

from app.services.ai.llm_client import LLMClientError, LLMNotConfiguredError
from app.services.ai.prompts import build_insight_prompt
from app.services.ai.schema import (
    Insight,
    OutputParseError,
    SchemaValidationError,
    parse_insight_text,
    strip_code_fence,
)
from app.services.result import FailureReason

VALID_PAYLOAD = {
    "characteristics": "Calm and focused.",
    "ideal_scent": "Soft vanilla with amber.",
    "persona": "Serene",
    "query": "parfum vanila amber hangat",
}


class DummyLLMClient:
    """Emulates an OpenAI-style chat completion response with fixed content."""

    def __init__(self, content: Optional[str] = None, error: Optional[Exception] = None):
        self._content = content
        self._error = error
        self.calls: List[Dict[str, Any]] = []

    async def chat(self, agent: str, messages, **kwargs):
        self.calls.append({"agent": agent, "messages": messages, **kwargs})
        if self._error:
            raise self._error
        return {
            "choices": [{"message": {"content": self._content}}],
            "usage": {"prompt_tokens": 10, "completion_tokens": 20},
        }


def _make_agent(monkeypatch, client: DummyLLMClient):
    from app.services.ai.agents import insight as insight_module

    monkeypatch.setattr(insight_module, "get_llm_client", lambda: client)
    return insight_module.InsightGenerationAgent(query_language="Indonesian")


class TestStripCodeFence:

    def test_json_fence_removed(self):
        text = '```json\n{"a": 1}\n```'
        assert strip_code_fence(text) == '{"a": 1}'

    def test_bare_fence_removed(self):
        assert strip_code_fence('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_unfenced_text_unchanged(self):
        assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'


class TestParseInsightText:

    def test_fenced_json_parsed(self):
        insight = parse_insight_text("```json\n" + json.dumps(VALID_PAYLOAD) + "\n```")
        assert isinstance(insight, Insight)
        assert insight.persona == "Serene"

    def test_non_json_raises_parse_error(self):
        with pytest.raises(OutputParseError):
            parse_insight_text("Here is your perfume: vanilla!")

    def test_missing_field_raises_schema_error(self):
        payload = {k: v for k, v in VALID_PAYLOAD.items() if k != "persona"}
        with pytest.raises(SchemaValidationError):
            parse_insight_text(json.dumps(payload))

    def test_blank_query_rejected(self):
        with pytest.raises(SchemaValidationError):
            parse_insight_text(json.dumps({**VALID_PAYLOAD, "query": "   "}))

    def test_non_string_field_rejected(self):
        with pytest.raises(SchemaValidationError):
            parse_insight_text(json.dumps({**VALID_PAYLOAD, "persona": 42}))

    def test_json_array_rejected(self):
        with pytest.raises(SchemaValidationError):
            parse_insight_text("[1, 2, 3]")


@pytest.mark.asyncio
async def test_insight_agent_parses_fenced_json(monkeypatch, answers):
    """Fenced JSON from the completion service becomes an Insight."""
    client = DummyLLMClient("```json\n" + json.dumps(VALID_PAYLOAD) + "\n```")
    agent = _make_agent(monkeypatch, client)

    result = await agent.generate(answers)

    assert result.ok
    assert result.value.query == "parfum vanila amber hangat"
    assert result.value.characteristics == "Calm and focused."


@pytest.mark.asyncio
async def test_insight_agent_sends_fixed_generation_parameters(monkeypatch, answers):
    client = DummyLLMClient(json.dumps(VALID_PAYLOAD))
    agent = _make_agent(monkeypatch, client)

    await agent.generate(answers)

    assert len(client.calls) == 1
    call = client.calls[0]
    assert call["agent"] == "insight"
    assert call["max_tokens"] == 400
    assert call["temperature"] == pytest.approx(0.7)
    assert call["top_p"] == pytest.approx(0.7)
    assert call["top_k"] == 50
    assert call["stop"] == ["<|end_of_text|>"]
    assert call["messages"][0]["role"] == "user"
    prompt = call["messages"][0]["content"]
    assert "Sari" in prompt
    assert "Vanilla" in prompt
    assert "Evening" in prompt


@pytest.mark.asyncio
async def test_insight_agent_non_json_is_parse_error(monkeypatch, answers):
    agent = _make_agent(monkeypatch, DummyLLMClient("I recommend something woody."))

    result = await agent.generate(answers)

    assert not result.ok
    assert result.reason is FailureReason.PARSE_ERROR


@pytest.mark.asyncio
async def test_insight_agent_fenced_non_json_is_parse_error(monkeypatch, answers):
    agent = _make_agent(monkeypatch, DummyLLMClient("```json\nnot json at all\n```"))

    result = await agent.generate(answers)

    assert result.reason is FailureReason.PARSE_ERROR


@pytest.mark.asyncio
async def test_insight_agent_missing_query_is_schema_error(monkeypatch, answers):
    payload = {k: v for k, v in VALID_PAYLOAD.items() if k != "query"}
    agent = _make_agent(monkeypatch, DummyLLMClient(json.dumps(payload)))

    result = await agent.generate(answers)

    assert result.reason is FailureReason.SCHEMA_ERROR


@pytest.mark.asyncio
async def test_insight_agent_service_error(monkeypatch, answers):
    agent = _make_agent(monkeypatch, DummyLLMClient(error=LLMClientError("boom", error_type="timeout")))

    result = await agent.generate(answers)

    assert result.reason is FailureReason.SERVICE_ERROR


@pytest.mark.asyncio
async def test_insight_agent_not_configured(monkeypatch, answers):
    agent = _make_agent(monkeypatch, DummyLLMClient(error=LLMNotConfiguredError()))

    result = await agent.generate(answers)

    assert result.reason is FailureReason.NOT_CONFIGURED


@pytest.mark.asyncio
async def test_insight_agent_missing_content_is_parse_error(monkeypatch, answers):
    agent = _make_agent(monkeypatch, DummyLLMClient(content=None))

    result = await agent.generate(answers)

    assert result.reason is FailureReason.PARSE_ERROR


def test_prompt_lists_all_ten_answers(answers):
    prompt = build_insight_prompt(answers, query_language="English")

    for number in range(1, 11):
        assert f"\n{number} " in prompt
    assert "A short perfume search query in English" in prompt
    assert "max 225 characters" in prompt
    assert "max 300 characters" in prompt
