"""
Tests for summary/summarizer.py -- payload building, response parsing and the
Gemini call wrapper.

The google-genai client is replaced with a MagicMock so no network calls occur.
"""

import time
from datetime import datetime, timedelta
from unittest.mock import MagicMock, patch

import pytest
import pytz

from summary.models import Attachment, Message, Reaction
from summary.summarizer import (
    GeminiSummarizer,
    ProviderError,
    SummarizerNotConfigured,
    SummarizerTimeout,
    build_payload,
    clean_summary,
)

BASE = datetime(2025, 3, 14, 9, 0, tzinfo=pytz.UTC)


@pytest.fixture
def summarizer():
    """GeminiSummarizer with a mocked genai client."""
    with patch("summary.summarizer.genai.Client") as client_cls:
        instance = GeminiSummarizer(api_key="test-key", model_id="gemini-test", timeout=5)
    instance.client = client_cls.return_value
    return instance


class TestCleanSummary:

    def test_removes_bracketed_timestamps(self):
        assert clean_summary("[2025-03-14T09:00:00Z] Alice shipped it") == "Alice shipped it"
        assert clean_summary("Alice shipped it [Mar 14, 2025 09:00]") == "Alice shipped it"

    def test_removes_bot_name_lines(self):
        assert clean_summary("x402 Summariser here:\nGood morning!") == "Good morning!"

    def test_none(self):
        assert clean_summary(None) == ""


class TestBuildPayload:

    def test_payload_shape(self):
        messages = [
            Message(id="2", timestamp=BASE + timedelta(minutes=5), text="second", display_name="Bob",
                    reply_to_id="1", reactions=[Reaction("👍", 2)]),
            Message(id="1", timestamp=BASE, text="first", username="alice",
                    attachments=[Attachment("a.png", "image/png")]),
        ]
        payload = build_payload("discord", "Guild · #general", "window", messages, lookback_minutes=60)

        assert payload["platform"] == "discord"
        assert payload["channel"] == "Guild · #general"
        assert payload["lookbackMinutes"] == 60
        assert payload["maxChars"] == 1800
        assert [m["id"] for m in payload["messages"]] == ["1", "2"]
        assert payload["messages"][0] == {
            "id": "1",
            "author": "alice",
            "timestamp": BASE.isoformat(),
            "text": "first",
            "replyTo": None,
            "attachments": [{"filename": "a.png", "contentType": "image/png"}],
            "reactions": [],
        }
        assert payload["messages"][1]["reactions"] == [{"emoji": "👍", "count": 2}]


class TestParseResponse:

    def test_plain_json(self, summarizer):
        result = summarizer._parse_response('{"summary": "Hi!\\n• a", "actionables": ["@bob - ship it"]}')
        assert result.summary == "Hi!\n• a"
        assert result.actionables == ["@bob - ship it"]
        assert result.model == "gemini-test"

    def test_fenced_json(self, summarizer):
        text = '```json\n{"summary": "Hi!", "actionables": []}\n```'
        result = summarizer._parse_response(text)
        assert result.summary == "Hi!"
        assert result.actionables == []

    def test_plain_text_is_the_summary(self, summarizer):
        result = summarizer._parse_response("  Good morning! Nothing much happened.  ")
        assert result.summary == "Good morning! Nothing much happened."
        assert result.actionables == []

    def test_actionables_are_capped_and_cleaned(self, summarizer):
        items = ", ".join(f'"item {i}"' for i in range(8))
        result = summarizer._parse_response(f'{{"summary": "x", "actionables": ["  ", {items}]}}')
        assert result.actionables == [f"item {i}" for i in range(5)]

    def test_bad_field_types(self, summarizer):
        result = summarizer._parse_response('{"summary": 5, "actionables": "nope"}')
        assert result.summary == ""
        assert result.actionables == []


class TestSummarize:

    @pytest.mark.asyncio
    async def test_not_configured(self):
        unconfigured = GeminiSummarizer(api_key=None)
        assert not unconfigured.is_configured
        with pytest.raises(SummarizerNotConfigured):
            await unconfigured.summarize({"messages": []})

    @pytest.mark.asyncio
    async def test_success(self, summarizer):
        summarizer.client.models.generate_content.return_value = MagicMock(
            text='{"summary": "Good morning!\\n• Alice shipped it.", "actionables": []}'
        )
        result = await summarizer.summarize({"platform": "discord", "lookbackMinutes": 60, "messages": []})

        assert result.summary == "Good morning!\n• Alice shipped it."
        kwargs = summarizer.client.models.generate_content.call_args.kwargs
        assert kwargs["model"] == "gemini-test"
        assert "lookbackMinutes" in kwargs["contents"]

    @pytest.mark.asyncio
    async def test_provider_error(self, summarizer):
        summarizer.client.models.generate_content.side_effect = RuntimeError("quota exceeded")
        with pytest.raises(ProviderError, match="quota exceeded"):
            await summarizer.summarize({"messages": []})

    @pytest.mark.asyncio
    async def test_timeout(self, summarizer):
        summarizer.timeout = 0.05
        summarizer.client.models.generate_content.side_effect = lambda **kwargs: time.sleep(0.5)
        with pytest.raises(SummarizerTimeout):
            await summarizer.summarize({"messages": []})
