"""
Location: summary/summarizer.py
Summary: Gemini-based summary generation. Sends a structured JSON payload of the
         conversation (platform, channel, window, messages with reactions and
         attachments) and asks for a cordial, bullet-pointed summary plus up to
         five action items. The call runs in a worker thread under a timeout;
         failures surface as SummarizerError subclasses so the orchestrator can
         fall back to a deterministic summary.

Used by: orchestrator.py, main.py
Uses: google-genai, models.py (Message)
"""

import asyncio
import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

from google import genai
from google.genai import types

from summary.formatter import sort_messages
from summary.models import Message

logger = logging.getLogger(__name__)

MAX_ACTIONABLES = 5
DEFAULT_MAX_CHARS = 1800

_CLEANUP_PATTERNS = [
    re.compile(r"\[\d{4}-\d{2}-\d{2}T[^\]]+\]"),
    re.compile(r"\[[^\]]*\d{4}[^\]]*\]"),
    re.compile(r"x402 Summariser[^\n]*\n?", re.IGNORECASE),
]


class SummarizerError(Exception):
    """Base exception for summary generation failures."""
    pass


class SummarizerNotConfigured(SummarizerError):
    """No LLM credentials are configured."""
    pass


class SummarizerTimeout(SummarizerError):
    """The LLM did not answer within the timeout."""
    pass


class ProviderError(SummarizerError):
    """The LLM provider returned an error."""
    pass


@dataclass
class LLMSummary:
    """Raw LLM output before post-processing.

    Attributes:
        summary: Freeform summary text.
        actionables: Follow-up items, at most five.
        model: Model that produced the summary.
    """
    summary: str
    actionables: List[str] = field(default_factory=list)
    model: Optional[str] = None


def clean_summary(text: str) -> str:
    """Strip bracketed timestamps and bot-name prefixes the model sometimes echoes."""
    cleaned = text or ""
    for pattern in _CLEANUP_PATTERNS:
        cleaned = pattern.sub("", cleaned)
    return cleaned.strip()


def build_payload(
    platform: str,
    channel_label: str,
    time_window: str,
    messages: Sequence[Message],
    lookback_minutes: Optional[int] = None,
    max_chars: int = DEFAULT_MAX_CHARS,
) -> Dict[str, Any]:
    """Build the JSON payload sent to the LLM.

    Args:
        platform: "discord" or "telegram".
        channel_label: Human-readable channel name.
        time_window: Window label with ISO bounds.
        messages: Messages in the window.
        lookback_minutes: Lookback, when the window is time based.
        max_chars: Character budget for the summary.

    Returns:
        JSON-serializable dict.
    """
    return {
        "platform": platform,
        "channel": channel_label,
        "timeWindow": time_window,
        "lookbackMinutes": lookback_minutes,
        "maxChars": max_chars,
        "messages": [
            {
                "id": m.id,
                "author": m.speaker_name,
                "timestamp": m.timestamp.isoformat(),
                "text": m.text,
                "replyTo": m.reply_to_id,
                "attachments": [
                    {"filename": a.filename, "contentType": a.content_type}
                    for a in m.attachments
                ],
                "reactions": [{"emoji": r.emoji, "count": r.count} for r in m.reactions],
            }
            for m in sort_messages(messages)
        ],
    }


class GeminiSummarizer:
    """Generates chat summaries and action items with Gemini.

    Attributes:
        client: Google Genai client, or None when no API key is configured.
        model_id: Gemini model to call.
        timeout: Seconds to wait for a response.
    """

    DEFAULT_MODEL = "gemini-2.0-flash"

    def __init__(self, api_key: Optional[str], model_id: str = DEFAULT_MODEL, timeout: float = 30.0):
        """Initialize the summarizer.

        Args:
            api_key: Google API key for Gemini. None disables the LLM.
            model_id: Gemini model ID.
            timeout: Seconds before the call is abandoned.
        """
        self.client = genai.Client(api_key=api_key) if api_key else None
        self.model_id = model_id
        self.timeout = timeout

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def _build_prompt(self, payload: Dict[str, Any]) -> str:
        window = payload.get("lookbackMinutes") or payload.get("timeWindow")
        return f"""You are a cordial chat summarizer for a {payload.get('platform', 'chat')} community.

The conversation is provided as JSON below. Do not copy messages verbatim. Write a friendly
greeting (for example "Good morning!" or "Hey there!") followed by a short sentence such as
"Here is what happened in the last X minutes:" where X is lookbackMinutes (or infer it from
timeWindow if lookbackMinutes is missing). Put the greeting on the first line.

After the greeting, produce 3-6 bullet points, one per line, using the • character, that capture:
(1) key conclusions or decisions, (2) any disagreement or opposition and how it was resolved
(if present), (3) notable highlights or themes, and (4) anything funny, high-energy, or heavily
reacted-to (messages with many reactions are likely important). Each bullet should synthesize
multiple messages and stay concise (one sentence). Mention participants by name when relevant.
Never include raw timestamps or quote every message. Keep the summary under {payload.get('maxChars', DEFAULT_MAX_CHARS)} characters.

Then list concrete follow-up actions mentioned or implied by the discussion. Whenever possible
include the owner (e.g. @user) and a short description. Return up to {MAX_ACTIONABLES} items.
If nothing actionable was discussed, return an empty list.

WINDOW: {window}
CONVERSATION:
{json.dumps(payload, ensure_ascii=False)}

Respond with JSON in exactly this structure:
{{
    "summary": "greeting line\\n• bullet\\n• bullet",
    "actionables": ["@owner - follow-up"]
}}"""

    async def summarize(self, payload: Dict[str, Any]) -> LLMSummary:
        """Generate a summary for the payload.

        Args:
            payload: Output of build_payload.

        Returns:
            LLMSummary with the raw summary text and actionables.

        Raises:
            SummarizerNotConfigured: No API key.
            SummarizerTimeout: No answer within the timeout.
            ProviderError: The API call failed.
        """
        if not self.is_configured:
            raise SummarizerNotConfigured("Gemini API key is not configured")

        prompt = self._build_prompt(payload)
        try:
            response = await asyncio.wait_for(
                asyncio.to_thread(
                    self.client.models.generate_content,
                    model=self.model_id,
                    contents=prompt,
                    config=types.GenerateContentConfig(
                        temperature=0.4,
                        max_output_tokens=1200,
                    ),
                ),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            raise SummarizerTimeout(f"LLM request timed out after {self.timeout:.0f} seconds")
        except Exception as e:
            raise ProviderError(f"Gemini request failed: {e}") from e

        return self._parse_response(response.text or "")

    def _parse_response(self, response_text: str) -> LLMSummary:
        """Parse Gemini's response into an LLMSummary.

        JSON (optionally fenced in a markdown code block) is preferred. Plain
        text is taken as the summary with no action items.
        """
        json_text = response_text.strip()
        if json_text.startswith("```"):
            lines = [line for line in json_text.split("\n") if not line.strip().startswith("```")]
            json_text = "\n".join(lines)

        try:
            data = json.loads(json_text)
        except json.JSONDecodeError:
            logger.warning("Summary response was not JSON; using raw text")
            logger.debug(f"Raw response: {response_text}")
            return LLMSummary(summary=response_text.strip(), actionables=[], model=self.model_id)

        if not isinstance(data, dict):
            return LLMSummary(summary=str(data), actionables=[], model=self.model_id)

        summary = data.get("summary")
        actionables = data.get("actionables")
        if not isinstance(actionables, list):
            actionables = []
        actionables = [str(a).strip() for a in actionables if str(a).strip()][:MAX_ACTIONABLES]

        return LLMSummary(
            summary=summary if isinstance(summary, str) else "",
            actionables=actionables,
            model=self.model_id,
        )
