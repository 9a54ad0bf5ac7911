"""
Tests for summary/pipeline.py -- finalize() end to end.

Covers the properties the summary text must always have (greeting, no growth
in bullet count, idempotence, never raising) and the main rewrite scenarios.
"""

from datetime import datetime
from unittest.mock import patch

import pytest
import pytz

from summary.models import ConversationEntry, WindowDescriptor
from summary.pipeline import assemble, finalize, normalize_summary_bullets, split_intro

MORNING = datetime(2025, 3, 14, 9, 30, tzinfo=pytz.UTC)
LAST_HOUR = WindowDescriptor(lookback_minutes=60)
INTRO = "Good morning! Here is what happened in the last 60 minutes:"


def _entries(*pairs):
    return [ConversationEntry(speaker=s, content=c) for s, c in pairs]


DEPLOY_ENTRIES = _entries(
    ("Alice", "I'm deploying the fix to staging today"),
    ("Alice", "Did we fix the bug, Bob?"),
    ("Bob", "Yes, fixed it this morning"),
    ("Carol", "lol"),
)


def _bullet_lines(text):
    return [line for line in text.split("\n") if line.startswith("• ")]


class TestHelpers:

    def test_split_intro(self):
        assert split_intro("Hi there\n• a\n• b") == ("Hi there", "• a\n• b")
        assert split_intro("Only intro") == ("Only intro", "")

    def test_assemble(self):
        assert assemble("Intro", ["One.", "Two."]) == "Intro\n• One.\n• Two."
        assert assemble("Intro", []) == "Intro"


class TestFinalizeScenarios:

    def test_first_person_attribution(self):
        result = finalize("• Alice: I'm deploying the fix to staging today", LAST_HOUR, DEPLOY_ENTRIES, MORNING)
        assert result == f"{INTRO}\n• Alice is deploying the fix to staging today."

    def test_display_name_variant_is_still_attributed(self):
        entries = _entries(("dana_dev", "I'm handling the release tonight"), ("Bob", "thanks"))
        result = finalize("• Dana: I'm handling the release tonight", LAST_HOUR, entries, MORNING)
        assert result == f"{INTRO}\n• Dana is handling the release tonight."

    def test_question_answered_in_chat(self):
        result = finalize("• Alice: Did we fix the bug, Bob?", LAST_HOUR, DEPLOY_ENTRIES, MORNING)
        assert result == f"{INTRO}\n• Bob confirmed that we have fixed the bug."

    def test_low_value_bullets_are_dropped(self):
        raw = "\n".join([
            "• Alice: I'm deploying the fix to staging today",
            "• Carol: lol",
            "• Alice: Did we fix the bug, Bob?",
        ])
        result = finalize(raw, LAST_HOUR, DEPLOY_ENTRIES, MORNING)
        assert _bullet_lines(result) == [
            "• Alice is deploying the fix to staging today.",
            "• Bob confirmed that we have fixed the bug.",
        ]

    def test_existing_greeting_is_kept(self):
        raw = "Hey team! Busy hour.\n• Alice: I'm deploying the fix to staging today"
        result = finalize(raw, LAST_HOUR, DEPLOY_ENTRIES, MORNING)
        assert result == "Hey team! Busy hour.\n• Alice is deploying the fix to staging today."

    def test_range_label_in_intro(self):
        window = WindowDescriptor(range_label="message links A → B")
        result = finalize("• The release plan was agreed.", window, [], MORNING)
        assert result == "Good morning! Here is what happened in message links A → B:\n• The release plan was agreed."

    def test_prose_summary_stays_a_single_line(self):
        result = finalize("The team agreed on the release plan.", LAST_HOUR, [], MORNING)
        assert result == f"{INTRO} The team agreed on the release plan."

    def test_emoji_only_summary_keeps_single_best_line(self):
        result = finalize("• 😂😂\n• 🔥", LAST_HOUR, [], MORNING)
        assert len(_bullet_lines(result)) == 1
        assert result.startswith(INTRO)

    def test_unusable_body_is_left_as_is(self):
        result = finalize("Hello folks\n•\n-", LAST_HOUR, [], MORNING)
        assert result == "Hello folks\n•\n-"

    def test_empty_input(self):
        assert finalize("", LAST_HOUR, [], MORNING) == ""
        assert finalize("   \n  ", LAST_HOUR, [], MORNING) == ""
        assert finalize(None, LAST_HOUR, [], MORNING) == ""


class TestFinalizeProperties:

    RAW_SUMMARIES = [
        "• Alice: I'm deploying the fix to staging today",
        "• Alice: Did we fix the bug, Bob?",
        "• Alice: I'm deploying the fix to staging today\n• Carol: lol\n• Alice: Did we fix the bug, Bob?",
        "Good evening! Quiet hour.\n• Bob pushed the hotfix to prod",
        "The team agreed on the release plan.",
    ]

    @pytest.mark.parametrize("raw", RAW_SUMMARIES)
    def test_always_starts_with_greeting(self, raw):
        result = finalize(raw, LAST_HOUR, DEPLOY_ENTRIES, MORNING)
        assert result.startswith(("Good morning!", "Good evening!"))

    @pytest.mark.parametrize("raw", RAW_SUMMARIES)
    def test_bullet_count_never_grows(self, raw):
        result = finalize(raw, LAST_HOUR, DEPLOY_ENTRIES, MORNING)
        body_lines = [line for line in raw.split("\n") if line.strip().startswith(("•", "-"))]
        assert len(_bullet_lines(result)) <= len(body_lines)

    @pytest.mark.parametrize("raw", RAW_SUMMARIES)
    def test_idempotent(self, raw):
        once = finalize(raw, LAST_HOUR, DEPLOY_ENTRIES, MORNING)
        assert finalize(once, LAST_HOUR, DEPLOY_ENTRIES, MORNING) == once

    def test_greeting_failure_returns_raw_text(self):
        with patch("summary.pipeline.ensure_greeting", side_effect=RuntimeError("boom")):
            assert finalize("  • raw line  ", LAST_HOUR, [], MORNING) == "• raw line"

    def test_bullet_failure_returns_greeting_text(self):
        with patch("summary.pipeline.extract_bullets", side_effect=RuntimeError("boom")):
            result = finalize("• raw line", LAST_HOUR, [], MORNING)
        assert result == f"{INTRO}\n• raw line"

    def test_normalize_without_body_returns_text(self):
        assert normalize_summary_bullets("Just an intro", []) == "Just an intro"
