"""
Location: summary/scoring.py
Summary: Heuristic bullet scoring and filtering. Rewards bullets that carry
         actions, status updates, decisions, questions and concrete numbers;
         penalizes very short lines, emoji-only lines, single words and
         laughter. Bullets scoring below zero are dropped, keeping the best one
         if nothing else survives.

Used by: pipeline.py
Uses: models.py (ScoredBullet)
"""

import re
import unicodedata
from typing import List, Sequence

from summary.models import ScoredBullet

ACTION_PATTERN = re.compile(
    r"\b(?:action items?|todo|need to|must|should|task|follow[\s-]up|deadline|due)\b",
    re.IGNORECASE,
)
STATUS_PATTERN = re.compile(
    r"\b(?:plan|progress|status|update|launch|deploy|issue|fix|bug|release)\w*",
    re.IGNORECASE,
)
RESOLUTION_PATTERN = re.compile(
    r"\b(?:confirm|decided|agreed|resolved|concluded)\w*",
    re.IGNORECASE,
)
QUESTION_PATTERN = re.compile(r"\b(?:question|asked|whether|how|when|what)\b", re.IGNORECASE)
NUMBER_PATTERN = re.compile(r"\b\d+[smhdw]?\b|\b\d{1,2}:\d{2}\b")
LAUGHTER_PATTERN = re.compile(
    r"\b(?:lol+|(?:ha){2,}h?|(?:he){2,}|lmao+|rofl|omg)\b",
    re.IGNORECASE,
)

SHORT_LENGTH = 20
LONG_LENGTH = 120

_EMOJI_JOINERS = {0x200D, 0xFE0E, 0xFE0F, 0x20E3}


def is_emoji_char(char: str) -> bool:
    code = ord(char)
    if code in _EMOJI_JOINERS or 0x1F000 <= code <= 0x1FAFF:
        return True
    return unicodedata.category(char) == "So"


def is_emoji_only(text: str) -> bool:
    """True when the text, ignoring whitespace and end punctuation, is all emoji."""
    core = re.sub(r"[\s.!?]+", "", text or "")
    return bool(core) and all(is_emoji_char(c) for c in core)


def score_bullet(bullet: str) -> int:
    """Score a bullet sentence; higher means more worth keeping.

    Args:
        bullet: Bullet text, with or without a leading marker.

    Returns:
        Integer score; negative scores are filtered out by filter_and_rank.
    """
    text = re.sub(r"^[•\-]\s*", "", (bullet or "").strip()).strip()
    if not text:
        return -5

    score = 0

    if len(text) < SHORT_LENGTH:
        score -= 3
    if len(text) > LONG_LENGTH:
        score -= 1

    if ACTION_PATTERN.search(text):
        score += 4
    if STATUS_PATTERN.search(text):
        score += 3
    if RESOLUTION_PATTERN.search(text):
        score += 3
    if QUESTION_PATTERN.search(text):
        score += 1
    if NUMBER_PATTERN.search(text):
        score += 1
    if sum(1 for c in text if c.isascii() and c.isalpha()) >= 3:
        score += 1

    if is_emoji_only(text):
        score -= 5
    if re.match(r"^[A-Za-z]+\b", text) and not re.search(r"\s", text) and len(text) <= 6:
        score -= 4
    if LAUGHTER_PATTERN.search(text):
        score -= 4
    if len(text.split()) <= 3:
        score -= 2

    return score


def score_bullets(bullets: Sequence[str]) -> List[ScoredBullet]:
    return [ScoredBullet(text=b, score=score_bullet(b), index=i) for i, b in enumerate(bullets)]


def filter_and_rank(bullets: Sequence[str]) -> List[str]:
    """Keep non-negative bullets in order, or the single best one.

    Ties for the best bullet go to the earliest.
    """
    scored = score_bullets(bullets)
    retained = [item for item in scored if item.score >= 0]
    if retained:
        return [item.text for item in sorted(retained, key=lambda item: item.index)]
    if scored:
        return [max(scored, key=lambda item: item.score).text]
    return []
