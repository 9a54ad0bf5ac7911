"""
Location: summary/bullets.py
Summary: Bullet extraction. Splits a summary body into lines, strips bullet
         markers, resolves the speaker of each line (explicit "Name: text" or an
         implied leading name that matches a known participant) and turns each
         line into one finished sentence.

Used by: pipeline.py
Uses: statements.py, text.py, models.py (ConversationEntry, RawBullet)
"""

import re
from typing import List, Optional, Sequence, Set

from summary.models import ConversationEntry, RawBullet
from summary.statements import build_sentence, build_sentence_with_speaker
from summary.text import normalize_name

_COLON_SPEAKER = re.compile(r"^([\w@'`().\-\s]{1,60}):\s*(.+)$")
_IMPLIED_SPEAKER = re.compile(r"^([A-Z][A-Za-z0-9']{2,})(?:\s+|,|--)(.+)$")
_SEPARATOR = re.compile(r"^(?:\s+|,|--)")


def known_speakers(entries: Sequence[ConversationEntry]) -> List[str]:
    """Distinct speaker names in conversation order."""
    seen = set()
    names = []
    for entry in entries:
        key = entry.speaker.strip().lower()
        if key and key not in seen:
            seen.add(key)
            names.append(entry.speaker.strip())
    return names


def speaker_keys(names: Sequence[str]) -> Set[str]:
    return {normalize_name(name) for name in names if normalize_name(name)}


def strip_bullet_marker(line: str) -> str:
    text = (line or "").strip()
    if text.startswith("•"):
        return text.lstrip("•").strip()
    if text.startswith("-"):
        return text.lstrip("-").strip()
    return text


def split_speaker(text: str) -> Optional[RawBullet]:
    """Split an explicit "Speaker: statement" line.

    Any name of up to 60 characters counts, known participant or not, as
    long as it contains a letter and the statement does not start with "/"
    (so URLs stay intact).
    """
    match = _COLON_SPEAKER.match(text)
    if not match:
        return None
    speaker = match.group(1).strip()
    statement = match.group(2).strip()
    if not re.search(r"[^\W\d_]", speaker) or statement.startswith("/"):
        return None
    return RawBullet(text=text, speaker=speaker, statement=statement)


def resolve_implied_speaker(text: str, names: Sequence[str], keys: Set[str]) -> Optional[RawBullet]:
    """Match a line that opens with a known participant's name.

    Multi-word names are tried first, longest first, then a single
    capitalized token of three or more characters.
    """
    lowered = text.lower()
    multi_word = sorted((n for n in names if " " in n.strip()), key=len, reverse=True)
    for name in multi_word:
        candidate = name.strip()
        if lowered.startswith(candidate.lower()):
            rest = text[len(candidate):]
            separator = _SEPARATOR.match(rest)
            if separator and rest[separator.end():].strip():
                return RawBullet(text=text, speaker=candidate, statement=rest[separator.end():].strip())

    match = _IMPLIED_SPEAKER.match(text)
    if match and normalize_name(match.group(1)) in keys:
        return RawBullet(text=text, speaker=match.group(1), statement=match.group(2).strip())
    return None


def parse_line(line: str, names: Sequence[str], keys: Set[str]) -> Optional[RawBullet]:
    """Strip the marker and resolve the speaker of one summary line."""
    text = strip_bullet_marker(line)
    if not text:
        return None
    raw = split_speaker(text) or resolve_implied_speaker(text, names, keys)
    if raw is not None:
        return raw
    return RawBullet(text=text, statement=text)


def transform_line(line: str, entries: List[ConversationEntry], names: Sequence[str], keys: Set[str]) -> str:
    """Turn one summary line into a finished sentence ("" when unusable)."""
    raw = parse_line(line, names, keys)
    if raw is None or not raw.statement:
        return ""
    if raw.speaker:
        return build_sentence_with_speaker(raw.speaker, raw.statement, entries, names)
    return build_sentence(raw.statement)


def extract_bullets(body: str, entries: List[ConversationEntry]) -> List[str]:
    """Extract one sentence per non-blank body line, dropping unusable lines."""
    names = known_speakers(entries)
    keys = speaker_keys(names)
    bullets = []
    for line in re.split(r"\n+", body or ""):
        if not line.strip():
            continue
        sentence = transform_line(line, entries, names, keys)
        if sentence:
            bullets.append(sentence)
    return bullets
