"""
Location: summary/text.py
Summary: Small string helpers shared by the bullet pipeline steps: casing and
         punctuation, name normalization, sentence splitting, discourse-marker
         stripping and first-person pronoun neutralization. Every function is
         pure and total.

Used by: bullets.py, statements.py, questions.py, greeting.py, scoring.py
"""

import re
from typing import Iterable, List, Optional

DISCOURSE_MARKER_PATTERN = re.compile(
    r"^(?:never\s?mind|well|ok|okay|oh|anyway|so|hey|hmm|hm|um|uh|alright|right|ah)[\s,;-]+",
    re.IGNORECASE,
)

_HONORIFIC = re.compile(r"^lord\s+", re.IGNORECASE)
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_WHITESPACE = re.compile(r"\s+")
_SENTENCE = re.compile(r"[^.!?]+[.!?]?")
_APOS = "['’]"

# (pattern, replacement template); "{name}" is filled with the speaker.
_FIRST_PERSON_RULES = [
    (re.compile(rf"\bi{_APOS}m\b", re.IGNORECASE), "{name} is"),
    (re.compile(r"\bi\s+am\b", re.IGNORECASE), "{name} is"),
    (re.compile(rf"\bi{_APOS}ve\b", re.IGNORECASE), "{name} has"),
    (re.compile(rf"\bi{_APOS}ll\b", re.IGNORECASE), "{name} will"),
    (re.compile(rf"\bi{_APOS}d\b", re.IGNORECASE), "{name} would"),
    (re.compile(r"\bI\b"), "{name}"),
    (re.compile(r"\bme\b", re.IGNORECASE), "them"),
    (re.compile(r"\bmyself\b", re.IGNORECASE), "themself"),
    (re.compile(r"\bmy\b", re.IGNORECASE), "their"),
    (re.compile(r"\bmine\b", re.IGNORECASE), "theirs"),
]


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE.sub(" ", text or "").strip()


def ensure_period(sentence: str) -> str:
    """Append a period unless the sentence already ends in . ! or ?"""
    trimmed = (sentence or "").strip()
    if not trimmed:
        return trimmed
    return trimmed if trimmed[-1] in ".!?" else trimmed + "."


def capitalize_first(text: str) -> str:
    if not text:
        return text
    return text[0].upper() + text[1:]


def capitalize_words(text: str) -> str:
    return " ".join(capitalize_first(part) for part in (text or "").split())


def lowercase_first(text: str, keep: Iterable[str] = ()) -> str:
    """Lowercase the first character unless the first word must keep its case.

    Acronyms (all caps, two or more letters) and any name in ``keep``
    are left alone.

    Args:
        text: Clause to adjust.
        keep: Names (compared case-insensitively after normalization) to preserve.
    """
    if not text:
        return text
    first = text.split(maxsplit=1)[0].strip(",;:")
    letters = re.sub(r"[^A-Za-z]", "", first)
    if len(letters) > 1 and letters.isupper():
        return text
    kept = {normalize_name(name) for name in keep}
    if first and normalize_name(first) in kept:
        return text
    return text[0].lower() + text[1:]


def normalize_name(name: str) -> str:
    """Lowercase a speaker name and drop a leading "lord " honorific."""
    return _HONORIFIC.sub("", (name or "").strip().lower()).strip()


def is_same_name(a: str, b: str) -> bool:
    return normalize_name(a) == normalize_name(b)


def normalize_for_match(value: str) -> str:
    """Lowercase and strip punctuation for fuzzy containment matching."""
    return collapse_whitespace(_NON_ALNUM.sub("", (value or "").lower()))


def split_into_sentences(text: str) -> List[str]:
    trimmed = (text or "").strip()
    if not trimmed:
        return []
    sentences = [s.strip() for s in _SENTENCE.findall(trimmed)]
    sentences = [s for s in sentences if s]
    return sentences or [trimmed]


def first_word(text: str) -> Optional[str]:
    match = re.match(r"^([A-Za-z0-9'`()\-]+)", text or "")
    return match.group(1) if match else None


def strip_discourse_markers(text: str) -> str:
    """Remove leading filler words ("well,", "ok so", "never mind") repeatedly."""
    working = (text or "").strip()
    while True:
        stripped = DISCOURSE_MARKER_PATTERN.sub("", working, count=1).strip()
        if stripped == working:
            return working
        working = stripped


def strip_leading_name(clause: str, speaker: str) -> str:
    """Drop a redundant repetition of the speaker's own name at the start."""
    if not speaker:
        return (clause or "").strip()
    pattern = re.compile(rf"^{re.escape(speaker)}\b[\s,:\-]*", re.IGNORECASE)
    return pattern.sub("", (clause or "").strip(), count=1).strip()


def neutralize_first_person(text: str, speaker: str) -> str:
    """Rewrite first-person pronouns into third person for ``speaker``.

    "I'm", "I am", "I've", "I'll", "I'd" and "I" become the speaker's name
    with the matching verb; me/myself/my/mine become them/themself/their/theirs.
    """
    name = capitalize_words(speaker)
    working = text or ""
    for pattern, template in _FIRST_PERSON_RULES:
        replacement = template.format(name=name)
        working = pattern.sub(lambda _match, value=replacement: value, working)
    return working


def tidy_clause(text: str) -> str:
    """Turn spaced dashes into spaces and pull stray commas back onto words."""
    working = re.sub(r"\s*[–—]\s*|\s+-+\s+", " ", text or "")
    working = re.sub(r"\s+,", ",", working)
    return collapse_whitespace(working)
