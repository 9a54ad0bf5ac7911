"""
Location: summary/questions.py
Summary: Question rewriting for speaker-attributed bullets. A question line is
         parsed into question word, remainder and optional addressee. If the
         question can be found in the conversation and a reply with a clear
         yes/no tone follows within five entries, the bullet reports the answer
         ("Bob confirmed that we have fixed the bug."). Otherwise it becomes an
         "asked" sentence ("Alice asked Bob whether ...").

Used by: statements.py (build_sentence_with_speaker routes questions here)
Uses: text.py helpers, models.py (ConversationEntry)
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Sequence

from summary.models import ConversationEntry
from summary.text import (
    capitalize_words,
    ensure_period,
    lowercase_first,
    normalize_for_match,
    normalize_name,
)

ANSWER_LOOKAHEAD = 5

POSITIVE = "positive"
NEGATIVE = "negative"

YES_NO_WORDS = frozenset({
    "have", "has", "had", "did", "do", "does", "is", "are", "was", "were",
    "will", "can", "could", "should", "would",
})

_POSITIVE_CUES = re.compile(
    r"\b(?:yes|yep|yeah|affirmative|confirmed|done|already|of course|sure)\b"
)
_NEGATIVE_CUES = re.compile(
    r"\b(?:no|nope|not yet|haven'?t|have not|didn'?t|cannot|can'?t)\b"
)

_ADDRESSEE = re.compile(
    r",\s*(?:[Ll][Oo][Rr][Dd]\s+)?([A-Z][A-Za-z0-9']*(?:\s+[A-Z][A-Za-z0-9']*)*)$"
)

_EDGE_PUNCTUATION = re.compile(r"^[\s,;:.!-]+|[\s,;:-]+$")

_SUBJECT_PRONOUNS = frozenset({"we", "you", "they", "he", "she", "it", "i"})
_DETERMINERS = frozenset({"the", "a", "an", "this", "that", "these", "those", "our", "your", "their", "his", "her", "its"})
_PLURAL_SUBJECTS = frozenset({"we", "you", "they", "i"})

_IRREGULAR_PARTICIPLES = {
    "be": "been", "begin": "begun", "break": "broken", "bring": "brought",
    "build": "built", "buy": "bought", "catch": "caught", "choose": "chosen",
    "come": "come", "cut": "cut", "do": "done", "draw": "drawn", "drive": "driven",
    "eat": "eaten", "fall": "fallen", "feel": "felt", "find": "found",
    "forget": "forgotten", "get": "gotten", "give": "given",
    "go": "gone", "have": "had", "hear": "heard", "hold": "held", "keep": "kept",
    "know": "known", "lead": "led", "leave": "left", "lose": "lost", "make": "made",
    "meet": "met", "pay": "paid", "put": "put", "read": "read", "run": "run",
    "say": "said", "see": "seen", "sell": "sold", "send": "sent", "set": "set",
    "shut": "shut", "speak": "spoken", "spend": "spent", "take": "taken",
    "teach": "taught", "tell": "told", "think": "thought", "understand": "understood",
    "win": "won", "write": "written",
}


@dataclass
class ParsedQuestion:
    """A question split into its parts.

    Attributes:
        question_word: First token, lowercased ("did", "how", ...).
        remainder: Everything after the question word.
        addressee: Name from a trailing ", Name" clause, honorific removed.
        original: Question text without the trailing question mark.
    """
    question_word: str
    remainder: str
    addressee: Optional[str]
    original: str


def is_yes_no_question(word: str) -> bool:
    return word in YES_NO_WORDS


def parse_question(question: str) -> ParsedQuestion:
    """Split a question into question word, remainder and addressee."""
    trimmed = re.sub(r"[?？]+$", "", (question or "").strip()).strip()
    working = trimmed
    addressee = None

    match = _ADDRESSEE.search(working)
    if match:
        addressee = match.group(1).strip()
        working = working[:match.start()].strip()
    working = _EDGE_PUNCTUATION.sub("", working)

    tokens = working.split()
    question_word = tokens[0].lower() if tokens else ""
    remainder = working[len(tokens[0]):].strip() if tokens else ""
    return ParsedQuestion(question_word, remainder, addressee, trimmed)


def normalize_how_topic(remainder: str) -> str:
    """Turn "is the deploy going" into "the deploy going"."""
    topic = re.sub(r"^(?:is|are|was|were)\s+", "", remainder.strip(), flags=re.IGNORECASE)
    if not re.match(r"^the\b", topic, re.IGNORECASE):
        topic = "the " + topic
    return topic.strip()


def build_asked_sentence(speaker: str, parsed: ParsedQuestion, keep_names: Sequence[str] = ()) -> str:
    """Describe an unanswered question as reported speech."""
    remainder = parsed.remainder.strip()
    target = f"{capitalize_words(parsed.addressee)} " if parsed.addressee else ""
    if not remainder:
        return f"{speaker} asked {target}a question."

    if is_yes_no_question(parsed.question_word):
        return ensure_period(f"{speaker} asked {target}whether {lowercase_first(remainder, keep_names)}")

    if parsed.question_word == "how":
        return ensure_period(f"{speaker} asked {target}about {normalize_how_topic(remainder)}")

    word = parsed.question_word or "what"
    return ensure_period(f"{speaker} asked {target}{word} {lowercase_first(remainder, keep_names)}")


def classify_answer_tone(content: str) -> Optional[str]:
    """Classify a reply as positive or negative by its earliest cue.

    Returns:
        POSITIVE, NEGATIVE, or None when the reply has no recognizable cue.
    """
    text = (content or "").lower()
    positive = _POSITIVE_CUES.search(text)
    negative = _NEGATIVE_CUES.search(text)
    if positive and negative:
        return POSITIVE if positive.start() < negative.start() else NEGATIVE
    if positive:
        return POSITIVE
    if negative:
        return NEGATIVE
    return None


def find_entry_index(entries: Sequence[ConversationEntry], speaker: str, statement: str) -> int:
    """Find the entry where ``speaker`` said ``statement``, or -1.

    Matching is a containment test in either direction on lowercased,
    punctuation-free text.
    """
    target_speaker = normalize_name(speaker)
    needle = normalize_for_match(statement)
    if not needle:
        return -1
    for index, entry in enumerate(entries):
        if normalize_name(entry.speaker) != target_speaker:
            continue
        content = normalize_for_match(entry.content)
        if content and (content in needle or needle in content):
            return index
    return -1


def past_participle(verb: str) -> str:
    """Best-effort past participle for a base-form verb."""
    lower = verb.lower()
    if lower in _IRREGULAR_PARTICIPLES:
        return _IRREGULAR_PARTICIPLES[lower]
    if lower.endswith("ed"):
        return lower
    if lower.endswith("e"):
        return lower + "d"
    if len(lower) > 2 and lower.endswith("y") and lower[-2] not in "aeiou":
        return lower[:-1] + "ied"
    vowel_groups = re.findall(r"[aeiou]+", lower)
    if (
        len(vowel_groups) == 1
        and re.search(r"[^aeiou][aeiou][^aeiouwxy]$", lower)
    ):
        return lower + lower[-1] + "ed"
    return lower + "ed"


def _split_subject(clause: str):
    """Split a clause into (subject, rest) using simple heuristics."""
    tokens = clause.split()
    if not tokens:
        return "", ""
    head = tokens[0].lower()
    if head in _SUBJECT_PRONOUNS or len(tokens) < 2:
        return tokens[0], " ".join(tokens[1:])
    if head in _DETERMINERS and len(tokens) >= 3:
        return " ".join(tokens[:2]), " ".join(tokens[2:])
    return tokens[0], " ".join(tokens[1:])


def build_yes_no_answer(question_word: str, remainder: str, tone: str, keep_names: Sequence[str] = ()) -> str:
    """Reconstruct a declarative clause from a yes/no question and its answer.

    "did" + "we fix the bug" + positive -> "we have fixed the bug";
    "did" + negative -> "we did not fix the bug"; other auxiliaries keep
    their verb and gain "not" for negative answers.
    """
    clause = re.sub(r"^[,\s]+", "", remainder.strip())
    subject, rest = _split_subject(clause)
    if not subject:
        return ""
    if not rest:
        return lowercase_first(clause if tone == POSITIVE else f"not {clause}", keep_names)

    plural = subject.lower() in _PLURAL_SUBJECTS or (
        " " in subject and subject.lower().endswith("s")
    )

    if question_word == "did":
        if tone == POSITIVE:
            verb, _, tail = rest.partition(" ")
            have = "have" if plural else "has"
            rebuilt = f"{subject} {have} {past_participle(verb)} {tail}".strip()
        else:
            rebuilt = f"{subject} did not {rest}"
    elif question_word in ("do", "does"):
        rebuilt = f"{subject} {rest}" if tone == POSITIVE else f"{subject} {question_word} not {rest}"
    else:
        aux = question_word
        if tone == NEGATIVE:
            aux = "cannot" if aux == "can" else f"{aux} not"
        rebuilt = f"{subject} {aux} {rest}"

    return lowercase_first(rebuilt.strip(), keep_names)


def build_answer_statement(parsed: ParsedQuestion, tone: str, keep_names: Sequence[str] = ()) -> str:
    remainder = parsed.remainder.strip()
    if not remainder:
        return ""
    if is_yes_no_question(parsed.question_word):
        return build_yes_no_answer(parsed.question_word, remainder, tone, keep_names)
    return lowercase_first(remainder, keep_names)


def detect_answer_sentence(
    asker: str,
    parsed: ParsedQuestion,
    entries: List[ConversationEntry],
    keep_names: Sequence[str] = (),
    match_text: Optional[str] = None,
) -> Optional[str]:
    """Look for a reply to the question within the next five entries.

    Replies by the asker are ignored. When the question names an addressee
    only replies by that person count.

    Args:
        asker: Speaker who asked the question.
        parsed: The parsed (pronoun-neutralized) question.
        entries: Conversation entries to search.
        keep_names: Names whose capitalization must survive lowercasing.
        match_text: Text to locate in the conversation; defaults to parsed.original.

    Returns:
        "<Responder> confirmed|reported that <clause>." or None.
    """
    question_index = find_entry_index(entries, asker, match_text or parsed.original)
    if question_index == -1:
        return None

    asker_key = normalize_name(asker)
    target_key = normalize_name(parsed.addressee) if parsed.addressee else None
    stop = min(question_index + 1 + ANSWER_LOOKAHEAD, len(entries))

    for entry in entries[question_index + 1:stop]:
        if not entry.content:
            continue
        responder_key = normalize_name(entry.speaker)
        if responder_key == asker_key:
            continue
        if target_key and responder_key != target_key:
            continue
        tone = classify_answer_tone(entry.content)
        if tone is None:
            continue
        statement = build_answer_statement(parsed, tone, keep_names)
        if not statement:
            continue
        verb = "confirmed" if tone == POSITIVE else "reported"
        return ensure_period(f"{capitalize_words(entry.speaker)} {verb} that {statement}")

    return None


def rewrite_question(
    speaker: str,
    question: str,
    source: str,
    entries: List[ConversationEntry],
    keep_names: Sequence[str] = (),
) -> str:
    """Rewrite a question bullet as an answer report or an "asked" sentence.

    Args:
        speaker: Normalized speaker name.
        question: Question text after pronoun neutralization, used for wording.
        source: Question text as the speaker wrote it, used to find it in the chat.
        entries: Conversation entries to search for the answer.
        keep_names: Names whose capitalization must survive lowercasing.
    """
    parsed = parse_question(question)
    match_text = parse_question(source).original
    answer = detect_answer_sentence(speaker, parsed, entries, keep_names, match_text)
    if answer:
        return answer
    return build_asked_sentence(speaker, parsed, keep_names)
