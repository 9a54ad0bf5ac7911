"""
Location: summary/statements.py
Summary: Sentence builders for summary bullets. Lines without a speaker become
         plain sentences; lines with a speaker are rewritten into third person:
         the speaker's repeated name and filler words are stripped, first-person
         pronouns are neutralized, questions are handed to questions.py and
         statements are phrased as "<Speaker> ..." or "<Speaker> relayed that ...".

Used by: bullets.py
Uses: text.py, questions.py
"""

import re
from typing import Iterable, List, Sequence

from summary.models import ConversationEntry
from summary.questions import rewrite_question
from summary.text import (
    capitalize_first,
    capitalize_words,
    collapse_whitespace,
    ensure_period,
    first_word,
    is_same_name,
    lowercase_first,
    neutralize_first_person,
    normalize_name,
    split_into_sentences,
    strip_discourse_markers,
    strip_leading_name,
    tidy_clause,
)

# Capitalized words that start ordinary sentences rather than naming someone.
COMMON_LOWER_WORDS = frozenset({
    "the", "this", "that", "there", "then", "they", "these", "those", "here",
    "good", "great", "well", "okay", "anyway", "however", "also", "maybe",
    "possibly", "never", "absentees",
    "a", "an", "we", "you", "he", "she", "it", "i", "our", "your", "their",
    "his", "her", "its", "us", "them", "everyone", "everybody", "someone",
    "nobody", "somebody", "and", "but", "or", "so", "because", "if", "when",
    "while", "although", "since", "after", "before", "once", "is", "are",
    "was", "were", "will", "would", "can", "could", "should", "did", "do",
    "does", "has", "have", "had", "may", "might", "must", "what", "why",
    "how", "who", "where", "which", "yes", "no", "not", "just", "still",
    "all", "some", "please", "thanks", "most", "many", "both", "each", "any",
    "every", "only", "even", "now", "today", "tomorrow", "yesterday", "soon",
    "finally", "meanwhile", "plus", "looks", "seems", "let", "lets",
})

SUBJECT_LEADS = frozenset({
    "we", "you", "they", "he", "she", "it", "there", "this", "that", "these",
    "those", "everyone", "everybody", "someone", "nobody",
})

_QUESTION_END = re.compile(r"[?？]$")


def shared_update(speaker: str) -> str:
    return f"{speaker} shared an update."


def is_likely_proper_noun(word: str, known_names: Iterable[str] = ()) -> bool:
    """Guess whether a capitalized sentence opener names a person or thing.

    Known speaker names always count. Otherwise the word must be capitalized,
    not in COMMON_LOWER_WORDS, and not shaped like a verb form (-ed / -ing).
    """
    if not word or not re.match(r"^[A-Z][A-Za-z0-9'`()\-]*$", word):
        return False
    if normalize_name(word) in {normalize_name(n) for n in known_names}:
        return True
    lower = word.lower()
    if lower in COMMON_LOWER_WORDS:
        return False
    if len(lower) > 4 and (lower.endswith("ed") or lower.endswith("ing")):
        return False
    return True


def build_sentence(statement: str) -> str:
    """Plain sentence for a bullet with no known speaker."""
    cleaned = collapse_whitespace(statement)
    if not cleaned:
        return ""
    if _QUESTION_END.search(cleaned):
        core = re.sub(r"[?？]+$", "", cleaned).strip()
        return capitalize_first(core) + "?"
    return ensure_period(capitalize_first(cleaned))


def rewrite_third_party_statement(speaker: str, clause: str) -> str:
    """Report a clause about someone else: "<Speaker> relayed that ..."."""
    sentences = split_into_sentences(clause)
    if not sentences:
        return shared_update(speaker)

    first = re.sub(r"[.!?]+$", "", sentences[0]).strip()
    if not first:
        return shared_update(speaker)

    rewritten = ensure_period(f"{speaker} relayed that {first}")
    tail = [ensure_period(capitalize_first(s.strip())) for s in sentences[1:]]
    tail_text = " ".join(t for t in tail if t)
    if tail_text:
        rewritten = f"{rewritten} {tail_text}"
    return rewritten


def rewrite_statement(speaker: str, clause: str, known_names: Sequence[str] = ()) -> str:
    """Rewrite a non-question clause in third person.

    Args:
        speaker: Capitalized speaker name.
        clause: Clause with the speaker's name and filler words already stripped.
        known_names: Speaker names seen in the conversation.
    """
    clause = strip_discourse_markers(clause)
    if not clause:
        return shared_update(speaker)

    led_by_i = bool(re.match(r"^i\b", clause, re.IGNORECASE))
    neutral = tidy_clause(neutralize_first_person(clause, speaker))
    if not neutral:
        return shared_update(speaker)

    if led_by_i:
        return ensure_period(capitalize_first(neutral))

    word = first_word(neutral)
    if word and is_likely_proper_noun(word, known_names) and not is_same_name(word, speaker):
        return rewrite_third_party_statement(speaker, neutral)

    known = {normalize_name(n) for n in known_names}
    if word and not is_same_name(word, speaker) and normalize_name(word) in known:
        return ensure_period(capitalize_first(neutral))

    if word and word.lower() in SUBJECT_LEADS:
        return ensure_period(f"{speaker} said {lowercase_first(neutral)}")

    keep = list(known_names) + [speaker]
    return ensure_period(f"{speaker} {lowercase_first(neutral, keep)}")


def build_sentence_with_speaker(
    speaker: str,
    statement: str,
    entries: List[ConversationEntry],
    known_names: Sequence[str] = (),
) -> str:
    """Build a third-person sentence for a bullet attributed to ``speaker``.

    Questions (judged on the text before pronoun neutralization) go to the
    question rewriter; everything else to rewrite_statement.

    Args:
        speaker: Speaker as written in the summary line.
        statement: Text after the speaker prefix.
        entries: Conversation entries for question/answer pairing.
        known_names: Speaker names seen in the conversation.

    Returns:
        A finished sentence; never empty.
    """
    name = capitalize_words(speaker)
    cleaned = collapse_whitespace(statement)
    if not cleaned:
        return shared_update(name)

    clause_source = strip_leading_name(cleaned, name)
    clause = strip_discourse_markers(clause_source)
    if not clause:
        return shared_update(name)

    if _QUESTION_END.search(clause_source):
        keep = list(known_names) + [name]
        neutral = tidy_clause(neutralize_first_person(clause, name))
        if not neutral:
            return shared_update(name)
        return rewrite_question(name, neutral, clause, entries, keep)

    return rewrite_statement(name, clause, known_names)
