"""Per-item correctness checks.

``mcq`` items compare the chosen option index, ``numeric`` items compare
within a small tolerance and ``sequence`` items require the exact order.
Free ``text`` items are graded one of two ways:
  1. Against an expected answer, using normalised comparison and then
     key-token matching (case, punctuation, articles, spelling variants)
  2. Against a ``min_words`` rubric when no single answer is expected
``choice`` and ``reflection`` items are never graded.
"""

from __future__ import annotations

import logging
import math
import re
from typing import Any

logger = logging.getLogger(__name__)

GRADED_TYPES = frozenset({"mcq", "numeric", "sequence", "text"})
UNGRADED_TYPES = frozenset({"choice", "reflection"})
ITEM_TYPES = GRADED_TYPES | UNGRADED_TYPES

NUMERIC_TOLERANCE = 1e-6

# ── Text normalisation helpers ────────────────────────────────────────────────

_STRIP_ARTICLES = re.compile(r"\b(the|a|an)\b", re.IGNORECASE)
_STRIP_PUNCT = re.compile(r"[^\w\s]")
_MULTI_SPACE = re.compile(r"\s+")
_NOISE = {"and", "or", "of", "for", "in", "to", "is", "are", "was", "were", "be"}


def _normalise(text: str) -> str:
    """Lowercase, drop articles and punctuation, collapse whitespace.

    'The Water Cycle!' → 'water cycle'
    """
    t = text.lower().strip()
    t = _STRIP_ARTICLES.sub(" ", t)
    t = _STRIP_PUNCT.sub(" ", t)
    return _MULTI_SPACE.sub(" ", t).strip()


# ── Spelling equivalence ─────────────────────────────────────────────────────

_SPELLING_EQUIVALENTS: list[tuple[str, str]] = [
    ("organization", "organisation"),
    ("recognize", "recognise"),
    ("realize", "realise"),
    ("analyze", "analyse"),
    ("center", "centre"),
    ("color", "colour"),
    ("honor", "honour"),
    ("favor", "favour"),
    ("defense", "defence"),
    ("license", "licence"),
    ("catalog", "catalogue"),
    ("program", "programme"),
    ("labor", "labour"),
    ("neighbor", "neighbour"),
    ("behavior", "behaviour"),
]


def _unify_spelling(text: str) -> str:
    """Map British spelling variants onto the American form."""
    t = text
    for american, british in _SPELLING_EQUIVALENTS:
        t = t.replace(british, american)
    return t


def _canonical(text: str) -> str:
    return _unify_spelling(_normalise(text))


def _key_tokens(text: str) -> set[str]:
    tokens = {t for t in _canonical(text).split() if t not in _NOISE and len(t) > 1}
    # 'patterns' also counts as 'pattern'
    return tokens | {t[:-1] for t in tokens if t.endswith("s") and len(t) > 2}


def text_matches(student: str, expected: str) -> bool:
    """Normalised equality, else every key token of ``expected`` is present."""
    if not student.strip():
        return False
    if _canonical(student) == _canonical(expected):
        return True
    expected_key = {t for t in _canonical(expected).split() if t not in _NOISE and len(t) > 1}
    if not expected_key:
        return False
    return expected_key.issubset(_key_tokens(student))


def word_count(text: str) -> int:
    return len(_normalise(text).split()) if text else 0


# ── Answer shape checks ───────────────────────────────────────────────────────


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a numeric answer
    if isinstance(value, bool):
        return False
    return isinstance(value, (int, float)) and math.isfinite(value)


def _is_index(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def answer_shape_error(item: dict, answer: Any) -> str | None:
    """Return a human-readable problem with ``answer`` for ``item``, or None.

    ``None`` answers are always acceptable: they mark a skipped item.
    """
    if answer is None:
        return None
    item_type = item.get("type")
    if item_type in ("mcq", "choice"):
        options = item.get("options") or []
        if not _is_index(answer):
            return "expected an option index"
        if not 0 <= answer < len(options):
            return f"option index {answer} out of range"
        return None
    if item_type == "numeric":
        return None if _is_number(answer) else "expected a number"
    if item_type == "sequence":
        if not isinstance(answer, list) or not all(_is_index(v) for v in answer):
            return "expected a list of integers"
        return None
    if item_type in ("text", "reflection"):
        return None if isinstance(answer, str) else "expected text"
    return f"unknown item type '{item_type}'"


# ── Main grading function ────────────────────────────────────────────────────


def grade_item(item: dict, answer: Any) -> bool | None:
    """Grade one answer against its frozen item.

    Returns True/False for graded item types and None for ungraded ones.
    A skipped (None) answer on a graded item is incorrect.
    """
    item_type = item.get("type")
    if item_type in UNGRADED_TYPES:
        return None
    if answer is None:
        return False

    expected = item.get("expected")

    if item_type == "mcq":
        return answer == expected

    if item_type == "numeric":
        if expected is None:
            return False
        return abs(float(answer) - float(expected)) <= NUMERIC_TOLERANCE

    if item_type == "sequence":
        return list(answer) == list(expected or [])

    # text
    if expected is not None:
        matched = text_matches(answer, str(expected))
        logger.debug("Text match %s: '%s' vs '%s'", matched, answer[:40], str(expected)[:40])
        return matched
    min_words = item.get("min_words")
    if min_words is not None:
        return word_count(answer) >= int(min_words)
    return bool(answer.strip())
