"""Whole-word phrase matching for job titles."""

import re
from typing import List, Sequence

# Everything except latin letters, digits, German umlauts/ß, whitespace and "/"
_SPECIAL_CHARS = re.compile(r"[^a-z0-9üäöß\s/]")
_WHITESPACE = re.compile(r"\s+")


def normalize_title(text: str) -> str:
    """Lower-case, turn punctuation into spaces, collapse whitespace.

    Forward slashes survive: they separate roles ("Founder/CEO").
    """
    text = _SPECIAL_CHARS.sub(" ", text.lower())
    return _WHITESPACE.sub(" ", text).strip()


def title_parts(title: str) -> List[List[str]]:
    """Split a title into roles, each a list of words."""
    return [part.split() for part in normalize_title(title).split("/") if part.strip()]


def phrase_words(phrase: str) -> List[str]:
    """Normalize a keyword the same way as a title, without role splitting."""
    return normalize_title(phrase.replace("/", " ")).split()


def contains_phrase(words: Sequence[str], phrase: Sequence[str]) -> bool:
    """True if ``phrase`` occurs in ``words`` as a contiguous word sequence."""
    n = len(phrase)
    if n == 0 or n > len(words):
        return False
    return any(list(words[i:i + n]) == list(phrase) for i in range(len(words) - n + 1))
