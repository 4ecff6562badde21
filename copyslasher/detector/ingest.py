"""Text normalisation and shingling for copyslasher.

Two shingle units are supported:

- ``word``: each whitespace token is one shingle.  Runs of CJK ideographs and kana
  characters, which carry no spaces between words, are broken into character
  *k*-grams instead, so mixed-script copy still yields useful shingles.
- ``char``: overlapping character *k*-grams of the whole normalised text.

Word shingles are the default; they keep one-word edits of very short slogans
("Buy now and save" / "Buy today and save") above a 0.5 threshold, where
character 3-grams fall to ~0.43.
"""
from __future__ import annotations

import re
import unicodedata
from typing import Iterable, List, Set

from .errors import EmptyTextError, InvalidConfigurationError

SHINGLE_UNITS = ("word", "char")

# -----------------------------------------------------------
# Normalisation
# -----------------------------------------------------------

_WHITESPACE_RE = re.compile(r"\s+")
_PUNCT_RE = re.compile(r"[^\w\s]")
_UNSPACED_RUN_RE = re.compile(r'[\u3040-\u30ff\u3400-\u4dbf\u4e00-\u9fff]+')


def normalize_text(text: str, *, strip_punctuation: bool = True) -> str:
    """Lower-case *text*, optionally blank out punctuation and collapse whitespace.

    Non-string input (``None``, NaN from a spreadsheet cell) normalises to ``""``.
    """
    if text is None or not isinstance(text, str):
        return ""
    text = unicodedata.normalize("NFKC", text).lower()
    if strip_punctuation:
        text = _PUNCT_RE.sub(" ", text)
    return _WHITESPACE_RE.sub(" ", text).strip()


def tokenize(text: str) -> List[str]:
    """Whitespace tokenisation of already-normalised *text*."""
    if text is None or not isinstance(text, str):
        return []
    return [tok for tok in _WHITESPACE_RE.split(text.strip()) if tok]


# -----------------------------------------------------------
# Shingles
# -----------------------------------------------------------

def char_ngrams(text: str, n: int = 3) -> Iterable[str]:
    """Yield overlapping character *n*-grams of *text*.

    Text shorter than *n* yields itself once so that a non-empty input never
    produces an empty shingle set.
    """
    if not text:
        return
    if len(text) < n:
        yield text
        return
    for i in range(len(text) - n + 1):
        yield text[i : i + n]  # noqa: E203


def word_shingles(text: str, n: int = 3) -> Iterable[str]:
    """Yield the words of normalised *text*; unspaced-script runs become *n*-grams."""
    for token in tokenize(text):
        pos = 0
        for match in _UNSPACED_RUN_RE.finditer(token):
            if match.start() > pos:
                yield token[pos : match.start()]  # noqa: E203
            yield from char_ngrams(match.group(), n)
            pos = match.end()
        if pos < len(token):
            yield token[pos:]


def shingle(text: str, k: int = 3, *, unit: str = "word", strip_punctuation: bool = True) -> Set[str]:
    """Return the shingle set of the normalised *text*.

    *unit* is ``"word"`` or ``"char"``; *k* is the character n-gram length
    (applied to unspaced-script runs in word mode).  Raises
    :class:`EmptyTextError` when normalisation leaves nothing behind.
    """
    if k <= 0:
        raise InvalidConfigurationError(f"Shingle size must be positive, got {k}")
    if unit not in SHINGLE_UNITS:
        raise InvalidConfigurationError(f"Shingle unit must be one of {SHINGLE_UNITS}, got {unit!r}")
    normalized = normalize_text(text, strip_punctuation=strip_punctuation)
    if not normalized:
        raise EmptyTextError(f"Nothing left to shingle in {text!r}")
    if unit == "char":
        return set(char_ngrams(normalized, k))
    return set(word_shingles(normalized, k))
