"""Similarity verification for candidate pairs.

The base score is the MinHash estimate of shingle-set Jaccard similarity, i.e.
the fraction of signature components that agree.  It is unbiased with variance
``J * (1 - J) / num_hashes``.

MinHash is noisy for very short texts, so an optional lexical adjustment can
be layered on top.  Pairs that share few meaningful words are damped, pairs
whose lengths differ by more than 30% are penalised, and pairs with high word
overlap get a small bonus.
"""
from __future__ import annotations

from functools import lru_cache
from typing import FrozenSet, Optional

from datasketch import LeanMinHash

from .ingest import normalize_text, tokenize

LENGTH_PENALTY_THRESHOLD = 0.3
LENGTH_PENALTY_MAX = 0.6
LENGTH_PENALTY_WEIGHT = 0.5

WORD_OVERLAP_MIN = 0.4
WORD_OVERLAP_WEIGHT = 0.3
LOW_OVERLAP_DAMPING = 0.6

STOP_WORDS = frozenset(
    """
    the a an is are was were be been being have has had do does did will would
    could should may might must shall can need to of in for on with at by from
    as into through during before after above below between and but or nor so
    yet both either neither not only own same than too very just also i me my
    we our you your he him his she her it its they them their this that these
    those what which who whom whose when where why how all each every any some
    no none one two three
    """.split()
)


def signature_similarity(sig_a: LeanMinHash, sig_b: LeanMinHash) -> float:
    """Fraction of matching signature components. Symmetric; ``1.0`` on itself."""
    return float(sig_a.jaccard(sig_b))


@lru_cache(maxsize=8192)
def _meaningful_words(normalized: str) -> FrozenSet[str]:
    return frozenset(w for w in tokenize(normalized) if len(w) > 3 and w not in STOP_WORDS)


def word_overlap(text_a: str, text_b: str) -> Optional[float]:
    """Jaccard overlap of meaningful words, or ``None`` if either side has none."""
    words_a = _meaningful_words(normalize_text(text_a))
    words_b = _meaningful_words(normalize_text(text_b))
    if not words_a or not words_b:
        return None
    return len(words_a & words_b) / len(words_a | words_b)


def length_penalty(len_a: int, len_b: int) -> float:
    """Multiplier in ``[0.5, 1]`` shrinking as the length ratio diverges."""
    longest = max(len_a, len_b)
    if longest == 0:
        return 1.0
    diff_ratio = (longest - min(len_a, len_b)) / longest
    if diff_ratio > LENGTH_PENALTY_MAX:
        return 0.5
    if diff_ratio > LENGTH_PENALTY_THRESHOLD:
        return 1.0 - (diff_ratio - LENGTH_PENALTY_THRESHOLD) / (
            LENGTH_PENALTY_MAX - LENGTH_PENALTY_THRESHOLD
        ) * LENGTH_PENALTY_WEIGHT
    return 1.0


def adjust_similarity(similarity: float, text_a: str, text_b: str) -> float:
    """Combine a signature *similarity* with word-overlap and length evidence.

    Texts without any meaningful word (short slogans made of stop words)
    skip the overlap rule and are only length-penalised.
    """
    overlap = word_overlap(text_a, text_b)
    if overlap is not None and overlap < WORD_OVERLAP_MIN:
        return similarity * (overlap / WORD_OVERLAP_MIN) * LOW_OVERLAP_DAMPING

    base = similarity * length_penalty(len(normalize_text(text_a)), len(normalize_text(text_b)))
    if overlap is None:
        return min(base, 1.0)
    bonus = (overlap - WORD_OVERLAP_MIN) / (1.0 - WORD_OVERLAP_MIN) * WORD_OVERLAP_WEIGHT
    return min(base + bonus * base, 1.0)


class Verifier:
    """Accept/reject decision for candidate pairs at a fixed *threshold*."""

    def __init__(self, threshold: float, *, lexical_adjustment: bool = False) -> None:
        self.threshold = threshold
        self.lexical_adjustment = lexical_adjustment

    def verify(self, sig_a: LeanMinHash, sig_b: LeanMinHash) -> float:
        return signature_similarity(sig_a, sig_b)

    def score(
        self,
        sig_a: LeanMinHash,
        sig_b: LeanMinHash,
        text_a: Optional[str] = None,
        text_b: Optional[str] = None,
    ) -> float:
        similarity = self.verify(sig_a, sig_b)
        if self.lexical_adjustment and text_a is not None and text_b is not None:
            similarity = adjust_similarity(similarity, text_a, text_b)
        return similarity

    def accept(
        self,
        sig_a: LeanMinHash,
        sig_b: LeanMinHash,
        text_a: Optional[str] = None,
        text_b: Optional[str] = None,
    ) -> Optional[float]:
        """Return the pair's score if it reaches the threshold, else ``None``."""
        similarity = self.score(sig_a, sig_b, text_a, text_b)
        return similarity if similarity >= self.threshold else None
