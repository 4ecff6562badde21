"""Wrapper around datasketch.MinHashLSH with explicit banding for copyslasher."""
from __future__ import annotations

from typing import Dict, Hashable, Iterator, Optional, Set, Tuple

from datasketch import LeanMinHash, MinHashLSH

from .errors import InvalidConfigurationError


def collision_probability(similarity: float, bands: int, rows: int) -> float:
    """Probability that two signatures with Jaccard *similarity* share a bucket.

    The LSH S-curve ``1 - (1 - s**r) ** b``.
    """
    return 1.0 - (1.0 - similarity ** rows) ** bands


def suggest_banding(num_hashes: int, threshold: float) -> Tuple[int, int]:
    """Pick ``(bands, rows)`` with ``bands * rows == num_hashes`` for *threshold*.

    Chooses the split whose S-curve midpoint ``(1/b) ** (1/r)`` is the highest
    one not above *threshold*, i.e. the most selective banding that still
    favours recall at the threshold.
    """
    best: Optional[Tuple[int, int]] = None
    best_mid = -1.0
    for rows in range(1, num_hashes + 1):
        if num_hashes % rows:
            continue
        bands = num_hashes // rows
        mid = (1.0 / bands) ** (1.0 / rows)
        if mid <= threshold and mid > best_mid:
            best, best_mid = (bands, rows), mid
    # Threshold below every midpoint: one row per band is the most permissive.
    return best or (num_hashes, 1)


class LSHIndex:
    """Banded bucket table: ``(band, band_hash) -> {keys}``.

    Each inserted key lands in exactly one bucket per band; :meth:`remove`
    strips it from all of them.
    """

    def __init__(
        self,
        *,
        num_perm: int = 256,
        bands: int = 64,
        rows: int = 4,
    ) -> None:
        if bands <= 0 or rows <= 0 or bands * rows != num_perm:
            raise InvalidConfigurationError(
                f"bands * rows must equal num_perm ({bands} * {rows} != {num_perm})"
            )
        self.lsh = MinHashLSH(num_perm=num_perm, params=(bands, rows))
        self._stored: Dict[Hashable, LeanMinHash] = {}
        self.num_perm = num_perm
        self.bands = bands
        self.rows = rows

    @classmethod
    def from_config(cls, config) -> "LSHIndex":
        return cls(num_perm=config.num_hashes, bands=config.bands, rows=config.rows_per_band)

    # --------------------------------------------------
    # Mutation
    # --------------------------------------------------

    def insert(self, key: Hashable, signature: LeanMinHash) -> None:
        """Add *signature* under *key*. Raises ``ValueError`` if *key* is present."""
        if key in self._stored:
            raise ValueError(f"Key already indexed: {key!r}")
        self.lsh.insert(key, signature, check_duplication=False)
        self._stored[key] = signature

    def remove(self, key: Hashable) -> None:
        """Remove *key* from every band bucket. Raises ``KeyError`` if absent."""
        if key not in self._stored:
            raise KeyError(key)
        self.lsh.remove(key)
        del self._stored[key]

    def clear(self) -> None:
        self.lsh = MinHashLSH(num_perm=self.num_perm, params=(self.bands, self.rows))
        self._stored.clear()

    # --------------------------------------------------
    # Queries
    # --------------------------------------------------

    def query(self, signature: LeanMinHash, exclude: Optional[Hashable] = None) -> Set[Hashable]:
        """Keys sharing at least one band bucket with *signature*, minus *exclude*."""
        candidates = set(self.lsh.query(signature))
        candidates.discard(exclude)
        return candidates

    def get_signature(self, key: Hashable) -> LeanMinHash:
        return self._stored[key]

    def __contains__(self, key: object) -> bool:
        return key in self._stored

    def __len__(self) -> int:
        return len(self._stored)

    # --------------------------------------------------
    # Bulk utilities
    # --------------------------------------------------

    def items(self) -> Iterator[Tuple[Hashable, LeanMinHash]]:
        """Iterate *(key, signature)* pairs in insertion order."""
        return iter(self._stored.items())
