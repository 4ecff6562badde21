"""MinHash utilities for copyslasher."""
from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

import numpy as np
import xxhash  # type: ignore
from datasketch import LeanMinHash, MinHash

from .errors import EmptyTextError
from .ingest import shingle

# -----------------------------------------------------------
# xxHash helpers
# -----------------------------------------------------------


def _hash_xx32(value: bytes) -> int:
    """Base hash handed to datasketch; stable across processes unlike ``hash()``."""
    return xxhash.xxh32_intdigest(value)


# -----------------------------------------------------------
# MinHash helpers
# -----------------------------------------------------------

_NUM_PERMUTATIONS = 256


def compute_minhash(tokens: Iterable[str], num_perm: int = _NUM_PERMUTATIONS, seed: int = 1) -> LeanMinHash:
    """Compute an immutable MinHash signature from an iterable of tokens."""
    return SignatureGenerator(num_perm=num_perm, seed=seed).sign(set(tokens))


def signature_from_values(values: Sequence[int], seed: int = 1) -> LeanMinHash:
    """Rebuild a signature from exported hash values."""
    return LeanMinHash(seed=seed, hashvalues=np.asarray(values, dtype=np.uint64))


class SignatureGenerator:
    """Maps shingle sets to fixed-length MinHash signatures.

    The ``num_perm`` hash functions are datasketch's universal family
    ``(a_i * h(x) + b_i) mod (2**61 - 1)``.  The ``a_i, b_i`` constants are drawn
    once from *seed* and shared by every signature this generator emits, so
    signatures from separate calls (and separate processes) stay comparable.
    """

    def __init__(
        self,
        num_perm: int = _NUM_PERMUTATIONS,
        seed: int = 1,
        *,
        shingle_size: int = 3,
        shingle_unit: str = "word",
        strip_punctuation: bool = True,
    ) -> None:
        self.num_perm = num_perm
        self.seed = seed
        self.shingle_size = shingle_size
        self.shingle_unit = shingle_unit
        self.strip_punctuation = strip_punctuation
        self._permutations = MinHash(num_perm=num_perm, seed=seed, hashfunc=_hash_xx32).permutations

    @classmethod
    def from_config(cls, config) -> "SignatureGenerator":
        return cls(
            num_perm=config.num_hashes,
            seed=config.seed,
            shingle_size=config.shingle_size,
            shingle_unit=config.shingle_unit,
            strip_punctuation=config.strip_punctuation,
        )

    def signature_params(self) -> tuple:
        """Same layout as :meth:`EngineConfig.signature_params`."""
        return (self.seed, self.shingle_size, self.shingle_unit, self.num_perm, self.strip_punctuation)

    def sign(self, shingles: Iterable[str]) -> LeanMinHash:
        """Return the signature of *shingles*; the shingles themselves are not kept."""
        encoded = [s.encode("utf-8") for s in shingles]
        if not encoded:
            raise EmptyTextError("Cannot sign an empty shingle set")
        mh = MinHash(
            num_perm=self.num_perm,
            seed=self.seed,
            hashfunc=_hash_xx32,
            permutations=self._permutations,
        )
        mh.update_batch(encoded)
        return LeanMinHash(mh)

    def sign_text(self, text: str) -> LeanMinHash:
        """Shingle and sign *text*. Raises :class:`EmptyTextError` for blank input."""
        return self.sign(
            shingle(text, self.shingle_size, unit=self.shingle_unit, strip_punctuation=self.strip_punctuation)
        )

    def is_compatible(self, signature: LeanMinHash, params: Optional[Sequence[Any]] = None) -> bool:
        """Whether *signature* can be compared with this generator's output.

        A signature only records its seed and length; pass the *params* it was
        made with to check the shingling settings as well.
        """
        if params is not None and tuple(params) != self.signature_params():
            return False
        return signature.seed == self.seed and len(signature) == self.num_perm
