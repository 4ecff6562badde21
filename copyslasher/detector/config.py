"""Engine configuration for copyslasher.

The core only ever receives an :class:`EngineConfig` instance.  Reading a YAML
file is a convenience for the command line::

    engine:
      similarity_threshold: 0.6
      shingle_unit: word
      shingle_size: 3
      bands: 64
      rows_per_band: 4
"""
from __future__ import annotations

import math
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Union

import yaml  # type: ignore

from .errors import InvalidConfigurationError, InvalidThresholdError
from .ingest import SHINGLE_UNITS

# camelCase spellings accepted from JSON/JS-style callers
_ALIASES = {
    "similarityThreshold": "similarity_threshold",
    "threshold": "similarity_threshold",
    "numHashes": "num_hashes",
    "num_perm": "num_hashes",
    "shingleSize": "shingle_size",
    "shingleUnit": "shingle_unit",
    "rowsPerBand": "rows_per_band",
    "rows": "rows_per_band",
    "maxResults": "max_results",
    "stripPunctuation": "strip_punctuation",
    "lexicalAdjustment": "lexical_adjustment",
}


def validate_threshold(threshold: Any) -> float:
    """Return *threshold* as a float or raise :class:`InvalidThresholdError`."""
    if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
        raise InvalidThresholdError(f"Threshold must be a number in [0, 1], got {threshold!r}")
    value = float(threshold)
    if math.isnan(value) or not 0.0 <= value <= 1.0:
        raise InvalidThresholdError(f"Threshold must be in [0, 1], got {threshold!r}")
    return value


@dataclass(frozen=True)
class EngineConfig:
    """Tunable parameters of the shingle -> MinHash -> LSH pipeline.

    The default 64 bands x 4 rows places the LSH S-curve midpoint
    ``(1/b) ** (1/r)`` at ~0.35, below the 0.5 default threshold, and 256
    hashes keep the estimator standard deviation near 0.03 around it.
    Thresholds below ~0.3 flood short copy with false positives; above ~0.8
    most paraphrases are missed.
    """

    similarity_threshold: float = 0.5
    num_hashes: int = 256
    shingle_size: int = 3
    shingle_unit: str = "word"
    bands: int = 64
    rows_per_band: int = 4
    max_results: int = 20
    seed: int = 1
    strip_punctuation: bool = True
    lexical_adjustment: bool = False

    def __post_init__(self) -> None:
        for name in ("num_hashes", "shingle_size", "bands", "rows_per_band", "max_results"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
                raise InvalidConfigurationError(f"{name} must be a positive integer, got {value!r}")
        if self.shingle_unit not in SHINGLE_UNITS:
            raise InvalidConfigurationError(
                f"shingle_unit must be one of {SHINGLE_UNITS}, got {self.shingle_unit!r}"
            )
        if self.bands * self.rows_per_band != self.num_hashes:
            raise InvalidConfigurationError(
                f"bands * rows_per_band must equal num_hashes "
                f"({self.bands} * {self.rows_per_band} != {self.num_hashes})"
            )
        validate_threshold(self.similarity_threshold)

    # --------------------------------------------------
    # Construction helpers
    # --------------------------------------------------

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "EngineConfig":
        known = {f.name for f in fields(cls)}
        kwargs: Dict[str, Any] = {}
        for key, value in data.items():
            name = _ALIASES.get(key, key)
            if name not in known:
                raise InvalidConfigurationError(f"Unknown engine option: {key!r}")
            kwargs[name] = value
        return cls(**kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def signature_params(self) -> tuple:
        """Parameters that must match for two signatures to be comparable."""
        return (self.seed, self.shingle_size, self.shingle_unit, self.num_hashes, self.strip_punctuation)


def load_config(path: Union[str, Path]) -> EngineConfig:
    """Read an :class:`EngineConfig` from a YAML file.

    Accepts either a flat mapping of engine options or a document with an
    ``engine:`` section (other top-level keys are ignored here).
    """
    with Path(path).open(encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise InvalidConfigurationError(f"{path}: expected a mapping at top level")
    section = raw["engine"] if "engine" in raw else raw
    if not isinstance(section, dict):
        raise InvalidConfigurationError(f"{path}: 'engine' must be a mapping")
    return EngineConfig.from_dict(section)
