"""copyslasher detector package.

Core public API lives here so external users can::

    from copyslasher.detector import DedupEngine
    engine = DedupEngine()
    engine.add_to_library(["Buy now and save big on every order!"])
    result = engine.dedup(["Buy today and save big on every order!"])

File adapters are kept separate from the core:
    from copyslasher.detector.file_ingest import ingest_files
    from copyslasher.detector.output import write_dedup_result, save_library, load_library
"""

from importlib.metadata import PackageNotFoundError, version as _pkg_version


# Semantic version of the installed package
try:
    __version__: str = _pkg_version("copyslasher")
except PackageNotFoundError:  # pragma: no cover – local dev path
    __version__ = "0.1.0"


from .errors import (
    CopySlasherError,
    EmptyTextError,
    InvalidConfigurationError,
    InvalidThresholdError,
)
from .config import EngineConfig, load_config, validate_threshold
from .ingest import normalize_text, shingle
from .minhash import SignatureGenerator
from .lsh_index import LSHIndex, suggest_banding
from .similarity import Verifier
from .cluster import UnionFind, cluster
from .models import (
    DedupResult,
    DedupStats,
    DuplicateGroup,
    LibraryItem,
    LibraryMatch,
    SearchResult,
    SimilarItem,
    TextRecord,
)
from .library import LibraryStore
from .pipeline import DedupEngine, run_dedup

__all__ = [
    "__version__",
    # Engine
    "DedupEngine",
    "run_dedup",
    "LibraryStore",
    "EngineConfig",
    "load_config",
    "validate_threshold",
    # Building blocks
    "normalize_text",
    "shingle",
    "SignatureGenerator",
    "LSHIndex",
    "suggest_banding",
    "Verifier",
    "UnionFind",
    "cluster",
    # Records and results
    "TextRecord",
    "LibraryItem",
    "SimilarItem",
    "DuplicateGroup",
    "SearchResult",
    "LibraryMatch",
    "DedupStats",
    "DedupResult",
    # Errors
    "CopySlasherError",
    "EmptyTextError",
    "InvalidThresholdError",
    "InvalidConfigurationError",
]
