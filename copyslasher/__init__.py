"""copyslasher - near-duplicate detection for marketing copy.

- Word and character shingle MinHash signatures with banded LSH candidate search
- Batch self-deduplication into duplicate groups
- A persistent library of accepted copy for cross-batch checks and search
- File ingestion (.txt, .tsv, .jsonl, .html, .gz) and JSONL output

Quick Start:
    # CLI usage
    copyslasher dedup new_copy.tsv -o result.jsonl --library library.jsonl

    # Python API
    from copyslasher import DedupEngine
    result = DedupEngine().dedup(["first text", "second text"])
"""

from .detector import __version__

# Re-export main API
from .detector import (
    DedupEngine,
    run_dedup,
    LibraryStore,
    EngineConfig,
    load_config,
    TextRecord,
    LibraryItem,
    DuplicateGroup,
    SearchResult,
    LibraryMatch,
    DedupResult,
    CopySlasherError,
    EmptyTextError,
    InvalidThresholdError,
    InvalidConfigurationError,
)

__all__ = [
    "__version__",
    "DedupEngine",
    "run_dedup",
    "LibraryStore",
    "EngineConfig",
    "load_config",
    "TextRecord",
    "LibraryItem",
    "DuplicateGroup",
    "SearchResult",
    "LibraryMatch",
    "DedupResult",
    "CopySlasherError",
    "EmptyTextError",
    "InvalidThresholdError",
    "InvalidConfigurationError",
]
