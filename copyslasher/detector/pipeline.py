"""Dedup/search orchestrator for copyslasher.

Ties together:
- batch self-deduplication (shingle -> MinHash -> LSH -> verify -> union-find)
- library-aware deduplication against a :class:`LibraryStore`
- multi-query library search

Everything runs synchronously on the calling thread with no I/O; callers that
need a responsive UI should run the engine in a worker.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Collection, Dict, Iterable, List, Optional, Sequence, Tuple

from .cluster import SignedRecord, cluster_signed, sign_records
from .config import EngineConfig, validate_threshold
from .errors import InvalidConfigurationError
from .library import LibraryStore
from .lsh_index import LSHIndex
from .models import (
    DedupResult,
    DedupStats,
    DuplicateGroup,
    LibraryMatch,
    SearchResult,
    TextRecord,
)
from .similarity import Verifier

logger = logging.getLogger(__name__)


class DedupEngine:
    """Public entry point: batch dedup, library-aware dedup and library search.

    Each engine owns (or is handed) one :class:`LibraryStore`; there is no
    shared module-level state, so independent engines never see each
    other's libraries.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        library: Optional[LibraryStore] = None,
    ) -> None:
        if library is not None and config is not None:
            if library.config.signature_params() != config.signature_params() or (
                (library.config.bands, library.config.rows_per_band)
                != (config.bands, config.rows_per_band)
            ):
                raise InvalidConfigurationError(
                    "Library was built with different signature or banding parameters"
                )
        self.config = config or (library.config if library is not None else EngineConfig())
        self.library = library if library is not None else LibraryStore(self.config)

    # --------------------------------------------------
    # Library delegation
    # --------------------------------------------------

    def add_to_library(self, items: Iterable[Any], category: Optional[str] = None) -> int:
        return self.library.add_to_library(items, category=category)

    def import_library(self, items: Iterable[Any], replace: bool = False) -> int:
        return self.library.import_library(items, replace=replace)

    def export_library(self, include_signatures: bool = False) -> List[Dict[str, Any]]:
        return self.library.export_library(include_signatures=include_signatures)

    def remove_from_library(self, ids: Iterable[str]) -> int:
        return self.library.remove_from_library(ids)

    def clear_library(self) -> None:
        self.library.clear_library()

    def get_library_size(self) -> int:
        return self.library.get_library_size()

    def search_library(
        self,
        queries: Sequence[str],
        threshold: Optional[float] = None,
        max_results: Optional[int] = None,
        categories: Optional[Collection[str]] = None,
    ) -> List[SearchResult]:
        return self.library.search_library(
            queries, threshold=threshold, max_results=max_results, categories=categories
        )

    # --------------------------------------------------
    # Dedup
    # --------------------------------------------------

    def dedup(
        self,
        records: Sequence[Any],
        threshold: Optional[float] = None,
        check_library: bool = True,
    ) -> DedupResult:
        """Deduplicate *records* within the batch and, optionally, against the library.

        *records* may be :class:`TextRecord` objects, ``{"id", "text",
        "auxiliary_text"}`` mappings or bare strings.  Malformed and blank
        records are skipped and counted in ``stats.skipped_count``.
        """
        threshold = validate_threshold(self.config.similarity_threshold if threshold is None else threshold)
        start = time.perf_counter()
        stats = DedupStats(total_input=len(records))

        batch: List[TextRecord] = []
        for position, obj in enumerate(records):
            record = TextRecord.coerce(obj, position)
            if record is None:
                logger.debug("Skipping malformed record at position %d", position)
                stats.skipped_count += 1
                continue
            batch.append(record)

        signed, skipped = sign_records(batch, self.library.generator)
        stats.skipped_count += skipped

        verifier = Verifier(threshold, lexical_adjustment=self.config.lexical_adjustment)
        outcome = cluster_signed(signed, verifier, LSHIndex.from_config(self.config))
        stats.candidate_pairs = outcome.candidate_pairs
        stats.accepted_pairs = outcome.accepted_pairs

        unique: List[Tuple[int, TextRecord]] = []
        matched: List[Tuple[int, LibraryMatch]] = []
        duplicate_groups: List[DuplicateGroup] = []

        for rep, group in zip(outcome.representatives, outcome.groups):
            if check_library and len(self.library):
                match = self._match_library(signed[rep], verifier, group)
                if match is not None:
                    matched.append((rep, match))
                    continue
            if group.duplicates:
                duplicate_groups.append(group)
            else:
                unique.append((rep, group.representative))

        # groups come out ranked by size; report the rest in input order
        unique_items = [r for _, r in sorted(unique, key=lambda pr: pr[0])]
        library_matches = [m for _, m in sorted(matched, key=lambda pm: pm[0])]

        stats.unique_count = len(unique_items)
        stats.group_count = len(duplicate_groups)
        stats.duplicate_count = sum(len(g.duplicates) for g in outcome.groups)
        stats.library_match_count = len(library_matches)
        stats.processing_time_ms = round((time.perf_counter() - start) * 1000.0, 3)

        logger.debug(
            "dedup: %d in, %d unique, %d groups, %d library matches, %d skipped (%.1f ms)",
            stats.total_input, stats.unique_count, stats.group_count,
            stats.library_match_count, stats.skipped_count, stats.processing_time_ms,
        )
        return DedupResult(
            unique_items=unique_items,
            duplicate_groups=duplicate_groups,
            library_matches=library_matches,
            stats=stats,
        )

    def _match_library(
        self, signed: SignedRecord, verifier: Verifier, group: DuplicateGroup
    ) -> Optional[LibraryMatch]:
        hits = self.library.probe(signed.signature, verifier, signed.record.text)
        if not hits:
            return None
        best = hits[0]
        return LibraryMatch(
            new_item=signed.record,
            library_item=best.item,  # type: ignore[arg-type]
            similarity=best.similarity,
            match_count=len(hits),
            group=group if group.duplicates else None,
        )


def run_dedup(
    records: Sequence[Any],
    library: Optional[Iterable[Any]] = None,
    config: Optional[EngineConfig] = None,
    **kwargs: Any,
) -> DedupResult:
    """Convenience wrapper: build an engine, load *library*, run :meth:`DedupEngine.dedup`.

    Extra keyword arguments (``threshold``, ``check_library``) go to ``dedup``.
    """
    engine = DedupEngine(config)
    if library is not None:
        engine.import_library(library)
    return engine.dedup(records, **kwargs)
