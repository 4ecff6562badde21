"""In-memory library of accepted copy with a persistent LSH index.

The store never touches disk; callers persist :meth:`LibraryStore.export_library`
output wherever they like and feed it back through
:meth:`LibraryStore.import_library`.  Mutation is not thread-safe: hosts that
share one store across threads must serialise writers themselves.
"""
from __future__ import annotations

import logging
from typing import Any, Collection, Dict, Iterable, List, Mapping, Optional, Sequence

from datasketch import LeanMinHash

from .config import EngineConfig, validate_threshold
from .errors import EmptyTextError
from .lsh_index import LSHIndex
from .minhash import SignatureGenerator, signature_from_values
from .models import LibraryItem, SearchResult, SimilarItem, TextRecord
from .similarity import Verifier

logger = logging.getLogger(__name__)


class LibraryStore:
    """Previously accepted items, their signatures and LSH postings."""

    def __init__(self, config: Optional[EngineConfig] = None) -> None:
        self.config = config or EngineConfig()
        self.generator = SignatureGenerator.from_config(self.config)
        self._index = LSHIndex.from_config(self.config)
        self._items: Dict[str, LibraryItem] = {}
        self._serial: Dict[str, int] = {}
        self._next_serial = 0

    # --------------------------------------------------
    # Introspection
    # --------------------------------------------------

    def get_library_size(self) -> int:
        return len(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __contains__(self, item_id: object) -> bool:
        return item_id in self._items

    def get(self, item_id: str) -> Optional[LibraryItem]:
        return self._items.get(item_id)

    def items(self) -> List[LibraryItem]:
        """Library items in insertion order."""
        return list(self._items.values())

    # --------------------------------------------------
    # Mutation
    # --------------------------------------------------

    def add_to_library(self, items: Iterable[Any], category: Optional[str] = None) -> int:
        """Sign and index *items*; ids already in the library are left untouched.

        Returns the number of items actually added.
        """
        added = 0
        for position, obj in enumerate(items):
            item = self._build_item(obj, position, category)
            if item is None:
                continue
            if item.id in self._items:
                logger.debug("Library already holds %r; skipping", item.id)
                continue
            self._insert(item)
            added += 1
        return added

    def import_library(self, items: Iterable[Any], replace: bool = False) -> int:
        """Bulk-load *items*, overwriting same-id entries.

        With ``replace=True`` the library is cleared first.  Exported signatures
        are reused when they were made with the current seed, shingle settings
        and length; anything else is re-signed from its text.
        """
        if replace:
            self.clear_library()
        imported = 0
        for position, obj in enumerate(items):
            item = self._build_item(obj, position, None)
            if item is None:
                continue
            if item.id in self._items:
                self._delete(item.id)
            self._insert(item)
            imported += 1
        logger.debug("Imported %d items; library size now %d", imported, len(self._items))
        return imported

    def export_library(self, include_signatures: bool = False) -> List[Dict[str, Any]]:
        """JSON-ready dicts for every item, in insertion order."""
        return [
            item.as_dict(include_signature=include_signatures)
            for item in self._items.values()
        ]

    def remove_from_library(self, ids: Iterable[str]) -> int:
        """Drop *ids* and all their bucket postings; unknown ids are ignored."""
        removed = 0
        for item_id in ids:
            if item_id in self._items:
                self._delete(item_id)
                removed += 1
        return removed

    def clear_library(self) -> None:
        self._index.clear()
        self._items.clear()
        self._serial.clear()

    # --------------------------------------------------
    # Queries
    # --------------------------------------------------

    def probe(
        self,
        signature: LeanMinHash,
        verifier: Verifier,
        text: Optional[str] = None,
        categories: Optional[Collection[str]] = None,
    ) -> List[SimilarItem]:
        """Library items accepted by *verifier* against *signature*, best first."""
        hits: List[SimilarItem] = []
        for item_id in self._index.query(signature):
            item = self._items[item_id]
            if categories is not None and item.category not in categories:
                continue
            similarity = verifier.accept(signature, item.signature, text, item.text)
            if similarity is not None:
                hits.append(SimilarItem(item, similarity))
        hits.sort(key=lambda h: (-h.similarity, self._serial[h.item.id]))
        return hits

    def search_library(
        self,
        queries: Sequence[str],
        threshold: Optional[float] = None,
        max_results: Optional[int] = None,
        categories: Optional[Collection[str]] = None,
    ) -> List[SearchResult]:
        """Rank library items against each query text. Read-only."""
        threshold = validate_threshold(self.config.similarity_threshold if threshold is None else threshold)
        limit = self.config.max_results if max_results is None else max_results
        if isinstance(limit, bool) or not isinstance(limit, int) or limit <= 0:
            raise ValueError(f"max_results must be a positive integer, got {limit!r}")
        verifier = Verifier(threshold, lexical_adjustment=self.config.lexical_adjustment)
        wanted = set(categories) if categories is not None else None

        results: List[SearchResult] = []
        for query in queries:
            try:
                signature = self.generator.sign_text(query)
            except EmptyTextError:
                results.append(SearchResult(query=query))
                continue
            hits = self.probe(signature, verifier, query, wanted)
            results.append(SearchResult(query=query, matches=hits[:limit]))
        return results

    # --------------------------------------------------
    # Internal
    # --------------------------------------------------

    def _insert(self, item: LibraryItem) -> None:
        self._index.insert(item.id, item.signature)
        self._items[item.id] = item
        self._serial[item.id] = self._next_serial
        self._next_serial += 1

    def _delete(self, item_id: str) -> None:
        self._index.remove(item_id)
        del self._items[item_id]
        del self._serial[item_id]

    def _build_item(self, obj: Any, position: int, category: Optional[str]) -> Optional[LibraryItem]:
        signature: Optional[LeanMinHash] = None
        if isinstance(obj, LibraryItem):
            # items without recorded params are re-signed
            if obj.signature_params is not None and self.generator.is_compatible(
                obj.signature, obj.signature_params
            ):
                return obj if category is None else LibraryItem(
                    id=obj.id, text=obj.text, signature=obj.signature,
                    auxiliary_text=obj.auxiliary_text, category=category,
                    signature_params=obj.signature_params,
                )
            record, item_category = obj.record, obj.category
        else:
            record = TextRecord.coerce(obj, position)
            item_category = None
            if isinstance(obj, Mapping):
                item_category = obj.get("category") if isinstance(obj.get("category"), str) else None
                signature = self._exported_signature(obj.get("signature"))
        if record is None:
            logger.warning("Skipping malformed library entry at position %d", position)
            return None

        if signature is None:
            try:
                signature = self.generator.sign_text(record.text)
            except EmptyTextError:
                logger.warning("Skipping library entry %r: empty after normalisation", record.id)
                return None
        return LibraryItem(
            id=record.id,
            text=record.text,
            signature=signature,
            auxiliary_text=record.auxiliary_text,
            category=category if category is not None else item_category,
            signature_params=self.generator.signature_params(),
        )

    def _exported_signature(self, raw: Any) -> Optional[LeanMinHash]:
        if not isinstance(raw, Mapping):
            return None
        values = raw.get("values")
        if (
            raw.get("seed") != self.config.seed
            or raw.get("shingle_size") != self.config.shingle_size
            or raw.get("shingle_unit") != self.config.shingle_unit
            or raw.get("strip_punctuation") != self.config.strip_punctuation
            or not isinstance(values, list)
            or len(values) != self.config.num_hashes
            or not all(isinstance(v, int) and not isinstance(v, bool) and v >= 0 for v in values)
        ):
            return None
        return signature_from_values(values, seed=self.config.seed)
