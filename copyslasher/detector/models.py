"""Records and result types exchanged with copyslasher callers."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from datasketch import LeanMinHash


@dataclass(frozen=True)
class TextRecord:
    """One piece of copy. ``auxiliary_text`` rides along for display only."""

    id: str
    text: str
    auxiliary_text: Optional[str] = None

    @classmethod
    def coerce(cls, obj: Any, position: int) -> Optional["TextRecord"]:
        """Build a record from a record, mapping or bare string.

        Bare strings and mappings without an id get ``item_<position>``.
        Returns ``None`` for anything malformed.
        """
        if isinstance(obj, TextRecord):
            return obj
        if isinstance(obj, str):
            return cls(id=f"item_{position}", text=obj)
        if isinstance(obj, Mapping):
            text = obj.get("text")
            if not isinstance(text, str):
                return None
            aux = obj.get("auxiliary_text", obj.get("auxiliaryText"))
            record_id = obj.get("id")
            return cls(
                id=str(record_id) if record_id not in (None, "") else f"item_{position}",
                text=text,
                auxiliary_text=aux if isinstance(aux, str) else None,
            )
        return None

    def as_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"id": self.id, "text": self.text}
        if self.auxiliary_text is not None:
            out["auxiliary_text"] = self.auxiliary_text
        return out


@dataclass(frozen=True)
class LibraryItem:
    """A record accepted into the library, together with its signature."""

    id: str
    text: str
    signature: LeanMinHash = field(repr=False, compare=False)
    auxiliary_text: Optional[str] = None
    category: Optional[str] = None
    # (seed, shingle_size, shingle_unit, num_hashes, strip_punctuation) of the signature
    signature_params: Optional[Tuple[Any, ...]] = field(default=None, repr=False, compare=False)

    @property
    def record(self) -> TextRecord:
        return TextRecord(id=self.id, text=self.text, auxiliary_text=self.auxiliary_text)

    def as_dict(self, include_signature: bool = False) -> Dict[str, Any]:
        out: Dict[str, Any] = {
            "id": self.id,
            "text": self.text,
            "auxiliary_text": self.auxiliary_text,
            "category": self.category,
        }
        if include_signature:
            signature: Dict[str, Any] = {"seed": int(self.signature.seed)}
            if self.signature_params is not None:
                _, shingle_size, shingle_unit, _, strip_punctuation = self.signature_params
                signature.update(
                    shingle_size=shingle_size,
                    shingle_unit=shingle_unit,
                    strip_punctuation=strip_punctuation,
                )
            signature["values"] = [int(v) for v in self.signature.hashvalues]
            out["signature"] = signature
        return out


@dataclass(frozen=True)
class SimilarItem:
    item: Union[TextRecord, LibraryItem]
    similarity: float

    def as_dict(self) -> Dict[str, Any]:
        return {"item": self.item.as_dict(), "similarity": round(self.similarity, 4)}


@dataclass
class DuplicateGroup:
    """A representative and the records that duplicate it.

    ``duplicates`` is sorted by descending similarity, ties by input order.
    """

    representative: TextRecord
    duplicates: List[SimilarItem] = field(default_factory=list)

    @property
    def size(self) -> int:
        return 1 + len(self.duplicates)

    @property
    def max_similarity(self) -> float:
        return self.duplicates[0].similarity if self.duplicates else 0.0

    def as_dict(self) -> Dict[str, Any]:
        return {
            "representative": self.representative.as_dict(),
            "duplicates": [d.as_dict() for d in self.duplicates],
        }


@dataclass
class SearchResult:
    query: str
    matches: List[SimilarItem] = field(default_factory=list)

    def as_dict(self) -> Dict[str, Any]:
        return {"query": self.query, "matches": [m.as_dict() for m in self.matches]}


@dataclass
class LibraryMatch:
    """A batch item already known to the library.

    ``group`` is set when the item was the representative of a batch group
    that was moved out of the duplicate groups.
    """

    new_item: TextRecord
    library_item: LibraryItem
    similarity: float
    match_count: int = 1
    group: Optional[DuplicateGroup] = None

    def as_dict(self) -> Dict[str, Any]:
        out = {
            "new_item": self.new_item.as_dict(),
            "library_item": self.library_item.as_dict(),
            "similarity": round(self.similarity, 4),
            "match_count": self.match_count,
        }
        if self.group is not None:
            out["group"] = self.group.as_dict()
        return out


@dataclass
class DedupStats:
    total_input: int = 0
    unique_count: int = 0
    duplicate_count: int = 0
    group_count: int = 0
    library_match_count: int = 0
    skipped_count: int = 0
    candidate_pairs: int = 0
    accepted_pairs: int = 0
    processing_time_ms: float = 0.0

    def as_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass
class DedupResult:
    unique_items: List[TextRecord] = field(default_factory=list)
    duplicate_groups: List[DuplicateGroup] = field(default_factory=list)
    library_matches: List[LibraryMatch] = field(default_factory=list)
    stats: DedupStats = field(default_factory=DedupStats)

    def as_dict(self) -> Dict[str, Any]:
        return {
            "unique_items": [r.as_dict() for r in self.unique_items],
            "duplicate_groups": [g.as_dict() for g in self.duplicate_groups],
            "library_matches": [m.as_dict() for m in self.library_matches],
            "stats": self.stats.as_dict(),
        }
