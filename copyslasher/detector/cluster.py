"""Batch self-deduplication: LSH candidates -> verification -> union-find.

Records are addressed by their dense position in the batch, never by id, so
duplicate ids inside one batch are just two more records to compare.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from datasketch import LeanMinHash

from .config import EngineConfig, validate_threshold
from .errors import EmptyTextError
from .lsh_index import LSHIndex
from .minhash import SignatureGenerator
from .models import DuplicateGroup, SimilarItem, TextRecord
from .similarity import Verifier

logger = logging.getLogger(__name__)


class UnionFind:
    """Disjoint-set forest over ``0 .. size-1`` with path compression and union by rank."""

    def __init__(self, size: int) -> None:
        self.parent: List[int] = list(range(size))
        self.rank: List[int] = [0] * size

    def __len__(self) -> int:
        return len(self.parent)

    def find(self, x: int) -> int:
        root = x
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[x] != root:
            nxt = self.parent[x]
            self.parent[x] = root
            x = nxt
        return root

    def union(self, x: int, y: int) -> bool:
        """Merge the sets of *x* and *y*; ``False`` if they were already joined."""
        rx, ry = self.find(x), self.find(y)
        if rx == ry:
            return False
        if self.rank[rx] < self.rank[ry]:
            rx, ry = ry, rx
        self.parent[ry] = rx
        if self.rank[rx] == self.rank[ry]:
            self.rank[rx] += 1
        return True

    def connected(self, x: int, y: int) -> bool:
        return self.find(x) == self.find(y)

    def components(self) -> List[List[int]]:
        """Members of every set, each ascending, ordered by smallest member."""
        by_root: Dict[int, List[int]] = {}
        for i in range(len(self.parent)):
            by_root.setdefault(self.find(i), []).append(i)
        return list(by_root.values())


@dataclass(frozen=True)
class SignedRecord:
    record: TextRecord
    signature: LeanMinHash = field(repr=False)


@dataclass
class ClusterOutcome:
    groups: List[DuplicateGroup] = field(default_factory=list)
    representatives: List[int] = field(default_factory=list)  # batch position per group
    candidate_pairs: int = 0
    accepted_pairs: int = 0


def sign_records(
    records: Iterable[TextRecord], generator: SignatureGenerator
) -> Tuple[List[SignedRecord], int]:
    """Sign *records* in order, returning the signed list and the number skipped."""
    signed: List[SignedRecord] = []
    skipped = 0
    for record in records:
        try:
            signed.append(SignedRecord(record, generator.sign_text(record.text)))
        except EmptyTextError:
            logger.debug("Skipping record %r: empty after normalisation", record.id)
            skipped += 1
    return signed, skipped


def cluster_signed(
    signed: Sequence[SignedRecord],
    verifier: Verifier,
    index: LSHIndex,
) -> ClusterOutcome:
    """Group *signed* records into connected components of accepted pairs.

    *index* must be empty; it is filled with batch positions.  Every group,
    singletons included, is returned.  The representative is the earliest
    member.  Groups are ordered by descending duplicate count.
    """
    for pos, item in enumerate(signed):
        index.insert(pos, item.signature)

    uf = UnionFind(len(signed))
    edges: Dict[Tuple[int, int], float] = {}
    best_edge: Dict[int, float] = {}
    seen: Set[Tuple[int, int]] = set()

    for i, item in enumerate(signed):
        for j in index.query(item.signature, exclude=i):
            pair = (i, j) if i < j else (j, i)
            if pair in seen:
                continue
            seen.add(pair)
            a, b = signed[pair[0]], signed[pair[1]]
            similarity = verifier.accept(a.signature, b.signature, a.record.text, b.record.text)
            if similarity is None:
                continue
            edges[pair] = similarity
            for end in pair:
                best_edge[end] = max(best_edge.get(end, 0.0), similarity)
            uf.union(*pair)

    ranked: List[Tuple[int, DuplicateGroup]] = []
    for members in uf.components():
        rep = members[0]
        scored = []
        for m in members[1:]:
            # Transitive members were never compared with the representative
            # directly; their strongest accepted link stands in.
            scored.append((edges.get((rep, m), best_edge[m]), m))
        scored.sort(key=lambda sm: (-sm[0], sm[1]))
        group = DuplicateGroup(
            representative=signed[rep].record,
            duplicates=[SimilarItem(signed[m].record, sim) for sim, m in scored],
        )
        ranked.append((rep, group))
    ranked.sort(key=lambda rg: (-len(rg[1].duplicates), rg[0]))

    logger.debug(
        "Clustered %d records: %d candidate pairs, %d accepted, %d groups",
        len(signed), len(seen), len(edges), len(ranked),
    )
    return ClusterOutcome(
        groups=[g for _, g in ranked],
        representatives=[rep for rep, _ in ranked],
        candidate_pairs=len(seen),
        accepted_pairs=len(edges),
    )


def cluster(
    records: Sequence[TextRecord],
    config: Optional[EngineConfig] = None,
    threshold: Optional[float] = None,
) -> List[DuplicateGroup]:
    """Self-deduplicate *records* with a throwaway per-call LSH index.

    Records that are empty after normalisation are left out.
    """
    config = config or EngineConfig()
    threshold = validate_threshold(config.similarity_threshold if threshold is None else threshold)
    signed, _ = sign_records(records, SignatureGenerator.from_config(config))
    verifier = Verifier(threshold, lexical_adjustment=config.lexical_adjustment)
    return cluster_signed(signed, verifier, LSHIndex.from_config(config)).groups
