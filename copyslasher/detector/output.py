"""Output and persistence for copyslasher.

- dedup results as JSON Lines (one line per unique item, group and library match)
- library snapshots as JSON Lines of exported items, optionally gzipped
"""
from __future__ import annotations

import gzip
import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .library import LibraryStore
from .models import DedupResult


class JSONLWriter:
    """Writer for JSON Lines, gzipped when the path ends in ``.gz``."""

    def __init__(self, output_path: Union[str, Path], append: bool = False):
        self.output_path = Path(output_path)
        self.compress = self.output_path.suffix.lower() == '.gz'
        self.total_written = 0
        self.output_path.parent.mkdir(parents=True, exist_ok=True)
        mode = 'at' if append else 'wt'
        if self.compress:
            self.current_file = gzip.open(self.output_path, mode, encoding='utf-8')
        else:
            self.current_file = open(self.output_path, mode, encoding='utf-8')

    def write(self, record: Dict[str, Any]) -> None:
        """Write a single record as JSON line."""
        json.dump(record, self.current_file, ensure_ascii=False)
        self.current_file.write('\n')
        self.total_written += 1

    def finalize(self) -> Dict[str, Any]:
        """Close the file and return stats."""
        if not self.current_file.closed:
            self.current_file.close()
        return {
            'format': 'jsonl',
            'path': str(self.output_path),
            'total_records': self.total_written,
            'compressed': self.compress,
        }

    def __enter__(self) -> "JSONLWriter":
        return self

    def __exit__(self, *exc) -> None:
        self.finalize()


def write_dedup_result(result: DedupResult, output_path: Union[str, Path]) -> Dict[str, Any]:
    """
    Write *result* as JSON Lines.

    Every line carries a ``kind`` of ``unique``, ``group`` or ``library_match``;
    the last line is the ``stats`` summary.
    """
    with JSONLWriter(output_path) as writer:
        for record in result.unique_items:
            writer.write({'kind': 'unique', **record.as_dict()})
        for group in result.duplicate_groups:
            writer.write({'kind': 'group', **group.as_dict()})
        for match in result.library_matches:
            writer.write({'kind': 'library_match', **match.as_dict()})
        writer.write({'kind': 'stats', **result.stats.as_dict()})
    return writer.finalize()


def save_library(
    library: LibraryStore,
    output_path: Union[str, Path],
    include_signatures: bool = True,
) -> Dict[str, Any]:
    """Snapshot *library* to JSON Lines, signatures included by default."""
    with JSONLWriter(output_path) as writer:
        for entry in library.export_library(include_signatures=include_signatures):
            writer.write(entry)
    return writer.finalize()


def read_library_entries(input_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """Read exported library entries; blank lines are ignored."""
    input_path = Path(input_path)
    opener = gzip.open if input_path.suffix.lower() == '.gz' else open
    entries: List[Dict[str, Any]] = []
    with opener(input_path, 'rt', encoding='utf-8') as f:
        for line_num, line in enumerate(f, 1):
            line = line.strip()
            if not line:
                continue
            try:
                entries.append(json.loads(line))
            except json.JSONDecodeError as e:
                print(f"Warning: Invalid JSON at {input_path}:{line_num}: {e}")
    return entries


def load_library(
    input_path: Union[str, Path],
    library: Optional[LibraryStore] = None,
    replace: bool = False,
) -> LibraryStore:
    """Load a snapshot written by :func:`save_library` into *library* (or a new store)."""
    library = library if library is not None else LibraryStore()
    library.import_library(read_library_entries(input_path), replace=replace)
    return library
