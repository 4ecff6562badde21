"""copyslasher command-line interface.

Usage
-----
$ copyslasher dedup new_copy.tsv -o result.jsonl --library library.jsonl
$ copyslasher search --library library.jsonl "Buy now and save big"
$ copyslasher preview new_copy.tsv
$ copyslasher run config.yml

The *dedup* command groups near-duplicates inside the input batch and flags
items already present in the library. With ``--update-library`` the surviving
items are added to the library file afterwards.

The *search* command ranks library items against one or more query texts and
prints the matches as JSON.

The *preview* command shows file stats and a sample of input records without
processing.

The *run* command executes *dedup* from a YAML configuration file.
"""
from __future__ import annotations

import argparse
import json
import logging
import sys
import time
from pathlib import Path
from typing import Any, Dict, List, Optional

import psutil
import xxhash  # type: ignore
import yaml  # type: ignore

from .detector.config import EngineConfig, load_config
from .detector.errors import CopySlasherError, InvalidConfigurationError
from .detector.file_ingest import get_file_stats, ingest_files
from .detector.library import LibraryStore
from .detector.models import DedupResult, TextRecord
from .detector.output import load_library, save_library, write_dedup_result
from .detector.pipeline import DedupEngine

logger = logging.getLogger(__name__)

# -----------------------------------------------------------
# Helpers
# -----------------------------------------------------------


def _open_engine(config: EngineConfig, library_path: Optional[Path]) -> DedupEngine:
    """Build an engine, loading *library_path* when it exists."""
    library = LibraryStore(config)
    if library_path is not None and library_path.exists():
        load_library(library_path, library)
        logger.info("Loaded %d library items from %s", len(library), library_path)
    return DedupEngine(config, library)


def _library_additions(library: LibraryStore, survivors: List[TextRecord]) -> List[TextRecord]:
    """Survivors ready for the library; an id already taken by other text gets a content suffix."""
    additions = []
    for record in survivors:
        known = library.get(record.id)
        if known is not None and known.text != record.text:
            new_id = f"{record.id}_{xxhash.xxh32_hexdigest(record.text.encode('utf-8'))}"
            logger.debug("Library id %r already holds other text; adding as %r", record.id, new_id)
            record = TextRecord(new_id, record.text, record.auxiliary_text)
        additions.append(record)
    return additions


def _print_summary(result: DedupResult, output_path: Path, elapsed: float) -> None:
    stats = result.stats
    memory_mb = psutil.Process().memory_info().rss / 1024 / 1024

    print("\n" + "=" * 60)
    print("📊 COPYSLASHER DEDUP COMPLETE")
    print("=" * 60)
    print(f"⏱️  Processing Time: {elapsed:.2f}s (engine {stats.processing_time_ms:.1f} ms)")
    print(f"💾 Memory: {memory_mb:.1f} MB")
    print()
    print(f"📥 Input: {stats.total_input:,} items ({stats.skipped_count:,} skipped)")
    print(f"✨ Unique: {stats.unique_count:,}")
    print(f"🔄 Duplicate groups: {stats.group_count:,} ({stats.duplicate_count:,} duplicates)")
    print(f"📚 Library matches: {stats.library_match_count:,}")
    print(f"🔍 Candidate pairs: {stats.candidate_pairs:,} ({stats.accepted_pairs:,} accepted)")
    print(f"\n📁 Output saved to: {output_path}")


def _dedup_to_file(
    inputs: List[str],
    output: Path,
    config: EngineConfig,
    library_path: Optional[Path] = None,
    threshold: Optional[float] = None,
    check_library: bool = True,
    update_library: bool = False,
    quiet: bool = False,
) -> DedupResult:
    start = time.perf_counter()
    engine = _open_engine(config, library_path)
    records = list(ingest_files(inputs, show_progress=not quiet))

    result = engine.dedup(records, threshold=threshold, check_library=check_library)
    write_dedup_result(result, output)

    if update_library and library_path is not None:
        survivors = list(result.unique_items)
        survivors.extend(g.representative for g in result.duplicate_groups)
        added = engine.add_to_library(_library_additions(engine.library, survivors))
        save_library(engine.library, library_path)
        if not quiet:
            print(f"📚 Added {added:,} items to {library_path} (now {engine.get_library_size():,})")

    if not quiet:
        _print_summary(result, output, time.perf_counter() - start)
    return result


# -----------------------------------------------------------
# Commands
# -----------------------------------------------------------


def _cmd_dedup(args: argparse.Namespace) -> None:
    """Deduplicate input files within the batch and against the library."""
    if args.update_library and args.library is None:
        raise InvalidConfigurationError("--update-library needs --library")
    config = load_config(args.config) if args.config else EngineConfig()
    if not args.quiet:
        print(f"🧹 copyslasher - Deduplicating {', '.join(args.input)}")
    _dedup_to_file(
        inputs=args.input,
        output=args.output,
        config=config,
        library_path=args.library,
        threshold=args.threshold,
        check_library=not args.no_library,
        update_library=args.update_library,
        quiet=args.quiet,
    )


def _cmd_search(args: argparse.Namespace) -> None:
    """Search the library for each query text."""
    config = load_config(args.config) if args.config else EngineConfig()
    queries = list(args.query)
    if args.queries_file:
        with args.queries_file.open(encoding="utf-8") as f:
            queries.extend(line.strip() for line in f if line.strip())
    if not queries:
        raise InvalidConfigurationError("No queries given")
    if not args.library.exists():
        raise FileNotFoundError(f"Library file not found: {args.library}")

    engine = _open_engine(config, args.library)
    results = engine.search_library(
        queries,
        threshold=args.threshold,
        max_results=args.max_results,
        categories=args.category,
    )
    print(json.dumps([r.as_dict() for r in results], ensure_ascii=False, indent=2))


def _cmd_preview(args: argparse.Namespace) -> None:
    """Preview input data."""
    file_stats = get_file_stats(args.input)

    print("🔍 Input Preview")
    print("=" * 40)
    print(f"Files found: {file_stats['total_files']}")
    print(f"Total size: {file_stats['total_size_bytes'] / 1024 / 1024:.1f} MB")
    for kind in ("txt", "tsv", "jsonl", "html", "gz"):
        print(f"   - {kind.upper()}: {file_stats[f'{kind}_files']}")
    print()

    print(f"Sample records (up to {args.samples}):")
    print("-" * 40)
    count = 0
    for record in ingest_files(args.input, show_progress=False):
        if count >= args.samples:
            break
        print(f"\nRecord {count + 1}:")
        print(f"  ID: {record.id}")
        print(f"  Length: {len(record.text)} chars")
        print(f"  Preview: {record.text[:200]}")
        if record.auxiliary_text:
            print(f"  Auxiliary: {record.auxiliary_text[:200]}")
        count += 1

    if count == 0:
        print("No records found!")


def _cmd_run(args: argparse.Namespace) -> None:
    """Run dedup from a YAML configuration file."""
    cfg_path: Path = args.config.resolve()
    with cfg_path.open(encoding="utf-8") as f:
        cfg: Dict[str, Any] = yaml.safe_load(f) or {}
    if not isinstance(cfg, dict):
        raise InvalidConfigurationError(f"{cfg_path}: expected a mapping at top level")

    inputs = cfg.get("inputs")
    if isinstance(inputs, str):
        inputs = [inputs]
    if not inputs or "output" not in cfg:
        raise InvalidConfigurationError(f"{cfg_path}: 'inputs' and 'output' are required")

    # Relative paths are resolved against the config file's directory
    base = cfg_path.parent
    library = cfg.get("library")
    _dedup_to_file(
        inputs=[str(base / p) for p in inputs],
        output=base / cfg["output"],
        config=EngineConfig.from_dict(cfg.get("engine") or {}),
        library_path=base / library if library else None,
        threshold=cfg.get("threshold"),
        check_library=bool(cfg.get("check_library", True)),
        update_library=bool(cfg.get("update_library", False)),
        quiet=bool(cfg.get("quiet", False)),
    )


# -----------------------------------------------------------
# Entrypoint
# -----------------------------------------------------------


def main(argv: List[str] | None = None) -> int:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("-v", "--verbose", action="store_true",
                        help="Log engine details to stderr")

    parser = argparse.ArgumentParser(
        prog="copyslasher",
        description="copyslasher - near-duplicate detection for marketing copy"
    )
    sub = parser.add_subparsers(required=True, dest="cmd")

    # dedup
    p_dedup = sub.add_parser("dedup", parents=[common],
                             help="Group near-duplicates and check them against the library")
    p_dedup.add_argument("input", nargs="+", help="Input files, directories, or glob patterns")
    p_dedup.add_argument("-o", "--output", required=True, type=Path, help="Output JSONL path")
    p_dedup.add_argument("--library", type=Path,
                         help="Library JSONL file (created by --update-library if missing)")
    p_dedup.add_argument("--no-library", action="store_true",
                         help="Skip the library check")
    p_dedup.add_argument("--update-library", action="store_true",
                         help="Add surviving items to the library file")
    p_dedup.add_argument("--threshold", type=float,
                         help="Similarity threshold (default: from config, 0.5)")
    p_dedup.add_argument("--config", type=Path, help="YAML file with engine settings")
    p_dedup.add_argument("-q", "--quiet", action="store_true",
                         help="Suppress progress output")
    p_dedup.set_defaults(func=_cmd_dedup)

    # search
    p_search = sub.add_parser("search", parents=[common], help="Search the library")
    p_search.add_argument("query", nargs="*", help="Query texts")
    p_search.add_argument("--library", type=Path, required=True, help="Library JSONL file")
    p_search.add_argument("--queries-file", type=Path,
                          help="File with one query per line")
    p_search.add_argument("--threshold", type=float,
                          help="Similarity threshold (default: from config, 0.5)")
    p_search.add_argument("--max-results", type=int,
                          help="Maximum matches per query (default: 20)")
    p_search.add_argument("--category", action="append",
                          help="Only match library items in this category (repeatable)")
    p_search.add_argument("--config", type=Path, help="YAML file with engine settings")
    p_search.set_defaults(func=_cmd_search)

    # preview
    p_preview = sub.add_parser("preview", parents=[common], help="Preview input data")
    p_preview.add_argument("input", nargs="+", help="Input files, directories, or glob patterns")
    p_preview.add_argument("--samples", type=int, default=5,
                           help="Number of sample records to show (default: 5)")
    p_preview.set_defaults(func=_cmd_preview)

    # run
    p_run = sub.add_parser("run", parents=[common], help="Run dedup via YAML config")
    p_run.add_argument("config", type=Path, help="Path to YAML configuration file")
    p_run.set_defaults(func=_cmd_run)

    args = parser.parse_args(argv)
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        args.func(args)
    except (CopySlasherError, OSError) as e:
        print(f"copyslasher: error: {e}", file=sys.stderr)
        return 2
    return 0


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
