"""File ingestion for copyslasher.

Turns input files into :class:`TextRecord` streams:
- .txt: one record per non-blank line
- .tsv: bilingual two-column sheets (quoted cells may span lines)
- .jsonl: one object per line with ``text`` and optional ``id`` / ``auxiliary_text``
- .html: visible text of the page as a single record
- .gz: gzipped .jsonl or plain text
"""
from __future__ import annotations

import gzip
import json
import re
from pathlib import Path
from typing import Dict, Generator, List, Optional, Tuple, Union

import chardet
import xxhash  # type: ignore
from bs4 import BeautifulSoup
from tqdm import tqdm

from .models import TextRecord

SUPPORTED_EXTENSIONS = {'.txt', '.tsv', '.jsonl', '.html', '.htm', '.gz'}

_CJK_RE = re.compile(r'[\u4e00-\u9fff]')
_CJK_SHARE = 0.3

PathLike = Union[str, Path]


def detect_encoding(file_path: Path, sample_size: int = 8192) -> str:
    """Detect file encoding using chardet."""
    try:
        with open(file_path, 'rb') as f:
            raw_data = f.read(sample_size)
    except OSError:
        return 'utf-8'
    try:
        raw_data.decode('utf-8')
        return 'utf-8'
    except UnicodeDecodeError as e:
        # sample may end inside a multi-byte sequence
        if len(raw_data) == sample_size and e.start >= sample_size - 3:
            return 'utf-8'
    result = chardet.detect(raw_data)
    return result.get('encoding') or 'utf-8'


def is_mostly_cjk(text: str) -> bool:
    """True when more than 30% of the non-space characters are CJK ideographs."""
    total = len(re.sub(r'\s', '', text))
    if total == 0:
        return False
    return len(_CJK_RE.findall(text)) / total > _CJK_SHARE


def split_quoted_lines(raw: str) -> List[str]:
    """Split *raw* into logical lines, keeping newlines inside quoted cells.

    ``""`` inside a quoted cell is an escaped quote. Quote characters are
    dropped from the output; blank lines are skipped.
    """
    lines: List[str] = []
    current: List[str] = []
    in_quote = False
    i = 0
    while i < len(raw):
        char = raw[i]
        nxt = raw[i + 1] if i + 1 < len(raw) else ''
        if char == '"':
            if in_quote and nxt == '"':
                current.append('"')
                i += 1
            else:
                in_quote = not in_quote
        elif not in_quote and char in '\r\n':
            line = ''.join(current).strip()
            if line:
                lines.append(line)
            current = []
            if char == '\r' and nxt == '\n':
                i += 1
        else:
            current.append(char)
        i += 1
    line = ''.join(current).strip()
    if line:
        lines.append(line)
    return lines


def parse_tsv_line(line: str) -> Optional[Tuple[str, Optional[str]]]:
    """Parse one logical line into ``(text, auxiliary_text)``.

    Two columns are read as ``text<TAB>chinese``; they are swapped when the
    first column is mostly CJK and the second is not. Returns ``None`` for
    lines without usable text.
    """
    parts = line.split('\t')
    if len(parts) >= 2:
        col1, col2 = parts[0].strip(), parts[1].strip()
        if not col1:
            return None
        if col2 and is_mostly_cjk(col1) and not is_mostly_cjk(col2):
            return col2, col1
        return col1, col2 or None
    text = parts[0].strip()
    return (text, None) if text else None


def parse_bilingual_text(raw: str) -> List[Tuple[str, Optional[str]]]:
    """Parse pasted sheet content into ``(text, auxiliary_text)`` pairs."""
    rows = []
    for line in split_quoted_lines(raw.strip()):
        parsed = parse_tsv_line(line)
        if parsed is not None:
            rows.append(parsed)
    return rows


def _jsonl_entry(obj: object) -> Optional[Dict[str, Optional[str]]]:
    if not isinstance(obj, dict):
        return None
    text = obj.get('text')
    if not isinstance(text, str) or not text.strip():
        return None
    aux = obj.get('auxiliary_text', obj.get('auxiliaryText'))
    record_id = obj.get('id')
    return {
        'id': str(record_id) if record_id not in (None, '') else None,
        'text': text,
        'auxiliary_text': aux if isinstance(aux, str) else None,
    }


def _iter_jsonl(lines, file_path: Path) -> Generator[Dict[str, Optional[str]], None, None]:
    for line_num, line in enumerate(lines, 1):
        line = line.strip()
        if not line:
            continue
        try:
            obj = json.loads(line)
        except json.JSONDecodeError as e:
            print(f"Warning: Invalid JSON at {file_path}:{line_num}: {e}")
            continue
        entry = _jsonl_entry(obj)
        if entry is not None:
            yield entry


def read_text_file(file_path: Path, encoding: Optional[str] = None) -> Generator[Dict[str, Optional[str]], None, None]:
    """Read a text file line by line with encoding detection."""
    if encoding is None:
        encoding = detect_encoding(file_path)
    with open(file_path, 'r', encoding=encoding, errors='replace') as f:
        for line in f:
            line = line.strip()
            if line:
                yield {'id': None, 'text': line, 'auxiliary_text': None}


def read_tsv_file(file_path: Path, encoding: Optional[str] = None) -> Generator[Dict[str, Optional[str]], None, None]:
    """Read a bilingual two-column sheet exported as TSV."""
    if encoding is None:
        encoding = detect_encoding(file_path)
    with open(file_path, 'r', encoding=encoding, errors='replace', newline='') as f:
        content = f.read()
    for text, aux in parse_bilingual_text(content):
        yield {'id': None, 'text': text, 'auxiliary_text': aux}


def read_jsonl_file(file_path: Path) -> Generator[Dict[str, Optional[str]], None, None]:
    """Read a JSONL file; objects without a string ``text`` are skipped."""
    encoding = detect_encoding(file_path)
    with open(file_path, 'r', encoding=encoding, errors='replace') as f:
        yield from _iter_jsonl(f, file_path)


def read_html_file(file_path: Path, encoding: Optional[str] = None) -> Generator[Dict[str, Optional[str]], None, None]:
    """Read an HTML file and extract text content."""
    if encoding is None:
        encoding = detect_encoding(file_path)
    with open(file_path, 'r', encoding=encoding, errors='replace') as f:
        content = f.read()

    soup = BeautifulSoup(content, 'html.parser')
    for script in soup(["script", "style"]):
        script.decompose()

    lines = (line.strip() for line in soup.get_text().splitlines())
    chunks = (phrase.strip() for line in lines for phrase in line.split("  "))
    text = ' '.join(chunk for chunk in chunks if chunk)
    if text:
        yield {'id': None, 'text': text, 'auxiliary_text': None}


def read_gz_file(file_path: Path) -> Generator[Dict[str, Optional[str]], None, None]:
    """Read a gzipped file, auto-detecting JSONL versus plain text."""
    with gzip.open(file_path, 'rt', encoding='utf-8', errors='replace') as f:
        first_line = f.readline().strip()
        f.seek(0)
        if first_line.startswith('{'):
            yield from _iter_jsonl(f, file_path)
        else:
            for line in f:
                line = line.strip()
                if line:
                    yield {'id': None, 'text': line, 'auxiliary_text': None}


_READERS = {
    '.txt': read_text_file,
    '.tsv': read_tsv_file,
    '.jsonl': read_jsonl_file,
    '.html': read_html_file,
    '.htm': read_html_file,
    '.gz': read_gz_file,
}


def collect_files(paths: Union[PathLike, List[PathLike]], recursive: bool = True) -> List[Path]:
    """Expand files, directories and glob patterns into supported input files."""
    if isinstance(paths, (str, Path)):
        paths = [paths]

    all_files: List[Path] = []
    for path in paths:
        path = Path(path)
        if '*' in str(path) or '?' in str(path):
            all_files.extend(sorted(Path('.').glob(str(path))))
        elif path.is_file():
            all_files.append(path)
        elif path.is_dir():
            all_files.extend(sorted(path.rglob('*') if recursive else path.glob('*')))

    return [f for f in all_files if f.is_file() and f.suffix.lower() in SUPPORTED_EXTENSIONS]


def content_id(text: str) -> str:
    """Stable id for an item that came without one: ``doc_<xxh64 of text>``.

    Ids depend only on the text, so later runs never reuse an earlier run's id
    for different copy.
    """
    return f"doc_{xxhash.xxh64_hexdigest(text.encode('utf-8'))}"


def ingest_files(
    paths: Union[PathLike, List[PathLike]],
    recursive: bool = True,
    show_progress: bool = True,
) -> Generator[TextRecord, None, None]:
    """
    Ingest files from paths (files, directories, or glob patterns).

    Args:
        paths: Single path, list of paths, or glob patterns
        recursive: Whether to search directories recursively
        show_progress: Whether to show progress bar

    Yields:
        TextRecord per input item; items without an id get :func:`content_id`
    """
    files = collect_files(paths, recursive=recursive)
    if not files:
        print("Warning: No supported files found")
        return

    iterator = tqdm(files, desc="Reading files") if show_progress else files
    for file_path in iterator:
        reader = _READERS[file_path.suffix.lower()]
        try:
            for entry in reader(file_path):
                yield TextRecord(
                    id=entry['id'] or content_id(entry['text']),
                    text=entry['text'],
                    auxiliary_text=entry['auxiliary_text'],
                )
        except (OSError, UnicodeError, EOFError) as e:
            print(f"Warning: Failed to read {file_path}: {e}")
            continue


def get_file_stats(paths: Union[PathLike, List[PathLike]]) -> Dict[str, int]:
    """Get statistics about files that would be processed."""
    stats = {
        'total_files': 0,
        'txt_files': 0,
        'tsv_files': 0,
        'jsonl_files': 0,
        'html_files': 0,
        'gz_files': 0,
        'total_size_bytes': 0,
    }
    for file_path in collect_files(paths):
        suffix = file_path.suffix.lower()
        stats['total_files'] += 1
        stats['total_size_bytes'] += file_path.stat().st_size
        key = 'html_files' if suffix in {'.html', '.htm'} else f"{suffix[1:]}_files"
        stats[key] += 1
    return stats
