"""File ingestion: formats, bilingual parsing and file stats."""
from __future__ import annotations

import gzip
import json
from pathlib import Path

from copyslasher.detector.file_ingest import (
    content_id,
    detect_encoding,
    get_file_stats,
    ingest_files,
    is_mostly_cjk,
    parse_bilingual_text,
    parse_tsv_line,
    read_html_file,
    read_jsonl_file,
    read_tsv_file,
    split_quoted_lines,
)
from copyslasher.detector.models import TextRecord


def test_is_mostly_cjk() -> None:
    assert is_mostly_cjk("夏季大促销")
    assert not is_mostly_cjk("Summer sale")
    assert not is_mostly_cjk("   ")


def test_parse_tsv_line_single_column() -> None:
    assert parse_tsv_line("Summer sale") == ("Summer sale", None)
    assert parse_tsv_line("   ") is None


def test_parse_tsv_line_two_columns() -> None:
    assert parse_tsv_line("Summer sale\t夏季促销") == ("Summer sale", "夏季促销")


def test_parse_tsv_line_swaps_chinese_first() -> None:
    assert parse_tsv_line("夏季促销\tSummer sale") == ("Summer sale", "夏季促销")


def test_parse_tsv_line_empty_first_column() -> None:
    assert parse_tsv_line("\tSummer sale") is None


def test_split_quoted_lines_keeps_embedded_newlines() -> None:
    raw = 'first line\r\n"multi\nline cell"\tsecond\n"say ""hi"""\n\n'
    assert split_quoted_lines(raw) == ["first line", "multi\nline cell\tsecond", 'say "hi"']


def test_parse_bilingual_text() -> None:
    raw = "夏季促销\tSummer sale\nFlash deal\t限时抢购\nPlain line\n"
    assert parse_bilingual_text(raw) == [
        ("Summer sale", "夏季促销"),
        ("Flash deal", "限时抢购"),
        ("Plain line", None),
    ]


def test_detect_encoding_utf8(tmp_path: Path) -> None:
    path = tmp_path / "copy.txt"
    path.write_text("夏季促销 Summer sale\n", encoding="utf-8")
    assert detect_encoding(path) == "utf-8"


def test_read_tsv_file(tmp_path: Path) -> None:
    path = tmp_path / "sheet.tsv"
    path.write_text('夏季促销\tSummer sale\n"Two\nlines"\t两行\n', encoding="utf-8")
    rows = list(read_tsv_file(path))
    assert [(r["text"], r["auxiliary_text"]) for r in rows] == [
        ("Summer sale", "夏季促销"),
        ("Two\nlines", "两行"),
    ]


def test_read_jsonl_file_skips_bad_lines(tmp_path: Path, capsys) -> None:
    path = tmp_path / "copy.jsonl"
    lines = [
        json.dumps({"id": "a", "text": "First copy", "auxiliary_text": "第一"}),
        "{not json",
        json.dumps({"id": "b"}),
        json.dumps({"text": "No id here"}),
    ]
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    rows = list(read_jsonl_file(path))
    assert rows == [
        {"id": "a", "text": "First copy", "auxiliary_text": "第一"},
        {"id": None, "text": "No id here", "auxiliary_text": None},
    ]
    assert "Invalid JSON" in capsys.readouterr().out


def test_read_html_file(tmp_path: Path) -> None:
    path = tmp_path / "page.html"
    path.write_text(
        "<html><head><style>p {color: red}</style><script>var x = 1;</script></head>"
        "<body><h1>Summer sale</h1><p>Everything half price</p></body></html>",
        encoding="utf-8",
    )
    [row] = list(read_html_file(path))
    assert "Summer sale" in row["text"]
    assert "Everything half price" in row["text"]
    assert "var x" not in row["text"]
    assert "color" not in row["text"]


def test_ingest_files_mixed_formats(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("Line one\n\nLine two\n", encoding="utf-8")
    (tmp_path / "b.jsonl").write_text(json.dumps({"id": "j1", "text": "From json"}) + "\n", encoding="utf-8")
    with gzip.open(tmp_path / "c.gz", "wt", encoding="utf-8") as f:
        f.write("Gzipped line\n")
    (tmp_path / "ignored.csv").write_text("not,read\n", encoding="utf-8")

    records = list(ingest_files(tmp_path, show_progress=False))
    assert records == [
        TextRecord(content_id("Line one"), "Line one"),
        TextRecord(content_id("Line two"), "Line two"),
        TextRecord("j1", "From json"),
        TextRecord(content_id("Gzipped line"), "Gzipped line"),
    ]


def test_content_ids_stable_and_distinct() -> None:
    assert content_id("Winter jackets on sale") == content_id("Winter jackets on sale")
    assert content_id("Winter jackets on sale") != content_id("Free delivery this week")
    assert content_id("Winter jackets on sale").startswith("doc_")


def test_ingest_files_gz_jsonl(tmp_path: Path) -> None:
    path = tmp_path / "copy.jsonl.gz"
    with gzip.open(path, "wt", encoding="utf-8") as f:
        f.write(json.dumps({"text": "Zipped json copy"}) + "\n")
    assert [r.text for r in ingest_files([path], show_progress=False)] == ["Zipped json copy"]


def test_ingest_files_nothing_found(tmp_path: Path, capsys) -> None:
    assert list(ingest_files(tmp_path, show_progress=False)) == []
    assert "No supported files found" in capsys.readouterr().out


def test_get_file_stats(tmp_path: Path) -> None:
    (tmp_path / "a.txt").write_text("x\n", encoding="utf-8")
    (tmp_path / "b.tsv").write_text("x\ty\n", encoding="utf-8")
    (tmp_path / "c.htm").write_text("<p>x</p>", encoding="utf-8")
    (tmp_path / "d.csv").write_text("x", encoding="utf-8")
    stats = get_file_stats(tmp_path)
    assert stats["total_files"] == 3
    assert stats["txt_files"] == 1
    assert stats["tsv_files"] == 1
    assert stats["html_files"] == 1
    assert stats["jsonl_files"] == 0
    assert stats["total_size_bytes"] > 0
