"""Tests for document discovery and text extraction."""
import pytest

from ragdesk.exceptions import IngestionError
from ragdesk.rag.loader import DocumentLoader, extract_text


def test_discovers_supported_files_sorted(tmp_path):
    (tmp_path / "sub").mkdir()
    (tmp_path / "sub" / "b.md").write_text("b", encoding="utf-8")
    (tmp_path / "a.txt").write_text("a", encoding="utf-8")
    (tmp_path / "image.png").write_bytes(b"\x89PNG")

    loader = DocumentLoader(tmp_path)
    names = [loader.source_name(p) for p in loader.discover()]

    assert names == ["a.txt", "sub/b.md"]


def test_missing_directory_raises(tmp_path):
    with pytest.raises(IngestionError):
        DocumentLoader(tmp_path / "missing").discover()


def test_markdown_frontmatter_is_removed(tmp_path):
    note = tmp_path / "note.md"
    note.write_text("---\ntitle: Cocoa\ntags: [a]\n---\n# Cocoa\nBeans.\n", encoding="utf-8")

    assert extract_text(note) == "# Cocoa\nBeans.\n"


def test_load_skips_blank_and_unreadable_documents(tmp_path):
    (tmp_path / "good.txt").write_text("Cocoa beans.", encoding="utf-8")
    (tmp_path / "blank.txt").write_text("   \n", encoding="utf-8")
    (tmp_path / "bad.txt").write_bytes(b"\xff\xfe\xfa")

    documents, errors = DocumentLoader(tmp_path).load()

    assert [d.source_file for d in documents] == ["good.txt"]
    assert documents[0].text == "Cocoa beans."
    assert [e.source_file for e in errors] == ["bad.txt"]


def test_custom_extractor_failures_are_collected(tmp_path):
    (tmp_path / "one.txt").write_text("x", encoding="utf-8")
    (tmp_path / "two.txt").write_text("y", encoding="utf-8")

    def extractor(path):
        if path.name == "two.txt":
            raise ValueError("corrupt")
        return "extracted " + path.name

    documents, errors = DocumentLoader(tmp_path, extractor=extractor).load()

    assert [d.text for d in documents] == ["extracted one.txt"]
    assert errors[0].source_file == "two.txt"
    assert "corrupt" in str(errors[0])


def test_unsupported_and_missing_files(tmp_path):
    other = tmp_path / "data.csv"
    other.write_text("a,b", encoding="utf-8")

    with pytest.raises(IngestionError):
        extract_text(other)
    with pytest.raises(IngestionError):
        extract_text(tmp_path / "nope.pdf")
