"""Tests for fixed-window and semantic chunking."""
import pytest

from ragdesk.exceptions import ConfigurationError, NoChunksProducedError
from ragdesk.rag.chunker import CHUNK_DELIMITER, SemanticChunker, TextChunker

from tests.conftest import StubLLM


class TestTextChunker:
    @pytest.mark.parametrize(
        "text,size,overlap",
        [
            ("abcdefghij" * 13, 20, 5),
            ("abcdefghij" * 13, 20, 0),
            ("abcdefghij" * 13, 20, 19),
            ("a b c d e f g h", 3, 1),
            ("x" * 101, 10, 3),
        ],
    )
    def test_windows_terminate_and_cover_text(self, text, size, overlap):
        chunks = TextChunker(chunk_size=size, chunk_overlap=overlap).chunk_text(text)

        assert chunks
        assert all(c.content and c.content == c.content.strip() for c in chunks)
        assert chunks[-1].char_end == len(text)
        assert [c.chunk_index for c in chunks] == list(range(len(chunks)))
        for c in chunks:
            assert c.char_end - c.char_start <= size

    def test_consecutive_windows_share_exactly_the_overlap(self):
        text = "".join(chr(ord("a") + i % 26) for i in range(95))
        chunks = TextChunker(chunk_size=30, chunk_overlap=10).chunk_text(text)

        assert [(c.char_start, c.char_end) for c in chunks] == [
            (0, 30),
            (20, 50),
            (40, 70),
            (60, 90),
            (80, 95),
        ]
        for prev, nxt in zip(chunks, chunks[1:]):
            assert prev.char_end - nxt.char_start == 10

    def test_text_that_fits_yields_one_trimmed_chunk(self):
        chunks = TextChunker(chunk_size=50, chunk_overlap=10).chunk_text("  hello world \n")

        assert len(chunks) == 1
        assert chunks[0].content == "hello world"

    def test_text_exactly_chunk_size(self):
        chunks = TextChunker(chunk_size=5, chunk_overlap=2).chunk_text("abcde")

        assert [c.content for c in chunks] == ["abcde"]

    def test_whitespace_windows_are_dropped_without_changing_stepping(self):
        text = "aaaa" + " " * 8 + "bbbb"
        chunks = TextChunker(chunk_size=4, chunk_overlap=0).chunk_text(text)

        assert [c.content for c in chunks] == ["aaaa", "bbbb"]
        assert [(c.char_start, c.char_end) for c in chunks] == [(0, 4), (12, 16)]
        assert [c.chunk_index for c in chunks] == [0, 1]

    @pytest.mark.parametrize("text", ["", "   ", "\n\n\t"])
    def test_blank_text_yields_nothing(self, text):
        assert TextChunker(chunk_size=10, chunk_overlap=2).chunk_text(text) == []

    @pytest.mark.parametrize("size,overlap", [(10, 10), (10, 15), (0, 0), (10, -1)])
    def test_invalid_settings_rejected(self, size, overlap):
        with pytest.raises(ConfigurationError):
            TextChunker(chunk_size=size, chunk_overlap=overlap)

    def test_chunk_document_assigns_ids(self):
        chunker = TextChunker(chunk_size=10, chunk_overlap=0)
        chunks = chunker.chunk_document("guide.pdf", "0123456789abcdefghij")

        assert [c.id for c in chunks] == ["guide.pdf_chunk_0", "guide.pdf_chunk_1"]
        assert all(c.source_file == "guide.pdf" for c in chunks)
        assert [c.sequence_index for c in chunks] == [0, 1]

    def test_chunk_stats(self):
        chunker = TextChunker(chunk_size=10, chunk_overlap=0)
        stats = chunker.get_chunk_stats(chunker.chunk_text("x" * 25))

        assert stats["chunk_count"] == 3
        assert stats["min_chunk_size"] == 5
        assert stats["max_chunk_size"] == 10
        assert chunker.get_chunk_stats([])["chunk_count"] == 0


class TestSemanticChunker:
    PARAGRAPHS = [
        "Cocoa beans are fermented before drying.",
        "Fermentation develops the flavour precursors.",
        "Tempering gives chocolate its snap and gloss.",
    ]

    def _text(self):
        return "\n\n".join(self.PARAGRAPHS)

    async def test_splits_on_delimiter_and_trims(self):
        response = (
            f"\n{self.PARAGRAPHS[0]}\n\n{self.PARAGRAPHS[1]}\n{CHUNK_DELIMITER}\n"
            f"  {self.PARAGRAPHS[2]}  \n{CHUNK_DELIMITER}\n   \n"
        )
        chunker = SemanticChunker(llm=StubLLM(response), min_chunk_size=10, max_chunk_size=200)

        segments = await chunker.chunk_text(self._text(), source_file="cocoa.pdf")

        assert len(segments) == 2
        assert segments[1] == self.PARAGRAPHS[2]
        # No paragraph is cut: each segment is a run of whole paragraphs
        for segment in segments:
            for paragraph in segment.split("\n\n"):
                assert paragraph in self.PARAGRAPHS

    async def test_prompt_carries_rules_and_size_band(self):
        llm = StubLLM(f"a{CHUNK_DELIMITER}b")
        chunker = SemanticChunker(llm=llm, min_chunk_size=321, max_chunk_size=654)

        await chunker.chunk_text(self._text())

        prompt = llm.prompts[0]
        assert "never break mid-paragraph" in prompt
        assert "321" in prompt and "654" in prompt
        assert CHUNK_DELIMITER in prompt
        assert self.PARAGRAPHS[0] in prompt

    @pytest.mark.parametrize("response", ["", "   ", CHUNK_DELIMITER, f"{CHUNK_DELIMITER}\n \n{CHUNK_DELIMITER}"])
    async def test_no_segments_raises(self, response):
        chunker = SemanticChunker(llm=StubLLM(response))

        with pytest.raises(NoChunksProducedError) as exc_info:
            await chunker.chunk_document("empty.pdf", self._text())

        assert exc_info.value.source_file == "empty.pdf"

    async def test_blank_text_skips_collaborator(self):
        llm = StubLLM("unused")
        chunker = SemanticChunker(llm=llm)

        assert await chunker.chunk_text("  \n ") == []
        assert llm.prompts == []

    async def test_chunk_document_ids(self):
        chunker = SemanticChunker(llm=StubLLM(f"one{CHUNK_DELIMITER}two"))

        chunks = await chunker.chunk_document("notes.md", self._text())

        assert [c.id for c in chunks] == [
            "notes.md_semantic_chunk_0",
            "notes.md_semantic_chunk_1",
        ]
        assert [c.content for c in chunks] == ["one", "two"]

    async def test_sizes_near_band_on_average(self):
        long_paragraphs = ["p" * 120, "q" * 150, "r" * 90, "s" * 140]
        response = CHUNK_DELIMITER.join(
            ["\n\n".join(long_paragraphs[:2]), "\n\n".join(long_paragraphs[2:])]
        )
        chunker = SemanticChunker(llm=StubLLM(response), min_chunk_size=100, max_chunk_size=400)

        segments = await chunker.chunk_text("\n\n".join(long_paragraphs))

        average = sum(len(s) for s in segments) / len(segments)
        assert chunker.min_chunk_size <= average <= chunker.max_chunk_size

    @pytest.mark.parametrize("low,high", [(0, 100), (200, 100)])
    def test_invalid_band_rejected(self, low, high):
        with pytest.raises(ConfigurationError):
            SemanticChunker(llm=StubLLM(), min_chunk_size=low, max_chunk_size=high)
