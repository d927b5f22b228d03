"""Unit tests for the TextChunker — token-bounded recursive splitting with overlap."""

from __future__ import annotations

import pytest
import tiktoken

from src.models.rag import Document
from src.services.ingestion.chunker import TextChunker, compute_overlap
from src.utils.tokenizer import TiktokenCounter

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class _CharCounter:
    """One token per character, for exercising hard cuts."""

    def encode(self, text: str) -> list[int]:
        return [ord(c) for c in text]

    def decode(self, tokens: list[int]) -> str:
        return "".join(chr(t) for t in tokens)

    def count(self, text: str) -> int:
        return len(text)


def _doc(text: str, **metadata) -> Document:
    return Document(path="/tmp/doc.txt", text=text, metadata={"source": "/tmp/doc.txt", **metadata})


def _sentences(n: int) -> str:
    # Ten whitespace tokens per sentence.
    return " ".join(f"Sentence {i} talks about topic number {i} in plain words." for i in range(n))


# ---------------------------------------------------------------------------
# Overlap arithmetic
# ---------------------------------------------------------------------------


class TestComputeOverlap:
    def test_quarter_overlap(self) -> None:
        assert compute_overlap(512, 25) == 128

    def test_floors_fractional_overlap(self) -> None:
        assert compute_overlap(100, 33.5) == 33
        assert compute_overlap(10, 15) == 1

    def test_zero_percent(self) -> None:
        assert compute_overlap(64, 0) == 0


# ---------------------------------------------------------------------------
# Budget and overlap
# ---------------------------------------------------------------------------


class TestTokenBudget:
    def test_two_thousand_tokens_yield_overlapping_chunks(self, chunker: TextChunker) -> None:
        text = _sentences(200)
        chunks, ids = chunker.chunk_file("doc.txt", [_doc(text)], 512, 25)

        assert len(chunks) >= 4
        assert ids == [c.chunk_id for c in chunks]
        for previous, current in zip(chunks, chunks[1:]):
            first_sentence = current.page_content.split(". ")[0] + "."
            assert first_sentence in previous.page_content

    @pytest.mark.parametrize(
        ("chunk_size", "overlap_percent"),
        [(8, 0), (16, 25), (32, 50), (50, 10)],
    )
    def test_every_chunk_within_budget(
        self, chunker: TextChunker, chunk_size: int, overlap_percent: float
    ) -> None:
        text = "\n\n".join(
            [_sentences(7), "short line\nanother short line\n" * 5, _sentences(13)]
        )
        chunks = chunker.split([_doc(text)], chunk_size, overlap_percent)

        assert chunks
        for chunk in chunks:
            assert len(chunk.page_content.split()) <= chunk_size

    def test_small_text_is_one_chunk(self, chunker: TextChunker) -> None:
        chunks = chunker.split([_doc("Just a few words here.")], 64, 25)
        assert [c.page_content for c in chunks] == ["Just a few words here."]

    def test_hard_cut_without_separators(self) -> None:
        chunker = TextChunker(_CharCounter())
        chunks = chunker.split([_doc("abcdefghij" * 3)], 10, 20)

        assert len(chunks) == 4
        assert all(len(c.page_content) <= 10 for c in chunks)
        assert chunks[1].page_content[:2] == chunks[0].page_content[-2:]

    def test_ideographic_full_stop_stays_with_sentence(self) -> None:
        chunker = TextChunker(_CharCounter())
        chunks = chunker.split([_doc("一。二。三。")], 2, 0)
        assert [c.page_content for c in chunks] == ["一。", "二。", "三。"]

    def test_rejects_invalid_parameters(self, chunker: TextChunker) -> None:
        with pytest.raises(ValueError):
            chunker.split([_doc("text")], 0, 25)
        with pytest.raises(ValueError):
            chunker.split([_doc("text")], 64, 100)


# ---------------------------------------------------------------------------
# Structure awareness
# ---------------------------------------------------------------------------


class TestSeparators:
    def test_python_code_splits_at_definitions(self, chunker: TextChunker) -> None:
        code = (
            "import os\n\n"
            "class A:\n    def f(self):\n        return 1\n\n"
            "def g():\n    return 2\n"
        )
        chunks = chunker.split([_doc(code)], 6, 0, language="python")
        contents = [c.page_content for c in chunks]

        assert any(c.startswith("class A:") for c in contents)
        assert any(c.startswith("def g():") for c in contents)

    def test_language_from_document_metadata(self, chunker: TextChunker) -> None:
        code = "x = 1\n\ndef a():\n    pass\n\ndef b():\n    pass\n"
        explicit = chunker.split([_doc(code)], 3, 0, language="python")
        tagged = chunker.split([_doc(code, language="python")], 3, 0)
        assert [c.page_content for c in tagged] == [c.page_content for c in explicit]

    def test_table_rows_pass_through_whole(self, chunker: TextChunker) -> None:
        row = "name: widget\nprice: 10\n" + "notes: " + "very " * 30 + "long"
        chunks = chunker.split([_doc(row, content_type="table-row", row_index=1)], 5, 0)

        assert len(chunks) == 1
        assert chunks[0].page_content == row.strip()
        assert chunks[0].metadata["row_index"] == 1


# ---------------------------------------------------------------------------
# Identity and metadata
# ---------------------------------------------------------------------------


class TestChunkIdentity:
    def test_metadata_copied_with_chunk_id(self, chunker: TextChunker) -> None:
        chunks = chunker.split([_doc(_sentences(10), title="Manual", page_number=3)], 20, 0)

        for chunk in chunks:
            assert chunk.metadata["title"] == "Manual"
            assert chunk.metadata["page_number"] == 3
            assert chunk.metadata["chunk_id"] == chunk.chunk_id

    def test_ids_are_unique_and_never_reused(self, chunker: TextChunker) -> None:
        document = _doc(_sentences(30))
        first = chunker.split([document], 20, 25)
        second = chunker.split([document], 20, 25)

        first_ids = {c.chunk_id for c in first}
        assert len(first_ids) == len(first)
        assert first_ids.isdisjoint({c.chunk_id for c in second})

    def test_chunks_follow_document_order(self, chunker: TextChunker) -> None:
        documents = [_doc("alpha section text", section_index=1), _doc("beta section text", section_index=2)]
        chunks = chunker.split(documents, 64, 0)
        assert [c.metadata["section_index"] for c in chunks] == [1, 2]


# ---------------------------------------------------------------------------
# Token counting
# ---------------------------------------------------------------------------


class _RecordingEncoding:
    def __init__(self) -> None:
        self.encode_kwargs: list[dict] = []

    def encode(self, text: str, **kwargs) -> list[int]:
        self.encode_kwargs.append(kwargs)
        return list(range(len(text.split())))

    def decode(self, tokens: list[int]) -> str:
        return " ".join("t" for _ in tokens)


class TestTiktokenCounter:
    def test_loads_o200k_base_lazily(self, monkeypatch: pytest.MonkeyPatch) -> None:
        requested: list[str] = []
        encoding = _RecordingEncoding()

        def fake_get_encoding(name: str) -> _RecordingEncoding:
            requested.append(name)
            return encoding

        monkeypatch.setattr(tiktoken, "get_encoding", fake_get_encoding)
        counter = TiktokenCounter()
        assert requested == []

        assert counter.count("<|endoftext|> is plain text") == 4
        counter.count("again")

        assert requested == ["o200k_base"]
        assert encoding.encode_kwargs[0] == {"disallowed_special": ()}
