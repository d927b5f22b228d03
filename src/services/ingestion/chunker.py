"""Token-bounded recursive text chunking with overlapping windows.

Splits extracted :class:`~src.models.rag.Document` objects into
:class:`~src.models.rag.Chunk` objects sized for embedding models
(``chunk_size`` tokens, default 512, with ``chunk_size * overlap_percent /
100`` tokens of overlap).

The chunking strategy has two key design goals:

1. **Boundary-preserving** -- Text is split at the coarsest separator that
   yields pieces within budget: paragraph breaks first, then line breaks,
   then sentence-ending punctuation (including the ideographic full stop
   ``。``), then spaces.  Only a piece with no usable separator is cut at a
   fixed token offset.  For source code, class/function boundaries of the
   file's language are tried before any of those.

2. **Overlapping windows** -- Consecutive chunks share up to
   ``chunk_overlap`` tokens of trailing pieces so that a concept spanning a
   boundary is captured whole in at least one chunk.

Spreadsheet and CSV rows (``content_type == "table-row"``) are already the
right granularity and pass through as exactly one chunk each.
"""

from __future__ import annotations

import uuid

import structlog

from src.models.rag import Chunk, Document
from src.utils.tokenizer import TiktokenCounter, TokenCounter

logger = structlog.get_logger(logger_name=__name__)

GENERIC_SEPARATORS: list[str] = ["\n\n", "\n", "。", ". ", "! ", "? ", " "]

# Tried before the generic separators when the document's language is known.
LANGUAGE_SEPARATORS: dict[str, list[str]] = {
    "python": ["\nclass ", "\ndef ", "\n\tdef ", "\n    def "],
    "js": ["\nfunction ", "\nconst ", "\nlet ", "\nclass ", "\nexport "],
    "go": ["\nfunc ", "\ntype ", "\nvar ", "\nconst "],
    "java": ["\nclass ", "\ninterface ", "\n    public ", "\n    private ", "\n    protected "],
    "cpp": ["\nclass ", "\nstruct ", "\nnamespace ", "\nvoid ", "\nint "],
    "rust": ["\nfn ", "\npub fn ", "\nimpl ", "\nstruct ", "\nenum ", "\nmod "],
    "ruby": ["\nclass ", "\nmodule ", "\ndef ", "\n  def "],
    "php": ["\nclass ", "\nfunction ", "\n    public function ", "\n    private function "],
    "scala": ["\nclass ", "\nobject ", "\ntrait ", "\ndef ", "\n  def "],
    "swift": ["\nclass ", "\nstruct ", "\nenum ", "\nfunc ", "\n    func "],
    "proto": ["\nmessage ", "\nservice ", "\nenum ", "\nrpc "],
    "rst": ["\n.. ", "\n\n\n"],
    "latex": ["\n\\chapter{", "\n\\section{", "\n\\subsection{", "\n\\begin{"],
    "markdown": ["\n## ", "\n### ", "\n#### ", "\n```"],
}

TABLE_ROW = "table-row"

# Sentence punctuation stays with the sentence it ends; every other separator
# (paragraph breaks, code keywords) starts the piece that follows it.
_TRAILING_SEPARATORS = frozenset({"。", ". ", "! ", "? "})


def compute_overlap(chunk_size: int, overlap_percent: float) -> int:
    """Return ``floor(chunk_size * overlap_percent / 100)``."""
    return int(chunk_size * overlap_percent // 100)


class TextChunker:
    """Splits documents into overlapping, token-bounded chunks.

    Parameters
    ----------
    token_counter:
        Anything satisfying :class:`~src.utils.tokenizer.TokenCounter`.
        Defaults to tiktoken ``o200k_base``.
    """

    def __init__(self, token_counter: TokenCounter | None = None) -> None:
        self._counter: TokenCounter = token_counter or TiktokenCounter()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def split(
        self,
        documents: list[Document],
        chunk_size: int,
        overlap_percent: float,
        language: str | None = None,
    ) -> list[Chunk]:
        """Split *documents* into chunks of at most *chunk_size* tokens.

        A single unsplittable unit (one token run with no separator, or a
        table row) may exceed the budget; everything else fits.
        """
        chunks, _ = self._split(documents, chunk_size, overlap_percent, language)
        return chunks

    def chunk_file(
        self,
        doc_name: str,
        documents: list[Document],
        chunk_size: int,
        overlap_percent: float,
        language: str | None = None,
    ) -> tuple[list[Chunk], list[str]]:
        """Chunk one file's documents and return ``(chunks, chunk_ids)``.

        The id list is built as each chunk is created, so it always names
        exactly the returned chunks and becomes the file's
        ``docNameToChunkIds`` entry.
        """
        chunks, chunk_ids = self._split(documents, chunk_size, overlap_percent, language)
        logger.debug(
            "file_chunked",
            doc_name=doc_name,
            documents=len(documents),
            num_chunks=len(chunks),
        )
        return chunks, chunk_ids

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _split(
        self,
        documents: list[Document],
        chunk_size: int,
        overlap_percent: float,
        language: str | None,
    ) -> tuple[list[Chunk], list[str]]:
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if not 0 <= overlap_percent < 100:
            raise ValueError(f"overlap_percent must be in [0, 100), got {overlap_percent}")
        chunk_overlap = compute_overlap(chunk_size, overlap_percent)

        chunks: list[Chunk] = []
        chunk_ids: list[str] = []
        for document in documents:
            if document.content_type == TABLE_ROW:
                texts = [document.text.strip()]
            else:
                doc_language = language or document.metadata.get("language")
                separators = LANGUAGE_SEPARATORS.get(doc_language or "", []) + GENERIC_SEPARATORS
                texts = self._split_text(document.text, separators, chunk_size, chunk_overlap)

            for text in texts:
                if not text:
                    continue
                chunk_id = uuid.uuid4().hex
                chunks.append(
                    Chunk(
                        chunk_id=chunk_id,
                        page_content=text,
                        metadata={**document.metadata, "chunk_id": chunk_id},
                    )
                )
                chunk_ids.append(chunk_id)
        return chunks, chunk_ids

    def _split_text(
        self,
        text: str,
        separators: list[str],
        chunk_size: int,
        chunk_overlap: int,
    ) -> list[str]:
        """Recursively split *text*, preferring the earliest usable separator."""
        separator = None
        remaining: list[str] = []
        for i, candidate in enumerate(separators):
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1 :]
                break

        if separator is None:
            return self._hard_cut(text, chunk_size, chunk_overlap)

        # Pieces keep their separator so that joining them reproduces the
        # original text exactly.
        parts = text.split(separator)
        if separator in _TRAILING_SEPARATORS:
            pieces = [p + separator for p in parts[:-1]] + [parts[-1]]
        else:
            pieces = [parts[0]] + [separator + p for p in parts[1:]]
        pieces = [p for p in pieces if p]

        results: list[str] = []
        fitting: list[str] = []
        for piece in pieces:
            if self._counter.count(piece) <= chunk_size:
                fitting.append(piece)
                continue
            if fitting:
                results.extend(self._merge(fitting, chunk_size, chunk_overlap))
                fitting = []
            if remaining:
                results.extend(self._split_text(piece, remaining, chunk_size, chunk_overlap))
            else:
                results.extend(self._hard_cut(piece, chunk_size, chunk_overlap))
        if fitting:
            results.extend(self._merge(fitting, chunk_size, chunk_overlap))
        return results

    def _merge(self, pieces: list[str], chunk_size: int, chunk_overlap: int) -> list[str]:
        """Greedily pack *pieces* into windows, carrying an overlap tail forward."""
        chunks: list[str] = []
        current: list[tuple[str, int]] = []  # (text, token_count)
        current_tokens = 0

        for piece in pieces:
            piece_tokens = self._counter.count(piece)
            if current and self._counter.count("".join(t for t, _ in current) + piece) > chunk_size:
                self._emit(chunks, current)
                # Drop leading pieces until the tail fits the overlap budget
                # and leaves room for the incoming piece.
                while current and (
                    current_tokens > chunk_overlap or current_tokens + piece_tokens > chunk_size
                ):
                    _, dropped = current.pop(0)
                    current_tokens -= dropped
            current.append((piece, piece_tokens))
            current_tokens += piece_tokens

        if current:
            self._emit(chunks, current)
        return chunks

    @staticmethod
    def _emit(chunks: list[str], current: list[tuple[str, int]]) -> None:
        text = "".join(t for t, _ in current).strip()
        if text:
            chunks.append(text)

    def _hard_cut(self, text: str, chunk_size: int, chunk_overlap: int) -> list[str]:
        """Cut *text* every ``chunk_size - chunk_overlap`` tokens."""
        tokens = self._counter.encode(text)
        if not tokens:
            return []
        step = max(chunk_size - chunk_overlap, 1)
        windows: list[str] = []
        for start in range(0, len(tokens), step):
            window = self._counter.decode(tokens[start : start + chunk_size]).strip()
            if window:
                windows.append(window)
            if start + chunk_size >= len(tokens):
                break
        return windows
