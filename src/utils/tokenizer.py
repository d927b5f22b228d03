"""Token counting for chunk budgets.

Chunk sizes are expressed in model tokens, not characters, and one fixed
encoding (``o200k_base``) is used regardless of which embedding vendor is
configured so that a 512-token chunk means the same thing everywhere.

Anything with ``count(text) -> int`` and ``encode``/``decode`` can stand
in for :class:`TiktokenCounter`; tests use a whitespace counter to avoid
downloading BPE files.
"""

from __future__ import annotations

from typing import Protocol

import tiktoken

DEFAULT_ENCODING = "o200k_base"


class TokenCounter(Protocol):
    """Structural type accepted by :class:`~src.services.ingestion.chunker.TextChunker`."""

    def count(self, text: str) -> int: ...

    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: list[int]) -> str: ...


class TiktokenCounter:
    """Counts tokens with a tiktoken encoding, loaded lazily on first use."""

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        self._encoding_name = encoding_name
        self._encoding: tiktoken.Encoding | None = None

    @property
    def encoding(self) -> tiktoken.Encoding:
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self._encoding_name)
        return self._encoding

    def encode(self, text: str) -> list[int]:
        # Special-token text inside user documents is counted as plain text.
        return self.encoding.encode(text, disallowed_special=())

    def decode(self, tokens: list[int]) -> str:
        return self.encoding.decode(tokens)

    def count(self, text: str) -> int:
        return len(self.encode(text))
