"""Test doubles shared across the unit tests.

No network, no model downloads: token counting is by whitespace,
embeddings are hashed bags of words, and chat answers are scripted.
"""

from __future__ import annotations

import asyncio
import hashlib
import re
from typing import AsyncIterator

from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.keyword_extractor import IKeywordExtractor
from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage
from src.utils.errors import EmbeddingProviderError


class WhitespaceTokenCounter:
    """One token per whitespace-separated word; no BPE download needed."""

    def __init__(self) -> None:
        self._vocab: list[str] = []
        self._ids: dict[str, int] = {}

    def encode(self, text: str) -> list[int]:
        tokens = []
        for word in text.split():
            if word not in self._ids:
                self._ids[word] = len(self._vocab)
                self._vocab.append(word)
            tokens.append(self._ids[word])
        return tokens

    def decode(self, tokens: list[int]) -> str:
        return " ".join(self._vocab[t] for t in tokens)

    def count(self, text: str) -> int:
        return len(text.split())


class FakeKeywordExtractor(IKeywordExtractor):
    """Returns a fixed keyword list and records what it was asked."""

    def __init__(self, keywords: list[str] | None = None) -> None:
        self.keywords = list(keywords or [])
        self.calls: list[list[str]] = []

    def extract(self, texts: list[str]) -> list[str]:
        self.calls.append(list(texts))
        return list(self.keywords)


_WORD = re.compile(r"\w+")


class FakeEmbeddingProvider(IEmbeddingProvider):
    """Deterministic bag-of-words hashing embeddings.

    Texts sharing words get similar vectors, so nearest-neighbour search
    behaves sensibly without a model.
    """

    def __init__(self, dimension: int = 64, fail_on: str | None = None) -> None:
        self._dimension = dimension
        self.fail_on = fail_on
        self.embed_calls = 0
        self.query_calls = 0

    def _vector(self, text: str) -> list[float]:
        vector = [0.0] * self._dimension
        for word in _WORD.findall(text.lower()):
            bucket = int(hashlib.md5(word.encode("utf-8")).hexdigest(), 16) % self._dimension
            vector[bucket] += 1.0
        if not any(vector):
            vector[0] = 1.0
        return vector

    async def embed(self, texts: list[str]) -> list[list[float]]:
        self.embed_calls += 1
        if self.fail_on is not None and any(self.fail_on in t for t in texts):
            raise EmbeddingProviderError(message="embedding backend down", provider_name="fake")
        return [self._vector(t) for t in texts]

    async def embed_query(self, text: str) -> list[float]:
        self.query_calls += 1
        return self._vector(text)

    def get_dimension(self) -> int:
        return self._dimension

    def get_provider_name(self) -> str:
        return "fake_embedding"

    def is_available(self) -> bool:
        return True


class ScriptedChatProvider(IStreamingChatProvider):
    """Answers each call with the next scripted response.

    A response is a string (one fragment), a list of fragments, or an
    exception instance to raise.  Once the script is exhausted every call
    answers ``""``.
    """

    def __init__(self, responses: list | None = None, name: str = "scripted") -> None:
        self.responses = list(responses or [])
        self.calls: list[list[ChatMessage]] = []
        self.call_kwargs: list[dict] = []
        self._name = name

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.5,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        self.calls.append(list(messages))
        self.call_kwargs.append({"temperature": temperature, "max_tokens": max_tokens})
        response = self.responses.pop(0) if self.responses else ""
        if isinstance(response, BaseException):
            raise response
        fragments = response if isinstance(response, list) else [response]
        for fragment in fragments:
            yield fragment

    def get_provider_name(self) -> str:
        return self._name

    def is_available(self) -> bool:
        return True


class StallingChatProvider(IStreamingChatProvider):
    """Yields its fragments, then waits forever until closed."""

    def __init__(self, fragments: list[str]) -> None:
        self.fragments = list(fragments)
        self.closed = False
        self.stalled = asyncio.Event()

    async def stream_chat(
        self,
        messages: list[ChatMessage],
        temperature: float = 0.5,
        max_tokens: int = 1024,
    ) -> AsyncIterator[str]:
        try:
            for fragment in self.fragments:
                yield fragment
            self.stalled.set()
            await asyncio.Event().wait()
        finally:
            self.closed = True

    def get_provider_name(self) -> str:
        return "stalling"

    def is_available(self) -> bool:
        return True


