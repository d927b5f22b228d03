"""Unit tests for the provider adapters.

SDK clients are replaced with small stand-ins after construction and the
Ollama adapters talk to an ``httpx.MockTransport``, so nothing here
touches the network.
"""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest

from src.config.settings import Settings
from src.main import build_chat_provider, build_embedding_provider
from src.models.chat import ChatMessage
from src.providers.embedding.cohere_embedding_provider import CohereEmbeddingProvider
from src.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import (
    AzureOpenAIEmbeddingProvider,
    OpenAIEmbeddingProvider,
)
from src.providers.keywords import nltk_keyword_extractor
from src.providers.keywords.nltk_keyword_extractor import NltkKeywordExtractor
from src.providers.llm.anthropic_provider import AnthropicChatProvider, to_anthropic_messages
from src.providers.llm.cohere_provider import CohereChatProvider
from src.providers.llm.ollama_provider import OllamaChatProvider
from src.providers.llm.openai_provider import OpenAIChatProvider
from src.utils.errors import EmbeddingProviderError, LLMError, ProviderUnsupportedError

MESSAGES = [
    ChatMessage(role="system", content="Be brief."),
    ChatMessage(role="user", content="Hi"),
]


def _settings(**overrides) -> Settings:
    return Settings(_env_file=None, **overrides)


async def _collect(provider, messages=MESSAGES) -> list[str]:
    return [fragment async for fragment in provider.stream_chat(messages, 0.2, 50)]


# ---------------------------------------------------------------------------
# OpenAI-compatible chat
# ---------------------------------------------------------------------------


class _FakeOpenAIStream:
    def __init__(self, chunks) -> None:
        self._chunks = chunks
        self.closed = False

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for chunk in self._chunks:
            yield chunk

    async def close(self) -> None:
        self.closed = True


def _chunk(*contents):
    return SimpleNamespace(choices=[SimpleNamespace(delta=SimpleNamespace(content=c)) for c in contents])


class TestOpenAIChatProvider:
    async def test_streams_every_choice_delta(self) -> None:
        provider = OpenAIChatProvider(_settings(openai_api_key="sk-test"))
        stream = _FakeOpenAIStream([_chunk(), _chunk("Hel"), _chunk(None), _chunk("lo")])
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(return_value=stream)

        assert await _collect(provider) == ["Hel", "lo"]
        assert stream.closed
        request = provider._client.chat.completions.create.call_args.kwargs
        assert request["stream"] is True
        assert request["messages"] == [
            {"role": "system", "content": "Be brief."},
            {"role": "user", "content": "Hi"},
        ]
        assert (request["temperature"], request["max_tokens"]) == (0.2, 50)

    async def test_api_error_becomes_llm_error(self) -> None:
        provider = OpenAIChatProvider(_settings(openai_api_key="sk-test"))
        provider._client = MagicMock()
        provider._client.chat.completions.create = AsyncMock(
            side_effect=openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1"))
        )

        with pytest.raises(LLMError) as exc_info:
            await _collect(provider)
        assert exc_info.value.provider_name == "openai"

    def test_labels_and_availability(self) -> None:
        assert OpenAIChatProvider(_settings(openai_api_key="sk")).get_provider_name() == "openai"
        local = OpenAIChatProvider(_settings(openai_base_url="http://localhost:8080/v1"))
        assert local.get_provider_name() == "openai-compatible"
        assert local.is_available()
        assert not OpenAIChatProvider(_settings()).is_available()


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class TestAnthropic:
    def test_system_split_and_role_merging(self) -> None:
        messages = [
            ChatMessage(role="system", content="Rules."),
            ChatMessage(role="assistant", content="Earlier answer."),
            ChatMessage(role="user", content="One."),
            ChatMessage(role="user", content="Two."),
            ChatMessage(role="doc", results=[]),
        ]

        system, converted = to_anthropic_messages(messages)

        assert system == "Rules."
        assert [m["role"] for m in converted] == ["user", "assistant", "user"]
        assert converted[2]["content"] == "One.\n\nTwo."

    async def test_streams_text(self) -> None:
        provider = AnthropicChatProvider(_settings(anthropic_api_key="key"))
        seen = {}

        class _Stream:
            async def __aenter__(self):
                return self

            async def __aexit__(self, *exc):
                seen["exited"] = True
                return False

            @property
            def text_stream(self):
                async def _gen():
                    for text in ("Bri", "", "ef"):
                        yield text

                return _gen()

        def stream(**kwargs):
            seen.update(kwargs)
            return _Stream()

        provider._client = SimpleNamespace(messages=SimpleNamespace(stream=stream))

        assert await _collect(provider) == ["Bri", "ef"]
        assert seen["system"] == "Be brief."
        assert seen["messages"] == [{"role": "user", "content": "Hi"}]
        assert seen["exited"]


# ---------------------------------------------------------------------------
# Cohere
# ---------------------------------------------------------------------------


class TestCohere:
    async def test_chat_keeps_content_deltas_only(self) -> None:
        provider = CohereChatProvider(_settings(cohere_api_key="key"))

        def delta(text):
            return SimpleNamespace(
                type="content-delta",
                delta=SimpleNamespace(message=SimpleNamespace(content=SimpleNamespace(text=text))),
            )

        async def chat_stream(**kwargs):
            yield SimpleNamespace(type="message-start")
            yield delta("Co")
            yield delta("here")
            yield SimpleNamespace(type="message-end")

        provider._client = SimpleNamespace(chat_stream=chat_stream)

        assert await _collect(provider) == ["Co", "here"]

    async def test_embedding_input_types(self) -> None:
        provider = CohereEmbeddingProvider(_settings(cohere_api_key="key"))
        provider._client = MagicMock()
        provider._client.embed = AsyncMock(
            side_effect=lambda texts, **kwargs: SimpleNamespace(
                embeddings=SimpleNamespace(float_=[[0.1, 0.2] for _ in texts])
            )
        )

        assert await provider.embed(["a", "b"]) == [[0.1, 0.2], [0.1, 0.2]]
        assert await provider.embed_query("q") == [0.1, 0.2]
        input_types = [c.kwargs["input_type"] for c in provider._client.embed.call_args_list]
        assert input_types == ["search_document", "search_query"]
        assert provider.get_dimension() == 1024


# ---------------------------------------------------------------------------
# Ollama (httpx)
# ---------------------------------------------------------------------------


class TestOllama:
    async def test_chat_reads_ndjson(self) -> None:
        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(json.loads(request.content))
            lines = [
                {"message": {"role": "assistant", "content": "Lo"}, "done": False},
                {"message": {"role": "assistant", "content": "cal"}, "done": False},
                {"message": {"role": "assistant", "content": ""}, "done": True},
            ]
            return httpx.Response(200, content="\n".join(json.dumps(l) for l in lines).encode())

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = OllamaChatProvider(_settings(ollama_model="llama3.1"), client=client)
            assert await _collect(provider) == ["Lo", "cal"]

        assert requests[0]["stream"] is True
        assert requests[0]["options"] == {"temperature": 0.2, "num_predict": 50}

    async def test_chat_error_line(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, content=b'{"error": "model not found"}\n')

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(LLMError):
                await _collect(OllamaChatProvider(_settings(), client=client))

    async def test_chat_http_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(500)

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(LLMError):
                await _collect(OllamaChatProvider(_settings(), client=client))

    async def test_embeddings(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            body = json.loads(request.content)
            return httpx.Response(200, json={"embeddings": [[float(len(t))] for t in body["input"]]})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            provider = OllamaEmbeddingProvider(_settings(), client=client)
            assert await provider.embed(["a", "abc"]) == [[1.0], [3.0]]
            assert await provider.embed_query("ab") == [2.0]
        assert provider.get_dimension() == 768

    async def test_embedding_count_mismatch(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"embeddings": []})

        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            with pytest.raises(EmbeddingProviderError):
                await OllamaEmbeddingProvider(_settings(), client=client).embed(["a"])

    def test_dimension_ignores_tag(self) -> None:
        provider = OllamaEmbeddingProvider(_settings(ollama_embedding_model="mxbai-embed-large:latest"))
        assert provider.get_dimension() == 1024


# ---------------------------------------------------------------------------
# OpenAI / Azure embeddings
# ---------------------------------------------------------------------------


class TestOpenAIEmbeddings:
    async def test_results_sorted_by_index(self) -> None:
        provider = OpenAIEmbeddingProvider(_settings(openai_api_key="sk"))

        data = [SimpleNamespace(index=i, embedding=[float(i)]) for i in range(3)]
        provider._client = MagicMock()
        provider._client.embeddings.create = AsyncMock(
            return_value=SimpleNamespace(data=list(reversed(data)), usage=None)
        )

        assert await provider.embed(["a", "b", "c"]) == [[0.0], [1.0], [2.0]]
        assert await provider.embed([]) == []
        provider._client.embeddings.create.assert_awaited_once()
        assert provider.get_dimension() == 3072

    def test_azure_dimension_from_deployment(self) -> None:
        base = {
            "azure_openai_api_key": "key",
            "azure_openai_endpoint": "https://example.openai.azure.com",
        }
        ada = AzureOpenAIEmbeddingProvider(_settings(azure_embedding_deployment="corp-ada-002", **base))
        large = AzureOpenAIEmbeddingProvider(_settings(azure_embedding_deployment="corp-large", **base))
        assert ada.get_dimension() == 1536
        assert large.get_dimension() == 3072
        assert ada.is_available()


# ---------------------------------------------------------------------------
# Vendor selection
# ---------------------------------------------------------------------------


class TestVendorSelection:
    def test_chat_vendors(self) -> None:
        assert isinstance(build_chat_provider(_settings(llm_vendor="ollama")), OllamaChatProvider)
        assert isinstance(build_chat_provider(_settings(llm_vendor=" OpenAI ")), OpenAIChatProvider)
        with pytest.raises(ProviderUnsupportedError):
            build_chat_provider(_settings(llm_vendor="bard"))

    def test_embedding_vendors(self) -> None:
        assert isinstance(build_embedding_provider(_settings(embedding_vendor="ollama")), OllamaEmbeddingProvider)
        with pytest.raises(ProviderUnsupportedError):
            build_embedding_provider(_settings(embedding_vendor="anthropic"))


# ---------------------------------------------------------------------------
# Keywords
# ---------------------------------------------------------------------------


class TestNltkKeywordExtractor:
    def test_keeps_long_nouns_once(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(nltk_keyword_extractor, "_ensure_tagger", lambda: None)
        tags = {"printer": "NN", "Tokyo": "NNP", "ink": "NN", "is": "VBZ", "at": "IN", "HQ": "NNP"}
        monkeypatch.setattr(
            nltk_keyword_extractor.nltk, "pos_tag", lambda tokens: [(t, tags.get(t, "DT")) for t in tokens]
        )

        keywords = NltkKeywordExtractor().extract(["printer is at Tokyo HQ", "Tokyo printer ink"])

        assert keywords == ["printer", "Tokyo", "ink"]

    def test_missing_tagger_disables_keywords(self, monkeypatch: pytest.MonkeyPatch) -> None:
        def unavailable() -> None:
            raise LookupError("averaged_perceptron_tagger not found")

        monkeypatch.setattr(nltk_keyword_extractor, "_ensure_tagger", unavailable)
        assert NltkKeywordExtractor().extract(["printer"]) == []
