"""ragdesk FastAPI application entry point.

Wires together all providers, services, and routes via dependency injection.
Loads configuration from ``.env`` and the environment, configures
structured logging, and exposes the REST routes plus the answer WebSocket.

Also provides the standalone :func:`build_components` helper used by the
CLI entry points to get the same object graph outside the web server.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
import uvicorn
from fastapi import FastAPI, WebSocket

from src.api.middleware import (
    ErrorHandlingMiddleware,
    RequestLoggingMiddleware,
    configure_cors,
)
from src.api.routes import router as api_router
from src.api.websocket import websocket_chat
from src.config.settings import Settings
from src.interfaces.embedding_provider import IEmbeddingProvider
from src.interfaces.keyword_extractor import IKeywordExtractor
from src.interfaces.llm_provider import IStreamingChatProvider
from src.pipeline.cancellation import StreamRegistry
from src.pipeline.orchestrator import ChatPipeline
from src.providers.embedding.cohere_embedding_provider import CohereEmbeddingProvider
from src.providers.embedding.ollama_embedding_provider import OllamaEmbeddingProvider
from src.providers.embedding.openai_embedding_provider import (
    AzureOpenAIEmbeddingProvider,
    OpenAIEmbeddingProvider,
)
from src.providers.keywords.nltk_keyword_extractor import NltkKeywordExtractor
from src.providers.llm.anthropic_provider import AnthropicChatProvider
from src.providers.llm.azure_provider import AzureOpenAIChatProvider
from src.providers.llm.cohere_provider import CohereChatProvider
from src.providers.llm.ollama_provider import OllamaChatProvider
from src.providers.llm.openai_provider import OpenAIChatProvider
from src.services.embedding_store import EmbeddingStore
from src.services.ingestion.chunker import TextChunker
from src.services.ingestion.ingestion_service import IngestionService
from src.services.ingestion.text_extractor import TextExtractor
from src.services.ingestion.title_generator import TitleGenerator
from src.services.rag.answer_streamer import AnswerStreamer
from src.services.rag.metadata_generator import MetadataGenerator
from src.services.rag.multi_query_searcher import MultiQuerySearcher
from src.services.rag.query_analyzer import QueryAnalyzer
from src.services.rag.query_transformer import QueryTransformer
from src.services.rag.result_fusion import build_fusion
from src.services.rag.sufficiency_classifier import SufficiencyClassifier
from src.utils.errors import ProviderUnsupportedError
from src.utils.json_repair import JsonRepairLadder
from src.utils.logging import configure_logging, get_logger
from src.utils.tokenizer import TiktokenCounter, TokenCounter

_VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Module-level settings & logging
# ---------------------------------------------------------------------------

settings = Settings()

configure_logging(
    log_level=settings.log_level,
    json_output=(settings.app_env == "production"),
)
_logger: structlog.BoundLogger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Provider selection
# ---------------------------------------------------------------------------


def build_chat_provider(
    app_settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> IStreamingChatProvider:
    """Return the chat adapter named by ``llm_vendor``.

    Raises
    ------
    ProviderUnsupportedError
        If the vendor has no adapter.
    """
    vendor = app_settings.llm_vendor.strip().lower()
    if vendor == "openai":
        return OpenAIChatProvider(settings=app_settings)
    if vendor == "azure":
        return AzureOpenAIChatProvider(settings=app_settings)
    if vendor == "anthropic":
        return AnthropicChatProvider(settings=app_settings)
    if vendor == "cohere":
        return CohereChatProvider(settings=app_settings)
    if vendor == "ollama":
        return OllamaChatProvider(settings=app_settings, client=http_client)
    raise ProviderUnsupportedError(
        message=f"Unsupported chat vendor: {app_settings.llm_vendor!r}",
        provider_name=vendor,
    )


def build_embedding_provider(
    app_settings: Settings,
    http_client: httpx.AsyncClient | None = None,
) -> IEmbeddingProvider:
    """Return the embedding adapter named by ``embedding_vendor``.

    Raises
    ------
    ProviderUnsupportedError
        If the vendor has no adapter (Anthropic has no embedding API).
    """
    vendor = app_settings.embedding_vendor.strip().lower()
    if vendor == "openai":
        return OpenAIEmbeddingProvider(settings=app_settings)
    if vendor == "azure":
        return AzureOpenAIEmbeddingProvider(settings=app_settings)
    if vendor == "cohere":
        return CohereEmbeddingProvider(settings=app_settings)
    if vendor == "ollama":
        return OllamaEmbeddingProvider(settings=app_settings, client=http_client)
    raise ProviderUnsupportedError(
        message=f"Unsupported embedding vendor: {app_settings.embedding_vendor!r}",
        provider_name=vendor,
    )


# ---------------------------------------------------------------------------
# Object graph
# ---------------------------------------------------------------------------


def build_components(
    app_settings: Settings,
    chat_provider: IStreamingChatProvider | None = None,
    embedding_provider: IEmbeddingProvider | None = None,
    token_counter: TokenCounter | None = None,
    keyword_extractor: IKeywordExtractor | None = None,
) -> dict[str, Any]:
    """Construct every provider and service.

    Any collaborator passed in is used instead of the configured one,
    which is how tests run the full graph without network access.
    """
    http_client = httpx.AsyncClient(timeout=httpx.Timeout(120.0, connect=5.0))
    chat = chat_provider or build_chat_provider(app_settings, http_client)
    embeddings = embedding_provider or build_embedding_provider(app_settings, http_client)
    ladder = JsonRepairLadder(chat)

    store = EmbeddingStore(app_settings.databases_dir, embeddings)
    ingestion = IngestionService(
        extractor=TextExtractor(),
        chunker=TextChunker(token_counter or TiktokenCounter()),
        store=store,
        title_generator=TitleGenerator(chat, ladder),
        settings=app_settings,
    )
    pipeline = ChatPipeline(
        analyzer=QueryAnalyzer(chat),
        classifier=SufficiencyClassifier(chat, ladder),
        transformer=QueryTransformer(chat, ladder),
        searcher=MultiQuerySearcher(
            store,
            margin=app_settings.search_margin,
            concurrency=app_settings.search_concurrency,
        ),
        fusion=build_fusion(app_settings.fusion_strategy, keyword_extractor or NltkKeywordExtractor()),
        streamer=AnswerStreamer(chat),
        store=store,
        registry=StreamRegistry(),
    )
    return {
        "settings": app_settings,
        "http_client": http_client,
        "chat_provider": chat,
        "embedding_provider": embeddings,
        "store": store,
        "ingestion": ingestion,
        "pipeline": pipeline,
        "metadata_generator": MetadataGenerator(chat, ladder),
    }


# ---------------------------------------------------------------------------
# Application lifespan (startup / shutdown)
# ---------------------------------------------------------------------------


def _make_lifespan(components: dict[str, Any] | None):  # noqa: ANN202
    @asynccontextmanager
    async def _lifespan(application: FastAPI):  # noqa: ANN202
        """Initialise all providers and services on startup, clean up on shutdown."""
        built = components if components is not None else build_components(settings)
        for key, value in built.items():
            setattr(application.state, key, value)

        _logger.info(
            "app_startup",
            version=_VERSION,
            environment=settings.app_env,
            chat_provider=built["chat_provider"].get_provider_name(),
            embedding_provider=built["embedding_provider"].get_provider_name(),
            databases=len(built["store"].list_databases()),
        )

        yield

        http_client: httpx.AsyncClient | None = built.get("http_client")
        if http_client is not None:
            await http_client.aclose()
        _logger.info("app_shutdown", message="HTTP client closed")

    return _lifespan


# ---------------------------------------------------------------------------
# FastAPI application factory
# ---------------------------------------------------------------------------


def create_app(components: dict[str, Any] | None = None) -> FastAPI:
    """Build and configure the FastAPI application.

    *components* replaces :func:`build_components` at startup when given.
    """
    application = FastAPI(
        title="ragdesk API",
        version=_VERSION,
        description=(
            "Build document databases from local files and chat with them: "
            "query analysis, multi-query vector search, fused reranking and "
            "streamed answers with citations."
        ),
        lifespan=_make_lifespan(components),
    )

    # -- Middleware (order matters: last added = first executed) --
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(RequestLoggingMiddleware)
    configure_cors(application)

    # -- API routes --
    application.include_router(api_router)

    # -- WebSocket --
    @application.websocket("/ws/chat/{message_id}")
    async def ws_chat(websocket: WebSocket, message_id: str) -> None:
        await websocket_chat(websocket, message_id)

    return application


app = create_app()

# ---------------------------------------------------------------------------
# CLI entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=(settings.app_env == "development"),
    )
