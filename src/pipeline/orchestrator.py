"""Central orchestrator for one retrieval-augmented chat turn.

Coordinates query analysis, sufficiency gating, query transformation,
multi-query search, result fusion and the streamed answer.  The pipeline
owns no transcript: callers pass the message list in and get an updated
copy back, so a cancelled or failed turn leaves their history untouched.

ARCHITECTURE NOTE (for junior developers):
    This orchestrator follows the "Pipeline" pattern: it calls the stages
    of ``src/services/rag`` in a fixed order and passes each stage's
    output to the next.

    The turn is split into TWO entry points:
        - retrieve() → analyze → classify → transform → search → fuse
        - answer()   → build system prompt → stream → updated messages

    The split mirrors the client flow: the UI shows "searching..." while
    retrieve() runs, then opens the token stream for answer().
    run_turn() simply chains them for the CLI and tests.

    Cancellation: every request registers a CancellationToken under its
    message id.  retrieve() races each stage against the token, abandons
    a stalled provider call as soon as it fires and raises CancelledError.
    answer() hands the token to the AnswerStreamer, which stops
    mid-stream and reports status="cancelled".
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Awaitable, Sequence
from typing import TypeVar

import structlog

from src.models.chat import (
    ChatMessage,
    ChatSettings,
    RetrievalOutcome,
    TurnResult,
)
from src.pipeline.cancellation import CancellationToken, StreamRegistry
from src.services.embedding_store import EmbeddingStore
from src.services.rag.answer_streamer import AnswerStreamer, TokenCallback
from src.services.rag.multi_query_searcher import MultiQuerySearcher
from src.services.rag.prompts import (
    build_follow_up_system_prompt,
    build_qa_system_prompt,
    db_info_label,
)
from src.services.rag.query_analyzer import QueryAnalyzer
from src.services.rag.query_transformer import QueryTransformer
from src.services.rag.result_fusion import ResultFusion
from src.services.rag.sufficiency_classifier import SufficiencyClassifier
from src.utils.errors import CancelledError
from src.utils.logging import get_logger

T = TypeVar("T")

_NO_DATABASE_REASON = "No document database is selected for this chat."


def visible_history(messages: Sequence[ChatMessage], max_history_length: int) -> list[ChatMessage]:
    """Drop ``doc`` messages, then keep the last *max_history_length* (0 keeps all)."""
    history = [m for m in messages if m.role != "doc"]
    if max_history_length > 0:
        history = history[-max_history_length:]
    return history


async def until_cancelled(stage: Awaitable[T], token: CancellationToken) -> T:
    """Await *stage*, abandoning it as soon as *token* fires.

    The abandoned stage task is cancelled and awaited before
    :class:`~src.utils.errors.CancelledError` is raised.
    """
    stage_task = asyncio.ensure_future(stage)
    if not token.is_cancelled:
        cancel_task = asyncio.ensure_future(token.wait())
        try:
            done, _ = await asyncio.wait(
                {stage_task, cancel_task}, return_when=asyncio.FIRST_COMPLETED
            )
        except asyncio.CancelledError:
            stage_task.cancel()
            raise
        finally:
            cancel_task.cancel()

        if stage_task in done:
            return stage_task.result()

    stage_task.cancel()
    with contextlib.suppress(asyncio.CancelledError):
        await stage_task
    raise CancelledError(message="Request cancelled by user", provider_name="pipeline")


class ChatPipeline:
    """Runs retrieval and answering for chat turns.

    All stages are injected at construction time; the pipeline never
    creates them.  This makes testing easy: inject mocks for any stage.
    """

    def __init__(
        self,
        analyzer: QueryAnalyzer,
        classifier: SufficiencyClassifier,
        transformer: QueryTransformer,
        searcher: MultiQuerySearcher,
        fusion: ResultFusion,
        streamer: AnswerStreamer,
        store: EmbeddingStore,
        registry: StreamRegistry | None = None,
    ) -> None:
        self._analyzer = analyzer
        self._classifier = classifier
        self._transformer = transformer
        self._searcher = searcher
        self._fusion = fusion
        self._streamer = streamer
        self._store = store
        self._registry = registry or StreamRegistry()
        self._logger: structlog.BoundLogger = get_logger(__name__)

    @property
    def registry(self) -> StreamRegistry:
        return self._registry

    @property
    def streamer(self) -> AnswerStreamer:
        return self._streamer

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _db_description(self, chat: ChatSettings) -> str:
        if not chat.db_name:
            return ""
        return db_info_label(chat.db_name, self._store.get_description(chat.db_name))

    def build_system_message(self, chat: ChatSettings, retrieval: RetrievalOutcome) -> ChatMessage:
        """QA prompt when there are results, follow-up prompt otherwise."""
        if retrieval.merged_results:
            content = build_qa_system_prompt(
                chat.system_message,
                chat.topic,
                retrieval.merged_results,
                self._db_description(chat),
            )
        else:
            content = build_follow_up_system_prompt(chat.system_message, chat.topic, retrieval.reason)
        return ChatMessage(role="system", content=content)

    def cancel(self, message_id: str) -> bool:
        """Cancel the request running under *message_id*."""
        return self._registry.cancel(message_id)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def _retrieve(
        self,
        chat: ChatSettings,
        history: list[ChatMessage],
        token: CancellationToken,
    ) -> RetrievalOutcome:
        if not chat.db_name:
            return RetrievalOutcome(document_search=False, reason=_NO_DATABASE_REASON)

        db_description = self._db_description(chat)

        # --- Analysis ---
        analysis = await until_cancelled(
            self._analyzer.analyze(history, chat.topic, db_description), token
        )

        # --- Sufficiency gate ---
        verdict = await until_cancelled(
            self._classifier.classify(history, chat.topic, analysis), token
        )
        if not verdict.document_search:
            self._logger.info("retrieval_not_warranted", db_name=chat.db_name)
            return RetrievalOutcome(document_search=False, reason=verdict.reason)

        # --- Query transformation ---
        transformed = await until_cancelled(
            self._transformer.transform(history, chat.topic, analysis, db_description), token
        )
        queries = [q.prompt for q in transformed]

        # --- Search + fusion ---
        await until_cancelled(self._store.cache.get_or_load(chat.db_name), token)
        result_sets = await until_cancelled(
            self._searcher.search(chat.db_name, queries, chat.search_results_limit), token
        )
        token.raise_if_cancelled()
        merged = self._fusion.fuse(result_sets, queries, chat.search_results_limit)

        self._logger.info(
            "retrieval_complete",
            db_name=chat.db_name,
            queries=len(queries),
            results=len(merged),
        )
        return RetrievalOutcome(
            document_search=True,
            reason=verdict.reason,
            queries=queries,
            merged_results=merged,
        )

    async def retrieve(
        self,
        chat: ChatSettings,
        history: Sequence[ChatMessage],
        message_id: str,
    ) -> RetrievalOutcome:
        """Decide whether to search and, if so, return the fused results.

        Raises
        ------
        CancelledError
            If the request is cancelled before retrieval finishes.
        """
        visible = visible_history(history, chat.max_history_length)
        with self._registry.track(message_id) as token:
            try:
                return await self._retrieve(chat, visible, token)
            except CancelledError:
                self._logger.info("retrieval_cancelled", message_id=message_id)
                raise

    # ------------------------------------------------------------------
    # Answering
    # ------------------------------------------------------------------

    async def _answer(
        self,
        chat: ChatSettings,
        messages: list[ChatMessage],
        retrieval: RetrievalOutcome,
        token: CancellationToken,
        on_token: TokenCallback | None,
    ) -> TurnResult:
        to_send = [
            self.build_system_message(chat, retrieval),
            *visible_history(messages, chat.max_history_length),
        ]
        outcome = await self._streamer.send(
            to_send,
            temperature=chat.temperature,
            max_tokens=chat.max_tokens,
            on_token=on_token,
            cancel_token=token,
        )
        if outcome.status == "cancelled":
            return TurnResult(status="cancelled", content=outcome.content, messages=messages)

        updated = [*messages, ChatMessage(role="assistant", content=outcome.content)]
        citations = list(retrieval.merged_results)
        if citations:
            updated.append(ChatMessage(role="doc", results=citations))
        return TurnResult(
            status="completed",
            content=outcome.content,
            messages=updated,
            citations=citations,
        )

    async def answer(
        self,
        chat: ChatSettings,
        messages: Sequence[ChatMessage],
        retrieval: RetrievalOutcome,
        message_id: str,
        on_token: TokenCallback | None = None,
    ) -> TurnResult:
        """Stream the answer and return the updated transcript.

        A cancelled answer returns ``status="cancelled"`` with *messages*
        unchanged.  Provider failures propagate as ``LLMError``.
        """
        original = list(messages)
        with self._registry.track(message_id) as token:
            result = await self._answer(chat, original, retrieval, token, on_token)
        self._logger.info(
            "answer_complete",
            message_id=message_id,
            status=result.status,
            citations=len(result.citations),
        )
        return result

    async def run_turn(
        self,
        chat: ChatSettings,
        messages: Sequence[ChatMessage],
        message_id: str,
        on_token: TokenCallback | None = None,
    ) -> TurnResult:
        """Retrieve then answer under a single cancellation token."""
        original = list(messages)
        visible = visible_history(original, chat.max_history_length)
        with self._registry.track(message_id) as token:
            try:
                retrieval = await self._retrieve(chat, visible, token)
            except CancelledError:
                self._logger.info("turn_cancelled", message_id=message_id, stage="retrieval")
                return TurnResult(status="cancelled", messages=original)
            result = await self._answer(chat, original, retrieval, token, on_token)
        self._logger.info("turn_complete", message_id=message_id, status=result.status)
        return result
