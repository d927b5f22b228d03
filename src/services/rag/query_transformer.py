"""Rewrites the user's question into declarative search prompts.

Questions embed poorly against answers, so the model is asked for up to
four statements that *look like* the passages that would answer the
question: three in the user's language and one in English, each with a
short note on the perspective it covers.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog

from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage, TransformedQuery
from src.services.rag.prompts import build_transformation_prompt
from src.utils.json_repair import JsonRepairLadder

logger = structlog.get_logger(logger_name=__name__)

MAX_QUERIES = 4


def _coerce_queries(parsed: Any) -> list[TransformedQuery]:
    """Accept a list of ``{perspective, prompt}`` objects (or a wrapper around one)."""
    if isinstance(parsed, dict):
        # Some models wrap the array: {"prompts": [...]}
        parsed = next((v for v in parsed.values() if isinstance(v, list)), [parsed])
    if not isinstance(parsed, list):
        return []

    queries: list[TransformedQuery] = []
    for item in parsed:
        if isinstance(item, dict):
            prompt = str(item.get("prompt") or "").strip()
            perspective = str(item.get("perspective") or "")
        elif isinstance(item, str):
            prompt, perspective = item.strip(), ""
        else:
            continue
        if prompt:
            queries.append(TransformedQuery(perspective=perspective, prompt=prompt))
    return queries


class QueryTransformer:
    TEMPERATURE = 0.7
    MAX_TOKENS = 500

    def __init__(
        self,
        provider: IStreamingChatProvider,
        ladder: JsonRepairLadder | None = None,
    ) -> None:
        self._provider = provider
        self._ladder = ladder or JsonRepairLadder(provider)

    async def transform(
        self,
        history: Sequence[ChatMessage],
        topic: str,
        analysis: str,
        db_description: str,
    ) -> list[TransformedQuery]:
        """Return between one and four search prompts.

        When the answer yields no usable prompt, the latest user message is
        searched as-is.
        """
        prompt = build_transformation_prompt(history, topic, analysis, db_description)
        answer = await self._provider.complete(
            [ChatMessage(role="user", content=prompt)],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        queries = _coerce_queries(await self._ladder.parse(answer, default=[]))[:MAX_QUERIES]
        if not queries:
            fallback = next((m.content for m in reversed(history) if m.role == "user"), "")
            logger.warning("query_transform_fallback", preview=answer[:200])
            queries = [TransformedQuery(perspective="Original question", prompt=fallback)]
        logger.info("queries_transformed", count=len(queries))
        return queries
