"""Decides whether a chat turn warrants a document search.

The model applies a two-of-four rule (specific keywords, helpful history,
useful analysis, likely coverage by the documents) and answers with
``{"documentSearch": bool, "reason": str}``.  The answer goes through the
JSON repair ladder; anything that still cannot be read means "no search",
and the reason is then used to ask the user for clarification.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import structlog

from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage, SufficiencyResult
from src.services.rag.prompts import build_sufficiency_prompt
from src.utils.json_repair import JsonRepairLadder

logger = structlog.get_logger(logger_name=__name__)

_NO_HISTORY_REASON = "There is no question to search for yet."
_UNPARSEABLE_REASON = "The search decision could not be read."


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() == "true"
    return bool(value)


class SufficiencyClassifier:
    TEMPERATURE = 0.3
    MAX_TOKENS = 500

    def __init__(
        self,
        provider: IStreamingChatProvider,
        ladder: JsonRepairLadder | None = None,
    ) -> None:
        self._provider = provider
        self._ladder = ladder or JsonRepairLadder(provider)

    async def classify(
        self,
        history: Sequence[ChatMessage],
        topic: str,
        analysis: str,
    ) -> SufficiencyResult:
        if not history:
            return SufficiencyResult(document_search=False, reason=_NO_HISTORY_REASON)

        prompt = build_sufficiency_prompt(history, topic, analysis)
        answer = await self._provider.complete(
            [ChatMessage(role="user", content=prompt)],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        parsed = await self._ladder.parse(answer, default=None)
        if not isinstance(parsed, dict):
            logger.warning("sufficiency_unparseable", preview=answer[:200])
            return SufficiencyResult(document_search=False, reason=_UNPARSEABLE_REASON)

        result = SufficiencyResult(
            document_search=_as_bool(parsed.get("documentSearch", False)),
            reason=str(parsed.get("reason") or ""),
        )
        logger.info("sufficiency_classified", document_search=result.document_search)
        return result
