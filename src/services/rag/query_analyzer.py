"""First stage of a chat turn: free-text analysis of the user's question.

The analysis is never parsed; it is passed verbatim to the sufficiency
classifier and the query transformer as extra context.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage
from src.services.rag.prompts import build_analysis_prompt

logger = structlog.get_logger(logger_name=__name__)


class QueryAnalyzer:
    """Asks the chat provider for a five-section analysis of the latest question."""

    TEMPERATURE = 0.7
    MAX_TOKENS = 1024

    def __init__(self, provider: IStreamingChatProvider) -> None:
        self._provider = provider

    async def analyze(
        self,
        history: Sequence[ChatMessage],
        topic: str,
        db_description: str,
    ) -> str:
        """Return the analysis text.

        Provider failures propagate as :class:`~src.utils.errors.LLMError`.
        """
        prompt = build_analysis_prompt(history, topic, db_description)
        analysis = await self._provider.complete(
            [ChatMessage(role="user", content=prompt)],
            temperature=self.TEMPERATURE,
            max_tokens=self.MAX_TOKENS,
        )
        logger.debug("query_analyzed", length=len(analysis))
        return analysis
