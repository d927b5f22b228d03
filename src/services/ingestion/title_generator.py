"""LLM-generated document titles for prose formats.

PDF, Markdown, plain-text and notebook files rarely carry a usable title in
their metadata, so the first few hundred characters are sent to the chat
provider, which either extracts a title already present in the text or
writes one.  Every failure degrades to the file stem; ingestion never stops
because a title could not be generated.
"""

from __future__ import annotations

from pathlib import Path

import structlog

from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage
from src.services.rag.prompts import DOC_TITLE_SYSTEM, build_doc_title_prompt
from src.utils.errors import LLMError
from src.utils.json_repair import JsonRepairLadder

logger = structlog.get_logger(logger_name=__name__)

_TEMPERATURE = 0.7
_MAX_TOKENS = 256


class TitleGenerator:
    """Generates a short title for a document excerpt.

    Parameters
    ----------
    provider:
        Chat provider used for generation.  ``None`` disables generation
        and every call returns the file stem.
    ladder:
        JSON parser for the ``{"title": ...}`` answer.  Defaults to a
        ladder that repairs with the same provider.
    """

    def __init__(
        self,
        provider: IStreamingChatProvider | None = None,
        ladder: JsonRepairLadder | None = None,
    ) -> None:
        self._provider = provider
        self._ladder = ladder or JsonRepairLadder(provider)

    async def generate(self, content: str, file_name: str) -> str:
        fallback = Path(file_name).stem
        if self._provider is None or not content.strip():
            return fallback

        messages = [
            ChatMessage(role="system", content=DOC_TITLE_SYSTEM),
            ChatMessage(role="user", content=build_doc_title_prompt(content, file_name)),
        ]
        try:
            answer = await self._provider.complete(
                messages, temperature=_TEMPERATURE, max_tokens=_MAX_TOKENS
            )
        except LLMError as exc:
            logger.warning("doc_title_generation_failed", file_name=file_name, error=str(exc))
            return fallback

        parsed = await self._ladder.parse(answer, default={})
        title = parsed.get("title") if isinstance(parsed, dict) else None
        if not isinstance(title, str) or not title.strip():
            return fallback
        logger.debug("doc_title_generated", file_name=file_name, title=title)
        return title.strip()
