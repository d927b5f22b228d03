"""Small LLM helpers for naming things: chats and document databases.

Neither result is critical, so both degrade silently: a failed chat name
is ``""`` (the caller keeps its placeholder) and failed database info is a
pair of empty strings.
"""

from __future__ import annotations

from collections.abc import Sequence

import structlog

from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage
from src.services.rag.prompts import (
    CHAT_NAME_PROMPT,
    CHAT_NAME_SYSTEM,
    DB_INFO_SYSTEM,
    build_db_info_prompt,
)
from src.utils.errors import LLMError
from src.utils.json_repair import JsonRepairLadder

logger = structlog.get_logger(logger_name=__name__)

_TEMPERATURE = 0.7
_MAX_TOKENS = 256


class MetadataGenerator:
    def __init__(
        self,
        provider: IStreamingChatProvider,
        ladder: JsonRepairLadder | None = None,
    ) -> None:
        self._provider = provider
        self._ladder = ladder or JsonRepairLadder(provider)

    async def generate_chat_name(self, messages: Sequence[ChatMessage]) -> str:
        """Return a 5-7 word title for the conversation, or ``""`` on failure."""
        transcript = [m for m in messages if m.role in ("user", "assistant")]
        prompt = [
            ChatMessage(role="system", content=CHAT_NAME_SYSTEM),
            *transcript,
            ChatMessage(role="user", content=CHAT_NAME_PROMPT),
        ]
        try:
            name = await self._provider.complete(
                prompt, temperature=_TEMPERATURE, max_tokens=_MAX_TOKENS
            )
        except LLMError as exc:
            logger.warning("chat_name_generation_failed", error=str(exc))
            return ""
        return name.strip().strip('"').strip()

    async def generate_db_info(self, file_names: Sequence[str], language: str) -> dict[str, str]:
        """Suggest ``{"dbName", "dbDescription"}`` for a set of documents."""
        prompt = [
            ChatMessage(role="system", content=DB_INFO_SYSTEM),
            ChatMessage(role="user", content=build_db_info_prompt(file_names, language)),
        ]
        try:
            answer = await self._provider.complete(
                prompt, temperature=_TEMPERATURE, max_tokens=_MAX_TOKENS
            )
        except LLMError as exc:
            logger.warning("db_info_generation_failed", error=str(exc))
            return {"dbName": "", "dbDescription": ""}

        parsed = await self._ladder.parse(answer, default={})
        if not isinstance(parsed, dict):
            parsed = {}
        return {
            "dbName": str(parsed.get("dbName") or ""),
            "dbDescription": str(parsed.get("dbDescription") or ""),
        }
