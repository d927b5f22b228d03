"""Fallback ladder for parsing JSON produced by chat models.

Models asked for "JSON only" still wrap it in code fences, use single
quotes, leave trailing commas, or forget to quote keys.  Every structured
response in the pipeline (sufficiency verdict, transformed queries,
document titles, database info) goes through :class:`JsonRepairLadder`:

    1. ``parse_direct``      -- plain ``json.loads``
    2. ``repair_heuristic``  -- regex fixes, then ``json.loads``
    3. ``repair_with_model`` -- ask the same provider to fix its output
    4. default value         -- caller-supplied, never raises

Each stage is a standalone function so it can be tested in isolation.
"""

from __future__ import annotations

import json
import re
from typing import Any

import structlog

from src.interfaces.llm_provider import IStreamingChatProvider
from src.models.chat import ChatMessage
from src.utils.errors import LLMError

logger = structlog.get_logger(logger_name=__name__)

_TRAILING_COMMA = re.compile(r",\s*([}\]])")
_BARE_KEY = re.compile(r"([{,])\s*([^\"{\[]+?)\s*:")

_REPAIR_SYSTEM_PROMPT = "You fix malformed JSON. Output only valid JSON and nothing else."
_REPAIR_USER_PROMPT = (
    "The following text was supposed to be valid JSON but could not be parsed. "
    "Return the same data as strictly valid JSON. Do not add commentary, code "
    "fences, or any keys that are not present.\n\n{text}"
)

_MISSING = object()


def parse_direct(text: str) -> Any:
    """Parse *text* as-is. Raises ``ValueError`` on failure."""
    return json.loads(text)


def fix_json_text(text: str) -> str:
    """Apply the heuristic fixes without parsing.

    Order matters: trailing commas are removed first so the bare-key
    pattern never sees ``,}``.
    """
    fixed = _TRAILING_COMMA.sub(r"\1", text)
    fixed = fixed.replace("```json", "").replace("```", "")
    fixed = fixed.replace("`", "")
    fixed = fixed.replace("'", '"')
    fixed = _BARE_KEY.sub(r'\1"\2":', fixed)
    return fixed.strip()


def repair_heuristic(text: str) -> Any:
    """Parse *text* after heuristic fixes. Raises ``ValueError`` on failure."""
    return json.loads(fix_json_text(text))


async def repair_with_model(text: str, provider: IStreamingChatProvider) -> Any:
    """Ask *provider* to correct *text* and parse its answer.

    The model's answer gets the direct and heuristic stages again, since
    it may fence its corrected JSON too.  Raises ``ValueError`` when the
    answer is still unparseable and ``LLMError`` when the call fails.
    """
    messages = [
        ChatMessage(role="system", content=_REPAIR_SYSTEM_PROMPT),
        ChatMessage(role="user", content=_REPAIR_USER_PROMPT.format(text=text)),
    ]
    answer = await provider.complete(messages, temperature=0.0, max_tokens=500)
    try:
        return parse_direct(answer)
    except ValueError:
        return repair_heuristic(answer)


class JsonRepairLadder:
    """Ordered fallback pipeline: direct → heuristic → model-assisted → default."""

    def __init__(self, provider: IStreamingChatProvider | None = None) -> None:
        self._provider = provider

    def parse_local(self, text: str, default: Any = _MISSING) -> Any:
        """Run only the stages that need no model call."""
        try:
            return parse_direct(text)
        except ValueError:
            pass
        try:
            result = repair_heuristic(text)
            logger.info("json_repaired_heuristically", length=len(text))
            return result
        except ValueError:
            if default is _MISSING:
                raise
            return default

    async def parse(self, text: str, default: Any = None) -> Any:
        """Parse *text*, never raising.

        Returns *default* when every stage fails.
        """
        try:
            return self.parse_local(text)
        except ValueError:
            logger.warning("json_heuristic_repair_failed", preview=text[:200])

        if self._provider is not None:
            try:
                result = await repair_with_model(text, self._provider)
                logger.info("json_repaired_by_model", provider=self._provider.get_provider_name())
                return result
            except (ValueError, LLMError) as exc:
                logger.warning("json_model_repair_failed", error=str(exc))

        logger.warning("json_parse_fallback_default", default=repr(default))
        return default
