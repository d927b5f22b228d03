"""Chat-turn models: messages, per-chat settings, and pipeline outcomes.

The conversation transcript itself is owned by the caller (UI, CLI, or API
client); the pipeline receives it as a list of :class:`ChatMessage` and
returns an updated list rather than persisting anything.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field

from src.models.rag import FusedResult

Role = Literal["user", "assistant", "system", "doc"]

DEFAULT_SYSTEM_MESSAGE = "You are a helpful assistant."


class ChatMessage(BaseModel):
    """One transcript entry.

    ``doc`` messages carry the citations of the preceding answer and are
    filtered out before anything is sent to a provider.
    """

    model_config = ConfigDict(frozen=True)

    role: Role
    content: str = ""
    results: list[FusedResult] | None = None

    def to_provider_dict(self) -> dict[str, str]:
        return {"role": self.role, "content": self.content}


class ChatSettings(BaseModel):
    """Per-chat configuration supplied by the caller."""

    model_config = ConfigDict(frozen=True)

    system_message: str = Field(
        default=DEFAULT_SYSTEM_MESSAGE,
        description="Template; may contain {{DOCUMENTS}} and {{TOPIC}} placeholders.",
    )
    temperature: float = Field(default=0.5, ge=0.0, le=2.0)
    max_tokens: int = Field(default=1024, gt=0)
    max_history_length: int = Field(default=6, ge=0, description="0 keeps the full history.")
    search_results_limit: int = Field(default=6, gt=0)
    topic: str = ""
    db_name: str | None = None


class TransformedQuery(BaseModel):
    """A retrieval-oriented paraphrase of the user's question."""

    model_config = ConfigDict(frozen=True)

    perspective: str = ""
    prompt: str


class SufficiencyResult(BaseModel):
    """Whether a document search is warranted for this turn, and why."""

    model_config = ConfigDict(frozen=True)

    document_search: bool
    reason: str = ""


class RetrievalOutcome(BaseModel):
    """Result of the analyze → classify → transform → search → fuse stages."""

    document_search: bool
    reason: str = ""
    queries: list[str] = Field(default_factory=list)
    merged_results: list[FusedResult] = Field(default_factory=list)


StreamStatus = Literal["completed", "cancelled"]


class StreamOutcome(BaseModel):
    """What :meth:`AnswerStreamer.send` resolved with."""

    status: StreamStatus
    content: str = ""


class StreamEvent(BaseModel):
    """One item on a token channel."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["token", "end", "cancelled", "citations", "messages", "error"]
    data: Any = None


class TurnResult(BaseModel):
    """A finished (or cancelled) answer turn."""

    status: StreamStatus
    content: str = ""
    messages: list[ChatMessage] = Field(default_factory=list)
    citations: list[FusedResult] = Field(default_factory=list)
