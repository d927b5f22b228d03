"""Custom exception hierarchy for ragdesk.

All application exceptions inherit from :class:`RagDeskError`, which
carries an optional ``provider_name`` so error handlers can identify which
external service (e.g. "openai", "azure-openai", "faiss") caused the failure.

The hierarchy is organized by pipeline domain:

    RagDeskError  (base -- catch-all for any ragdesk error)
    +-- UnsupportedFormatError   (ingestion: unknown file extension)
    +-- ExtractionError          (ingestion: corrupt file / bad encoding)
    +-- EmbeddingProviderError   (embedding API failure)
    +-- StoreError               (vector store / registry)
    |   +-- StoreNotFoundError   (no registry entry for a database name)
    |   +-- StoreCorruptError    (index or mapping file missing/unreadable)
    |   +-- AlreadyExistsError   (database name already registered)
    +-- LLMError                 (any chat-completion call failure)
    +-- CancelledError           (user cancelled a running request)
    +-- ConfigurationError       (startup / missing config)
        +-- ProviderUnsupportedError (unknown vendor in settings)

Malformed JSON from a model is deliberately absent: it is absorbed by
:mod:`src.utils.json_repair` and degrades to a default value.
"""


class RagDeskError(Exception):
    """Base exception for all ragdesk errors.

    Every subclass carries a human-readable ``message`` and an optional
    ``provider_name`` identifying which external service triggered the
    error.  The ``__str__`` method prefixes the provider name in brackets
    for structured log output, e.g. ``[openai] Rate limit exceeded``.
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        provider_name: str | None = None,
    ) -> None:
        self._message = message
        self._provider_name = provider_name
        super().__init__(self._message)

    @property
    def message(self) -> str:
        return self._message

    @property
    def provider_name(self) -> str | None:
        return self._provider_name

    def __str__(self) -> str:
        if self._provider_name:
            return f"[{self._provider_name}] {self._message}"
        return self._message


# ---------------------------------------------------------------------------
# Ingestion errors
# ---------------------------------------------------------------------------

class UnsupportedFormatError(RagDeskError):
    """Raised when a file extension has no registered extractor."""

    def __init__(
        self,
        message: str = "Unsupported file format",
        provider_name: str | None = None,
        path: str | None = None,
    ) -> None:
        self._path = path
        super().__init__(message=message, provider_name=provider_name)

    @property
    def path(self) -> str | None:
        return self._path


class ExtractionError(RagDeskError):
    """Raised when a supported file cannot be read (corrupt PDF, bad JSON, ...)."""

    def __init__(
        self,
        message: str = "Text extraction failed",
        provider_name: str | None = None,
        path: str | None = None,
    ) -> None:
        self._path = path
        super().__init__(message=message, provider_name=provider_name)

    @property
    def path(self) -> str | None:
        return self._path


class EmbeddingProviderError(RagDeskError):
    """Raised when an embedding API call fails (network, auth, rate limit)."""

    def __init__(
        self,
        message: str = "Embedding API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Store errors
# ---------------------------------------------------------------------------

class StoreError(RagDeskError):
    """Base class for vector-store and registry failures."""

    def __init__(
        self,
        message: str = "Vector store operation failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreNotFoundError(StoreError):
    """Raised when a database name has no entry in the registry."""

    def __init__(
        self,
        message: str = "Database not found",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class StoreCorruptError(StoreError):
    """Raised when a registered database is missing its index or mapping files."""

    def __init__(
        self,
        message: str = "Database files are missing or unreadable",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class AlreadyExistsError(StoreError):
    """Raised when creating a database whose name is already registered."""

    def __init__(
        self,
        message: str = "Database already exists",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


# ---------------------------------------------------------------------------
# Provider / pipeline errors
# ---------------------------------------------------------------------------

class LLMError(RagDeskError):
    """Raised when a chat-completion API call fails."""

    def __init__(
        self,
        message: str = "LLM API call failed",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class CancelledError(RagDeskError):
    """Raised when a user-initiated request is cancelled mid-pipeline.

    Not a failure: callers report it as a distinct outcome and log it at
    info level.
    """

    def __init__(
        self,
        message: str = "Request cancelled",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ConfigurationError(RagDeskError):
    """Raised for missing or invalid configuration at startup."""

    def __init__(
        self,
        message: str = "Configuration error",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)


class ProviderUnsupportedError(ConfigurationError):
    """Raised when settings name a vendor that has no adapter."""

    def __init__(
        self,
        message: str = "Unsupported provider vendor",
        provider_name: str | None = None,
    ) -> None:
        super().__init__(message=message, provider_name=provider_name)
