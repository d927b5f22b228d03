"""Utility modules for ragdesk.

Available utility modules:

- **errors** -- Domain-specific exception hierarchy rooted at RagDeskError;
  ingestion, store, and provider failures each raise their own subclass so
  callers can tell "skip this file" apart from "abort the request".
- **concurrency** -- semaphore-throttled ``asyncio.gather`` for the
  multi-query search fan-out.
- **logging** -- structlog setup with a dual-renderer pattern: coloured
  console output in development, structured JSON in production.
- **text_normalizer** -- Unicode/control-character normalization and
  charset detection for extracted text.
- **json_repair** (not re-exported here) -- the four-stage JSON fallback
  ladder for model responses.
- **tokenizer** (not re-exported here) -- tiktoken-backed token counting
  for chunk budgets.
"""

from src.utils.errors import (
    AlreadyExistsError,
    CancelledError,
    ConfigurationError,
    EmbeddingProviderError,
    ExtractionError,
    LLMError,
    ProviderUnsupportedError,
    RagDeskError,
    StoreCorruptError,
    StoreError,
    StoreNotFoundError,
    UnsupportedFormatError,
)
from src.utils.concurrency import throttled_gather
from src.utils.logging import configure_logging, get_logger
from src.utils.text_normalizer import decode_bytes, normalize_text

__all__ = [
    "AlreadyExistsError",
    "CancelledError",
    "ConfigurationError",
    "EmbeddingProviderError",
    "ExtractionError",
    "LLMError",
    "ProviderUnsupportedError",
    "RagDeskError",
    "StoreCorruptError",
    "StoreError",
    "StoreNotFoundError",
    "UnsupportedFormatError",
    "configure_logging",
    "decode_bytes",
    "get_logger",
    "normalize_text",
    "throttled_gather",
]
