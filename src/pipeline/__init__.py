"""Chat-turn orchestration and request cancellation for ragdesk.

``src.pipeline.orchestrator.ChatPipeline`` sequences the retrieval stages of
``src.services.rag``; it is imported from its module directly because those
stages depend on the cancellation primitives exported here.
"""

from src.pipeline.cancellation import CancellationToken, StreamRegistry

__all__ = [
    "CancellationToken",
    "StreamRegistry",
]
