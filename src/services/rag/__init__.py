"""Retrieval-augmented chat stages.

One chat turn runs these stages in order (see ``src/pipeline/orchestrator.py``):

1. **QueryAnalyzer**          -- free-text analysis of the latest question
2. **SufficiencyClassifier**  -- is a document search warranted?
3. **QueryTransformer**       -- up to four declarative search prompts
4. **MultiQuerySearcher**     -- concurrent vector search per prompt
5. **ResultFusion**           -- z-score (or RRF) fusion and reranking
6. **AnswerStreamer**         -- the streamed answer itself

Prompt templates live in :mod:`src.services.rag.prompts`.
"""

from src.services.rag.answer_streamer import AnswerStreamer
from src.services.rag.metadata_generator import MetadataGenerator
from src.services.rag.multi_query_searcher import MultiQuerySearcher
from src.services.rag.query_analyzer import QueryAnalyzer
from src.services.rag.query_transformer import QueryTransformer
from src.services.rag.result_fusion import (
    ReciprocalRankFusion,
    ResultFusion,
    ZScoreFusion,
    build_fusion,
)
from src.services.rag.sufficiency_classifier import SufficiencyClassifier

__all__ = [
    "AnswerStreamer",
    "MetadataGenerator",
    "MultiQuerySearcher",
    "QueryAnalyzer",
    "QueryTransformer",
    "ReciprocalRankFusion",
    "ResultFusion",
    "SufficiencyClassifier",
    "ZScoreFusion",
    "build_fusion",
]
