"""Cross-query fusion and reranking of vector search results.

Each transformed query returns its own ranked list, and the same chunk
often shows up under several queries with scores on different scales.
Fusion merges the lists into one deduplicated ranking.

Two strategies share the :class:`ResultFusion` contract:

**ZScoreFusion** (default)
    1. Short chunks (< 80 characters) lose 65% of their score magnitude
       (positive scores are multiplied by 0.35, negative ones pushed
       further down); headings and stray table cells otherwise crowd out
       real passages.
    2. Scores are standardized per query (population standard deviation),
       so a query with generally high similarities does not dominate.
    3. Keywords are extracted from the queries; each result scores the
       fraction of keywords it contains.
    4. Results are grouped by identical content:
       ``combined = mean_z * 0.8 + mean_kw * 0.2 * (1 + 0.1 * count)``
       where ``count`` is how many result lists contained the content.

**ReciprocalRankFusion**
    Sums ``1 / (k + rank)`` (k = 20) over every query's ranking plus one
    TF-IDF ranking of all retrieved content against the query keywords.

Both return at most ``k`` :class:`~src.models.rag.FusedResult` objects,
ordered by descending score with ties kept in first-seen order.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Sequence

import numpy as np
import structlog

from src.interfaces.keyword_extractor import IKeywordExtractor
from src.models.rag import FusedResult, SearchResult
from src.utils.errors import ConfigurationError

logger = structlog.get_logger(logger_name=__name__)

MIN_CONTENT_LENGTH = 80
SHORT_CONTENT_PENALTY = 0.35

VECTOR_WEIGHT = 0.8
KEYWORD_WEIGHT = 0.2
COUNT_BONUS = 0.1

RRF_K = 20

_ZERO_STD = 1e-12


# ---------------------------------------------------------------------------
# Scoring helpers
# ---------------------------------------------------------------------------

def penalized_score(result: SearchResult) -> float:
    """Lower a short result's score; never raises it, whatever its sign."""
    if len(result.page_content) < MIN_CONTENT_LENGTH:
        return result.score - abs(result.score) * (1 - SHORT_CONTENT_PENALTY)
    return result.score


def z_scores(scores: Sequence[float]) -> list[float]:
    """Standardize *scores*; zero variance maps every score to 0."""
    if not scores:
        return []
    values = np.asarray(scores, dtype="float64")
    std = float(values.std())
    if std < _ZERO_STD:
        return [0.0] * len(scores)
    return ((values - values.mean()) / std).tolist()


def keyword_score(content: str, keywords: Sequence[str]) -> float:
    """Fraction of *keywords* that occur in *content* (case-sensitive substring)."""
    if not keywords:
        return 0.0
    return sum(1 for keyword in keywords if keyword in content) / len(keywords)


def tfidf_scores(contents: Sequence[str], keywords: Sequence[str]) -> list[float]:
    """Mean keyword TF-IDF per content.

    ``tf`` is the raw occurrence count and
    ``idf = ln((N + 1) / (df + 1)) + 1``.
    """
    if not keywords:
        return [0.0] * len(contents)
    total = len(contents)
    idf = {
        keyword: math.log((total + 1) / (sum(1 for c in contents if keyword in c) + 1)) + 1
        for keyword in keywords
    }
    return [
        sum(content.count(keyword) * idf[keyword] for keyword in keywords) / len(keywords)
        for content in contents
    ]


# ---------------------------------------------------------------------------
# Strategies
# ---------------------------------------------------------------------------

class ResultFusion(ABC):
    """Merges per-query result lists into one ranked, deduplicated list."""

    def __init__(self, keyword_extractor: IKeywordExtractor) -> None:
        self._keyword_extractor = keyword_extractor

    @abstractmethod
    def fuse(
        self,
        result_sets: Sequence[Sequence[SearchResult]],
        queries: Sequence[str],
        k: int,
    ) -> list[FusedResult]:
        """Return at most *k* fused results.

        ``result_sets[i]`` must be the results of ``queries[i]``.
        """


class ZScoreFusion(ResultFusion):
    def fuse(
        self,
        result_sets: Sequence[Sequence[SearchResult]],
        queries: Sequence[str],
        k: int,
    ) -> list[FusedResult]:
        keywords = self._keyword_extractor.extract(list(queries))

        # content -> [first result, z-scores, keyword scores]
        groups: dict[str, tuple[SearchResult, list[float], list[float]]] = {}
        for results in result_sets:
            standardized = z_scores([penalized_score(r) for r in results])
            for result, z in zip(results, standardized):
                group = groups.get(result.page_content)
                if group is None:
                    group = (result, [], [])
                    groups[result.page_content] = group
                group[1].append(z)
                group[2].append(keyword_score(result.page_content, keywords))

        fused: list[FusedResult] = []
        for content, (first, zs, kws) in groups.items():
            count = len(zs)
            avg_z = sum(zs) / count
            avg_kw = sum(kws) / count
            combined = avg_z * VECTOR_WEIGHT + avg_kw * KEYWORD_WEIGHT * (1 + COUNT_BONUS * count)
            fused.append(
                FusedResult(
                    page_content=content,
                    metadata=first.metadata,
                    combined_score=combined,
                    count=count,
                )
            )

        # sorted() is stable, so equal scores keep first-seen order.
        ranked = sorted(fused, key=lambda r: r.combined_score, reverse=True)[:k]
        logger.debug(
            "results_fused",
            strategy="zscore",
            unique=len(fused),
            returned=len(ranked),
            keywords=len(keywords),
        )
        return ranked


class ReciprocalRankFusion(ResultFusion):
    def __init__(self, keyword_extractor: IKeywordExtractor, rrf_k: int = RRF_K) -> None:
        super().__init__(keyword_extractor)
        self._rrf_k = rrf_k

    def fuse(
        self,
        result_sets: Sequence[Sequence[SearchResult]],
        queries: Sequence[str],
        k: int,
    ) -> list[FusedResult]:
        keywords = self._keyword_extractor.extract(list(queries))

        first_seen: dict[str, SearchResult] = {}
        counts: dict[str, int] = {}
        rankings: list[list[str]] = []
        for results in result_sets:
            ranking = [r.page_content for r in sorted(results, key=lambda r: r.score, reverse=True)]
            rankings.append(ranking)
            for result in results:
                first_seen.setdefault(result.page_content, result)
                counts[result.page_content] = counts.get(result.page_content, 0) + 1

        contents = list(first_seen)
        tfidf = tfidf_scores(contents, keywords)
        rankings.append(
            [content for content, _ in sorted(zip(contents, tfidf), key=lambda p: p[1], reverse=True)]
        )

        scores: dict[str, float] = {content: 0.0 for content in contents}
        for ranking in rankings:
            for rank, content in enumerate(ranking, start=1):
                scores[content] += 1.0 / (self._rrf_k + rank)

        ranked = sorted(contents, key=lambda c: scores[c], reverse=True)[:k]
        logger.debug("results_fused", strategy="rrf", unique=len(contents), returned=len(ranked))
        return [
            FusedResult(
                page_content=content,
                metadata=first_seen[content].metadata,
                combined_score=scores[content],
                count=counts[content],
            )
            for content in ranked
        ]


def build_fusion(strategy: str, keyword_extractor: IKeywordExtractor) -> ResultFusion:
    """Return the fusion strategy named by the ``fusion_strategy`` setting."""
    if strategy == "rrf":
        return ReciprocalRankFusion(keyword_extractor)
    if strategy == "zscore":
        return ZScoreFusion(keyword_extractor)
    raise ConfigurationError(message=f"Unknown fusion strategy: {strategy}")
