"""Unit tests for cross-query result fusion and the multi-query searcher."""

from __future__ import annotations

import math

import pytest

from src.models.rag import SearchResult
from src.services.rag.multi_query_searcher import MultiQuerySearcher
from src.services.rag.result_fusion import (
    RRF_K,
    SHORT_CONTENT_PENALTY,
    ReciprocalRankFusion,
    ZScoreFusion,
    build_fusion,
    keyword_score,
    penalized_score,
    tfidf_scores,
    z_scores,
)
from src.utils.errors import ConfigurationError, StoreNotFoundError
from tests.fakes import FakeKeywordExtractor

# Every passage is at least 80 characters so the short-content penalty stays out of the way.
X = "The printer must be reset after the toner cartridge is replaced, using the power button."
A = "Holiday requests are submitted through the HR portal at least two weeks in advance."
B = "The coffee machine on the third floor is descaled every Friday morning by facilities."
C = "Parking permits are renewed every January and must be displayed on the dashboard."
D = "Visitors sign in at reception and wear a badge while they remain inside the building."


def _result(content: str, score: float, **metadata) -> SearchResult:
    return SearchResult(page_content=content, metadata=metadata, score=score)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestScoringHelpers:
    def test_z_scores_population_std(self) -> None:
        assert z_scores([1.0, 3.0]) == pytest.approx([-1.0, 1.0])

    def test_z_scores_zero_variance(self) -> None:
        assert z_scores([0.5, 0.5, 0.5]) == [0.0, 0.0, 0.0]

    def test_z_scores_empty(self) -> None:
        assert z_scores([]) == []

    def test_keyword_score_is_case_sensitive_fraction(self) -> None:
        assert keyword_score("Printer toner", ["Printer", "toner", "paper"]) == pytest.approx(2 / 3)
        assert keyword_score("printer", ["Printer"]) == 0.0
        assert keyword_score("anything", []) == 0.0

    def test_tfidf(self) -> None:
        idf = math.log(3 / 2) + 1
        assert tfidf_scores(["toner toner", "paper"], ["toner"]) == pytest.approx([2 * idf, 0.0])
        assert tfidf_scores(["a", "b"], []) == [0.0, 0.0]

    def test_penalty_scales_positive_scores(self) -> None:
        short = SearchResult(page_content="short", score=0.5)
        assert penalized_score(short) == pytest.approx(0.5 * SHORT_CONTENT_PENALTY)

    def test_penalty_never_raises_negative_scores(self) -> None:
        short = SearchResult(page_content="short", score=-0.5)

        penalized = penalized_score(short)

        assert penalized <= -0.5
        assert penalized == pytest.approx(-0.5 - 0.5 * (1 - SHORT_CONTENT_PENALTY))

    def test_long_content_is_untouched(self) -> None:
        assert penalized_score(_result(X, -0.25)) == -0.25


# ---------------------------------------------------------------------------
# Z-score fusion
# ---------------------------------------------------------------------------


class TestZScoreFusion:
    def test_repeated_content_collapses_and_outranks_single_occurrence(self) -> None:
        extractor = FakeKeywordExtractor(["printer"])
        fusion = ZScoreFusion(extractor)
        first = [_result(X, 0.9, source="a.txt"), _result(A, 0.5), _result(B, 0.3)]
        # Same spread as the first query, shifted down by 0.2.
        second = [_result(X, 0.7, source="b.txt"), _result(C, 0.3), _result(D, 0.1)]

        both = fusion.fuse([first, second], ["reset printer", "printer toner"], 10)
        single = fusion.fuse([first], ["reset printer"], 10)

        fused_x = [r for r in both if r.page_content == X]
        assert len(fused_x) == 1
        assert fused_x[0].count == 2
        assert fused_x[0].metadata == {"source": "a.txt"}
        assert fused_x[0].combined_score > single[0].combined_score
        assert both[0].page_content == X
        assert extractor.calls == [["reset printer", "printer toner"]]

    def test_higher_raw_score_ranks_higher(self) -> None:
        fusion = ZScoreFusion(FakeKeywordExtractor())
        results = [_result(A, 0.2), _result(B, 0.8), _result(C, 0.5)]

        ranked = fusion.fuse([results], ["q"], 3)

        assert [r.page_content for r in ranked] == [B, C, A]

    def test_short_content_is_penalized(self) -> None:
        fusion = ZScoreFusion(FakeKeywordExtractor())
        results = [_result("Printer", 0.9), _result(X, 0.8), _result(A, 0.1)]

        ranked = fusion.fuse([results], ["q"], 3)

        assert ranked[0].page_content == X

    def test_short_content_with_negative_score_stays_penalized(self) -> None:
        fusion = ZScoreFusion(FakeKeywordExtractor())
        results = [_result("Printer", -0.2), _result(X, -0.3), _result(A, -0.9)]

        ranked = fusion.fuse([results], ["q"], 3)

        assert [r.page_content for r in ranked] == [X, "Printer", A]

    def test_same_list_twice_is_counted_once_per_list(self) -> None:
        fusion = ZScoreFusion(FakeKeywordExtractor(["every"]))
        results = [_result(B, 0.9), _result(C, 0.6), _result(A, 0.2)]

        single = {r.page_content: r for r in fusion.fuse([results], ["q"], 10)}
        doubled = fusion.fuse([results, results], ["q", "q"], 10)

        assert sorted(r.page_content for r in doubled) == sorted([A, B, C])
        assert all(r.count == 2 for r in doubled)
        for fused in doubled:
            once = single[fused.page_content]
            # Only the count bonus on the keyword term differs.
            kw = 1.0 if "every" in fused.page_content else 0.0
            bonus = kw * 0.2 * 0.1
            assert fused.combined_score == pytest.approx(once.combined_score + bonus)

    def test_higher_count_wins_when_scores_match(self) -> None:
        fusion = ZScoreFusion(FakeKeywordExtractor(["every"]))
        # C and B both standardize to +1 and both contain the keyword;
        # C is seen first but B appears in two lists.
        result_sets = [
            [_result(C, 0.9), _result(X, 0.1)],
            [_result(B, 0.9), _result(A, 0.1)],
            [_result(B, 0.9), _result(D, 0.1)],
        ]

        ranked = fusion.fuse(result_sets, ["q1", "q2", "q3"], 2)

        assert [r.page_content for r in ranked] == [B, C]
        assert ranked[0].count == 2
        assert ranked[1].count == 1

    def test_keyword_coverage_breaks_equal_vectors(self) -> None:
        fusion = ZScoreFusion(FakeKeywordExtractor(["coffee"]))
        results = [_result(A, 0.5), _result(B, 0.5)]

        ranked = fusion.fuse([results], ["coffee"], 2)

        assert ranked[0].page_content == B

    def test_zero_variance_keeps_first_seen_order(self) -> None:
        fusion = ZScoreFusion(FakeKeywordExtractor())
        results = [_result(A, 0.5), _result(B, 0.5), _result(C, 0.5)]

        ranked = fusion.fuse([results], ["q"], 3)

        assert [r.page_content for r in ranked] == [A, B, C]
        assert all(r.combined_score == 0.0 for r in ranked)

    def test_returns_at_most_k(self) -> None:
        fusion = ZScoreFusion(FakeKeywordExtractor())
        results = [_result(A, 0.9), _result(B, 0.8), _result(C, 0.7), _result(D, 0.6)]
        assert len(fusion.fuse([results], ["q"], 2)) == 2

    def test_empty_result_sets(self) -> None:
        fusion = ZScoreFusion(FakeKeywordExtractor())
        assert fusion.fuse([[], []], ["q1", "q2"], 5) == []


# ---------------------------------------------------------------------------
# Reciprocal rank fusion
# ---------------------------------------------------------------------------


class TestReciprocalRankFusion:
    def test_top_in_every_query_wins(self) -> None:
        fusion = ReciprocalRankFusion(FakeKeywordExtractor())
        first = [_result(X, 0.9), _result(A, 0.5)]
        second = [_result(X, 0.6), _result(B, 0.4)]

        ranked = fusion.fuse([first, second], ["q1", "q2"], 5)

        assert ranked[0].page_content == X
        assert ranked[0].count == 2
        # Rank 1 in both queries and (no keywords) first in the TF-IDF ranking.
        assert ranked[0].combined_score == pytest.approx(3 / (RRF_K + 1))

    def test_tfidf_ranking_contributes(self) -> None:
        fusion = ReciprocalRankFusion(FakeKeywordExtractor(["coffee"]))
        results = [_result(A, 0.51), _result(B, 0.50)]

        ranked = fusion.fuse([results], ["coffee"], 2)

        # A wins the vector ranking, B the keyword ranking; the tie keeps first-seen order.
        assert ranked[0].combined_score == pytest.approx(ranked[1].combined_score)
        assert [r.page_content for r in ranked] == [A, B]


class TestBuildFusion:
    def test_known_strategies(self) -> None:
        extractor = FakeKeywordExtractor()
        assert isinstance(build_fusion("zscore", extractor), ZScoreFusion)
        assert isinstance(build_fusion("rrf", extractor), ReciprocalRankFusion)

    def test_unknown_strategy(self) -> None:
        with pytest.raises(ConfigurationError):
            build_fusion("borda", FakeKeywordExtractor())


# ---------------------------------------------------------------------------
# Multi-query search
# ---------------------------------------------------------------------------


class _RecordingStore:
    def __init__(self, fail_for: str | None = None) -> None:
        self.calls: list[tuple[str, str, int]] = []
        self.fail_for = fail_for

    async def search(self, name: str, query: str, k: int) -> list[SearchResult]:
        self.calls.append((name, query, k))
        if query == self.fail_for:
            raise StoreNotFoundError(message=f"Database '{name}' not found")
        return [_result(f"{query} hit", 1.0)]


class TestMultiQuerySearcher:
    async def test_one_result_set_per_query_in_order(self) -> None:
        store = _RecordingStore()
        searcher = MultiQuerySearcher(store, margin=5, concurrency=2)

        result_sets = await searcher.search("handbook", ["alpha", "beta", "gamma"], 6)

        assert [rs[0].page_content for rs in result_sets] == ["alpha hit", "beta hit", "gamma hit"]
        assert {k for _, _, k in store.calls} == {11}

    async def test_failure_propagates(self) -> None:
        searcher = MultiQuerySearcher(_RecordingStore(fail_for="beta"))
        with pytest.raises(StoreNotFoundError):
            await searcher.search("handbook", ["alpha", "beta"], 3)
