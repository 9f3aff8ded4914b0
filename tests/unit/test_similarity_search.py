"""
Tests for cosine-similarity search.
"""
import math

import numpy as np
import pytest

from embedding_core.interfaces import (
    DimensionMismatchError,
    ElementKindError,
    InvalidSearchOptionsError,
    SearchOptions,
    SearchResult,
    StoreSnapshot,
)
from embedding_core.search import SimilaritySearch
from embedding_core.store import EmbeddingStore


class TestCosineScores:
    """Test the scoring step."""

    def test_scores_against_known_vectors(self, abc_store):
        """Test scores for parallel, orthogonal and diagonal rows."""
        scores = SimilaritySearch().cosine_scores(abc_store.snapshot(), [1, 0])

        assert scores[0] == pytest.approx(1.0)
        assert scores[1] == pytest.approx(0.0)
        assert scores[2] == pytest.approx(1 / math.sqrt(2))

    def test_integer_store_scored_in_double_precision(self, abc_store):
        """Test that integer rows are not scored in integer arithmetic."""
        scores = SimilaritySearch().cosine_scores(abc_store.snapshot(), [1, 0])
        assert scores.dtype == np.float64

    def test_float32_store_scored_in_single_precision(self):
        """Test that float32 rows keep their precision."""
        store = EmbeddingStore({"dtype": "float32"})
        store.append([([0.5, 0.5], "a")])

        scores = SimilaritySearch().cosine_scores(store.snapshot(), [1.0, 0.0])
        assert scores.dtype == np.float32

    def test_zero_vectors_score_zero(self):
        """Test that zero rows and zero queries score 0 instead of NaN."""
        store = EmbeddingStore()
        store.append([([0.0, 0.0], "zero"), ([1.0, 0.0], "x")])
        searcher = SimilaritySearch()

        np.testing.assert_array_equal(
            searcher.cosine_scores(store.snapshot(), [1.0, 0.0]), [0.0, 1.0]
        )
        np.testing.assert_array_equal(
            searcher.cosine_scores(store.snapshot(), [0.0, 0.0]), [0.0, 0.0]
        )

    def test_scores_are_bounded(self, rng):
        """Test that scores never leave [-1, 1]."""
        store = EmbeddingStore()
        base = rng.uniform(-1, 1, 8)
        store.append([(base * scale, i) for i, scale in enumerate([1e-3, 1.0, 7.0, 1e6])])

        scores = SimilaritySearch().cosine_scores(store.snapshot(), base)
        assert np.all(scores <= 1.0)
        assert np.all(scores >= -1.0)

    def test_empty_snapshot(self):
        """Test that an empty snapshot yields no scores."""
        empty = StoreSnapshot(embeddings=None, payloads=())
        assert SimilaritySearch().cosine_scores(empty, [1.0]).shape == (0,)

    @pytest.mark.parametrize("dtype", ["float32", "float64"])
    @pytest.mark.parametrize("magnitude", [1e20, 1e-30])
    def test_extreme_magnitudes(self, dtype, magnitude):
        """Test that rows whose squared norms overflow or underflow still score."""
        store = EmbeddingStore({"dtype": dtype})
        store.append([
            ([magnitude, 0.0], "parallel"),
            ([magnitude, magnitude], "diagonal"),
            ([0.0, 0.0], "zero"),
        ])

        scores = SimilaritySearch().cosine_scores(store.snapshot(), [magnitude, 0.0])
        assert scores[0] == pytest.approx(1.0, abs=1e-6)
        assert scores[1] == pytest.approx(1 / math.sqrt(2), abs=1e-6)
        assert scores[2] == 0.0

    def test_huge_float32_rows_are_found(self):
        """Test that a large exact match is returned by search."""
        store = EmbeddingStore({"dtype": "float32"})
        store.append([([1e20, 0.0], "a"), ([0.0, 3e25], "b")])

        results = store.search([1e20, 0.0])
        assert [r.payload for r in results] == ["a", "b"]
        assert results[0].score == pytest.approx(1.0)
        assert results[1].score == 0.0

    def test_large_rows_mixed_with_ordinary_rows(self):
        """Test that rescaled rows rank alongside rows scored directly."""
        store = EmbeddingStore({"dtype": "float32"})
        store.append([([1.0, 1.0], "small"), ([1e30, 0.0], "large")])

        results = store.search([1.0, 0.0])
        assert [r.payload for r in results] == ["large", "small"]
        assert results[1].score == pytest.approx(1 / math.sqrt(2), abs=1e-6)


class TestRank:
    """Test the ranking step."""

    def test_descending_order(self):
        """Test that indices are ordered by descending score."""
        order = SimilaritySearch().rank(np.array([0.1, 0.9, 0.5]))
        assert order.tolist() == [1, 2, 0]

    def test_ties_keep_insertion_order(self):
        """Test that equal scores keep their row order."""
        order = SimilaritySearch().rank(np.array([0.5, 1.0, 0.5, 1.0, 0.5]))
        assert order.tolist() == [1, 3, 0, 2, 4]


class TestSearch:
    """Test ranked search through the store."""

    def test_known_ranking(self, abc_store):
        """Test the ranking of the three reference vectors."""
        results = abc_store.search([1, 0])

        assert [result.payload for result in results] == ["a", "c", "b"]
        assert results[0].score == pytest.approx(1.0)
        assert results[1].score == pytest.approx(0.7071, abs=1e-4)
        assert results[2].score == pytest.approx(0.0)
        assert all(isinstance(result, SearchResult) for result in results)

    def test_minimum_score(self, abc_store):
        """Test that results below the minimum score are dropped."""
        results = abc_store.search([1, 0], minimum_score=0.5)
        assert [result.payload for result in results] == ["a", "c"]

    def test_negative_scores_excluded_by_default(self):
        """Test that opposite vectors are filtered unless the threshold allows them."""
        store = EmbeddingStore()
        store.append([([1.0, 0.0], "same"), ([-1.0, 0.0], "opposite")])

        assert [r.payload for r in store.search([1.0, 0.0])] == ["same"]

        results = store.search([1.0, 0.0], minimum_score=-1.0)
        assert [r.payload for r in results] == ["same", "opposite"]
        assert results[1].score == pytest.approx(-1.0)

    def test_maximum_results(self, rng):
        """Test that the number of results is capped."""
        store = EmbeddingStore()
        store.append([(rng.uniform(0, 1, 4), i) for i in range(40)])

        assert len(store.search(rng.uniform(0, 1, 4), maximum_results=5)) == 5
        assert len(store.search(rng.uniform(0, 1, 4))) == 16

    def test_zero_maximum_results(self, abc_store):
        """Test that a zero cap returns nothing."""
        assert abc_store.search([1, 0], maximum_results=0) == []

    def test_equal_scores_in_insertion_order(self):
        """Test that parallel rows come back in the order they were appended."""
        store = EmbeddingStore()
        store.append([([1, 0], "x"), ([2, 0], "y"), ([0, 1], "z"), ([3, 0], "w")])

        results = store.search([1, 0])
        assert [r.payload for r in results] == ["x", "y", "w", "z"]

    def test_zero_query_returns_rows_in_insertion_order(self, abc_store):
        """Test that a zero query scores everything 0."""
        results = abc_store.search([0, 0])
        assert [r.payload for r in results] == ["a", "b", "c"]
        assert all(r.score == 0.0 for r in results)

    def test_empty_store(self, store):
        """Test that searching an empty store returns no results."""
        assert store.search([0.1, 0.2, 0.3]) == []

    def test_query_dimension_mismatch(self, abc_store):
        """Test that a query of the wrong length is rejected."""
        with pytest.raises(DimensionMismatchError):
            abc_store.search([1, 0, 0])

    def test_float_query_against_integer_store(self, abc_store):
        """Test that a float query cannot be matched against integer rows."""
        with pytest.raises(ElementKindError):
            abc_store.search([1.0, 0.0])

    def test_non_numeric_query(self, abc_store):
        """Test that a non-numeric query is rejected."""
        with pytest.raises(ElementKindError):
            abc_store.search(["a", "b"])

    def test_integer_query_against_float_store(self):
        """Test that an integer query is widened for a float store."""
        store = EmbeddingStore()
        store.append([([0.5, 0.0], "a")])
        assert store.search([2, 0])[0].score == pytest.approx(1.0)

    def test_store_default_options(self, abc_store):
        """Test that configured defaults apply when no options are passed."""
        store = EmbeddingStore({"minimum_score": 0.5, "maximum_results": 1})
        store.load(abc_store.dump())

        results = store.search([1, 0])
        assert [r.payload for r in results] == ["a"]

    def test_search_against_snapshot(self, abc_store):
        """Test that a search on an old snapshot ignores later appends."""
        snapshot = abc_store.snapshot()
        abc_store.append([([5, 0], "d")])

        results = SimilaritySearch().search(snapshot, [1, 0])
        assert [r.payload for r in results] == ["a", "c", "b"]

    def test_random_store_properties(self, store, generate_embedding):
        """Test ordering, bounds and caps on a random store."""
        store.append([(generate_embedding(), i) for i in range(200)])

        for _ in range(10):
            results = store.search(generate_embedding(), minimum_score=0.1, maximum_results=20)
            scores = [r.score for r in results]

            assert len(results) <= 20
            assert all(0.1 <= score <= 1.0 for score in scores)
            assert scores == sorted(scores, reverse=True)
            assert len({r.payload for r in results}) == len(results)

    def test_result_to_dict(self, abc_store):
        """Test the dictionary form of a result."""
        result = abc_store.search([1, 0])[0]
        assert result.to_dict() == {"score": result.score, "payload": "a"}


class TestSearchOptions:
    """Test search option validation."""

    def test_defaults(self):
        """Test the default options."""
        options = SearchOptions()
        assert options.minimum_score == 0.0
        assert options.maximum_results == 16

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"minimum_score": 1.5},
            {"minimum_score": -1.01},
            {"minimum_score": "high"},
            {"minimum_score": float("nan")},
            {"maximum_results": -1},
            {"maximum_results": 2.5},
            {"maximum_results": True},
        ],
    )
    def test_invalid_options(self, kwargs):
        """Test that out-of-range or mistyped options are rejected."""
        with pytest.raises(InvalidSearchOptionsError):
            SearchOptions(**kwargs)

    def test_invalid_options_through_store(self, abc_store):
        """Test that the store validates per-call options."""
        with pytest.raises(InvalidSearchOptionsError):
            abc_store.search([1, 0], maximum_results=-3)

    def test_invalid_options_are_value_errors(self):
        """Test that option errors can be caught as ValueError."""
        with pytest.raises(ValueError):
            SearchOptions(minimum_score=2)
