"""
Exact cosine-similarity search over a store snapshot.

Every stored row is scored against the query (brute force, no index), the rows
are ranked by descending score, and the ranking is cut by a minimum score and
a maximum result count.
"""

import logging
import time
from typing import List, Optional

import numpy as np

from embedding_core.interfaces import (
    EmbeddingInput,
    MetricType,
    SearchOptions,
    SearchResult,
    StoreSnapshot,
    coerce_query,
)


class SimilaritySearch:
    """
    Stateless cosine-similarity ranking.

    Instances hold no reference to any store; each call works on the snapshot
    it is given, so a search never observes a half-applied append.
    """

    metric_type = MetricType.COSINE

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def cosine_scores(self, snapshot: StoreSnapshot, query: EmbeddingInput) -> np.ndarray:
        """
        Compute the cosine similarity between ``query`` and every stored row.

        Args:
            snapshot: Store snapshot to score against
            query: Query embedding of the store's dimension

        Returns:
            Array of ``N`` scores in [-1, 1]; empty when the snapshot is empty
        """
        if snapshot.is_empty:
            return np.empty(0, dtype=np.float64)

        matrix = snapshot.embeddings
        query_row = coerce_query(query, snapshot.dimension, matrix.dtype)

        # Integer stores are scored in float64, float stores in their own precision.
        work_dtype = np.promote_types(matrix.dtype, np.float32)
        rows = matrix.astype(work_dtype, copy=False)
        query_vector = query_row[0].astype(work_dtype, copy=False)

        with np.errstate(over="ignore", under="ignore", invalid="ignore"):
            dots = rows @ query_vector
            denominators = np.linalg.norm(rows, axis=1) * np.linalg.norm(query_vector)

            # Very large or very small magnitudes overflow or underflow the
            # squared norms; those rows are recomputed at unit scale.
            rescale = ~(np.isfinite(dots) & np.isfinite(denominators)) | (denominators == 0)
            if rescale.any():
                dots[rescale], denominators[rescale] = self._unit_scale_terms(
                    rows[rescale], query_vector
                )

        # A zero-norm row or query has no direction and scores 0.
        scores = np.zeros(rows.shape[0], dtype=work_dtype)
        np.divide(dots, denominators, out=scores, where=denominators > 0)
        return np.clip(scores, -1.0, 1.0, out=scores)

    def _unit_scale_terms(self, rows: np.ndarray, query_vector: np.ndarray):
        """
        Dot products and norm products after dividing every row and the query
        by its largest magnitude. Cosine similarity is unchanged by the scaling.
        """
        row_scale = np.max(np.abs(rows), axis=1)[:, np.newaxis]
        unit_rows = np.divide(rows, row_scale, out=np.zeros_like(rows), where=row_scale > 0)

        query_scale = np.max(np.abs(query_vector))
        unit_query = query_vector / query_scale if query_scale > 0 else np.zeros_like(query_vector)

        dots = unit_rows @ unit_query
        denominators = np.linalg.norm(unit_rows, axis=1) * np.linalg.norm(unit_query)
        return dots, denominators

    def rank(self, scores: np.ndarray) -> np.ndarray:
        """
        Order row indices by descending score.

        The sort is stable, so equal scores keep insertion order.
        """
        return np.argsort(-scores, kind="stable")

    def search(
        self,
        snapshot: StoreSnapshot,
        query: EmbeddingInput,
        options: Optional[SearchOptions] = None,
    ) -> List[SearchResult]:
        """
        Return the payloads whose embeddings are most similar to ``query``.

        Args:
            snapshot: Store snapshot to search
            query: Query embedding
            options: Score and count filters (defaults if None)

        Returns:
            Results ordered best first, each scoring at least
            ``options.minimum_score``, at most ``options.maximum_results`` of them
        """
        options = options or SearchOptions()

        if snapshot.is_empty:
            return []

        start_time = time.time()
        scores = self.cosine_scores(snapshot, query)
        order = self.rank(scores)

        results: List[SearchResult] = []
        for index in order[: options.maximum_results]:
            score = float(scores[index])
            # Scores are non-increasing along the ranking; NaN ranks last and also stops.
            if not score >= options.minimum_score:
                break
            results.append(SearchResult(score=score, payload=snapshot.payloads[index]))

        self.logger.debug(
            f"Searched {snapshot.size} embeddings in "
            f"{(time.time() - start_time) * 1000:.2f}ms, returned {len(results)} results"
        )
        return results
