"""
End-to-end tests of the store: fill, search, dump and restore.
"""
import numpy as np

from embedding_core import EmbeddingStore, EmbeddingItem, SimilaritySearch


class TestStoreWorkflow:
    """Test the store the way an application uses it."""

    def test_fill_search_restore(self, generate_embedding):
        """Test that a restored store answers queries exactly like the original."""
        store = EmbeddingStore()
        store.append([EmbeddingItem(embedding=generate_embedding(), payload=i) for i in range(1000)])

        restored = EmbeddingStore.from_buffer(store.dump(), {"dtype": "float32"})

        assert restored.size() == 1000
        assert list(restored.payloads) == list(range(1000))
        np.testing.assert_array_equal(restored.embeddings, store.embeddings)

        for _ in range(5):
            query = generate_embedding()
            assert restored.search(query) == store.search(query)

    def test_float32_rows_reload_as_float64(self, generate_embedding):
        """Test that a plain reload keeps every value while widening the kind."""
        store = EmbeddingStore()
        store.append([(generate_embedding(), i) for i in range(10)])

        restored = EmbeddingStore.from_buffer(store.dump())

        assert restored.dtype == np.float64
        np.testing.assert_array_equal(restored.embeddings, store.embeddings)
        assert restored.search(store.embeddings[3], maximum_results=1)[0].payload == 3

    def test_search_matches_brute_force(self, rng):
        """Test the ranking against a direct computation."""
        matrix = rng.uniform(-1, 1, (300, 12))
        query = rng.uniform(-1, 1, 12)

        store = EmbeddingStore()
        store.append([(row, i) for i, row in enumerate(matrix)])
        results = store.search(query, minimum_score=-1.0, maximum_results=300)

        expected = matrix @ query / (np.linalg.norm(matrix, axis=1) * np.linalg.norm(query))
        expected_order = np.argsort(-expected, kind="stable")

        assert [r.payload for r in results] == expected_order.tolist()
        np.testing.assert_allclose([r.score for r in results], expected[expected_order])

    def test_grow_in_batches(self, generate_embedding, embedding_dimension):
        """Test that several appends give the same store as one."""
        items = [(generate_embedding(), i) for i in range(30)]

        batched = EmbeddingStore()
        for start in range(0, 30, 7):
            batched.append(items[start:start + 7])

        single = EmbeddingStore()
        single.append(items)

        assert batched.embeddings.shape == (30, embedding_dimension)
        np.testing.assert_array_equal(batched.embeddings, single.embeddings)
        assert batched.payloads == single.payloads

    def test_searcher_is_replaceable(self, abc_store):
        """Test that a custom searcher receives the store snapshot."""

        class CountingSearch(SimilaritySearch):
            calls = 0

            def search(self, snapshot, query, options=None):
                CountingSearch.calls += 1
                return super().search(snapshot, query, options)

        store = EmbeddingStore(searcher=CountingSearch())
        store.load(abc_store.dump())

        assert [r.payload for r in store.search([1, 0])] == ["a", "c", "b"]
        assert CountingSearch.calls == 1
