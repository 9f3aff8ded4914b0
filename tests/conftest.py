"""
Shared fixtures for embedding store tests.
"""

import logging

import numpy as np
import pytest

from embedding_core.config import ConfigManager
import embedding_core.config.config_manager as config_module
from embedding_core.store import EmbeddingStore


@pytest.fixture
def store():
    """An empty store with default configuration."""
    return EmbeddingStore()


@pytest.fixture
def abc_store():
    """Three 2-D embeddings with string payloads."""
    store = EmbeddingStore()
    store.append([
        ([1, 0], "a"),
        ([0, 1], "b"),
        ([1, 1], "c"),
    ])
    return store


@pytest.fixture
def rng():
    """Seeded random generator so failures are reproducible."""
    return np.random.default_rng(1234)


@pytest.fixture
def generate_embedding(rng, embedding_dimension):
    """Factory for uniform [-1, 1) float32 embeddings."""

    def _generate():
        return rng.uniform(-1, 1, embedding_dimension).astype(np.float32)

    return _generate


@pytest.fixture
def reset_config():
    """Reset the configuration singleton before and after a test."""
    ConfigManager._instance = None
    config_module._config_manager = None
    yield
    ConfigManager._instance = None
    config_module._config_manager = None


@pytest.fixture
def restore_root_logging():
    """Undo changes made to the root logger by configure_logging."""
    root_logger = logging.getLogger()
    handlers = root_logger.handlers[:]
    level = root_logger.level
    yield
    for handler in root_logger.handlers[:]:
        if handler not in handlers:
            root_logger.removeHandler(handler)
    root_logger.setLevel(level)
