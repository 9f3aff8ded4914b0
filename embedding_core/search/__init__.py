"""
Similarity search over embedding stores.
"""

from .similarity_search import SimilaritySearch

__all__ = ['SimilaritySearch']
