"""
Embedding storage, loading and similarity.
"""

from .store import IVectorModel, EmbeddingStore, ReadWriteLock
from .similarity import SimilarityCalculator
from .loader import EmbeddingLoader
from .types import LookupStats, PoolResult, KeywordMatch, MatcherStats

__all__ = [
    'IVectorModel',
    'EmbeddingStore',
    'ReadWriteLock',
    'SimilarityCalculator',
    'EmbeddingLoader',
    'LookupStats',
    'PoolResult',
    'KeywordMatch',
    'MatcherStats'
]
