"""
In-memory word embedding store and semantic matcher.
"""

from .core.config import MatcherConfig, config_from_env, default_config, load_config, save_config, validate_config
from .core.errors import (
    DimensionMismatchError,
    InvalidConfigurationError,
    InvalidVectorFormatError,
    MemoryLimitExceededError,
    ModelNotInitializedError,
    NoVectorFilesError,
    SemanticMatcherError,
    UnsupportedLanguageError,
    VectorFileNotFoundError,
)
from .core.matcher import SemanticMatcher, build_matcher
from .text.processor import ITextProcessor, SimpleTextProcessor
from .vector import EmbeddingLoader, EmbeddingStore, IVectorModel, SimilarityCalculator
from .vector.types import KeywordMatch, LookupStats, MatcherStats, PoolResult

__all__ = [
    'MatcherConfig',
    'config_from_env',
    'default_config',
    'load_config',
    'save_config',
    'validate_config',
    'SemanticMatcherError',
    'VectorFileNotFoundError',
    'InvalidVectorFormatError',
    'DimensionMismatchError',
    'MemoryLimitExceededError',
    'ModelNotInitializedError',
    'InvalidConfigurationError',
    'UnsupportedLanguageError',
    'NoVectorFilesError',
    'SemanticMatcher',
    'build_matcher',
    'ITextProcessor',
    'SimpleTextProcessor',
    'EmbeddingLoader',
    'EmbeddingStore',
    'IVectorModel',
    'SimilarityCalculator',
    'KeywordMatch',
    'LookupStats',
    'MatcherStats',
    'PoolResult',
]
