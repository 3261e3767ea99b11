"""
Semantic matching pipeline: tokenize, mean-pool, compare.

SemanticMatcher ranks keywords against a paragraph and scores text pairs using
an embedding store. build_matcher wires every component together from a
MatcherConfig.
"""

import threading
import time
from datetime import datetime
from typing import List, Optional, Sequence

from ..text.processor import ITextProcessor, SimpleTextProcessor
from ..util.logging import NullLogger, StructuredLogger
from ..vector.loader import EmbeddingLoader
from ..vector.similarity import SimilarityCalculator
from ..vector.store import IVectorModel
from ..vector.types import KeywordMatch, MatcherStats, PoolResult
from .config import DEFAULT_OOV_THRESHOLD, MatcherConfig, validate_config
from .errors import InvalidConfigurationError, MemoryLimitExceededError, ModelNotInitializedError

# Requests between two performance summaries in the log
STATS_LOG_INTERVAL = 100


def _ms(seconds: float) -> float:
    return seconds * 1000.0


class SemanticMatcher:
    """Ranks keywords against a paragraph and scores text pairs.

    Query methods never raise on bad input; they return empty or zero results
    and log the reason.
    """

    def __init__(self, processor: ITextProcessor, model: IVectorModel,
                 calculator: Optional[SimilarityCalculator] = None,
                 logger: Optional[StructuredLogger] = None,
                 oov_threshold: float = DEFAULT_OOV_THRESHOLD,
                 max_sequence_len: Optional[int] = None):
        """
        Initialize the matcher.

        Args:
            processor: Text processor producing tokens
            model: Embedding store the tokens are looked up in
            calculator: Similarity calculator, a fresh one by default
            logger: Logger, silent by default
            oov_threshold: OOV rate at or above which a warning is logged
            max_sequence_len: Token lists are truncated to this length when set
        """
        if model is None or processor is None:
            raise ModelNotInitializedError("matcher requires an embedding store and a text processor")

        self.processor = processor
        self.model = model
        self.calculator = calculator or SimilarityCalculator()
        self.logger = logger or NullLogger()
        self.oov_threshold = oov_threshold
        self.max_sequence_len = max_sequence_len

        self._lock = threading.Lock()
        self._total_requests = 0
        self._average_latency_ms = 0.0

    def _tokenize(self, text: str) -> List[str]:
        tokens = self.processor.preprocess(text)
        if self.max_sequence_len and len(tokens) > self.max_sequence_len:
            tokens = tokens[:self.max_sequence_len]
        return tokens

    def find_top_keywords(self, paragraph: str, keywords: Sequence[str], k: int) -> List[KeywordMatch]:
        """Find the keywords most similar to a paragraph.

        Results are sorted by score, highest first; keywords with equal scores
        keep their input order. At most k results are returned when k > 0.
        """
        start = time.perf_counter()
        self.logger.debug("FindTopKeywords called, paragraph_length: %d, keywords_count: %d, k: %d",
                          len(paragraph or ""), len(keywords or []), k)

        if not paragraph or not keywords:
            self._update_stats(time.perf_counter() - start)
            self.logger.warning("Empty input provided, paragraph_empty: %s, keywords_empty: %s",
                                not paragraph, not keywords)
            return []

        paragraph_tokens = self._tokenize(paragraph)
        preprocess_ms = _ms(time.perf_counter() - start)
        if not paragraph_tokens:
            self._update_stats(time.perf_counter() - start)
            self.logger.warning("No valid tokens after preprocessing paragraph")
            return []

        paragraph_pool = self.model.pool(paragraph_tokens)
        if not paragraph_pool.found:
            self._update_stats(time.perf_counter() - start)
            self.logger.warning("All paragraph words are OOV, token_count: %d", len(paragraph_tokens))
            return []

        paragraph_oov_rate = paragraph_pool.unresolved / len(paragraph_tokens)
        if paragraph_oov_rate >= self.oov_threshold:
            self.logger.warning("High OOV rate in paragraph, oov_rate: %.4f, oov_count: %d, total_tokens: %d",
                                paragraph_oov_rate, paragraph_pool.unresolved, len(paragraph_tokens))

        matches = []
        keyword_tokens_total = 0
        keyword_oov_total = 0
        for keyword in keywords:
            tokens = self._tokenize(keyword) if keyword else []
            if not tokens:
                matches.append(KeywordMatch(keyword=keyword, score=0.0, word_count=0, oov_count=0))
                continue

            pool = self.model.pool(tokens)
            if pool.found:
                score = self.calculator.cosine_similarity(paragraph_pool.vector, pool.vector)
            else:
                score = 0.0

            keyword_tokens_total += len(tokens)
            keyword_oov_total += pool.unresolved
            matches.append(KeywordMatch(keyword=keyword, score=score,
                                        word_count=len(tokens), oov_count=pool.unresolved))

        # sorted() is stable, so equal scores keep keyword order
        matches = sorted(matches, key=lambda m: m.score, reverse=True)
        if 0 < k < len(matches):
            matches = matches[:k]

        elapsed = time.perf_counter() - start
        self._update_stats(elapsed)

        total_tokens = len(paragraph_tokens) + keyword_tokens_total
        total_oov = paragraph_pool.unresolved + keyword_oov_total
        overall_oov_rate = total_oov / total_tokens if total_tokens else 0.0

        self._log_fallback("FindTopKeywords")
        self.logger.log_query("find_top_keywords", _ms(elapsed), {
            "preprocess_ms": round(preprocess_ms, 3),
            "keywords_processed": len(keywords),
            "results_returned": len(matches),
            "total_tokens": total_tokens,
            "total_oov": total_oov,
            "oov_rate": round(overall_oov_rate, 4),
        })

        if overall_oov_rate >= self.oov_threshold:
            self.logger.warning("High overall OOV rate detected, oov_rate: %.4f, total_oov: %d, total_tokens: %d",
                                overall_oov_rate, total_oov, total_tokens)

        return matches

    def compute_similarity(self, text1: str, text2: str) -> float:
        """Similarity between two texts in [0, 1]; negative cosine is floored at 0."""
        start = time.perf_counter()

        if not text1 or not text2:
            self._update_stats(time.perf_counter() - start)
            self.logger.debug("Empty input provided, text1_empty: %s, text2_empty: %s",
                              not text1, not text2)
            return 0.0

        tokens1 = self._tokenize(text1)
        tokens2 = self._tokenize(text2)
        if not tokens1 or not tokens2:
            self._update_stats(time.perf_counter() - start)
            self.logger.warning("No valid tokens after preprocessing, tokens1_count: %d, tokens2_count: %d",
                                len(tokens1), len(tokens2))
            return 0.0

        pool1: PoolResult = self.model.pool(tokens1)
        pool2: PoolResult = self.model.pool(tokens2)

        total_tokens = len(tokens1) + len(tokens2)
        total_oov = pool1.unresolved + pool2.unresolved
        oov_rate = total_oov / total_tokens

        if not pool1.found or not pool2.found:
            self._update_stats(time.perf_counter() - start)
            self.logger.warning("All words are OOV in one or both texts, text1_all_oov: %s, text2_all_oov: %s",
                                not pool1.found, not pool2.found)
            return 0.0

        similarity = max(0.0, self.calculator.cosine_similarity(pool1.vector, pool2.vector))

        elapsed = time.perf_counter() - start
        self._update_stats(elapsed)

        self._log_fallback("ComputeSimilarity")
        self.logger.log_query("compute_similarity", _ms(elapsed), {
            "tokens1_count": len(tokens1),
            "tokens2_count": len(tokens2),
            "oov1_count": pool1.unresolved,
            "oov2_count": pool2.unresolved,
            "oov_rate": round(oov_rate, 4),
            "similarity_score": round(similarity, 4),
        })

        if oov_rate >= self.oov_threshold:
            self.logger.warning("High OOV rate detected, oov_rate: %.4f, total_oov: %d, total_tokens: %d",
                                oov_rate, total_oov, total_tokens)

        return similarity

    def get_stats(self) -> MatcherStats:
        """Snapshot of request statistics plus live store statistics."""
        with self._lock:
            total_requests = self._total_requests
            average_latency_ms = self._average_latency_ms

        stats = MatcherStats(
            total_requests=total_requests,
            average_latency_ms=average_latency_ms,
            oov_rate=self.model.get_oov_rate(),
            vector_hit_rate=self.model.get_vector_hit_rate(),
            memory_usage=self.model.memory_usage(),
            last_updated=datetime.now(),
        )
        self.logger.debug("Statistics retrieved, total_requests: %d, average_latency_ms: %.3f, "
                          "oov_rate: %.4f, vector_hit_rate: %.4f",
                          stats.total_requests, stats.average_latency_ms,
                          stats.oov_rate, stats.vector_hit_rate)
        return stats

    def _update_stats(self, latency_seconds: float) -> None:
        latency_ms = _ms(latency_seconds)
        with self._lock:
            self._total_requests += 1
            # new_avg = old_avg + (value - old_avg) / count
            self._average_latency_ms += (latency_ms - self._average_latency_ms) / self._total_requests
            total_requests = self._total_requests
            average_latency_ms = self._average_latency_ms

        if total_requests % STATS_LOG_INTERVAL == 0:
            self.logger.log_operation("matcher.performance", "success", {
                "total_requests": total_requests,
                "average_latency_ms": round(average_latency_ms, 3),
                "current_oov_rate": round(self.model.get_oov_rate(), 4),
                "current_hit_rate": round(self.model.get_vector_hit_rate(), 4),
                "memory_usage_mb": round(self.model.memory_usage() / (1024 * 1024), 2),
            })

    def _log_fallback(self, operation: str) -> None:
        stats = self.model.get_lookup_stats()
        if stats.fallback_attempts > 0:
            self.logger.debug("Character-level fallback used in %s, fallback_attempts: %d, "
                              "fallback_successes: %d, fallback_failures: %d, fallback_success_rate: %.4f",
                              operation, stats.fallback_attempts, stats.fallback_successes,
                              stats.fallback_failures, stats.fallback_success_rate)


def build_text_processor(config: MatcherConfig, logger: StructuredLogger) -> ITextProcessor:
    """Build the text processor.

    Custom dictionaries and stop word files can be combined; if any of them
    fails to load, the default processor is used instead.
    """
    has_dicts = bool(config.dict_paths)
    has_stop_words = bool(config.chinese_stop_words or config.english_stop_words)
    if not has_dicts and not has_stop_words:
        logger.info("Loading text processor with default configuration")
        return SimpleTextProcessor()

    logger.info("Loading text processor with custom resources, dict_count: %d, dict_paths: %s, "
                "chinese_stopwords: %s, english_stopwords: %s",
                len(config.dict_paths), config.dict_paths,
                config.chinese_stop_words, config.english_stop_words)
    try:
        processor = SimpleTextProcessor.from_stop_word_files(config.chinese_stop_words,
                                                             config.english_stop_words,
                                                             dict_paths=config.dict_paths)
    except InvalidConfigurationError as e:
        logger.error("Failed to load custom dictionaries or stop words, using default processor, error: %s", e)
        return SimpleTextProcessor()

    logger.info("Custom dictionaries and stop words loaded successfully")
    return processor


def build_matcher(config: MatcherConfig, logger: Optional[StructuredLogger] = None) -> SemanticMatcher:
    """Validate a configuration and assemble a ready SemanticMatcher.

    Raises:
        InvalidConfigurationError: (or a subclass) if the configuration is invalid
        MemoryLimitExceededError: if the loaded store exceeds config.memory_limit
        VectorFileNotFoundError, InvalidVectorFormatError, DimensionMismatchError:
            if the embedding files cannot be loaded
    """
    logger = logger or NullLogger()
    validate_config(config)

    processor = build_text_processor(config, logger)

    loader = EmbeddingLoader(logger)
    logger.info("Loading vector model, file_count: %d, paths: %s",
                len(config.vector_file_paths), config.vector_file_paths)
    try:
        model = loader.load_multiple_files(config.vector_file_paths)
    except Exception as e:
        logger.error("Failed to load vector model, error: %s, file_count: %d",
                     e, len(config.vector_file_paths))
        raise

    memory = model.memory_usage()
    if config.memory_limit > 0:
        if memory > config.memory_limit:
            logger.warning("Memory usage exceeds limit, usage_bytes: %d, limit_bytes: %d",
                           memory, config.memory_limit)
            raise MemoryLimitExceededError(
                f"estimated memory {memory} bytes exceeds limit {config.memory_limit} bytes"
            )
        logger.info("Memory usage within limit, usage_mb: %.2f, limit_mb: %.2f",
                    memory / (1024 * 1024), config.memory_limit / (1024 * 1024))

    matcher = SemanticMatcher(
        processor=processor,
        model=model,
        calculator=SimilarityCalculator(),
        logger=logger,
        oov_threshold=config.oov_threshold,
        max_sequence_len=config.max_sequence_len,
    )

    logger.log_operation("matcher.init", "success", {
        "file_count": len(config.vector_file_paths),
        "vector_dimension": model.dimension(),
        "vocabulary_size": model.vocabulary_size(),
        "memory_usage_mb": round(memory / (1024 * 1024), 2),
        "supported_languages": list(config.supported_languages),
    })
    return matcher
