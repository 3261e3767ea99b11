"""
Tests for SemanticMatcher and build_matcher.
"""

import threading
from unittest.mock import MagicMock

import jieba
import pytest

from semantic_matcher.core.config import MatcherConfig
from semantic_matcher.core.errors import (
    DimensionMismatchError,
    InvalidConfigurationError,
    MemoryLimitExceededError,
    ModelNotInitializedError,
    NoVectorFilesError,
    UnsupportedLanguageError,
)
from semantic_matcher.core.matcher import SemanticMatcher, build_matcher
from semantic_matcher.text.processor import SimpleTextProcessor
from semantic_matcher.vector.store import EmbeddingStore
from semantic_matcher.vector.types import KeywordMatch, MatcherStats


@pytest.fixture
def matcher(small_store):
    return SemanticMatcher(SimpleTextProcessor(), small_store)


class TestFindTopKeywords:
    """Keyword ranking against a paragraph."""

    def test_empty_inputs(self, matcher):
        assert matcher.find_top_keywords("", ["a"], 3) == []
        assert matcher.find_top_keywords("text", [], 3) == []

    def test_paragraph_without_tokens(self, matcher):
        assert matcher.find_top_keywords("the and of", ["cat"], 3) == []

    def test_paragraph_all_oov(self, matcher):
        assert matcher.find_top_keywords("qqq www", ["cat"], 3) == []

    def test_ranking(self, matcher):
        results = matcher.find_top_keywords("The cat and the dog", ["car", "dog", "engine"], 0)

        assert [r.keyword for r in results] == ["dog", "car", "engine"]
        assert results[0].score > 0.9
        assert all(isinstance(r, KeywordMatch) for r in results)
        assert results[0].word_count == 1
        assert results[0].oov_count == 0

    def test_k_truncates(self, matcher):
        keywords = ["car", "dog", "engine"]

        assert len(matcher.find_top_keywords("cat", keywords, 2)) == 2
        assert len(matcher.find_top_keywords("cat", keywords, 3)) == 3
        assert len(matcher.find_top_keywords("cat", keywords, 10)) == 3
        assert len(matcher.find_top_keywords("cat", keywords, -1)) == 3

    def test_empty_and_oov_keywords_score_zero(self, matcher):
        results = matcher.find_top_keywords("cat", ["the", "zzz", "dog"], 0)
        by_keyword = {r.keyword: r for r in results}

        assert by_keyword["the"] == KeywordMatch(keyword="the", score=0.0, word_count=0, oov_count=0)
        assert by_keyword["zzz"].score == 0.0
        assert by_keyword["zzz"].word_count == 1
        assert by_keyword["zzz"].oov_count == 1
        assert results[0].keyword == "dog"

    def test_ties_keep_keyword_order(self, matcher):
        results = matcher.find_top_keywords("engine", ["zzz", "Car", "the", "car", "CAR"], 0)

        assert [r.keyword for r in results] == ["Car", "car", "CAR", "zzz", "the"]

    def test_cross_lingual_keywords(self, matcher):
        results = matcher.find_top_keywords("猫", ["car", "cat", "狗"], 1)

        assert results[0].keyword == "cat"
        assert results[0].score == pytest.approx(1.0)

    def test_fallback_keyword(self, small_store):
        """An unseen compound resolves through its characters."""
        processor = MagicMock()
        processor.preprocess.side_effect = lambda text: [text]
        matcher = SemanticMatcher(processor, small_store)

        results = matcher.find_top_keywords("cat", ["猫狗"], 0)

        assert results[0].score > 0.9
        assert results[0].oov_count == 0

    def test_high_oov_is_logged(self, small_store):
        logger = MagicMock()
        matcher = SemanticMatcher(SimpleTextProcessor(), small_store, logger=logger, oov_threshold=0.5)

        matcher.find_top_keywords("cat qqq www", ["dog"], 0)

        warnings = " ".join(str(c.args[0]) for c in logger.warning.call_args_list)
        assert "High OOV rate in paragraph" in warnings
        assert "High overall OOV rate" in warnings

    def test_uses_external_processor(self, small_store):
        processor = MagicMock()
        processor.preprocess.side_effect = lambda text: text.split()
        matcher = SemanticMatcher(processor, small_store)

        results = matcher.find_top_keywords("cat dog", ["car", "dog"], 0)

        assert results[0].keyword == "dog"
        assert processor.preprocess.call_count == 3

    def test_max_sequence_len_truncates_tokens(self, small_store):
        matcher = SemanticMatcher(SimpleTextProcessor(), small_store, max_sequence_len=1)

        results = matcher.find_top_keywords("car cat", ["car", "cat"], 0)

        assert results[0].keyword == "car"
        assert results[0].score == pytest.approx(1.0)


class TestComputeSimilarity:
    """Pairwise text similarity."""

    def test_identical_texts(self, matcher):
        assert matcher.compute_similarity("cat", "cat") == pytest.approx(1.0)

    def test_cross_lingual(self, matcher):
        assert matcher.compute_similarity("cat", "猫") == pytest.approx(1.0)

    def test_empty_inputs(self, matcher):
        assert matcher.compute_similarity("", "cat") == 0.0
        assert matcher.compute_similarity("cat", "") == 0.0
        assert matcher.compute_similarity("the", "cat") == 0.0

    def test_all_oov(self, matcher):
        assert matcher.compute_similarity("qqq", "cat") == 0.0

    def test_negative_similarity_is_floored(self):
        store = EmbeddingStore(2)
        store.add_vector("north", [1.0, 0.0])
        store.add_vector("south", [-1.0, 0.0])
        matcher = SemanticMatcher(SimpleTextProcessor(), store)

        assert matcher.compute_similarity("north", "south") == 0.0

    def test_range(self, matcher):
        score = matcher.compute_similarity("cat dog", "car engine")

        assert 0.0 <= score <= 1.0


class TestStats:
    """Request statistics."""

    def test_initial_stats(self, matcher):
        stats = matcher.get_stats()

        assert isinstance(stats, MatcherStats)
        assert stats.total_requests == 0
        assert stats.average_latency_ms == 0.0
        assert stats.memory_usage == matcher.model.memory_usage()

    def test_every_call_counts(self, matcher):
        matcher.find_top_keywords("", ["a"], 3)
        matcher.find_top_keywords("cat", ["dog"], 3)
        matcher.compute_similarity("", "")
        matcher.compute_similarity("cat", "dog")

        stats = matcher.get_stats()
        assert stats.total_requests == 4
        assert stats.average_latency_ms >= 0.0

    def test_rates_are_live(self, matcher):
        matcher.compute_similarity("cat", "qqq")

        stats = matcher.get_stats()
        assert stats.oov_rate == pytest.approx(matcher.model.get_oov_rate())
        assert stats.vector_hit_rate == pytest.approx(matcher.model.get_vector_hit_rate())
        assert stats.oov_rate > 0.0

    def test_stats_to_dict(self, matcher):
        data = matcher.get_stats().to_dict()

        assert set(data) == {"total_requests", "average_latency_ms", "oov_rate",
                             "vector_hit_rate", "memory_usage_bytes", "last_updated"}

    def test_concurrent_requests(self, matcher):
        def worker():
            for _ in range(25):
                matcher.compute_similarity("cat", "dog")

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert matcher.get_stats().total_requests == 100


class TestBuildMatcher:
    """Assembling a matcher from configuration."""

    def test_build(self, write_vec_file):
        en = write_vec_file("en.vec", [("cat", [1.0, 0.0]), ("car", [0.0, 1.0])])
        zh = write_vec_file("zh.vec", [("猫", [1.0, 0.1])])
        config = MatcherConfig(vector_file_paths=[en, zh])

        matcher = build_matcher(config)

        assert matcher.model.vocabulary_size() == 3
        assert matcher.oov_threshold == 0.3
        assert matcher.max_sequence_len == config.max_sequence_len
        assert matcher.compute_similarity("cat", "猫") > 0.9

    def test_oov_threshold_without_stats(self, write_vec_file):
        path = write_vec_file("en.vec", [("cat", [1.0, 0.0])])

        matcher = build_matcher(MatcherConfig(vector_file_paths=[path], enable_stats=False))

        assert matcher.oov_threshold == 0.5

    def test_memory_limit(self, write_vec_file):
        path = write_vec_file("en.vec", [("cat", [1.0, 0.0]), ("car", [0.0, 1.0])])

        with pytest.raises(MemoryLimitExceededError):
            build_matcher(MatcherConfig(vector_file_paths=[path], memory_limit=10))

        assert build_matcher(MatcherConfig(vector_file_paths=[path], memory_limit=0)) is not None

    def test_invalid_configuration(self, write_vec_file):
        path = write_vec_file("en.vec", [("cat", [1.0, 0.0])])

        with pytest.raises(NoVectorFilesError):
            build_matcher(MatcherConfig())
        with pytest.raises(UnsupportedLanguageError):
            build_matcher(MatcherConfig(vector_file_paths=[path], supported_languages=["fr"]))
        with pytest.raises(InvalidConfigurationError):
            build_matcher(MatcherConfig(vector_file_paths=[path], max_sequence_len=0))

    def test_dimension_mismatch(self, write_vec_file):
        a = write_vec_file("a.vec", [("cat", [1.0, 0.0])])
        b = write_vec_file("b.vec", [("dog", [1.0, 0.0, 0.0])])

        with pytest.raises(DimensionMismatchError):
            build_matcher(MatcherConfig(vector_file_paths=[a, b]))

    def test_missing_stop_words_fall_back_to_defaults(self, write_vec_file, tmp_path):
        path = write_vec_file("en.vec", [("cat", [1.0, 0.0])])
        logger = MagicMock()
        config = MatcherConfig(vector_file_paths=[path], english_stop_words=str(tmp_path / "missing.txt"))

        matcher = build_matcher(config, logger)

        assert isinstance(matcher.processor, SimpleTextProcessor)
        logger.error.assert_called()

    def test_custom_stop_words(self, write_vec_file, tmp_path):
        path = write_vec_file("en.vec", [("cat", [1.0, 0.0]), ("dog", [0.0, 1.0])])
        stops = tmp_path / "stops.txt"
        stops.write_text("# custom\ndog\n", encoding="utf-8")
        config = MatcherConfig(vector_file_paths=[path], english_stop_words=str(stops))

        matcher = build_matcher(config)

        assert matcher.processor.preprocess("the cat and the dog") == ["cat"]

    def test_custom_dictionary(self, write_vec_file, tmp_path):
        path = write_vec_file("zh.vec", [("量子纠缠态", [1.0, 0.0]), ("量", [0.0, 1.0])])
        words = tmp_path / "user.txt"
        words.write_text("量子纠缠态 1000000 n\n", encoding="utf-8")

        matcher = build_matcher(MatcherConfig(vector_file_paths=[path], dict_paths=[str(words)]))

        assert matcher.processor.preprocess("量子纠缠态") == ["量子纠缠态"]
        assert matcher.compute_similarity("量子纠缠态", "量子纠缠态") == pytest.approx(1.0)
        assert matcher.model.get_lookup_stats().fallback_attempts == 0

    def test_missing_dictionary_falls_back_to_default(self, write_vec_file, tmp_path):
        path = write_vec_file("en.vec", [("cat", [1.0, 0.0])])
        logger = MagicMock()
        config = MatcherConfig(vector_file_paths=[path], dict_paths=[str(tmp_path / "missing.dict")])

        matcher = build_matcher(config, logger)

        assert isinstance(matcher.processor, SimpleTextProcessor)
        logger.error.assert_called()


def test_stop_words_are_not_averaged_into_chinese_text(tmp_path):
    dictionary = tmp_path / "dict.txt"
    dictionary.write_text("天气 100 n\n觉得 100 v\n", encoding="utf-8")
    processor = SimpleTextProcessor(segmenter=jieba.Tokenizer(dictionary=str(dictionary)))
    store = EmbeddingStore(2)
    store.add_vector("天气", [1.0, 0.0])
    store.add_vector("我", [0.0, 1.0])
    matcher = SemanticMatcher(processor, store)

    assert matcher.compute_similarity("我觉得天气", "天气") == pytest.approx(1.0)
    assert store.get_lookup_stats().oov_lookups == 0


def test_matcher_requires_store_and_processor(small_store):
    with pytest.raises(ModelNotInitializedError):
        SemanticMatcher(SimpleTextProcessor(), None)
    with pytest.raises(ModelNotInitializedError):
        SemanticMatcher(None, small_store)
