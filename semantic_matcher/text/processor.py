"""
Default text preprocessing for the matcher.

Turns raw text into the token sequence the embedding store is queried with:
Han-script runs are segmented into words with jieba, Latin words are
lower-cased, and numbers, punctuation and stop words are dropped.
"""

import logging
import os
import re
from abc import ABC, abstractmethod
from typing import FrozenSet, Iterable, List, Optional

import jieba

from ..core.errors import InvalidConfigurationError

# jieba reports dictionary loading on its own handler at DEBUG
jieba.setLogLevel(logging.WARNING)

# A run of Han ideographs, or a run of word characters outside the Han block
_HAN_RANGES = r"\u3400-\u4dbf\u4e00-\u9fff\uf900-\ufaff"
_TOKEN_PATTERN = re.compile(rf"[{_HAN_RANGES}]+|[^\W{_HAN_RANGES}]+")
_HAN_PATTERN = re.compile(rf"[{_HAN_RANGES}]")

DEFAULT_CHINESE_STOP_WORDS = frozenset([
    "的", "了", "在", "是", "我", "有", "和", "就", "不", "人", "都", "一", "一个", "上", "也", "很", "到",
    "说", "要", "去", "会", "着", "没有", "看", "好", "自己", "这", "那", "他", "她", "它", "们", "这个",
    "那个", "什么", "怎么", "为什么", "哪里", "哪个", "多少", "几", "第一", "第二", "可以", "应该", "能够",
    "必须", "需要", "想要", "希望", "觉得", "认为", "知道", "明白", "理解", "记得", "忘记",
])

DEFAULT_ENGLISH_STOP_WORDS = frozenset([
    "a", "an", "and", "are", "as", "at", "be", "by", "for", "from", "has", "he", "in", "is", "it", "its",
    "of", "on", "that", "the", "to", "was", "will", "with", "this", "but", "they", "have", "had",
    "what", "said", "each", "which", "she", "do", "how", "their", "if", "up", "out", "many", "then", "them",
    "these", "so", "some", "her", "would", "make", "like", "into", "him", "time", "two", "more", "go", "no",
    "way", "could", "my", "than", "first", "been", "call", "who", "oil", "sit", "now", "find", "down", "day",
    "did", "get", "come", "made", "may", "part", "i",
])


class ITextProcessor(ABC):
    """Abstract interface for text preprocessing."""

    @abstractmethod
    def preprocess(self, text: str) -> List[str]:
        """Turn text into an ordered list of normalized tokens."""
        pass

    def preprocess_batch(self, texts: Iterable[str]) -> List[List[str]]:
        """Preprocess several texts; identical to calling preprocess on each."""
        return [self.preprocess(text) for text in texts]


def contains_han(text: str) -> bool:
    return _HAN_PATTERN.search(text) is not None


def load_stop_words(path: str) -> FrozenSet[str]:
    """Load stop words from a file with one word per line.

    Blank lines and lines starting with '#' are ignored.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            words = [line.strip() for line in f]
    except OSError as e:
        raise InvalidConfigurationError(f"cannot read stop words file {path}: {e}") from e

    return frozenset(w for w in words if w and not w.startswith("#"))


def load_segmenter(dict_paths: Iterable[str] = ()) -> jieba.Tokenizer:
    """Build a jieba tokenizer extended with user dictionaries.

    Each file uses jieba's user dictionary format, one "word [freq] [tag]"
    entry per line.
    """
    tokenizer = jieba.Tokenizer()
    for path in dict_paths:
        if not os.path.isfile(path):
            raise InvalidConfigurationError(f"dictionary file not found: {path}")
        try:
            tokenizer.load_userdict(path)
        except (OSError, UnicodeDecodeError) as e:
            raise InvalidConfigurationError(f"cannot read dictionary file {path}: {e}") from e
    return tokenizer


class SimpleTextProcessor(ITextProcessor):
    """Tokenizer for mixed Chinese and English text.

    Han runs are segmented with a jieba tokenizer (the shared default one
    unless another is given) and each segment is checked against the Chinese
    stop words. Instances are immutable after construction and safe to share
    between threads.
    """

    def __init__(self, chinese_stop_words: Optional[Iterable[str]] = None,
                 english_stop_words: Optional[Iterable[str]] = None,
                 segmenter: Optional[jieba.Tokenizer] = None):
        self._chinese_stops = frozenset(
            DEFAULT_CHINESE_STOP_WORDS if chinese_stop_words is None else chinese_stop_words
        )
        self._english_stops = frozenset(
            w.lower() for w in (DEFAULT_ENGLISH_STOP_WORDS if english_stop_words is None else english_stop_words)
        )
        self._segmenter = segmenter or jieba.dt

    @classmethod
    def from_stop_word_files(cls, chinese_path: str = "", english_path: str = "",
                             dict_paths: Iterable[str] = ()) -> "SimpleTextProcessor":
        """Build a processor from optional stop word and dictionary files.

        Stop words from files extend the defaults; dictionaries extend a fresh
        segmenter so the shared default one is never modified.
        """
        chinese = set(DEFAULT_CHINESE_STOP_WORDS)
        english = set(DEFAULT_ENGLISH_STOP_WORDS)
        if chinese_path:
            chinese |= load_stop_words(chinese_path)
        if english_path:
            english |= load_stop_words(english_path)

        dict_paths = list(dict_paths)
        segmenter = load_segmenter(dict_paths) if dict_paths else None
        return cls(chinese, english, segmenter)

    def preprocess(self, text: str) -> List[str]:
        if not text or not text.strip():
            return []

        tokens = []
        for token in _TOKEN_PATTERN.findall(text):
            if contains_han(token):
                for word in self._segmenter.lcut(token, HMM=False):
                    word = word.strip()
                    if word and word not in self._chinese_stops:
                        tokens.append(word)
                continue

            token = token.lower().strip("_")
            if not token or token.isdigit():
                continue
            if token not in self._english_stops:
                tokens.append(token)

        return tokens
