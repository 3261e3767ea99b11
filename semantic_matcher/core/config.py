"""
Configuration for the semantic matcher.

Values come from environment variables (optionally populated from a .env file)
or from a JSON file. validate_config checks a configuration before any
embedding file is opened.
"""

import json
import os
from dataclasses import asdict, dataclass, field, fields
from typing import List

from .errors import InvalidConfigurationError, NoVectorFilesError, UnsupportedLanguageError

DEFAULT_MAX_SEQUENCE_LEN = 512
DEFAULT_ENABLE_STATS = True
DEFAULT_MEMORY_LIMIT = 10 * 1024 * 1024 * 1024  # 10 GiB, 0 disables the check
SUPPORTED_LANGUAGES = ("zh", "en")

# OOV warning thresholds, stricter when statistics are enabled
DEFAULT_OOV_THRESHOLD = 0.5
STATS_OOV_THRESHOLD = 0.3

# Version string
VERSION = "1.0.0"


# Configuration file key for each field whose key differs from its name
_FILE_KEYS = {
    "max_sequence_len": "max_sequence_length",
    "chinese_stop_words": "chinese_stop_words_path",
    "english_stop_words": "english_stop_words_path",
    "memory_limit": "memory_limit_bytes",
}


def _env_list(name: str, default: str = "") -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class MatcherConfig:
    """Configuration parameters for building a semantic matcher."""

    vector_file_paths: List[str] = field(default_factory=list)
    max_sequence_len: int = DEFAULT_MAX_SEQUENCE_LEN
    chinese_stop_words: str = ""
    english_stop_words: str = ""
    dict_paths: List[str] = field(default_factory=list)
    enable_stats: bool = DEFAULT_ENABLE_STATS
    memory_limit: int = DEFAULT_MEMORY_LIMIT
    supported_languages: List[str] = field(default_factory=lambda: list(SUPPORTED_LANGUAGES))

    @property
    def oov_threshold(self) -> float:
        return STATS_OOV_THRESHOLD if self.enable_stats else DEFAULT_OOV_THRESHOLD

    def to_dict(self) -> dict:
        """Serialize using the configuration file key names."""
        return {_FILE_KEYS.get(k, k): v for k, v in asdict(self).items()}

    @classmethod
    def from_dict(cls, data: dict) -> "MatcherConfig":
        """Build from configuration file keys; unknown keys are ignored.

        A single "vector_file_path" string is accepted in place of
        "vector_file_paths".
        """
        params = {}
        for name in (f.name for f in fields(cls)):
            key = _FILE_KEYS.get(name, name)
            if key in data:
                params[name] = data[key]

        if "vector_file_paths" not in params and data.get("vector_file_path"):
            params["vector_file_paths"] = [data["vector_file_path"]]
        return cls(**params)


def default_config() -> MatcherConfig:
    """Get a configuration with default values and no vector files."""
    return MatcherConfig()


def config_from_env() -> MatcherConfig:
    """Build a configuration from environment variables."""
    try:
        return MatcherConfig(
            vector_file_paths=_env_list("VECTOR_FILE_PATHS"),
            max_sequence_len=int(os.getenv("MAX_SEQUENCE_LEN", str(DEFAULT_MAX_SEQUENCE_LEN))),
            chinese_stop_words=os.getenv("CHINESE_STOP_WORDS", ""),
            english_stop_words=os.getenv("ENGLISH_STOP_WORDS", ""),
            dict_paths=_env_list("DICT_PATHS"),
            enable_stats=os.getenv("ENABLE_STATS", "true").lower() == "true",
            memory_limit=int(os.getenv("MEMORY_LIMIT_BYTES", str(DEFAULT_MEMORY_LIMIT))),
            supported_languages=_env_list("SUPPORTED_LANGUAGES", ",".join(SUPPORTED_LANGUAGES)),
        )
    except ValueError as e:
        raise InvalidConfigurationError(f"invalid numeric configuration value: {e}") from e


def load_config(path: str) -> MatcherConfig:
    """Load a configuration from a JSON file.

    Missing keys keep their defaults; unknown keys are ignored.
    """
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise InvalidConfigurationError(f"invalid configuration file {path}: {e}") from e

    if not isinstance(data, dict):
        raise InvalidConfigurationError(f"configuration file {path} must contain a JSON object")

    return MatcherConfig.from_dict(data)


def save_config(config: MatcherConfig, path: str) -> None:
    """Save a configuration as indented JSON."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2, ensure_ascii=False)


def validate_config(config: MatcherConfig) -> None:
    """Validate configuration parameters.

    Raises:
        NoVectorFilesError: no embedding files configured
        UnsupportedLanguageError: a language outside SUPPORTED_LANGUAGES
        InvalidConfigurationError: any other invalid value
    """
    if config is None:
        raise InvalidConfigurationError("configuration is missing")

    if not config.vector_file_paths:
        raise NoVectorFilesError("no vector files specified")

    if any(not path or not str(path).strip() for path in config.vector_file_paths):
        raise InvalidConfigurationError("vector file paths must be non-empty")

    if any(not path or not str(path).strip() for path in config.dict_paths):
        raise InvalidConfigurationError("dictionary paths must be non-empty")

    if config.max_sequence_len <= 0:
        raise InvalidConfigurationError("max_sequence_len must be positive")

    if config.memory_limit < 0:
        raise InvalidConfigurationError("memory_limit must not be negative")

    if not config.supported_languages:
        raise InvalidConfigurationError("supported_languages must not be empty")

    for lang in config.supported_languages:
        if lang not in SUPPORTED_LANGUAGES:
            raise UnsupportedLanguageError(f"unsupported language: {lang}")
