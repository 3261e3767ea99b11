"""
Result and statistics records shared by the store, the loader and the matcher.
"""

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import numpy as np


# Called as callback(loaded, total, memory_bytes) while an embedding file loads
ProgressCallback = Callable[[int, int, int], None]


@dataclass
class LookupStats:
    """Snapshot of the lookup counters of an embedding store."""

    total_lookups: int = 0
    """Number of token lookups issued"""

    oov_lookups: int = 0
    """Lookups whose token was absent from the vocabulary"""

    hit_lookups: int = 0
    """Lookups served directly from the vocabulary"""

    fallback_attempts: int = 0
    """Character-level fallback attempts"""

    fallback_successes: int = 0
    """Fallback attempts that produced a vector"""

    fallback_failures: int = 0
    """Fallback attempts that produced nothing"""

    @property
    def oov_rate(self) -> float:
        if self.total_lookups == 0:
            return 0.0
        return self.oov_lookups / self.total_lookups

    @property
    def hit_rate(self) -> float:
        if self.total_lookups == 0:
            return 0.0
        return self.hit_lookups / self.total_lookups

    @property
    def fallback_success_rate(self) -> float:
        if self.fallback_attempts == 0:
            return 0.0
        return self.fallback_successes / self.fallback_attempts

    def as_tuple(self):
        return (
            self.total_lookups,
            self.oov_lookups,
            self.hit_lookups,
            self.fallback_attempts,
            self.fallback_successes,
            self.fallback_failures,
        )


@dataclass
class PoolResult:
    """Mean-pooled vector for a token sequence plus its coverage."""

    vector: Optional[np.ndarray]
    """Componentwise mean of the resolved tokens, None when nothing resolved"""

    resolved: int
    """Tokens resolved directly or through fallback"""

    unresolved: int
    """Tokens that could not be resolved at all"""

    @property
    def found(self) -> bool:
        return self.vector is not None


@dataclass
class KeywordMatch:
    """A keyword ranked against a paragraph."""

    keyword: str
    score: float
    word_count: int
    oov_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class MatcherStats:
    """Performance and usage statistics of a matcher."""

    total_requests: int = 0
    average_latency_ms: float = 0.0
    oov_rate: float = 0.0
    vector_hit_rate: float = 0.0
    memory_usage: int = 0
    last_updated: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["memory_usage_bytes"] = data.pop("memory_usage")
        data["last_updated"] = self.last_updated.isoformat()
        return data
