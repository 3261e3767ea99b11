"""
In-memory embedding store with character-level out-of-vocabulary fallback.

The store maps tokens to fixed-length float32 vectors, keeps lookup statistics
and an estimate of the memory it holds. Tokens missing from the vocabulary are
resolved, where possible, by averaging the vectors of their individual
characters.
"""

import sys
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .types import LookupStats, PoolResult

# Per-entry accounting, sized after a 64-bit layout
STRING_HEADER_BYTES = 16
ARRAY_HEADER_BYTES = 24
MAP_ENTRY_OVERHEAD_BYTES = 48


class ReadWriteLock:
    """Lock shared by concurrent readers and held exclusively by one writer.

    Waiting writers block new readers so a steady stream of lookups cannot
    starve an insert.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self):
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self):
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()


class IVectorModel(ABC):
    """Abstract interface for token vector lookup."""

    @abstractmethod
    def get_vector(self, token: str) -> Tuple[Optional[np.ndarray], bool]:
        """Retrieve the vector for a single token."""
        pass

    @abstractmethod
    def pool(self, tokens: Sequence[str]) -> PoolResult:
        """Mean-pool the vectors of several tokens and report coverage."""
        pass

    def get_average_vector(self, tokens: Sequence[str]) -> Tuple[Optional[np.ndarray], bool]:
        """Mean-pool the vectors of several tokens."""
        result = self.pool(tokens)
        return result.vector, result.found

    @abstractmethod
    def dimension(self) -> int:
        """Get the dimension of the stored vectors."""
        pass

    @abstractmethod
    def vocabulary_size(self) -> int:
        """Get the number of tokens in the vocabulary."""
        pass

    @abstractmethod
    def memory_usage(self) -> int:
        """Get the estimated memory usage in bytes."""
        pass

    @abstractmethod
    def get_oov_rate(self) -> float:
        pass

    @abstractmethod
    def get_vector_hit_rate(self) -> float:
        pass

    @abstractmethod
    def get_fallback_success_rate(self) -> float:
        pass

    @abstractmethod
    def get_lookup_stats(self) -> LookupStats:
        pass

    @abstractmethod
    def reset_stats(self) -> None:
        pass


class EmbeddingStore(IVectorModel):
    """Thread-safe vocabulary of token vectors with character-level fallback.

    Lookups update the statistics counters and therefore hold the lock
    exclusively; accessors and statistics reads share it.
    """

    def __init__(self, dimension: int):
        """
        Initialize an empty store.

        Args:
            dimension: Length every stored vector must have
        """
        if dimension <= 0:
            raise ValueError(f"Embedding dimension must be positive, got {dimension}")

        self._dimension = dimension
        self._vectors = {}  # token -> float32 vector
        self._lock = ReadWriteLock()
        self._memory_usage = 0
        self._stats = LookupStats()

    # ---- lookup --------------------------------------------------
    def get_vector(self, token: str) -> Tuple[Optional[np.ndarray], bool]:
        """Return a copy of the token's vector, falling back to its characters.

        Returns:
            (vector, True) on a direct hit or a successful fallback,
            (None, False) otherwise.
        """
        with self._lock.write_locked():
            vector = self._resolve(token)

        if vector is None:
            return None, False
        return vector, True

    def pool(self, tokens: Sequence[str]) -> PoolResult:
        """Mean-pool tokens and report how many of them resolved.

        Unresolvable tokens are skipped and excluded from the denominator.
        """
        if not tokens:
            return PoolResult(vector=None, resolved=0, unresolved=0)

        total = np.zeros(self._dimension, dtype=np.float64)
        resolved = 0

        with self._lock.write_locked():
            for token in tokens:
                vector = self._resolve(token, copy=False)
                if vector is not None:
                    total += vector
                    resolved += 1

        unresolved = len(tokens) - resolved
        if resolved == 0:
            return PoolResult(vector=None, resolved=0, unresolved=unresolved)

        mean = (total / resolved).astype(np.float32)
        return PoolResult(vector=mean, resolved=resolved, unresolved=unresolved)

    def contains(self, token: str) -> bool:
        """Direct vocabulary membership, without fallback or statistics."""
        with self._lock.read_locked():
            return token in self._vectors

    def _resolve(self, token: str, copy: bool = True) -> Optional[np.ndarray]:
        # Caller holds the write lock
        self._stats.total_lookups += 1

        vector = self._vectors.get(token)
        if vector is not None:
            self._stats.hit_lookups += 1
            return vector.copy() if copy else vector

        self._stats.oov_lookups += 1
        self._stats.fallback_attempts += 1
        return self._character_fallback(token)

    def _character_fallback(self, token: str) -> Optional[np.ndarray]:
        """Average the vectors of the token's characters.

        Sub-lookups go straight to the vocabulary; they never recurse and never
        touch the lookup counters. Caller holds the write lock.
        """
        # str iterates code points, which keeps multi-byte scripts intact
        if len(token) <= 1:
            self._stats.fallback_failures += 1
            return None

        total = np.zeros(self._dimension, dtype=np.float64)
        contributors = 0
        for char in token:
            char_vector = self._vectors.get(char)
            if char_vector is not None:
                total += char_vector
                contributors += 1

        if contributors == 0:
            self._stats.fallback_failures += 1
            return None

        self._stats.fallback_successes += 1
        return (total / contributors).astype(np.float32)

    # ---- insertion ----------------------------------------------
    def add_vector(self, token: str, vector: Sequence[float]) -> bool:
        """Insert or overwrite a token vector.

        Vectors of the wrong length are ignored.

        Returns:
            True if the vector was stored
        """
        array = np.array(vector, dtype=np.float32).reshape(-1)
        if array.shape[0] != self._dimension:
            return False

        token = sys.intern(token)
        with self._lock.write_locked():
            self._store(token, array)
        return True

    def add_vectors_batch(self, tokens: Sequence[str], vectors: Sequence[Sequence[float]]) -> int:
        """Insert many token vectors under a single lock acquisition.

        Returns:
            Number of vectors stored; 0 when the two sequences differ in length
        """
        if len(tokens) != len(vectors):
            return 0

        prepared: List[Tuple[str, np.ndarray]] = []
        for token, vector in zip(tokens, vectors):
            array = np.array(vector, dtype=np.float32).reshape(-1)
            if array.shape[0] != self._dimension:
                continue
            prepared.append((sys.intern(token), array))

        with self._lock.write_locked():
            for token, array in prepared:
                self._store(token, array)
        return len(prepared)

    def _store(self, token: str, array: np.ndarray) -> None:
        # Overwrites keep the old entry's bytes in the estimate
        self._vectors[token] = array
        self._memory_usage += (
            STRING_HEADER_BYTES + len(token.encode("utf-8"))
            + ARRAY_HEADER_BYTES + array.nbytes
            + MAP_ENTRY_OVERHEAD_BYTES
        )

    # ---- accessors ----------------------------------------------
    def dimension(self) -> int:
        return self._dimension

    def vocabulary_size(self) -> int:
        with self._lock.read_locked():
            return len(self._vectors)

    def memory_usage(self) -> int:
        with self._lock.read_locked():
            return self._memory_usage

    # ---- statistics ---------------------------------------------
    def get_oov_rate(self) -> float:
        with self._lock.read_locked():
            return self._stats.oov_rate

    def get_vector_hit_rate(self) -> float:
        with self._lock.read_locked():
            return self._stats.hit_rate

    def get_fallback_success_rate(self) -> float:
        with self._lock.read_locked():
            return self._stats.fallback_success_rate

    def get_lookup_stats(self) -> LookupStats:
        """Return a consistent copy of all six counters."""
        with self._lock.read_locked():
            return LookupStats(*self._stats.as_tuple())

    def reset_stats(self) -> None:
        with self._lock.write_locked():
            self._stats = LookupStats()

    def __len__(self) -> int:
        return self.vocabulary_size()

    def __repr__(self) -> str:
        return f"EmbeddingStore(dimension={self._dimension}, vocabulary_size={self.vocabulary_size()})"
