"""
Cosine similarity over embedding vectors.
"""

from typing import List, Sequence

import numpy as np


def _as_float64(vector: Sequence[float]) -> np.ndarray:
    if vector is None:
        return np.zeros(0, dtype=np.float64)
    return np.asarray(vector, dtype=np.float64).reshape(-1)


class SimilarityCalculator:
    """Stateless cosine similarity calculator.

    Stored vectors are float32; every computation is carried out in float64.
    Invalid input (empty, mismatched length or all-zero vectors) scores 0.0
    instead of raising.
    """

    def cosine_similarity(self, v1: Sequence[float], v2: Sequence[float]) -> float:
        """Compute cos(theta) = (v1 . v2) / (|v1| * |v2|), clamped to [-1, 1]."""
        a = _as_float64(v1)
        b = _as_float64(v2)
        if a.size == 0 or b.size == 0 or a.size != b.size:
            return 0.0

        norm_a = np.dot(a, a)
        norm_b = np.dot(b, b)
        if norm_a == 0.0 or norm_b == 0.0:
            return 0.0

        similarity = float(np.dot(a, b) / (np.sqrt(norm_a) * np.sqrt(norm_b)))
        return min(1.0, max(-1.0, similarity))

    def batch_similarity(self, query: Sequence[float],
                         candidates: Sequence[Sequence[float]]) -> List[float]:
        """Score one query vector against many candidates.

        Returns an empty list for an empty query or no candidates. An all-zero
        query scores every candidate 0.0, as does any invalid candidate.
        """
        q = _as_float64(query)
        if q.size == 0 or candidates is None or len(candidates) == 0:
            return []

        results = [0.0] * len(candidates)

        query_norm = np.dot(q, q)
        if query_norm == 0.0:
            return results
        query_norm = np.sqrt(query_norm)

        for idx, candidate in enumerate(candidates):
            c = _as_float64(candidate)
            if c.size == 0 or c.size != q.size:
                continue

            candidate_norm = np.dot(c, c)
            if candidate_norm == 0.0:
                continue

            similarity = float(np.dot(q, c) / (query_norm * np.sqrt(candidate_norm)))
            results[idx] = min(1.0, max(-1.0, similarity))

        return results
