"""
Shared fixtures for semantic matcher tests.
"""

import pytest

from semantic_matcher.vector.store import EmbeddingStore


@pytest.fixture
def write_vec_file(tmp_path):
    """Write an embedding file and return its path."""

    def _write(name, entries, dimension=None, count=None, extra_lines=()):
        dimension = dimension if dimension is not None else len(entries[0][1])
        count = count if count is not None else len(entries)
        lines = [f"{count} {dimension}"]
        for token, vector in entries:
            lines.append(" ".join([token] + [str(v) for v in vector]))
        lines.extend(extra_lines)
        path = tmp_path / name
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def small_store():
    """Three-dimensional store with a handful of English and Chinese tokens."""
    store = EmbeddingStore(3)
    store.add_vector("cat", [1.0, 0.0, 0.0])
    store.add_vector("dog", [0.9, 0.1, 0.0])
    store.add_vector("car", [0.0, 1.0, 0.0])
    store.add_vector("engine", [0.0, 0.9, 0.1])
    store.add_vector("猫", [1.0, 0.0, 0.0])
    store.add_vector("狗", [0.8, 0.2, 0.0])
    return store
