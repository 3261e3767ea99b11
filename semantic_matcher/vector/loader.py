"""
Loader for text embedding files.

File layout: a header line "<word_count> <dimension>" followed by one
"<token> <float> ... <float>" line per vector. Several files can be merged into
one store as long as they declare the same dimension.
"""

import os
from typing import Iterable, Optional, Sequence, Union

import numpy as np

from ..core.errors import (
    DimensionMismatchError,
    InvalidVectorFormatError,
    NoVectorFilesError,
    VectorFileNotFoundError,
)
from ..util.logging import NullLogger, StructuredLogger
from .store import EmbeddingStore
from .types import ProgressCallback

Line = Union[str, bytes]


def progress_interval(word_count: int) -> int:
    """Number of loaded vectors between two progress reports."""
    if word_count < 10000:
        return 1000
    if word_count < 50000:
        return 5000
    return 10000


def parse_header(line: Optional[Line]):
    """Parse the "<word_count> <dimension>" header line.

    Raises:
        InvalidVectorFormatError: if the header is missing or malformed
    """
    if line is None:
        raise InvalidVectorFormatError("missing header line")
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as e:
            raise InvalidVectorFormatError(f"header line is not valid UTF-8: {e}") from e

    parts = line.split()
    if not parts:
        raise InvalidVectorFormatError("empty header line")
    if len(parts) != 2:
        raise InvalidVectorFormatError("first line must contain word count and dimension")

    try:
        word_count = int(parts[0])
    except ValueError:
        raise InvalidVectorFormatError(f"invalid word count in first line: {parts[0]!r}") from None
    if word_count <= 0:
        raise InvalidVectorFormatError(f"word count must be positive, got {word_count}")

    try:
        dimension = int(parts[1])
    except ValueError:
        raise InvalidVectorFormatError(f"invalid dimension in first line: {parts[1]!r}") from None
    if dimension <= 0:
        raise InvalidVectorFormatError(f"dimension must be positive, got {dimension}")

    return word_count, dimension


class EmbeddingLoader:
    """Builds EmbeddingStore instances from embedding files or streams."""

    def __init__(self, logger: StructuredLogger = None):
        self.logger = logger or NullLogger()
        self._progress_callback: Optional[ProgressCallback] = None

    def set_progress_callback(self, callback: Optional[ProgressCallback]) -> None:
        """Set the callback invoked as callback(loaded, total, memory_bytes)."""
        self._progress_callback = callback

    def load_from_file(self, path: str) -> EmbeddingStore:
        """Load a single embedding file into a new store."""
        self.logger.info("Loading vector file, path: %s", path)
        return self._load_file(path, store=None)

    def load_from_reader(self, reader: Iterable[Line]) -> EmbeddingStore:
        """Load vectors from any iterable of lines (text or UTF-8 bytes)."""
        return self._load_stream(reader, store=None, source="<stream>")

    def load_multiple_files(self, paths: Sequence[str]) -> EmbeddingStore:
        """Merge several embedding files into one store.

        Files are read in order; a token present in several files keeps the
        vector of the last one. Every file must declare the dimension of the
        first.

        Raises:
            NoVectorFilesError: if paths is empty
            DimensionMismatchError: if a later file declares another dimension
        """
        if not paths:
            raise NoVectorFilesError("no vector files specified")

        self.logger.info("Loading %d vector files", len(paths))

        store = None
        for index, path in enumerate(paths, start=1):
            self.logger.info("Loading vector file %d/%d, path: %s", index, len(paths), path)
            try:
                store = self._load_file(path, store=store)
            except Exception as e:
                self.logger.log_operation("loader.load_multiple_files", "failed", {
                    "path": path,
                    "file_index": index,
                    "error": str(e),
                })
                raise

        self.logger.log_operation("loader.load_multiple_files", "success", {
            "file_count": len(paths),
            "vocabulary_size": store.vocabulary_size(),
            "dimension": store.dimension(),
            "memory_mb": round(store.memory_usage() / (1024 * 1024), 2),
        })
        return store

    # ---- internals ----------------------------------------------
    def _load_file(self, path: str, store: Optional[EmbeddingStore]) -> EmbeddingStore:
        if not os.path.exists(path):
            raise VectorFileNotFoundError(f"vector file not found: {path}")

        # Binary mode: lines are decoded one at a time so a bad line is skipped alone
        try:
            with open(path, "rb") as f:
                return self._load_stream(f, store=store, source=path)
        except OSError as e:
            raise InvalidVectorFormatError(f"failed to read vector file {path}: {e}") from e

    def _load_stream(self, reader: Iterable[Line], store: Optional[EmbeddingStore],
                     source: str) -> EmbeddingStore:
        lines = iter(reader)
        word_count, dimension = parse_header(next(lines, None))

        self.logger.info("Vector file header parsed, word_count: %d, dimension: %d",
                         word_count, dimension)

        if store is None:
            store = EmbeddingStore(dimension)
        elif store.dimension() != dimension:
            raise DimensionMismatchError(
                f"{source} declares dimension {dimension}, expected {store.dimension()}"
            )

        interval = progress_interval(word_count)
        loaded = 0

        for line_number, raw in enumerate(lines, start=2):
            if isinstance(raw, bytes):
                try:
                    raw = raw.decode("utf-8")
                except UnicodeDecodeError:
                    self.logger.warning("Skipping line with invalid UTF-8, line_number: %d", line_number)
                    continue
            parts = raw.split()
            if not parts:
                continue

            if len(parts) != dimension + 1:
                self.logger.warning(
                    "Skipping invalid line, line_number: %d, expected_parts: %d, actual_parts: %d",
                    line_number, dimension + 1, len(parts))
                continue

            try:
                vector = np.array(parts[1:], dtype=np.float32)
            except ValueError:
                self.logger.warning(
                    "Skipping line with invalid float value, line_number: %d, word: %s",
                    line_number, parts[0])
                continue

            store.add_vector(parts[0], vector)
            loaded += 1

            if loaded % interval == 0:
                self._report_progress(source, loaded, word_count, store.memory_usage())

        memory = store.memory_usage()
        self.logger.log_operation("loader.load", "success", {
            "source": source,
            "loaded_vectors": loaded,
            "expected_vectors": word_count,
            "dimension": dimension,
            "vocabulary_size": store.vocabulary_size(),
            "memory_mb": round(memory / (1024 * 1024), 2),
            "avg_bytes_per_vector": round(memory / loaded, 2) if loaded else 0.0,
        })

        if self._progress_callback is not None:
            self._progress_callback(loaded, word_count, memory)

        if loaded != word_count:
            self.logger.warning("Loaded vector count differs from header, expected: %d, actual: %d",
                                word_count, loaded)

        return store

    def _report_progress(self, source: str, loaded: int, total: int, memory: int) -> None:
        self.logger.log_load_progress(source, loaded, total, memory)
        if self._progress_callback is not None:
            self._progress_callback(loaded, total, memory)
