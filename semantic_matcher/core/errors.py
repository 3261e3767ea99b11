"""
Error taxonomy for the semantic matcher.

Every error the library raises derives from SemanticMatcherError so callers can
catch the whole family at once.
"""


class SemanticMatcherError(Exception):
    """Base class for semantic matcher errors."""


class VectorFileNotFoundError(SemanticMatcherError, FileNotFoundError):
    """The embedding file could not be found."""


class InvalidVectorFormatError(SemanticMatcherError):
    """The embedding file header or stream is malformed."""


class DimensionMismatchError(SemanticMatcherError):
    """Embedding files in one load declare different dimensions."""


class MemoryLimitExceededError(SemanticMatcherError):
    """Estimated store memory exceeds the configured ceiling."""


class ModelNotInitializedError(SemanticMatcherError):
    """The embedding store has not been loaded."""


class InvalidConfigurationError(SemanticMatcherError):
    """Configuration parameters are invalid."""


class UnsupportedLanguageError(InvalidConfigurationError):
    """A configured language is outside the supported set."""


class NoVectorFilesError(InvalidConfigurationError):
    """No embedding files were specified."""
