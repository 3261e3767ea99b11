"""
Structured logging for embedding loads and similarity queries.

Wraps the standard library logger so every component reports through the same
handler and format. NullLogger is the silent default used when a caller does not
supply a logger.
"""

import logging
from typing import Any, Dict, Optional


class StructuredLogger:
    """Structured logger for store, loader and matcher operations."""

    def __init__(self, name: str = "semantic_matcher", level: int = logging.INFO):
        self.logger = logging.getLogger(name)
        self.logger.setLevel(level)

        # Create handler if not already set
        if not self.logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter(
                '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            )
            handler.setFormatter(formatter)
            self.logger.addHandler(handler)

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        """Log a structured operation."""
        message = f"Operation: {operation}, Status: {status}"
        if details:
            message += f", Details: {details}"

        if status in ("failed", "rejected"):
            self.logger.warning(message)
        else:
            self.logger.info(message)

    def log_load_progress(self, source: str, loaded: int, total: int, memory_bytes: int):
        """Log embedding load progress."""
        progress_pct = round(loaded / total * 100, 2) if total else 0.0
        self.log_operation("loader.progress", "running", {
            "source": source,
            "loaded_vectors": loaded,
            "target": total,
            "progress_pct": progress_pct,
            "memory_mb": round(memory_bytes / (1024 * 1024), 2),
        })

    def log_query(self, query: str, duration_ms: float, details: Optional[Dict[str, Any]] = None,
                  status: str = "success"):
        """Log a completed matcher query with its timing."""
        log_details = {"duration_ms": round(duration_ms, 3)}
        if details:
            log_details.update(details)

        self.log_operation(f"matcher.{query}", status, log_details)

    # Standard logging methods
    def debug(self, message: str, *args: Any) -> None:
        """Log a debug message."""
        self.logger.debug(message, *args)

    def info(self, message: str, *args: Any) -> None:
        """Log an info message."""
        self.logger.info(message, *args)

    def warning(self, message: str, *args: Any) -> None:
        """Log a warning message."""
        self.logger.warning(message, *args)

    def error(self, message: str, *args: Any) -> None:
        """Log an error message."""
        self.logger.error(message, *args)


class NullLogger(StructuredLogger):
    """Logger that discards everything."""

    def __init__(self):
        self.logger = logging.getLogger("semantic_matcher.null")
        if not self.logger.handlers:
            self.logger.addHandler(logging.NullHandler())
        self.logger.propagate = False
        self.logger.disabled = True

    def log_operation(self, operation: str, status: str, details: Dict[str, Any] = None):
        pass

    def debug(self, message: str, *args: Any) -> None:
        pass

    def info(self, message: str, *args: Any) -> None:
        pass

    def warning(self, message: str, *args: Any) -> None:
        pass

    def error(self, message: str, *args: Any) -> None:
        pass


# Global logger instance
logger = StructuredLogger()
