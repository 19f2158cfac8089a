import logging
import os
from typing import Any, Optional


DEFAULT_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
DEFAULT_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | "
    "gen=%(generation_id)s user=%(user_id)s | %(message)s"
)

# Per-request INFO lines from these drown out pipeline events
NOISY_LOGGERS = ("httpx", "httpcore", "sqlalchemy.engine")


class ContextFilter(logging.Filter):
    """Injects default generation/user fields so the formatter never fails."""

    def filter(self, record: logging.LogRecord) -> bool:  # type: ignore[override]
        if not hasattr(record, "generation_id"):
            record.generation_id = "-"
        if not hasattr(record, "user_id"):
            record.user_id = "-"
        return True


def log_context(
    generation_id: Optional[int] = None, user_id: Optional[str] = None
) -> dict[str, Any]:
    """Build the ``extra=`` mapping for pipeline log records."""
    return {
        "generation_id": generation_id if generation_id is not None else "-",
        "user_id": user_id or "-",
    }


def setup_logging(level: Optional[str] = None, fmt: Optional[str] = None) -> None:
    """Initialize the root logger once per process (reloads replace the handler)."""
    resolved_level = getattr(logging, (level or DEFAULT_LEVEL), logging.INFO)
    formatter = logging.Formatter(fmt or DEFAULT_FORMAT)

    root = logging.getLogger()
    root.setLevel(resolved_level)

    for h in list(root.handlers):
        root.removeHandler(h)

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)
    handler.addFilter(ContextFilter())
    root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(resolved_level, logging.WARNING))


def get_logger(name: str) -> logging.Logger:
    if not logging.getLogger().handlers:
        setup_logging()
    return logging.getLogger(name)
