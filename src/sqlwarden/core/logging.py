import logging
import sys

from sqlwarden.boundary.context import current_context


class ExecutionContextFilter(logging.Filter):
    """Stamp each record with the active confined context ("-" outside one)."""

    def filter(self, record: logging.LogRecord) -> bool:
        ctx = current_context()
        record.context = ctx.name if ctx is not None else "-"
        return True


def setup_logging(level: str = "INFO") -> None:
    """
    Configure logging with:
    - root logger = INFO
    - sqlwarden logs = level
    - noisy libraries reduced
    """

    app_level = getattr(logging, level.upper(), logging.INFO)

    handler = logging.StreamHandler(sys.stdout)
    formatter = logging.Formatter(
        fmt="%(asctime)s | %(levelname)s | %(name)s | %(context)s | %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S%z",
    )
    handler.setFormatter(formatter)
    handler.addFilter(ExecutionContextFilter())

    # ------------------------------------------------------------------
    # Root logger: safe default
    # ------------------------------------------------------------------
    root = logging.getLogger()
    root.handlers.clear()
    root.setLevel(logging.INFO)
    root.addHandler(handler)

    # ------------------------------------------------------------------
    # Application logs
    # ------------------------------------------------------------------
    logging.getLogger("sqlwarden").setLevel(app_level)

    # ------------------------------------------------------------------
    # Common noisy libraries
    # ------------------------------------------------------------------
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
