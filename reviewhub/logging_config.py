from __future__ import annotations

import logging


def configure_app_logging(level: str = "INFO") -> None:
    """
    Minimal logging configuration for this repo.

    Notes:
    - Uvicorn already configures handlers; this only sets the level for our package.
    - Set `REVIEWHUB_LOG_LEVEL=DEBUG` to see every access decision.
    """

    normalized = level.upper()
    logging.getLogger("reviewhub").setLevel(normalized)
    logging.getLogger("reviewhub").propagate = True
