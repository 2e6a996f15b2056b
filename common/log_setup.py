from __future__ import annotations

import logging

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configura el logging del proceso (una sola vez, en el entry point)."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=_LOG_FORMAT,
    )
    # httpx loguea cada request del long-polling en INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
