# mediasend/core/log.py
"""
Logging helpers shared by every mediasend module.

All loggers are children of the ``mediasend`` logger so the host application
can configure them in one place. Two environment knobs are honoured:

- MEDIASEND_DEBUG=1      → DEBUG level on the ``mediasend`` logger
- MEDIASEND_LOG_FILE=... → attach a rotating file handler (once)
"""

from __future__ import annotations

import logging
import os
from logging.handlers import RotatingFileHandler

ROOT_LOGGER_NAME = "mediasend"

_CONFIGURED = False


def _debug_enabled() -> bool:
    return os.getenv("MEDIASEND_DEBUG", "").strip().lower() in {"1", "true", "yes", "on"}


def _configure_root() -> logging.Logger:
    """Create/reuse the package logger and its optional rotating file handler."""
    global _CONFIGURED
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if _CONFIGURED:
        return root

    if _debug_enabled():
        root.setLevel(logging.DEBUG)

    log_path = os.getenv("MEDIASEND_LOG_FILE", "").strip()
    # Avoid duplicate handlers if reloaded in REPL/tests
    if log_path and not any(isinstance(h, RotatingFileHandler) for h in root.handlers):
        try:
            directory = os.path.dirname(log_path)
            if directory:
                os.makedirs(directory, exist_ok=True)
            handler = RotatingFileHandler(log_path, maxBytes=1_000_000, backupCount=3, encoding="utf-8")
            handler.setFormatter(
                logging.Formatter(
                    fmt="%(asctime)s %(levelname)s %(name)s %(message)s",
                    datefmt="(%Y-%m-%d %H:%M:%S)",
                )
            )
            root.addHandler(handler)
        except OSError:
            # a broken log path must not break sending
            root.warning("could not open log file %s", log_path)

    _CONFIGURED = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Return a logger under the ``mediasend`` hierarchy."""
    _configure_root()
    if name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + "."):
        return logging.getLogger(name)
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")


__all__ = ["ROOT_LOGGER_NAME", "get_logger"]
