# tests/unit/test_log.py
from __future__ import annotations

import logging

from mediasend.core.log import ROOT_LOGGER_NAME, get_logger


def test_loggers_live_under_package_root() -> None:
    assert get_logger("mediasend.core.cache").name == "mediasend.core.cache"
    assert get_logger("tests.something").name == f"{ROOT_LOGGER_NAME}.tests.something"
    assert get_logger(ROOT_LOGGER_NAME) is logging.getLogger(ROOT_LOGGER_NAME)


def test_cache_warnings_are_logged(caplog, cache) -> None:
    cache.cache_dir.mkdir(parents=True, exist_ok=True)
    cache.index_path.write_text("[1, 2", encoding="utf-8")
    with caplog.at_level(logging.WARNING, logger=ROOT_LOGGER_NAME):
        assert cache.load().items == {}
    assert any("resetting cache index" in r.getMessage() for r in caplog.records)
