from __future__ import annotations

import logging

import pytest

from catalogsync.common import configure_logging


@pytest.fixture(autouse=True)
def restore_logging():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    noisy_levels = {name: logging.getLogger(name).level for name in ("httpx", "httpcore")}
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)
    for name, level in noisy_levels.items():
        logging.getLogger(name).setLevel(level)


def test_info_level_quiets_http_client_loggers() -> None:
    configure_logging(level=logging.INFO, force=True)

    assert logging.getLogger().level == logging.INFO
    assert logging.getLogger("httpx").level == logging.WARNING
    assert logging.getLogger("httpcore").level == logging.WARNING


def test_debug_level_leaves_http_client_loggers_alone() -> None:
    logging.getLogger("httpx").setLevel(logging.NOTSET)

    configure_logging(level=logging.DEBUG, force=True)

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.NOTSET
