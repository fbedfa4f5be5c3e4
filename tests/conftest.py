import logging
import threading

import pytest

from key_recovery.app_config import RecoveryConfig
from key_recovery.key_table import KeyTable
from key_recovery.logging_config import LOGGER_NAME
from key_recovery.message_source import DictMessageSource
from key_recovery.probes import ProbeSet, StageContext


@pytest.fixture(autouse=True)
def reset_package_logger():
    """
    Undo whatever setup_logger did during a test so handlers (and open log
    files) do not leak into the next one, and caplog can see records again.
    """
    yield
    logger = logging.getLogger(LOGGER_NAME)
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def make_probe_set():
    """Factory for a ProbeSet over a plain key -> message dict."""
    def _make(mapping, punctuation=(), prefixes=(), suffixes=(), source=None):
        table = KeyTable()
        probes = ProbeSet(source or DictMessageSource(mapping), table, threading.Event())
        probes.context = StageContext(
            punctuation=tuple(punctuation),
            prefixes=tuple(prefixes),
            suffixes=tuple(suffixes)
        )
        return probes
    return _make


@pytest.fixture
def fast_config():
    """Engine config with a small pool and short polling so tests finish quickly."""
    return RecoveryConfig(
        max_workers=2,
        poll_interval_ms=5,
        report_interval_ms=1_000,
        log_to_console=False
    )
