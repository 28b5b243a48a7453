"""Shared pytest fixtures for appealdesk tests.

Every test gets its own reports directory under ``tmp_path``.
"""

import logging
import random

import pytest

from appealdesk.config import get_settings
from appealdesk.reports import ReportStore


ACME_BYTES = b"PK\x03\x04acme quarterly appeals " * 64
GLOBEX_BYTES = bytes(random.Random(7).getrandbits(8) for _ in range(4096))


@pytest.fixture(autouse=True)
def _restore_logging():
    """Undo any setup_logging() call made while a test ran."""
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


@pytest.fixture
def clean_settings(monkeypatch):
    """Quiet, cache-free settings for code paths that call get_settings()."""
    monkeypatch.setenv("LOG_LEVEL", "ERROR")
    monkeypatch.setenv("LOG_FORMAT", "text")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def reports_dir(tmp_path):
    """An empty, existing reports directory."""
    path = tmp_path / "reports"
    path.mkdir()
    return path


@pytest.fixture
def populated_reports_dir(reports_dir):
    """Reports directory with two reports and some files that must be ignored."""
    (reports_dir / "acme_report.xlsx").write_bytes(ACME_BYTES)
    (reports_dir / "globex_report.xlsx").write_bytes(GLOBEX_BYTES)
    (reports_dir / "notes.txt").write_text("not a report")
    (reports_dir / "acme_report.csv").write_text("a,b\n1,2\n")
    (reports_dir / "nested.xlsx").mkdir()
    return reports_dir


@pytest.fixture
def store(reports_dir):
    """Report store over the (initially empty) reports directory."""
    return ReportStore(reports_dir)


@pytest.fixture
def populated_store(populated_reports_dir):
    """Report store over the populated reports directory."""
    return ReportStore(populated_reports_dir)


@pytest.fixture
def report_contents():
    """Expected bytes of each report in ``populated_reports_dir``."""
    return {
        "acme_report.xlsx": ACME_BYTES,
        "globex_report.xlsx": GLOBEX_BYTES,
    }
