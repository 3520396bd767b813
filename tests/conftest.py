"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import sys
from datetime import UTC, date, datetime
from pathlib import Path

import pytest
from loguru import logger

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from learncore.processing import Document  # noqa: E402

FILLER = "lorem ipsum dolor sit amet consectetur adipiscing elit "


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture(autouse=True)
def reset_logger():
    """Drop any sinks a test (e.g. the CLI callback) attached."""
    yield
    logger.remove()


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def review_day():
    """A fixed review date."""
    return date(2026, 3, 1)


@pytest.fixture
def fixed_clock():
    """Clock that always returns the same UTC instant."""
    instant = datetime(2026, 3, 1, 9, 30, tzinfo=UTC)
    return lambda: instant


def filler_text(length: int) -> str:
    """Deterministic prose of exactly ``length`` characters."""
    repeated = FILLER * (length // len(FILLER) + 1)
    return repeated[:length]


@pytest.fixture
def long_document():
    """~6000 char document with 'photosynthesis' only inside the third parent span."""
    content = filler_text(3500) + " photosynthesis converts light energy " + filler_text(2500)
    return Document(doc_id="biology-notes", content=content)
