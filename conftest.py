"""
Repository-level pytest configuration.

Why this exists:
  - Provide predictable defaults for local runs (headless chromium)
  - Keep the repo "plug-and-play" for anyone cloning it
  - Keep behavior explicit and discoverable

Values set here never override what the user or CI already exported.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Generator

import pytest

from pagetest.common import PageTestConfig, init_logger


@pytest.fixture(scope="session")
def project_root() -> Path:
    """Return repo root path."""
    return Path(__file__).parent


@pytest.fixture(scope="session", autouse=True)
def _pagetest_env_defaults() -> Generator[None, None, None]:
    """
    Set environment defaults if not already provided by the user/CI.
    """
    defaults = {
        "PAGETEST_BROWSER_ENGINE": "chromium",
        "PAGETEST_BROWSER_HEADLESS": "true",
    }

    for k, v in defaults.items():
        os.environ.setdefault(k, v)

    logging = PageTestConfig.load().logging
    init_logger(logging.level, logging.format, logging.file)
    yield
