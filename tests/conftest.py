# conftest.py
# Put the repository root and this directory on sys.path so tests can
# import both `pagewatch` and the shared `fakes` module.

import os
import sys
from pathlib import Path

import pytest

TESTS_DIR = Path(__file__).resolve().parent
ROOT = TESTS_DIR.parent

for path in (str(ROOT), str(TESTS_DIR)):
    if path not in sys.path:
        sys.path.insert(0, path)

# Console rendering keeps captured test logs readable
os.environ.setdefault("LOG_FORMAT", "console")

from pagewatch.models.monitoring import MonitoringTarget  # noqa: E402
from fakes import AVAILABILITY_SELECTOR, PRICE_SELECTOR, PRODUCT_URL  # noqa: E402


@pytest.fixture
def target() -> MonitoringTarget:
    return MonitoringTarget(
        url=PRODUCT_URL,
        fields={"availability": AVAILABILITY_SELECTOR, "price": PRICE_SELECTOR},
    )
