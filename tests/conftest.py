# conftest.py
from __future__ import annotations

import os

import pytest

from typedstore import DataProvider, StoreConfig
from typedstore.core.log import configure_from_env, enable_stdout_logging, get_logger, log_context
from typedstore.core.time import ManualClock
from tests.helpers import InMemLockProvider, InMemStoreSession, Widget


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests against in-memory doubles")
    config.addinivalue_line("markers", "provider: DataProvider behavior")
    config.addinivalue_line("markers", "locks: optimistic locking")
    config.addinivalue_line("markers", "index: type index and wildcard fallback")
    config.addinivalue_line("markers", "integration: needs a live Redis (TYPEDSTORE_TEST_REDIS_URL)")


def pytest_addoption(parser):
    parser.addoption(
        "--log-json",
        action="store_true",
        default=False,
        help="Emit typedstore logs in JSON format during tests",
    )


@pytest.fixture(scope="session", autouse=True)
def _configure_typedstore_logging(request):
    configure_from_env()
    prefer_json = request.config.getoption("--log-json")
    if os.getenv("TYPEDSTORE_LOG_STDOUT", "").lower() not in ("1", "true", "yes", "on"):
        enable_stdout_logging(level="DEBUG", json_output=prefer_json, pretty=not prefer_json)


@pytest.fixture(autouse=True)
def _test_log_context(request):
    log = get_logger("test")
    with log_context(test=request.node.name):
        log.debug("pytest.test.start", event="pytest.test.start")
        yield


@pytest.fixture
def clock():
    return ManualClock(start_ms=1_000)


@pytest.fixture
def session():
    return InMemStoreSession(endpoints=["mem://primary", "mem://replica"])


@pytest.fixture
def locks(clock):
    return InMemLockProvider(clock)


@pytest.fixture
def config():
    return StoreConfig(redis_urls=["redis://unused:6379"])


@pytest.fixture
def widgets(session, locks, config):
    """DataProvider[Widget] wired to the in-memory doubles."""
    return DataProvider(Widget, config=config, session=session, lock_provider=locks)


@pytest.fixture(autouse=True)
def _reset_warn_once():
    from typedstore.core import log as store_log

    store_log._WARN_ONCE_SEEN.clear()
    yield
