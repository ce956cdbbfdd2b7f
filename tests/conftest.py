"""
Pytest fixtures for the compliance rule engine test suite.

Provides:
- An in-memory SQLite database (tables created once per test session,
  rows cleared between tests)
- The active rule registry loaded from ``compliance_config/sets/default.yaml``
- A deterministic clock
- Structured log capture

Environment Variables:
- DATABASE_URL: optional database URL. Defaults to in-memory SQLite.
"""

import json
import logging
import os
from datetime import datetime, timezone
from io import StringIO
from typing import Generator
from uuid import uuid4

import pytest
from sqlalchemy.orm import Session

from compliance_config import get_active_config
from compliance_config.schema import RuleRegistry
from compliance_kernel.db.base import Base
from compliance_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_engine,
    get_session,
    init_engine_from_url,
    reset_engine,
)
from compliance_kernel.domain.clock import DeterministicClock
from compliance_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

TEST_TENANT_ID = "tenant-test"

DEFAULT_DATABASE_URL = "sqlite://"


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture compliance_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            calculate_vat(...)
            logs = captured_logs()
            assert any(r["message"] == "COMPLIANCE_ENGINE_TRACE" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("compliance_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure (engine + tables once per suite)
# =============================================================================


def get_database_url() -> str:
    """Get database URL from environment, or use in-memory SQLite."""
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


@pytest.fixture(scope="session")
def db_engine():
    init_engine_from_url(get_database_url())
    create_tables()
    yield get_engine()
    drop_tables()
    reset_engine()


@pytest.fixture
def session(db_engine) -> Generator[Session, None, None]:
    """
    Fresh session per test. Rows are deleted afterwards (children first),
    bypassing the ORM so append-only listeners do not interfere.
    """
    sess = get_session()
    yield sess
    sess.rollback()
    sess.close()
    with db_engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())


# =============================================================================
# Rule registry and clock
# =============================================================================


@pytest.fixture(scope="session")
def config() -> RuleRegistry:
    """The default rule set, loaded and validated once."""
    return get_active_config()


@pytest.fixture
def deterministic_clock() -> DeterministicClock:
    return DeterministicClock(datetime(2024, 6, 1, 9, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def tenant_id() -> str:
    return TEST_TENANT_ID


@pytest.fixture
def test_actor_id():
    return TEST_ACTOR_ID
