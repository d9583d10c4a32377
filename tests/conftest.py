"""Shared test fixtures for the GitHub Profiler test suite."""

import pytest
import structlog
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

# Keep log lines out of captured stdout
structlog.configure(
    processors=[structlog.processors.KeyValueRenderer()],
    logger_factory=structlog.ReturnLoggerFactory(),
    cache_logger_on_first_use=False,
)


# ── Database Pool Mock ──


class FakeRecord(dict):
    """Mimics asyncpg.Record: supports both dict-style and attribute access."""
    def __getattr__(self, key):
        try:
            return self[key]
        except KeyError:
            raise AttributeError(key)


class FakeTransaction:
    def __init__(self, conn):
        self.conn = conn

    async def __aenter__(self):
        self.conn.transactions_started += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        if exc_type is None:
            self.conn.committed += 1
        else:
            self.conn.rolled_back += 1
        return False


class FakeConnection:
    """Mock asyncpg connection with configurable return values.

    ``errors`` maps a SQL fragment to an exception raised by any call whose
    query contains that fragment.
    """

    def __init__(self):
        self.execute_results: list[str] = ["INSERT 0 1"]
        self.fetch_results: list[list[dict]] = [[]]
        self.fetchrow_result: dict | None = None
        self.fetchval_result: int | None = 1
        self.errors: dict[str, BaseException] = {}
        self.transactions_started = 0
        self.committed = 0
        self.rolled_back = 0
        self._execute_calls: list[tuple] = []
        self._fetch_calls: list[tuple] = []
        self._fetchrow_calls: list[tuple] = []

    def _maybe_raise(self, query):
        for fragment, error in self.errors.items():
            if fragment in query:
                raise error

    @property
    def all_queries(self) -> list[str]:
        return [q for q, _ in self._fetchrow_calls + self._fetch_calls + self._execute_calls]

    async def execute(self, query, *args):
        self._execute_calls.append((query, args))
        self._maybe_raise(query)
        return self.execute_results[0] if self.execute_results else "UPDATE 0"

    async def fetch(self, query, *args):
        self._fetch_calls.append((query, args))
        self._maybe_raise(query)
        result = self.fetch_results.pop(0) if self.fetch_results else []
        return [FakeRecord(r) for r in result]

    async def fetchrow(self, query, *args):
        self._fetchrow_calls.append((query, args))
        self._maybe_raise(query)
        return FakeRecord(self.fetchrow_result) if self.fetchrow_result else None

    async def fetchval(self, query, *args):
        self._maybe_raise(query)
        return self.fetchval_result

    def transaction(self):
        return FakeTransaction(self)


class FakePool:
    """Mock asyncpg.Pool that yields a FakeConnection."""

    def __init__(self):
        self.conn = FakeConnection()
        self.acquired = 0
        self.released = 0
        self.acquire_error: BaseException | None = None

    def acquire(self):
        return FakePoolContext(self)


class FakePoolContext:
    def __init__(self, pool):
        self.pool = pool

    async def __aenter__(self):
        if self.pool.acquire_error is not None:
            raise self.pool.acquire_error
        self.pool.acquired += 1
        return self.pool.conn

    async def __aexit__(self, *args):
        self.pool.released += 1
        return False


@pytest.fixture
def fake_pool():
    """Provide a mock database pool."""
    return FakePool()


@pytest.fixture
def fake_conn(fake_pool):
    """Direct access to the underlying FakeConnection."""
    return fake_pool.conn


# ── Sample rows ──


@pytest.fixture
def now():
    """Current UTC datetime."""
    return datetime.now(UTC)


@pytest.fixture
def user_row(now):
    """A users row as returned by INSERT ... RETURNING."""
    return {
        "id": 1,
        "external_id": 134,
        "username": "testuser",
        "email": "test@example.com",
        "location": "Portugal",
        "created_at": now,
    }


# ── GitHub collector mock ──


@pytest.fixture
def rate_limiter():
    limiter = MagicMock()
    limiter.acquire = AsyncMock()
    limiter.configure = MagicMock()
    limiter.update_from_headers = MagicMock()
    return limiter
