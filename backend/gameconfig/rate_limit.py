"""Request throttling.

Public config reads use a fixed-window counter per client whose state lives
outside the process (one locked file per client, or a row in the SQLite
store), so every worker shares the same budget. If that storage fails the
limiter fails open: serving configuration matters more than strict throttling.

Admin logins use an in-process token bucket per client IP.
"""

from __future__ import annotations

import contextlib
import fcntl
import hashlib
import json
import os
import random
import sqlite3
import time
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import structlog

from shared.storage import PRIVATE_FILE_MODE, ensure_private_dir

if TYPE_CHECKING:
    from collections.abc import Callable

    from shared.db.connection import Database

logger = structlog.get_logger()

DEFAULT_LIMIT = 60
DEFAULT_WINDOW_SECONDS = 60.0

# Fraction of checks that also sweep out long-dead windows.
DEFAULT_CLEANUP_PROBABILITY = 0.01

_WINDOW_FILE_SUFFIX = ".window"


@dataclass(frozen=True)
class WindowState:
    window_start: float
    count: int


@dataclass(frozen=True)
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    reset_at: float | None

    def headers(self) -> dict[str, str]:
        headers = {"X-RateLimit-Limit": str(self.limit), "X-RateLimit-Remaining": str(self.remaining)}
        if self.reset_at is not None:
            headers["X-RateLimit-Reset"] = str(int(self.reset_at))
            if not self.allowed:
                headers["Retry-After"] = str(max(1, int(self.reset_at - time.time() + 0.999)))
        return headers


def advance_window(
    state: WindowState | None,
    *,
    now: float,
    window_seconds: float,
    limit: int,
) -> tuple[bool, WindowState]:
    """Apply one request to a fixed window.

    The window restarts once ``now - window_start > window_seconds``. The
    request is permitted iff ``count < limit``, in which case count increments.
    """
    if state is None or now - state.window_start > window_seconds:
        state = WindowState(window_start=now, count=0)
    if state.count >= limit:
        return False, state
    return True, WindowState(window_start=state.window_start, count=state.count + 1)


class RateLimitStorage(Protocol):
    def hit(self, client_key: str, *, now: float, window_seconds: float, limit: int) -> tuple[bool, WindowState]: ...

    def cleanup(self, *, older_than: float) -> int: ...


class FileRateLimitStorage:
    """One small JSON file per client, updated under an exclusive flock.

    The advisory lock serializes read-modify-write across worker processes
    sharing the directory. Lock holders never do network I/O.
    """

    def __init__(self, directory: str | Path) -> None:
        self._dir = Path(directory).resolve()
        self._dir_ready = False

    def hit(self, client_key: str, *, now: float, window_seconds: float, limit: int) -> tuple[bool, WindowState]:
        if not self._dir_ready:
            ensure_private_dir(self._dir)
            self._dir_ready = True

        path = self._dir / f"{client_key}{_WINDOW_FILE_SUFFIX}"
        fd = os.open(path, os.O_RDWR | os.O_CREAT, PRIVATE_FILE_MODE)
        with os.fdopen(fd, "r+b") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                allowed, state = advance_window(
                    _parse_window(f.read()),
                    now=now,
                    window_seconds=window_seconds,
                    limit=limit,
                )
                f.seek(0)
                f.truncate()
                f.write(json.dumps({"window_start": state.window_start, "count": state.count}).encode("utf-8"))
                f.flush()
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        return allowed, state

    def cleanup(self, *, older_than: float) -> int:
        """Delete window files not touched since older_than (a timestamp)."""
        if not self._dir.is_dir():
            return 0
        removed = 0
        for path in self._dir.glob(f"*{_WINDOW_FILE_SUFFIX}"):
            with contextlib.suppress(FileNotFoundError):
                if path.stat().st_mtime < older_than:
                    path.unlink()
                    removed += 1
        return removed


def _parse_window(raw: bytes) -> WindowState | None:
    """Decode a window file; empty or damaged content starts a fresh window."""
    if not raw:
        return None
    try:
        data = json.loads(raw)
        return WindowState(window_start=float(data["window_start"]), count=int(data["count"]))
    except (ValueError, KeyError, TypeError):
        return None


class SqliteRateLimitStorage:
    """Window counters in the store database, one atomic UPSERT per request.

    SQLite evaluates every SET expression against the old row, so the reset
    decision and the increment agree. The count saturates at limit + 1 so a
    denied request can be told apart from the last permitted one.
    """

    _HIT_SQL = """\
INSERT INTO rate_limit_windows (client_key, window_start, count) VALUES (:key, :now, 1)
ON CONFLICT (client_key) DO UPDATE SET
    window_start = CASE WHEN :now - window_start > :window THEN :now ELSE window_start END,
    count = CASE
        WHEN :now - window_start > :window THEN 1
        WHEN count <= :limit THEN count + 1
        ELSE count
    END
RETURNING window_start, count
"""

    def __init__(self, db: Database) -> None:
        self._db = db

    def hit(self, client_key: str, *, now: float, window_seconds: float, limit: int) -> tuple[bool, WindowState]:
        conn = self._db.connection
        try:
            row = conn.execute(
                self._HIT_SQL,
                {"key": client_key, "now": now, "window": window_seconds, "limit": limit},
            ).fetchone()
            conn.commit()
        except sqlite3.Error:
            with contextlib.suppress(sqlite3.Error):
                conn.rollback()
            raise
        count = int(row[1])
        return count <= limit, WindowState(window_start=float(row[0]), count=min(count, limit))

    def cleanup(self, *, older_than: float) -> int:
        conn = self._db.connection
        cursor = conn.execute("DELETE FROM rate_limit_windows WHERE window_start < ?", (older_than,))
        conn.commit()
        return cursor.rowcount


def client_key(client_id: str) -> str:
    """Filesystem- and index-safe key for an arbitrary client identifier."""
    return hashlib.sha256(client_id.encode("utf-8")).hexdigest()[:32]


class FixedWindowRateLimiter:
    """Fixed-window limiter over a shared RateLimitStorage. Fails open."""

    def __init__(  # noqa: PLR0913
        self,
        storage: RateLimitStorage,
        *,
        limit: int = DEFAULT_LIMIT,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        cleanup_probability: float = DEFAULT_CLEANUP_PROBABILITY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage
        self._limit = limit
        self._window_seconds = window_seconds
        self._cleanup_probability = cleanup_probability
        self._clock = clock

    @property
    def limit(self) -> int:
        return self._limit

    def check(self, client_id: str) -> RateLimitDecision:
        now = self._clock()
        try:
            allowed, state = self._storage.hit(
                client_key(client_id),
                now=now,
                window_seconds=self._window_seconds,
                limit=self._limit,
            )
        except (OSError, sqlite3.Error, RuntimeError) as exc:
            logger.warning("rate limit storage unavailable, allowing request", error=str(exc))
            return RateLimitDecision(allowed=True, limit=self._limit, remaining=self._limit, reset_at=None)

        if not allowed:
            logger.info("rate limit exceeded", client=client_id)
        self._maybe_cleanup(now)
        return RateLimitDecision(
            allowed=allowed,
            limit=self._limit,
            remaining=max(0, self._limit - state.count),
            reset_at=state.window_start + self._window_seconds,
        )

    def allow(self, client_id: str) -> bool:
        return self.check(client_id).allowed

    def _maybe_cleanup(self, now: float) -> None:
        if random.random() >= self._cleanup_probability:  # noqa: S311
            return
        try:
            removed = self._storage.cleanup(older_than=now - 2 * self._window_seconds)
        except (OSError, sqlite3.Error, RuntimeError) as exc:
            logger.warning("rate limit cleanup failed", error=str(exc))
            return
        if removed:
            logger.debug("removed stale rate limit windows", count=removed)


class TokenBucket:
    """Rate limiter using the token bucket algorithm.

    Tokens are added at a constant rate up to a maximum burst capacity.
    Each consume() call removes one token; returns False when the bucket
    is empty (caller should throttle).
    """

    def __init__(self, rate: float, burst: int) -> None:
        self._rate = rate
        self._burst = burst
        self._tokens = float(burst)
        self._last_refill = time.monotonic()

    def consume(self) -> bool:
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(self._burst, self._tokens + elapsed * self._rate)
        self._last_refill = now

        if self._tokens >= 1.0:
            self._tokens -= 1.0
            return True
        return False

    @property
    def full(self) -> bool:
        elapsed = time.monotonic() - self._last_refill
        return self._tokens + elapsed * self._rate >= self._burst


# Bound on tracked login clients; full buckets are pruned beyond it.
_MAX_LOGIN_CLIENTS = 10_000


class LoginThrottle:
    """Per-client token buckets for the admin login endpoint (single process)."""

    def __init__(self, rate: float, burst: int) -> None:
        self._rate = rate
        self._burst = burst
        self._buckets: dict[str, TokenBucket] = {}

    def consume(self, client_id: str) -> bool:
        bucket = self._buckets.get(client_id)
        if bucket is None:
            if len(self._buckets) >= _MAX_LOGIN_CLIENTS:
                self._prune()
            bucket = self._buckets[client_id] = TokenBucket(self._rate, self._burst)
        return bucket.consume()

    def _prune(self) -> None:
        for client_id in [cid for cid, b in self._buckets.items() if b.full]:
            del self._buckets[client_id]
