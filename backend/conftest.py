"""Test bootstrap for the game config service.

``.env.tests`` is loaded before any settings object is built, so apps created
through ``get_app`` use scratch storage under /tmp and the fast password
hasher. structlog is routed through stdlib logging so pytest's caplog sees the
service's log lines; ``log_events`` captures them as structured dicts instead.
"""

from pathlib import Path

import pytest
import structlog
from dotenv import load_dotenv
from structlog.testing import capture_logs

load_dotenv(Path(__file__).resolve().parent.parent / ".env.tests")

structlog.configure(
    processors=[
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
        structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
    ],
    logger_factory=structlog.stdlib.LoggerFactory(),
    wrapper_class=structlog.stdlib.BoundLogger,
    cache_logger_on_first_use=False,
)


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Context variables bound during one test must not leak into the next."""
    structlog.contextvars.clear_contextvars()
    yield
    structlog.contextvars.clear_contextvars()


@pytest.fixture
def log_events():
    """Events logged during the test, e.g. ``{"event": "invalidated cache artifact", ...}``."""
    with capture_logs() as events:
        yield events
