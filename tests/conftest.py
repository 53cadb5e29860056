"""Pytest fixtures for fiberio tests."""

import logging
from pathlib import Path
from typing import Generator

import pytest
import structlog

from fiberio.core.logging import configure_logging
from fiberio.io.provider import StaticFetchProvider
from fiberio.runtime.clock import VirtualClock
from fiberio.runtime.scheduler import Scheduler

from tests.helpers import LOCALHOST, LOCALHOST_BODY


@pytest.fixture(autouse=True)
def reset_logging_state() -> Generator[None, None, None]:
    """Reset structlog and root logger handlers around each test.

    The CLI and logging tests call configure_logging(), which replaces
    root handlers; this keeps tests isolated from each other.
    """
    structlog.reset_defaults()

    root_logger = logging.getLogger()
    original_handlers = root_logger.handlers[:]
    original_level = root_logger.level
    for handler in original_handlers:
        root_logger.removeHandler(handler)

    # structlog's defaults print every level to stdout, which would mix
    # scheduler debug events into captured fiber output.
    configure_logging(level="WARNING", format="console", include_timestamps=False)

    yield

    structlog.reset_defaults()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
    for handler in original_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(original_level)


@pytest.fixture
def clock() -> VirtualClock:
    """Virtual clock starting at t=0."""
    return VirtualClock()


@pytest.fixture
def provider() -> StaticFetchProvider:
    """In-memory fetch provider serving LOCALHOST."""
    return StaticFetchProvider({LOCALHOST: LOCALHOST_BODY})


@pytest.fixture
def scheduler(clock: VirtualClock, provider: StaticFetchProvider) -> Scheduler:
    """Deterministic scheduler: virtual clock, static provider."""
    return Scheduler(clock=clock, provider=provider)


@pytest.fixture
def script_file(tmp_path: Path) -> Path:
    """A small fiber script with a forked child and a sleep."""
    script = tmp_path / "script.py"
    script.write_text(
        "def child(ctx):\n"
        "    yield ctx.sleep(2)\n"
        "    return 3\n"
        "\n"
        "def main(ctx):\n"
        "    print('start')\n"
        "    job = yield ctx.fork(child)\n"
        "    value = yield job.wait()\n"
        "    print('child returned', value)\n"
        "    return value + 2\n"
        "\n"
        "def broken(ctx):\n"
        "    yield ctx.sleep(1)\n"
        "    raise RuntimeError('script exploded')\n"
        "\n"
        "def forever(ctx):\n"
        "    while True:\n"
        "        yield ctx.sleep(1)\n"
        "\n"
        "NOT_CALLABLE = 7\n"
    )
    return script
