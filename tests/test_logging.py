"""Tests for fiberio.core.logging."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from fiberio.core.logging import (
    REDACTED,
    SENSITIVE_PATTERNS,
    FiberioLogger,
    RunContext,
    configure_logging,
    get_current_context,
    get_logger,
    redact,
    redact_sensitive,
    with_context,
)
from fiberio.io.provider import StaticFetchProvider
from fiberio.runtime.clock import VirtualClock
from fiberio.runtime.scheduler import Scheduler

from tests.helpers import LOCALHOST, LOCALHOST_BODY


def _json_lines(text: str) -> list[dict]:
    return [json.loads(line) for line in text.splitlines() if line.startswith("{")]


class TestSanitization:
    """Sensitive fields never reach the log output."""

    def test_known_patterns(self):
        assert "token" in SENSITIVE_PATTERNS
        assert "password" in SENSITIVE_PATTERNS

    def test_redact_is_case_insensitive(self):
        assert redact("Auth_Header", "Bearer x") == REDACTED
        assert redact("url", "http://localhost/") == "http://localhost/"

    def test_nested_dicts_are_redacted(self):
        result = redact_sensitive(
            None, "info",
            {"event": "x", "headers": {"Cookie": "a=b", "Extra": {"password": "p"}}},
        )
        assert result["event"] == "x"
        assert result["headers"] == {"Cookie": REDACTED, "Extra": {"password": REDACTED}}


class TestRunContext:
    def test_with_fiber_copies(self):
        ctx = RunContext(run_id="r1")
        child = ctx.with_fiber(4)
        assert child.run_id == "r1"
        assert child.fiber_id == 4
        assert ctx.fiber_id is None

    def test_to_dict_omits_none(self):
        assert RunContext(run_id="r1").to_dict() == {"run_id": "r1"}

    def test_with_context_restores(self):
        assert get_current_context() is None
        with with_context(RunContext(run_id="r1", fiber_id=2)) as ctx:
            assert get_current_context() is ctx
        assert get_current_context() is None


class TestLogger:
    def test_bind_and_unbind(self):
        logger = get_logger("scheduler", run="x")
        bound = logger.bind(fiber_id=3)
        assert isinstance(bound, FiberioLogger)
        assert bound._context == {"component": "scheduler", "run": "x", "fiber_id": 3}
        assert bound.unbind("run")._context == {"component": "scheduler", "fiber_id": 3}
        assert logger._context == {"component": "scheduler", "run": "x"}


class TestConfigureLogging:
    """Rendering through configure_logging()."""

    def test_both_requires_file_path(self):
        with pytest.raises(ValueError):
            configure_logging(format="both")

    def test_json_output_includes_context_and_redacts(self, capsys: pytest.CaptureFixture[str]):
        configure_logging(level="DEBUG", format="json")
        with with_context(RunContext(run_id="run-1", fiber_id=7)):
            get_logger("test").info("hello", api_key="secret-value", size=3)

        [record] = _json_lines(capsys.readouterr().err)
        assert record["event"] == "hello"
        assert record["component"] == "test"
        assert record["fiber_id"] == 7
        assert record["run_id"] == "run-1"
        assert record["api_key"] == "[REDACTED]"
        assert record["size"] == 3
        assert record["level"] == "info"

    def test_level_filters(self, capsys: pytest.CaptureFixture[str]):
        configure_logging(level="ERROR", format="json")
        get_logger("test").info("quiet")
        get_logger("test").error("loud")

        events = [r["event"] for r in _json_lines(capsys.readouterr().err)]
        assert events == ["loud"]

    def test_json_file_output(self, tmp_path: Path):
        log_path = tmp_path / "logs" / "fiberio.log"
        configure_logging(level="INFO", format="json", file_path=log_path)
        get_logger("test").info("to_file")

        [record] = _json_lines(log_path.read_text())
        assert record["event"] == "to_file"

    def test_both_splits_console_and_json(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str],
    ):
        log_path = tmp_path / "fiberio.log"
        configure_logging(level="INFO", format="both", file_path=log_path)
        get_logger("test").info("twice", url="http://localhost/")

        console = capsys.readouterr().err
        assert "twice" in console
        assert _json_lines(console) == []
        [record] = _json_lines(log_path.read_text())
        assert record["url"] == "http://localhost/"

    def test_stdlib_records_are_rendered(self, capsys: pytest.CaptureFixture[str]):
        configure_logging(level="INFO", format="json")
        with with_context(RunContext(run_id="run-2", fiber_id=1)):
            logging.getLogger("thirdparty").warning("plain %s", "stdlib")

        [record] = _json_lines(capsys.readouterr().err)
        assert record["event"] == "plain stdlib"
        assert record["level"] == "warning"
        assert record["fiber_id"] == 1

    def test_scheduler_tags_running_fiber(self, capsys: pytest.CaptureFixture[str]):
        """Anything logged inside a fiber body carries that fiber's id."""
        configure_logging(level="INFO", format="json")
        body_logger = get_logger("body")

        def child(ctx):
            body_logger.info("in_child")
            yield ctx.sleep(1)

        def main(ctx):
            body_logger.info("in_root")
            yield ctx.fork(child)

        Scheduler(clock=VirtualClock()).run(main)

        records = {r["event"]: r for r in _json_lines(capsys.readouterr().err)}
        assert records["in_root"]["fiber_id"] == 0
        assert records["in_child"]["fiber_id"] == 1
        assert records["in_root"]["run_id"] == records["in_child"]["run_id"]

    def test_io_token_correlates_submit_and_completion(
        self, capsys: pytest.CaptureFixture[str],
    ):
        configure_logging(level="DEBUG", format="json")
        provider = StaticFetchProvider({LOCALHOST: LOCALHOST_BODY})

        def main(ctx):
            return (yield ctx.fetch(LOCALHOST))

        Scheduler(clock=VirtualClock(), provider=provider).run(main)

        records = {r["event"]: r for r in _json_lines(capsys.readouterr().err)}
        assert records["io_submitted"]["io_token"] == 1
        assert records["io_completed"]["io_token"] == 1
        assert records["static_fetch"]["io_token"] == 1

    def test_scheduler_debug_events(self, capsys: pytest.CaptureFixture[str]):
        configure_logging(level="DEBUG", format="json")

        def main(ctx):
            yield ctx.sleep(1)

        Scheduler(clock=VirtualClock()).run(main)

        events = [r["event"] for r in _json_lines(capsys.readouterr().err)]
        assert events[0] == "fiber_spawned"
        assert "timer_fired" in events
        assert "fiber_terminated" in events
        assert "job_completed" in events
        assert events[-1] == "scheduler_idle"
