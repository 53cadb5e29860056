"""Exception hierarchy for fiberio.

All runtime exceptions inherit from FiberioError, enabling callers to
catch broad (FiberioError) or narrow (e.g., FetchError). The hierarchy is
deliberately flat.
"""

from __future__ import annotations


class FiberioError(Exception):
    """Base exception for all fiberio errors."""


class InvalidStateError(FiberioError):
    """Raised when a fiber or job is driven from a state that forbids it.

    Examples: resuming a fiber that is running or already terminated,
    completing a job twice, spawning a second root fiber. These are
    contract violations in the caller, not recoverable conditions.
    """


class FetchError(FiberioError):
    """Raised (inside the waiting fiber) when a fetch fails.

    Attributes:
        url: The URL that was requested.
        detail: Provider-specific description of the failure.
    """

    def __init__(self, url: str, detail: str) -> None:
        super().__init__(f"fetch {url} failed: {detail}")
        self.url = url
        self.detail = detail


class UnhandledFiberFailure(FiberioError):
    """A fiber body terminated abnormally and nothing handled it.

    Raised when the root fiber's failure is surfaced as the outcome of a
    whole run. The original exception is available as ``__cause__``.
    """

    def __init__(self, fiber_id: int, error: BaseException) -> None:
        super().__init__(f"fiber {fiber_id} failed: {error!r}")
        self.fiber_id = fiber_id
        self.error = error


class UnknownJobError(FiberioError):
    """Raised inside a fiber that waits on a job id the scheduler never issued."""

    def __init__(self, job_id: int) -> None:
        super().__init__(f"unknown job id: {job_id}")
        self.job_id = job_id


class StepLimitExceededError(FiberioError):
    """Raised when a run does not drain within the configured step budget."""

    def __init__(self, max_steps: int) -> None:
        super().__init__(f"run did not become idle within {max_steps} steps")
        self.max_steps = max_steps


class DeadlockError(FiberioError):
    """Raised when a run drains while the root fiber is still suspended.

    Nothing is ready, sleeping or fetching, so the parked fibers (usually
    fibers waiting on each other's jobs) can never be woken.
    """

    def __init__(self, parked: list[int]) -> None:
        super().__init__(f"run became idle with fibers still parked: {parked}")
        self.parked = parked


class ConfigError(FiberioError):
    """Raised when a runtime configuration file cannot be loaded or validated."""


class ScriptLoadError(FiberioError):
    """Raised when a script file cannot be imported or lacks its entry point."""


__all__ = [
    "ConfigError",
    "DeadlockError",
    "FetchError",
    "FiberioError",
    "InvalidStateError",
    "ScriptLoadError",
    "StepLimitExceededError",
    "UnhandledFiberFailure",
    "UnknownJobError",
]
