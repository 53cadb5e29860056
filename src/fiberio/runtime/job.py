"""Job: the handle a forking fiber receives for its child.

A job moves from PENDING to COMPLETED exactly once, when its fiber
terminates. The recorded outcome never changes afterwards and is handed
to every waiter, however many there are and however late they ask.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from fiberio.core.errors import InvalidStateError
from fiberio.runtime.outcome import Outcome
from fiberio.runtime.requests import AwaitJob


class JobState(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"


class Job:
    """Handle to a forked fiber's eventual outcome.

    Inside a fiber body:

        job = yield ctx.fork(child)
        value = yield job.wait()   # suspends until child terminates
        again = yield job.wait()   # same value, no suspension delay

    If the child failed, each ``wait`` raises the child's exception in the
    waiting fiber.
    """

    def __init__(self, job_id: int) -> None:
        self.id = job_id
        self._outcome: Outcome | None = None
        self._waiters: list[int] = []
        # __context__ and __traceback__ of a failure as recorded at completion
        self._error_origin: tuple[BaseException | None, Any] = (None, None)

    def __repr__(self) -> str:
        return f"<Job {self.id} {self.state.value}>"

    @property
    def state(self) -> JobState:
        return JobState.PENDING if self._outcome is None else JobState.COMPLETED

    @property
    def done(self) -> bool:
        return self._outcome is not None

    @property
    def outcome(self) -> Outcome | None:
        """The recorded outcome, or None while pending."""
        return self._outcome

    @property
    def waiters(self) -> tuple[int, ...]:
        """Fiber ids currently blocked on this job, in registration order."""
        return tuple(self._waiters)

    def wait(self) -> AwaitJob:
        """Build the request that suspends the caller until this job completes."""
        return AwaitJob(self.id)

    def result(self) -> Any:
        """Non-suspending access to a completed job's value.

        Raises:
            InvalidStateError: If the job is still pending.
            BaseException: The child's error, if it failed.
        """
        return self.delivery().unwrap()

    def add_waiter(self, fiber_id: int) -> None:
        if self._outcome is not None:
            raise InvalidStateError(f"job {self.id} already completed")
        self._waiters.append(fiber_id)

    def complete(self, outcome: Outcome) -> list[int]:
        """Record the outcome and hand back (and forget) the current waiters.

        Raises:
            InvalidStateError: If the job was already completed.
        """
        if self._outcome is not None:
            raise InvalidStateError(f"job {self.id} completed twice")
        self._outcome = outcome
        if outcome.error is not None:
            self._error_origin = (outcome.error.__context__, outcome.error.__traceback__)
        waiters, self._waiters = self._waiters, []
        return waiters

    def delivery(self) -> Outcome:
        """The outcome to hand one waiter.

        Raising the error inside a waiter rewrites its ``__context__`` and
        extends its ``__traceback__``; both are reset to their values at
        completion so no waiter sees another waiter's handler state.

        Raises:
            InvalidStateError: If the job is still pending.
        """
        if self._outcome is None:
            raise InvalidStateError(f"job {self.id} is still pending")
        error = self._outcome.error
        if error is not None:
            error.__context__, error.__traceback__ = self._error_origin
        return self._outcome
