"""Fiber: a resumable unit of computation backed by a generator.

A fiber owns the generator produced by calling its entry point. Each
``resume`` runs the body until its next ``yield`` (a suspension) or until
it returns or raises (termination). The fiber reports what happened but
takes no action on it; scheduling decisions belong to the Scheduler.
"""

from __future__ import annotations

import inspect
from collections.abc import Generator
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any

from fiberio.core.errors import InvalidStateError
from fiberio.runtime.outcome import Outcome

if TYPE_CHECKING:
    from fiberio.runtime.requests import EntryPoint
    from fiberio.runtime.scheduler import FiberContext


class FiberState(str, Enum):
    """Lifecycle states of a fiber."""

    READY = "ready"
    RUNNING = "running"
    SUSPENDED = "suspended"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATES = frozenset({FiberState.COMPLETED, FiberState.FAILED})
RESUMABLE_STATES = frozenset({FiberState.READY, FiberState.SUSPENDED})


@dataclass(frozen=True)
class Terminated:
    """Returned by ``Fiber.resume`` when the body returned or raised."""

    outcome: Outcome


class Fiber:
    """A cooperatively scheduled task.

    The entry point is called lazily, on the first resume, with the
    fiber's context. If that call returns a generator, the generator is
    the fiber's continuation; any other return value completes the fiber
    immediately.

    Attributes:
        id: Identifier unique within one scheduler.
        state: Current FiberState.
        suspended_on: The request the fiber is parked on while SUSPENDED.
        outcome: Set once the fiber is COMPLETED or FAILED.
    """

    def __init__(self, fiber_id: int, entry: EntryPoint, context: FiberContext) -> None:
        self.id = fiber_id
        self.state = FiberState.READY
        self.suspended_on: Any = None
        self.outcome: Outcome | None = None
        self._entry = entry
        self._context = context
        self._gen: Generator[Any, Any, Any] | None = None
        self._started = False

    def __repr__(self) -> str:
        return f"<Fiber {self.id} {self.state.value}>"

    @property
    def done(self) -> bool:
        return self.state in TERMINAL_STATES

    def resume(
        self, value: Any = None, error: BaseException | None = None,
    ) -> Any:
        """Run the fiber until it next suspends or terminates.

        Args:
            value: Sent to the body as the result of its pending ``yield``.
                Ignored on the first resume.
            error: If given, thrown into the body at its pending ``yield``
                instead of sending ``value``.

        Returns:
            Whatever the body yielded (normally a suspension request), or
            a ``Terminated`` carrying the body's outcome.

        Raises:
            InvalidStateError: If the fiber is running or already terminated.
        """
        if self.state not in RESUMABLE_STATES:
            raise InvalidStateError(
                f"cannot resume fiber {self.id} in state {self.state.value}"
            )

        self.state = FiberState.RUNNING
        self.suspended_on = None

        if not self._started:
            self._started = True
            if error is not None:
                return self._terminate(Outcome.err(error))
            try:
                result = self._entry(self._context)
            except Exception as e:
                return self._terminate(Outcome.err(e))
            except BaseException as e:
                self._terminate(Outcome.err(e))
                raise
            if not inspect.isgenerator(result):
                return self._terminate(Outcome.ok(result))
            self._gen = result
            value = None

        assert self._gen is not None
        try:
            if error is not None:
                yielded = self._gen.throw(error)
            else:
                yielded = self._gen.send(value)
        except StopIteration as stop:
            return self._terminate(Outcome.ok(stop.value))
        except Exception as e:
            return self._terminate(Outcome.err(e))
        except BaseException as e:
            # SystemExit, KeyboardInterrupt: record, then let them unwind the loop
            self._terminate(Outcome.err(e))
            raise

        self.state = FiberState.SUSPENDED
        self.suspended_on = yielded
        return yielded

    def mark_ready(self) -> None:
        """Move a suspended fiber back to READY (it has been woken)."""
        if self.state is not FiberState.SUSPENDED:
            raise InvalidStateError(
                f"cannot wake fiber {self.id} in state {self.state.value}"
            )
        self.state = FiberState.READY

    def _terminate(self, outcome: Outcome) -> Terminated:
        self.outcome = outcome
        self.state = FiberState.COMPLETED if outcome.is_ok else FiberState.FAILED
        self._gen = None
        return Terminated(outcome)
