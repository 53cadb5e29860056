"""Suspension requests yielded by fiber bodies.

A fiber suspends by yielding one of these values; the scheduler consumes
each request exactly once to decide how and when to resume the fiber.
Requests carry no fiber identity, so any body may yield any request.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Union

from fiberio.io.provider import FetchRequest

if TYPE_CHECKING:
    from fiberio.runtime.scheduler import FiberContext

# An entry point takes the fiber's context and returns a generator (or,
# for trivial bodies, a plain value).
EntryPoint = Callable[["FiberContext"], Any]


@dataclass(frozen=True)
class SleepFor:
    """Resume with None once ``seconds`` have elapsed on the scheduler clock."""

    seconds: float


@dataclass(frozen=True)
class ForkIO:
    """Start ``entry`` as a new fiber; resume immediately with its Job."""

    entry: EntryPoint


@dataclass(frozen=True)
class AwaitIO:
    """Resume with the fetched payload, or throw the provider's error."""

    request: FetchRequest


@dataclass(frozen=True)
class AwaitJob:
    """Resume with the job's value, or throw its error, once it completes."""

    job_id: int


@dataclass(frozen=True)
class Pause:
    """Give up the rest of this turn; resume with None after every fiber
    already ready has had a turn."""


SuspensionRequest = Union[SleepFor, ForkIO, AwaitIO, AwaitJob, Pause]

SUSPENSION_TYPES: tuple[type, ...] = (SleepFor, ForkIO, AwaitIO, AwaitJob, Pause)


def is_suspension_request(value: object) -> bool:
    return isinstance(value, SUSPENSION_TYPES)
