"""Cooperative fiber runtime: fibers, jobs, timers, clocks and the scheduler."""

from fiberio.runtime.clock import Clock, MonotonicClock, VirtualClock, make_clock
from fiberio.runtime.fiber import Fiber, FiberState, Terminated
from fiberio.runtime.job import Job, JobState
from fiberio.runtime.outcome import Outcome
from fiberio.runtime.requests import (
    AwaitIO,
    AwaitJob,
    EntryPoint,
    ForkIO,
    Pause,
    SleepFor,
    SuspensionRequest,
)
from fiberio.runtime.scheduler import (
    ROOT_FIBER_ID,
    FiberContext,
    Scheduler,
    SchedulerStats,
    run,
)
from fiberio.runtime.timers import TimerEntry, TimerQueue

__all__ = [
    "AwaitIO",
    "AwaitJob",
    "Clock",
    "EntryPoint",
    "Fiber",
    "FiberContext",
    "FiberState",
    "ForkIO",
    "Job",
    "JobState",
    "MonotonicClock",
    "Outcome",
    "Pause",
    "ROOT_FIBER_ID",
    "Scheduler",
    "SchedulerStats",
    "SleepFor",
    "SuspensionRequest",
    "Terminated",
    "TimerEntry",
    "TimerQueue",
    "VirtualClock",
    "make_clock",
    "run",
]
