"""Single-threaded cooperative scheduler for fibers.

Owns every fiber and job of one run and drives the loop:

    ready queue  ──resume──▶ fiber ──yield──▶ request ──▶ park / re-enqueue
        ▲                                                    │
        └──── timers fired, fetches completed, jobs done ◀───┘

Exactly one fiber runs at a time; all concurrency is interleaving at
``yield`` points. All scheduler state is touched only from the thread
calling ``step`` / ``run_until_idle``, so nothing here is locked.

Ordering guarantees:
  - ready fibers run FIFO by enqueue time; a forked child is enqueued
    before its parent is re-enqueued with the Job;
  - timers fire in non-decreasing due order, ties FIFO;
  - a completing job enqueues all its current waiters at once.
"""

from __future__ import annotations

import itertools
import math
from collections import deque
from dataclasses import dataclass
from typing import Any

from fiberio.core.config import RuntimeConfig
from fiberio.core.errors import (
    DeadlockError,
    FetchError,
    InvalidStateError,
    StepLimitExceededError,
    UnhandledFiberFailure,
    UnknownJobError,
)
from fiberio.core.logging import FiberioLogger, RunContext, get_logger, with_context
from fiberio.io.http import HttpFetchProvider
from fiberio.io.provider import FetchRequest, IOProvider
from fiberio.runtime.clock import Clock, MonotonicClock, make_clock
from fiberio.runtime.fiber import Fiber, FiberState, Terminated
from fiberio.runtime.job import Job
from fiberio.runtime.outcome import Outcome
from fiberio.runtime.requests import (
    AwaitIO,
    AwaitJob,
    EntryPoint,
    ForkIO,
    Pause,
    SleepFor,
    is_suspension_request,
)
from fiberio.runtime.timers import TimerQueue

_logger = get_logger("scheduler")

ROOT_FIBER_ID = 0


class FiberContext:
    """The primitives available to one fiber body.

    Every method only *builds* a request; nothing happens until the body
    yields it:

        def main(ctx):
            yield ctx.sleep(1.5)
            page = yield ctx.fetch("http://localhost/")
            job = yield ctx.fork(worker)
            result = yield job.wait()
    """

    def __init__(self, scheduler: Scheduler, fiber_id: int) -> None:
        self._scheduler = scheduler
        self._fiber_id = fiber_id
        self.logger: FiberioLogger = get_logger("fiber", fiber_id=fiber_id)

    @property
    def fiber_id(self) -> int:
        return self._fiber_id

    def now(self) -> float:
        """Current time on the scheduler clock, in seconds."""
        return self._scheduler.now

    def sleep(self, seconds: float) -> SleepFor:
        if math.isnan(seconds) or seconds < 0:
            raise ValueError(f"sleep duration must be >= 0, got {seconds!r}")
        return SleepFor(float(seconds))

    def fork(self, entry: EntryPoint) -> ForkIO:
        if not callable(entry):
            raise TypeError(f"fork entry point must be callable, got {entry!r}")
        return ForkIO(entry)

    def fetch(self, url: str) -> AwaitIO:
        return AwaitIO(FetchRequest(url))

    def wait(self, job: Job) -> AwaitJob:
        return job.wait()

    def pause(self) -> Pause:
        return Pause()


@dataclass
class SchedulerStats:
    """Statistics snapshot from the scheduler."""

    now: float
    steps: int
    ready: int
    sleeping: int
    in_flight: int
    live_fibers: int
    jobs: int
    pending_jobs: int


class Scheduler:
    """Cooperative scheduler multiplexing fibers over timers and fetches.

    Typical use:

        scheduler = Scheduler(clock=VirtualClock(), provider=StaticFetchProvider())
        scheduler.spawn_root(main)
        outcome = scheduler.run_until_idle()

    or simply ``Scheduler(...).run(main)``, which raises
    UnhandledFiberFailure if the root fiber fails.
    """

    def __init__(
        self,
        *,
        clock: Clock | None = None,
        provider: IOProvider | None = None,
        max_steps: int | None = None,
    ) -> None:
        """Initialize the scheduler.

        Args:
            clock: Time source. Defaults to MonotonicClock (real time).
            provider: Fetch provider. Without one, every fetch fails with
                FetchError.
            max_steps: Default step budget for run_until_idle().
        """
        self._clock: Clock = clock or MonotonicClock()
        self._provider = provider
        self._max_steps = max_steps

        self._ready: deque[int] = deque()
        self._resume_with: dict[int, Outcome | Job] = {}  # ready fiber → resume value
        self._timers = TimerQueue()
        self._in_flight: dict[int, int] = {}  # provider token → fiber id

        self._fibers: dict[int, Fiber] = {}  # live (non-terminal) fibers
        self._jobs: dict[int, Job] = {}
        self._ids = itertools.count(ROOT_FIBER_ID)
        self._root_job: Job | None = None

        self._steps = 0
        self._run_context = RunContext()

    @classmethod
    def from_config(
        cls, config: RuntimeConfig, provider: IOProvider | None = None,
    ) -> Scheduler:
        """Build a scheduler whose clock and step budget come from ``config``."""
        return cls(
            clock=make_clock(config.clock),
            provider=provider,
            max_steps=config.max_steps,
        )

    # ─── Introspection ─────────────────────────────────────────────

    @property
    def now(self) -> float:
        return self._clock.now()

    @property
    def steps(self) -> int:
        """Number of fiber resumptions performed so far."""
        return self._steps

    @property
    def root_job(self) -> Job | None:
        return self._root_job

    @property
    def is_idle(self) -> bool:
        """True when nothing is ready, sleeping or fetching."""
        return not self._ready and not self._timers and not self._in_flight

    def job(self, job_id: int) -> Job:
        """Look up a job by id.

        Raises:
            UnknownJobError: If no such job was created by this scheduler.
        """
        try:
            return self._jobs[job_id]
        except KeyError:
            raise UnknownJobError(job_id) from None

    def fiber_state(self, fiber_id: int) -> FiberState:
        """State of a fiber; terminated fibers report their final state."""
        fiber = self._fibers.get(fiber_id)
        if fiber is not None:
            return fiber.state
        outcome = self.job(fiber_id).outcome
        assert outcome is not None
        return FiberState.COMPLETED if outcome.is_ok else FiberState.FAILED

    def stats(self) -> SchedulerStats:
        return SchedulerStats(
            now=self.now,
            steps=self._steps,
            ready=len(self._ready),
            sleeping=len(self._timers),
            in_flight=len(self._in_flight),
            live_fibers=len(self._fibers),
            jobs=len(self._jobs),
            pending_jobs=sum(1 for job in self._jobs.values() if not job.done),
        )

    # ─── Public API ────────────────────────────────────────────────

    def spawn_root(self, entry: EntryPoint) -> Job:
        """Create the root fiber (id 0) and enqueue it.

        Raises:
            InvalidStateError: If a root fiber was already spawned.
        """
        if self._root_job is not None:
            raise InvalidStateError("root fiber already spawned")
        self._root_job = self._spawn(entry, parent=None)
        return self._root_job

    def run(self, entry: EntryPoint, max_steps: int | None = None) -> Any:
        """Spawn ``entry`` as the root fiber, drain the loop, return its value.

        Raises:
            UnhandledFiberFailure: If the root fiber failed. Background
                fibers have still been drained when this is raised.
        """
        self.spawn_root(entry)
        outcome = self.run_until_idle(max_steps=max_steps)
        if outcome.error is not None:
            raise UnhandledFiberFailure(ROOT_FIBER_ID, outcome.error) from outcome.error
        return outcome.value

    def run_until_idle(self, max_steps: int | None = None) -> Outcome:
        """Drive the loop until no fiber is ready, sleeping or fetching.

        Forked fibers are never cancelled: the loop keeps going after the
        root finishes for as long as any of them has work pending.

        Args:
            max_steps: Maximum resumptions for this call. Defaults to the
                scheduler's configured budget (None = unbounded).

        Returns:
            The root fiber's outcome.

        Raises:
            InvalidStateError: If no root fiber was spawned.
            StepLimitExceededError: If the budget ran out before idle.
            DeadlockError: If the loop drained while the root was still
                parked (e.g. waiting on a job that can never complete).
        """
        if self._root_job is None:
            raise InvalidStateError("run_until_idle() called before spawn_root()")

        limit = max_steps if max_steps is not None else self._max_steps
        taken = 0
        while self.step():
            taken += 1
            if limit is not None and taken >= limit and not self.is_idle:
                raise StepLimitExceededError(limit)

        outcome = self._root_job.outcome
        if outcome is None:
            raise DeadlockError(sorted(self._fibers))
        if self._fibers:
            _logger.warning("fibers_parked_at_idle", fiber_ids=sorted(self._fibers))
        return outcome

    def step(self) -> bool:
        """Run one loop iteration: wait for work if needed, resume one fiber.

        Returns:
            False if the loop is idle (nothing was resumed), True otherwise.
        """
        if self._in_flight:
            self._collect_io(timeout=0)
        if not self._ready and not self._wait_for_work():
            _logger.debug("scheduler_idle", steps=self._steps, now=self.now)
            return False

        fiber_id = self._ready.popleft()
        resume = self._resume_with.pop(fiber_id)
        if isinstance(resume, Job):
            resume = resume.delivery()
        fiber = self._fibers[fiber_id]
        self._steps += 1

        with with_context(self._run_context.with_fiber(fiber_id)):
            result = fiber.resume(resume.value, error=resume.error)
        self._dispatch(fiber, result)
        return True

    # ─── Loop internals ────────────────────────────────────────────

    def _wait_for_work(self) -> bool:
        """Block until some fiber is ready; False if nothing can ever be."""
        while not self._ready:
            due = self._timers.next_due()
            if due is not None:
                if self._in_flight and self._clock.realtime:
                    remaining = due - self._clock.now()
                    if remaining > 0 and self._collect_io(timeout=remaining):
                        continue
                self._clock.advance_to(due)
                for entry in self._timers.pop_due(self._clock.now()):
                    _logger.debug("timer_fired", fiber_id=entry.fiber_id, due=entry.due)
                    self._enqueue(entry.fiber_id, Outcome.ok(None))
            elif self._in_flight:
                if not self._collect_io(timeout=None):
                    raise InvalidStateError(
                        "I/O provider returned no completions from a blocking poll "
                        f"with {len(self._in_flight)} fetches in flight"
                    )
            else:
                return False
        return True

    def _collect_io(self, timeout: float | None) -> int:
        """Move finished fetches to the ready queue; return how many."""
        assert self._provider is not None
        delivered = 0
        for completion in self._provider.poll(timeout):
            fiber_id = self._in_flight.pop(completion.token, None)
            if fiber_id is None:
                _logger.warning("io_completion_unknown_token", io_token=completion.token)
                continue
            _logger.debug(
                "io_completed",
                fiber_id=fiber_id,
                io_token=completion.token,
                ok=completion.error is None,
            )
            if completion.error is not None:
                self._enqueue(fiber_id, Outcome.err(completion.error))
            else:
                self._enqueue(fiber_id, Outcome.ok(completion.payload))
            delivered += 1
        return delivered

    def _spawn(self, entry: EntryPoint, parent: int | None) -> Job:
        fiber_id = next(self._ids)
        fiber = Fiber(fiber_id, entry, FiberContext(self, fiber_id))
        job = Job(fiber_id)
        self._fibers[fiber_id] = fiber
        self._jobs[fiber_id] = job
        _logger.debug("fiber_spawned", fiber_id=fiber_id, parent=parent)
        self._enqueue(fiber_id, Outcome.ok(None))
        return job

    def _enqueue(self, fiber_id: int, resume: Outcome | Job) -> None:
        """Queue a fiber; a Job as resume value is read when the fiber runs."""
        fiber = self._fibers[fiber_id]
        if fiber.state is FiberState.SUSPENDED:
            fiber.mark_ready()
        self._resume_with[fiber_id] = resume
        self._ready.append(fiber_id)

    def _dispatch(self, fiber: Fiber, result: Any) -> None:
        """Act on what a resumed fiber handed back."""
        if isinstance(result, Terminated):
            self._finish(fiber, result.outcome)
            return

        fiber_id = fiber.id
        if not is_suspension_request(result):
            error = TypeError(
                f"fiber {fiber_id} yielded {result!r}; expected a suspension request"
            )
            self._enqueue(fiber_id, Outcome.err(error))
            return

        _logger.debug("fiber_suspended", fiber_id=fiber_id, request=type(result).__name__)
        if isinstance(result, SleepFor):
            self._timers.push(self._clock.now() + result.seconds, fiber_id)
        elif isinstance(result, ForkIO):
            job = self._spawn(result.entry, parent=fiber_id)
            self._enqueue(fiber_id, Outcome.ok(job))
        elif isinstance(result, AwaitIO):
            self._submit_io(fiber_id, result.request)
        elif isinstance(result, AwaitJob):
            self._await_job(fiber_id, result.job_id)
        else:
            assert isinstance(result, Pause)
            self._enqueue(fiber_id, Outcome.ok(None))

    def _submit_io(self, fiber_id: int, request: FetchRequest) -> None:
        if self._provider is None:
            error = FetchError(request.url, "no I/O provider configured")
            self._enqueue(fiber_id, Outcome.err(error))
            return
        token = self._provider.submit(request)
        self._in_flight[token] = fiber_id
        _logger.debug("io_submitted", fiber_id=fiber_id, io_token=token, url=request.url)

    def _await_job(self, fiber_id: int, job_id: int) -> None:
        job = self._jobs.get(job_id)
        if job is None:
            self._enqueue(fiber_id, Outcome.err(UnknownJobError(job_id)))
        elif job.outcome is not None:
            self._enqueue(fiber_id, job)
        else:
            job.add_waiter(fiber_id)

    def _finish(self, fiber: Fiber, outcome: Outcome) -> None:
        del self._fibers[fiber.id]
        job = self._jobs[fiber.id]
        waiters = job.complete(outcome)
        _logger.debug("fiber_terminated", fiber_id=fiber.id, state=fiber.state.value)
        _logger.debug("job_completed", job_id=fiber.id, waiters=len(waiters))
        for waiter in waiters:
            self._enqueue(waiter, job)


def run(
    entry: EntryPoint,
    config: RuntimeConfig | None = None,
    provider: IOProvider | None = None,
) -> Any:
    """Run ``entry`` as a root fiber under ``config`` and return its value.

    Without an explicit provider an HttpFetchProvider is built from
    ``config.fetch`` and closed when the run ends.

    Raises:
        UnhandledFiberFailure: If the root fiber failed.
    """
    config = config or RuntimeConfig()
    owned = provider is None
    if provider is None:
        provider = HttpFetchProvider(config.fetch)
    try:
        return Scheduler.from_config(config, provider=provider).run(entry)
    finally:
        if owned:
            provider.close()
