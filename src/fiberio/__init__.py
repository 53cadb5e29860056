"""fiberio: a single-threaded cooperative runtime for generator fibers."""

__version__ = "0.1.0"

from fiberio.core.config import FetchConfig, LogConfig, RuntimeConfig
from fiberio.core.errors import (
    FetchError,
    FiberioError,
    InvalidStateError,
    UnhandledFiberFailure,
)
from fiberio.io import HttpFetchProvider, StaticFetchProvider
from fiberio.runtime import (
    FiberContext,
    Job,
    MonotonicClock,
    Outcome,
    Scheduler,
    VirtualClock,
    run,
)

__all__ = [
    "FetchConfig",
    "FetchError",
    "FiberContext",
    "FiberioError",
    "HttpFetchProvider",
    "InvalidStateError",
    "Job",
    "LogConfig",
    "MonotonicClock",
    "Outcome",
    "RuntimeConfig",
    "Scheduler",
    "StaticFetchProvider",
    "UnhandledFiberFailure",
    "VirtualClock",
    "__version__",
    "run",
]
