"""Core infrastructure: configuration, errors and logging."""

from fiberio.core.config import FetchConfig, LogConfig, RuntimeConfig
from fiberio.core.errors import (
    ConfigError,
    DeadlockError,
    FetchError,
    FiberioError,
    InvalidStateError,
    StepLimitExceededError,
    UnhandledFiberFailure,
    UnknownJobError,
)

__all__ = [
    "ConfigError",
    "DeadlockError",
    "FetchConfig",
    "FetchError",
    "FiberioError",
    "InvalidStateError",
    "LogConfig",
    "RuntimeConfig",
    "StepLimitExceededError",
    "UnhandledFiberFailure",
    "UnknownJobError",
]
