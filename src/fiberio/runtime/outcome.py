"""Outcome of a terminated fiber: a value or an error, never both."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class Outcome:
    """Immutable result record.

    Use the ``ok`` / ``err`` constructors rather than building one directly.
    """

    value: Any = None
    error: BaseException | None = None

    @classmethod
    def ok(cls, value: Any = None) -> Outcome:
        return cls(value=value)

    @classmethod
    def err(cls, error: BaseException) -> Outcome:
        return cls(error=error)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> Any:
        """Return the value, or raise the recorded error."""
        if self.error is not None:
            raise self.error
        return self.value

    def __repr__(self) -> str:
        if self.error is not None:
            return f"Outcome.err({self.error!r})"
        return f"Outcome.ok({self.value!r})"
