"""
Exception taxonomy for the round engine.

- InvalidDealError: no legal deal within the redeal bound. Fatal for round setup.
- IllegalActionError: wrong phase, out of turn, card not owned. Recoverable; the
  state is untouched and the caller must re-prompt.
- InvariantViolation: card conservation or zero-sum settlement broken. A programming
  defect, never a runtime-recoverable condition.
"""
from __future__ import annotations


class HachiHachiError(Exception):
    """Base class for engine errors."""


class InvalidDealError(HachiHachiError):
    def __init__(self, message: str, attempts: int = 0) -> None:
        super().__init__(message)
        self.attempts = attempts


class IllegalActionError(HachiHachiError, ValueError):
    pass


class InvariantViolation(HachiHachiError, AssertionError):
    pass


__all__ = ["HachiHachiError", "InvalidDealError", "IllegalActionError", "InvariantViolation"]
