"""
trustledger.errors — Categorical error codes and operation results.

Ledger operations never raise for expected failures; they return an
``OpResult`` carrying either a value or an ``ErrorCode``. ``unwrap()``
turns a failed result into a ``LedgerError`` for callers that prefer
exceptions.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ErrorCode(str, Enum):
    NOT_AUTHORIZED = "not-authorized"
    INVALID_SCORE = "invalid-score"
    INVALID_WEIGHT = "invalid-weight"
    INVALID_ARGUMENT = "invalid-argument"
    UNKNOWN_ACCOUNT = "unknown-account"
    ALREADY_REGISTERED = "already-registered"
    NOT_A_VERIFIER = "not-a-verifier"
    INACTIVE_VERIFIER = "inactive-verifier"
    INSUFFICIENT_STAKE = "insufficient-stake"
    BATCH_TOO_LARGE = "batch-too-large"


class LedgerError(Exception):
    """Raised by ``OpResult.unwrap()`` on a failed operation."""

    def __init__(self, code: ErrorCode, message: str = ""):
        self.code = code
        self.message = message or code.value
        super().__init__(f"[{code.value}] {self.message}")


@dataclass(frozen=True)
class OpResult(Generic[T]):
    """Success value or categorical error, never both."""
    ok: bool
    value: Optional[T] = None
    error: Optional[ErrorCode] = None
    message: str = ""

    @classmethod
    def success(cls, value: Any = None) -> "OpResult":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: ErrorCode, message: str = "") -> "OpResult":
        return cls(ok=False, error=error, message=message or error.value)

    def unwrap(self) -> T:
        if not self.ok:
            raise LedgerError(self.error, self.message)
        return self.value


__all__ = ["ErrorCode", "LedgerError", "OpResult"]
