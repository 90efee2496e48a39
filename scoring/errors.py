"""
scoring/errors.py
=================

Error taxonomy of the scoring engine and the small result types its public
operations return.

RuleViolation, InvalidReference and NoHistoryError describe situations a
human scorer can correct, so the engine hands them back inside a
``Rejected`` / ``Err`` value instead of raising them.  InternalInconsistency
means the engine's own invariants are broken and is raised.
"""

from dataclasses import dataclass
from typing import Any, Generic, Optional, TypeVar

T = TypeVar("T")


class ScoringError(Exception):
    """Base class for every error produced by the scoring engine."""

    code = "scoring_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": type(self).__name__, "code": self.code, "message": self.message}


class RuleViolation(ScoringError):
    """A proposed action breaks a Law or playing condition."""

    code = "rule_violation"


class InvalidReference(ScoringError):
    """A player or team id that is not part of this match."""

    code = "invalid_reference"


class NoHistoryError(ScoringError):
    """Undo requested with nothing left to undo."""

    code = "no_history"

    def __init__(self, message: str = "Nothing to undo"):
        super().__init__(message)


class InternalInconsistency(ScoringError):
    """Engine state diverged from what its invariants guarantee."""

    code = "internal_inconsistency"


# ---------------------------------------------------------------------------
# Result values
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Accepted(Generic[T]):
    """Validator outcome: the normalised value to apply."""
    value: T
    ok = True


@dataclass(frozen=True)
class Rejected:
    """Validator outcome: why the proposal was refused."""
    error: ScoringError
    ok = False

    @property
    def reason(self) -> str:
        return self.error.message


@dataclass(frozen=True)
class Ok(Generic[T]):
    value: T
    ok = True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Err:
    error: ScoringError
    ok = False

    def unwrap(self) -> Any:
        raise self.error
