"""Typed failures for the employment ledger.

Every operation either completes or raises one of these before any
state has changed. The base class derives from ValueError so callers
that already treat rejected input as ValueError keep working.

Error kinds:
- NOT_FOUND: an id that was never assigned.
- UNAUTHORIZED: caller is not the owner / employee / arbitrator required.
- INVALID_STATE: the entity's status forbids the operation.
- INVALID_ARGUMENT: zero or negative amounts, duplicate registrations.
- LOCKED: an attempt to move a non-transferable credential.
- TRANSFER_FAILED: the payment rail could not move funds.
"""

from __future__ import annotations

import enum


class ErrorKind(str, enum.Enum):
    """Classification of ledger failures."""
    NOT_FOUND = "not_found"
    UNAUTHORIZED = "unauthorized"
    INVALID_STATE = "invalid_state"
    INVALID_ARGUMENT = "invalid_argument"
    LOCKED = "locked"
    TRANSFER_FAILED = "transfer_failed"


class EmploymentError(ValueError):
    """Base class for all ledger failures."""
    kind: ErrorKind = ErrorKind.INVALID_ARGUMENT


class NotFoundError(EmploymentError):
    kind = ErrorKind.NOT_FOUND


class UnauthorizedError(EmploymentError):
    kind = ErrorKind.UNAUTHORIZED


class InvalidStateError(EmploymentError):
    kind = ErrorKind.INVALID_STATE


class InvalidArgumentError(EmploymentError):
    kind = ErrorKind.INVALID_ARGUMENT


class AlreadyRegisteredError(InvalidArgumentError):
    """The identity already holds a credential."""


class LockedError(EmploymentError):
    kind = ErrorKind.LOCKED


class TransferFailedError(EmploymentError):
    kind = ErrorKind.TRANSFER_FAILED
