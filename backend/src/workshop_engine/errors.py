"""
Typed failures surfaced to the caller.

Every WorkshopError is an expected, caller-recoverable denial and carries the
HTTP status the API layer answers with. InvariantViolation is different: it
means the engine's own bookkeeping is wrong and is reported as a bug.
"""


class WorkshopError(Exception):
    """Base class for expected denials."""
    code = 'WORKSHOP_ERROR'
    status_code = 400

    def __init__(self, message: str = None):
        super().__init__(message or self.code)
        self.message = message or self.code

    def to_dict(self) -> dict:
        return {'error': self.code, 'message': self.message}


class NotFoundError(WorkshopError):
    code = 'NOT_FOUND'
    status_code = 404


class NotPublishedError(WorkshopError):
    code = 'NOT_PUBLISHED'
    status_code = 409


class NotLiveError(WorkshopError):
    code = 'NOT_LIVE'
    status_code = 409


class UnauthenticatedError(WorkshopError):
    code = 'UNAUTHENTICATED'
    status_code = 401


class ForbiddenError(WorkshopError):
    code = 'FORBIDDEN'
    status_code = 403


class AlreadyRegisteredError(WorkshopError):
    code = 'ALREADY_REGISTERED'
    status_code = 409


class AlreadyApprovedError(WorkshopError):
    code = 'ALREADY_APPROVED'
    status_code = 409


class AtCapacityError(WorkshopError):
    code = 'AT_CAPACITY'
    status_code = 409


class InvalidCodeError(WorkshopError):
    code = 'INVALID_CODE'
    status_code = 400


class NotRegisteredError(WorkshopError):
    code = 'NOT_REGISTERED'
    status_code = 403


class NotCheckedInError(WorkshopError):
    code = 'NOT_CHECKED_IN'
    status_code = 403


class ValidationError(WorkshopError):
    code = 'VALIDATION_ERROR'
    status_code = 400


class DeadlinePassedError(WorkshopError):
    code = 'DEADLINE_PASSED'
    status_code = 400


class InvalidStateError(WorkshopError):
    code = 'INVALID_STATE'
    status_code = 409


class ConflictError(WorkshopError):
    """Concurrent writers kept winning; the caller may retry."""
    code = 'CONFLICT'
    status_code = 409


class InvariantViolation(Exception):
    """Internal bookkeeping is inconsistent (e.g. a negative seat counter)."""
