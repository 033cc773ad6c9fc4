"""
Error taxonomy for the job lifecycle engine.

Every service raises one of these; routes translate them to JSON with the
class's status code. Anything that is not a DomainError is an unexpected
failure and is reported as a bare 500.

    ValidationError        400  malformed or missing input
    AuthenticationError    401  missing/invalid bearer token
    AuthorizationError     403  wrong role or not the owner
    NotFoundError          404  entity absent
    BusinessRuleViolation  400  legal input, illegal for the current state
    InternalError          500  store failure; message never carries detail
"""

from __future__ import annotations


class DomainError(Exception):
    status_code = 400
    default_message = "Request failed"

    def __init__(self, message: str | None = None, *, status_code: int | None = None):
        super().__init__(message or self.default_message)
        if status_code is not None:
            self.status_code = status_code

    @property
    def message(self) -> str:
        return str(self)


class ValidationError(DomainError):
    status_code = 400
    default_message = "Invalid request"


class AuthenticationError(DomainError):
    status_code = 401
    default_message = "Authentication required"


class AuthorizationError(DomainError):
    status_code = 403
    default_message = "Access denied"


class NotFoundError(DomainError):
    status_code = 404
    default_message = "Not found"


class BusinessRuleViolation(DomainError):
    status_code = 400
    default_message = "Operation not allowed in the current state"


class InternalError(DomainError):
    status_code = 500
    default_message = "Internal server error"
