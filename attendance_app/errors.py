from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class DomainError(ApiError):
    """Expected business-rule failure; rendered as a 4xx envelope."""

    status_code = 400
    code = "DOMAIN_ERROR"
    default_message = "Request could not be completed."

    def __init__(self, message: str | None = None):
        super().__init__(type(self).status_code, type(self).code, message or type(self).default_message)


class InvalidLocation(DomainError):
    code = "INVALID_LOCATION"
    default_message = "Location is outside the allowed office radius."


class AlreadyPunchedIn(DomainError):
    code = "ALREADY_PUNCHED_IN"
    default_message = "Already punched in today."


class AlreadyPunchedOut(DomainError):
    code = "ALREADY_PUNCHED_OUT"
    default_message = "Already punched out today."


class NoPunchInFound(DomainError):
    code = "NO_PUNCH_IN_FOUND"
    default_message = "No punch in record found for today."


class OverlappingLeave(DomainError):
    code = "OVERLAPPING_LEAVE"
    default_message = "You have overlapping leave requests for this period."


class InsufficientBalance(DomainError):
    code = "INSUFFICIENT_BALANCE"
    default_message = "Insufficient leave balance."


class InvalidDateRange(DomainError):
    code = "INVALID_DATE_RANGE"
    default_message = "Invalid date range."


class InvalidTransition(DomainError):
    code = "INVALID_TRANSITION"
    default_message = "Leave request is not pending."


class Forbidden(DomainError):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "Access denied."


class NotFound(DomainError):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found."


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "success": False,
        "message": message,
        "error": {
            "code": code,
            "request_id": get_request_id(request),
        },
    }
    return JSONResponse(status_code=status_code, content=payload)
