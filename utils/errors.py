# User value: gives every failed call the same error envelope so clients can react predictably.
from fastapi import HTTPException


def _error(status_code: int, error_code: str, message: str, error: str | None = None) -> HTTPException:
    detail = {"error_code": error_code, "message": message}
    if error:
        detail["error"] = error
    return HTTPException(status_code=status_code, detail=detail)


def unauthenticated(message: str = "Invalid or expired token", error_code: str = "AUTH_INVALID_TOKEN") -> HTTPException:
    return _error(401, error_code, message)


def forbidden(message: str = "Admin access required", error_code: str = "AUTH_FORBIDDEN") -> HTTPException:
    return _error(403, error_code, message)


def not_found(message: str, error_code: str = "RESOURCE_NOT_FOUND") -> HTTPException:
    return _error(404, error_code, message)


def bad_request(message: str, error_code: str = "INVALID_REQUEST") -> HTTPException:
    return _error(400, error_code, message)


def payload_too_large(message: str) -> HTTPException:
    return _error(413, "PAYLOAD_TOO_LARGE", message)


def server_error(message: str, error: str | None = None, error_code: str = "SERVER_ERROR") -> HTTPException:
    return _error(500, error_code, message, error)
