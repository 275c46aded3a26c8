"""Status-coded API errors raised by the service layer."""

from fastapi import HTTPException


class APIError(HTTPException):
    """An HTTPException whose detail is always a plain message."""

    def __init__(self, status: int, message: str):
        super().__init__(status_code=status, detail=message)
        self.message = message

    def __repr__(self) -> str:
        return f"APIError(status={self.status_code}, message={self.message!r})"


def not_found(message: str) -> APIError:
    return APIError(404, message)


def conflict(message: str) -> APIError:
    return APIError(400, message)


def forbidden(message: str) -> APIError:
    return APIError(403, message)


def internal(message: str) -> APIError:
    return APIError(500, message)
