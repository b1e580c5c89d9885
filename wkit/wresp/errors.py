"""
Error codes returned to HTTP clients through the response envelope.
"""
from __future__ import annotations


class ApiErrorCode(Exception):
    """Business error with its own code, message and HTTP status."""

    def __init__(self, code: int, message: str, http_status: int = 500):
        self.code = code
        self.message = message
        self.http_status = http_status
        super().__init__(str(self))

    def __str__(self) -> str:
        return f"Error code: {self.code}, reason: {self.message}"


def new_error_code(code: int, message: str) -> ApiErrorCode:
    return new_error_code_with_status(code, message, 500)


def new_error_code_with_status(code: int, message: str, http_status: int) -> ApiErrorCode:
    return ApiErrorCode(code, message, http_status)


def is_error_code(error: BaseException) -> bool:
    return isinstance(error, ApiErrorCode)
