"""
Numeric business error codes and the exception that carries them.
"""
from __future__ import annotations
from typing import Optional
from pydantic import BaseModel, ConfigDict


class ErrorCode(BaseModel):
    """Immutable error code. add_internal_msg* return a modified copy."""
    model_config = ConfigDict(frozen=True)

    code: int
    message: str
    internal_msg: str = ""

    def add_internal_msg(self, internal_msg: str) -> "ErrorCode":
        return self.model_copy(update={"internal_msg": internal_msg})

    def add_internal_msgf(self, fmt: str, *args) -> "ErrorCode":
        return self.add_internal_msg(fmt % args if args else fmt)

    def new_error(
        self,
        cause: Optional[BaseException] = None,
        request_id: str = "",
    ) -> "RetCode":
        return RetCode(code=self, cause=cause, request_id=request_id)

    def equals(self, other: "ErrorCode") -> bool:
        return other is not None and self.code == other.code


class RetCode(Exception):
    """Exception raised for an ErrorCode, optionally with cause and request id."""

    def __init__(
        self,
        code: Optional[ErrorCode] = None,
        cause: Optional[BaseException] = None,
        request_id: str = "",
    ):
        self.code = code
        self.cause = cause
        self.request_id = request_id
        super().__init__(str(self))
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.code is not None:
            return f"Code: {self.code.code}, Message: {self.code.message}, RequestId: {self.request_id}"
        if self.cause is not None:
            return f"Error: {self.cause}, RequestId: {self.request_id}"
        return "Unknown error"


SUCCESS = ErrorCode(code=10000, message="success")
FAILED = ErrorCode(code=10001, message="failed")
UNKNOWN = ErrorCode(code=10002, message="unknown error")
