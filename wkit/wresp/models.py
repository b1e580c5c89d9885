from pydantic import BaseModel, Field
from typing import Any, Dict, Optional


SUCCESS_CODE = 0
SUCCESS_MESSAGE = "success"
INTERNAL_ERROR_CODE = -1
INTERNAL_ERROR_PRINT_INFO = "Internal error, please contact the platform team"


class ApiResponse(BaseModel):
    """Standard API response envelope."""
    code: int
    message: str
    printInfo: Optional[str] = None  # shown to the end user when present
    data: Optional[Any] = None

    @classmethod
    def success(cls, data: Any = None) -> "ApiResponse":
        """Create a success response."""
        return cls(code=SUCCESS_CODE, message=SUCCESS_MESSAGE, data=data)

    @classmethod
    def failure(cls, code: int, message: str, print_info: str = "") -> "ApiResponse":
        """Create an error response."""
        return cls(code=code, message=message, printInfo=print_info or None)

    def to_content(self) -> Dict[str, Any]:
        content = self.model_dump(mode="json")
        if not content.get("printInfo"):
            content.pop("printInfo", None)
        return content
