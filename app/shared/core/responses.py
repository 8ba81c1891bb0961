from typing import Any, Dict, Optional
from fastapi.responses import JSONResponse

from app.schemas.bandwidth import ApiResponse


def success_response(data: Dict[str, Any], message: Optional[str] = None) -> Dict[str, Any]:
    """Wraps a route payload in the success envelope. `message` is omitted when unset."""
    return ApiResponse(success=True, data=data, message=message).model_dump(exclude_none=True)


def error_response(status_code: int, error: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ApiResponse(success=False, error=error).model_dump(exclude_none=True),
    )
