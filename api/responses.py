"""
Response envelope helpers.

Every body carries "status": "success" | "duplicate" | "error".
"""
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse


def success(**payload: Any) -> Dict[str, Any]:
    return {"status": "success", **payload}


def duplicate(**payload: Any) -> Dict[str, Any]:
    return {"status": "duplicate", **payload}


def error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[Dict[str, Any]] = None,
) -> JSONResponse:
    content: Dict[str, Any] = {"status": "error", "error": error, "message": message}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)
