"""
统一 API 响应格式
所有端点返回 {success, data, error, meta}
"""

from typing import Any, Optional
from datetime import datetime, timezone
import uuid


def new_request_id() -> str:
    return str(uuid.uuid4())[:8]


def _meta(request_id: Optional[str], extra: dict) -> dict:
    return {
        "request_id": request_id or new_request_id(),
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        **extra
    }


def success_response(
    data: Any = None,
    request_id: str = None,
    **extra_meta
) -> dict:
    """
    创建成功响应

    示例：
    {
        "success": true,
        "data": {...},
        "error": null,
        "meta": {"request_id": "abc12345", "timestamp": "2025-10-12T09:30:00Z"}
    }
    """
    return {
        "success": True,
        "data": data,
        "error": None,
        "meta": _meta(request_id, extra_meta)
    }


def error_response(
    code: str,
    message: str,
    request_id: str = None,
    details: Any = None,
    **extra_meta
) -> dict:
    """
    创建错误响应

    Args:
        code: 错误代码（见 ErrorCode）
        message: 错误信息
        request_id: 请求ID（可选，自动生成）
        details: 错误详情（可选）
    """
    error_info = {
        "code": code,
        "message": message
    }
    if details:
        error_info["details"] = details

    return {
        "success": False,
        "data": None,
        "error": error_info,
        "meta": _meta(request_id, extra_meta)
    }


class ErrorCode:
    VALIDATION_ERROR = "VALIDATION_ERROR"
    DATABASE_UNAVAILABLE = "DATABASE_UNAVAILABLE"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    INTERNAL_ERROR = "INTERNAL_ERROR"
