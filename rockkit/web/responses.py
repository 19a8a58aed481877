"""Web 层统一响应辅助函数"""

from __future__ import annotations

from flask import Response, jsonify

from rockkit.core.exceptions import RockkitError


def ok(data: dict, status: int = 200) -> tuple[Response, int] | Response:
    """成功响应"""
    if status == 200:
        return jsonify(data)
    return jsonify(data), status


def bad_request(message: str, code: str = "BAD_REQUEST") -> tuple[Response, int]:
    """请求参数错误"""
    return jsonify(error=message, code=code), 400


def rockkit_error(exc: RockkitError) -> tuple[Response, int]:
    """业务异常统一返回 400，附带异常 code 与明细"""
    body: dict = {"error": str(exc), "code": exc.code}
    details = getattr(exc, "details", None)
    if details:
        body["details"] = details
    return jsonify(body), 400
