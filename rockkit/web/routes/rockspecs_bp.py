"""rockspec 规范化 API Blueprint"""

from __future__ import annotations

from flask import Blueprint, Response, request

from rockkit.core.exceptions import RockkitError
from rockkit.web.responses import bad_request, ok, rockkit_error

rockspecs_bp = Blueprint("rockspecs", __name__, url_prefix="/api/rockspecs")


@rockspecs_bp.route("/normalize", methods=["POST"])
def normalize_document() -> tuple[Response, int] | Response:
    """规范化请求体中的 rockspec 文档

    请求体: {"document": {...}, "filename": "...", "quick": false}
    """
    from rockkit.core.rockspec import normalize

    body = request.get_json(silent=True) or {}
    document = body.get("document")
    if not isinstance(document, dict):
        return bad_request("需要提供 document（映射）")
    filename = str(body.get("filename") or "<request>")
    quick = bool(body.get("quick", False))

    try:
        manifest = normalize(filename, document, quick=quick)
    except RockkitError as e:
        return rockkit_error(e)
    return ok({"manifest": manifest.to_dict()})


@rockspecs_bp.route("/platforms", methods=["GET"])
def list_platforms() -> tuple[Response, int] | Response:
    from rockkit.core.config import get_config
    cfg = get_config()
    return ok({"platforms": cfg.platforms, "rockspec_format": cfg.rockspec_format})
