"""rockspec 规范化 Web API（基于 Flask）

启动方式: rockkit serve --port 8888
生产部署: gunicorn --config deploy/gunicorn.conf.py rockkit.web.app:app
"""

from __future__ import annotations

import logging

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from rockkit.web.routes import rockspecs_bp

logger = logging.getLogger(__name__)

# 请求体中的清单文档不应超过 1 MB
MAX_CONTENT_LENGTH = 1 * 1024 * 1024

app = Flask(__name__)
app.config["MAX_CONTENT_LENGTH"] = MAX_CONTENT_LENGTH
app.register_blueprint(rockspecs_bp)


@app.errorhandler(HTTPException)
def handle_http_exception(exc):
    """将所有 HTTP 异常统一返回 JSON"""
    return jsonify(error=exc.description), exc.code


@app.errorhandler(Exception)
def handle_generic_exception(exc):  # noqa: ARG001
    """捕获未处理异常，返回 500 JSON"""
    logger.exception("未处理的异常")
    return jsonify(error="服务器内部错误"), 500


@app.route("/api/health")
def health():
    from rockkit import __version__
    return jsonify(status="ok", version=__version__)


def run_server(port: int = 8888, debug: bool = False, host: str = "127.0.0.1") -> None:
    logger.info("rockkit Web API 已启动: http://%s:%d", host, port)
    app.run(host=host, port=port, debug=debug)
