"""Gunicorn 生产配置

用法:
  gunicorn --config deploy/gunicorn.conf.py rockkit.web.app:app
"""

import multiprocessing
import os

# ---------- 网络 ----------
bind = os.getenv("ROCKKIT_BIND", "0.0.0.0:8888")

# ---------- 并发 ----------
# 规范化是纯 CPU 计算，无需线程
workers = int(os.getenv("ROCKKIT_WORKERS", min(multiprocessing.cpu_count() + 1, 4)))
worker_class = "sync"
timeout = 30

# ---------- 日志 ----------
accesslog = os.getenv("ROCKKIT_ACCESS_LOG", "-")
errorlog = os.getenv("ROCKKIT_ERROR_LOG", "-")
loglevel = os.getenv("ROCKKIT_LOG_LEVEL", "info").lower()

# ---------- 进程管理 ----------
graceful_timeout = 10
max_requests = 2000
max_requests_jitter = 100
