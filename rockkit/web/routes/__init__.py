"""Web 路由模块 - Blueprint 集合"""

from rockkit.web.routes.rockspecs_bp import rockspecs_bp

__all__ = ["rockspecs_bp"]
