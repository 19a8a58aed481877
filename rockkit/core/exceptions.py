"""统一异常体系

所有业务异常继承 RockkitError，每个异常带有 code 字段。
Web 层据此映射 HTTP 状态码，CLI 层据此输出友好提示。
"""

from __future__ import annotations


class RockkitError(Exception):
    """框架基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(RockkitError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class ValidationError(RockkitError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class UnsupportedFormatError(RockkitError):
    """清单声明的格式版本高于本工具支持的版本"""

    code = "UNSUPPORTED_FORMAT"

    def __init__(self, declared: str, supported: str = "") -> None:
        message = f"Rockspec format {declared} 不受支持"
        if supported:
            message += f" (最高支持 {supported})"
        super().__init__(message + "，请升级 rockkit。")
        self.declared = declared
        self.supported = supported


class SchemaInvalidError(ValidationError):
    """清单未通过结构校验，message 为校验器原文"""

    code = "SCHEMA_INVALID"


class PlatformOverrideError(ValidationError):
    """平台覆盖合并失败（嵌套过深或存在环）"""

    code = "PLATFORM_OVERRIDE_ERROR"


class DependencyParseError(RockkitError):
    """依赖约束字符串解析失败"""

    code = "DEPENDENCY_PARSE_ERROR"

    def __init__(self, field: str, dep_string: str, reason: str = "") -> None:
        message = f"解析 {field} 中的依赖 '{dep_string}' 失败"
        if reason:
            message += f": {reason}"
        super().__init__(message)
        self.field = field
        self.dep_string = dep_string
        self.reason = reason


class ManifestLoadError(RockkitError):
    """清单文件无法读取或内容不是映射"""

    code = "MANIFEST_LOAD_ERROR"
