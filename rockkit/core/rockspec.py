"""rockspec 清单规范化流水线

把刚解析出来的原始清单文档转换为字段齐全、相互一致的 Manifest。
步骤严格按顺序执行，后一步依赖前一步的结果：

1. check_format      - 拒绝声明了更高格式版本的清单
2. validate_schema   - 结构校验（quick 模式跳过）
3. apply_overrides   - 各小节的平台覆盖合并
4. canonicalize      - 包名小写、URL 拆分、旧字段迁移、dir 默认值
5. convert_deps      - 依赖字符串 -> Query
6. add_build_backend - 非内置构建类型补充 luarocks-build-<type> 依赖
7. configure_paths   - 计算安装路径变量（quick 模式跳过）

ManifestBuilder 只在原始文档的深拷贝上工作，任一步骤失败时整个
builder 被丢弃，调用方拿不到半成品。

用法:
    from rockkit.core.rockspec import normalize

    manifest = normalize("/path/foo-1.0-1.rockspec.yml", document)
    manifest.name                         # "foo"
    manifest.format_is_at_least("3.0")    # True / False
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any

from rockkit.core import dirs, paths, schema
from rockkit.core.config import Config, get_config
from rockkit.core.exceptions import (
    DependencyParseError,
    RockkitError,
    UnsupportedFormatError,
    ValidationError,
)
from rockkit.core.platforms import platform_overrides
from rockkit.core.provided import get_rocks_provided
from rockkit.core.queries import Query, from_dep_string
from rockkit.core.vers import Version, format_is_at_least, parse_version

logger = logging.getLogger(__name__)

MANIFEST_KIND = "rockspec"

# 内置构建后端，其余 build.type 视为外部插件
BUILTIN_BUILD_TYPES = frozenset(("builtin", "cmake", "command", "make", "module", "none"))
BUILD_BACKEND_PREFIX = "luarocks-build-"

DEPENDENCY_FIELDS = ("dependencies", "build_dependencies", "test_dependencies")

# 可携带 platforms 覆盖的小节
OVERRIDABLE_SECTIONS = (
    "build",
    "dependencies",
    "build_dependencies",
    "test_dependencies",
    "external_dependencies",
    "source",
    "hooks",
    "test",
)

# 由规范化计算得出的字段，原始文档中的同名键不进入 extra
_COMPUTED_SOURCE_KEYS = ("protocol", "pathname", "dir_set")
_COMPUTED_KEYS = (
    "name", "kind", "format_version", "local_abs_filename", "rocks_provided", "variables",
)
_BUILD_KEYS = ("type", "install", "copy_directories", "patches")
_TOP_LEVEL_KEYS = (
    "rockspec_format", "package", "version", "description", "supported_platforms",
    "source", "build", "hooks", "test", "deploy", "external_dependencies",
) + DEPENDENCY_FIELDS


# =========================================================================
# 数据模型
# =========================================================================


@dataclass(frozen=True)
class Source:
    """源码来源，protocol/pathname 由 url 拆分得到"""

    url: str
    protocol: str
    pathname: str
    file: str | None = None
    dir: str | None = None
    dir_set: bool = False  # dir 是否由用户显式给出（在默认值填充之前判定）
    module: str | None = None
    tag: str | None = None
    branch: str | None = None
    md5: str | None = None
    cvs_module: str | None = None
    cvs_tag: str | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def is_basic(self) -> bool:
        return dirs.is_basic_protocol(self.protocol)


@dataclass(frozen=True)
class Build:
    """构建配方"""

    type: str | None = None
    install: dict[str, dict[str, Any]] = field(default_factory=dict)
    copy_directories: list[str] | None = None
    patches: dict[str, str] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)  # modules / variables / build_command 等

    @property
    def uses_external_backend(self) -> bool:
        return bool(self.type) and self.type not in BUILTIN_BUILD_TYPES

    @property
    def backend_package(self) -> str | None:
        """外部构建后端对应的 rock 名"""
        if not self.uses_external_backend:
            return None
        return f"{BUILD_BACKEND_PREFIX}{self.type}".lower()


@dataclass(frozen=True)
class Manifest:
    """规范化后的 rockspec，构造完成后只读"""

    package: str
    name: str
    version: str
    source: Source
    local_abs_filename: str
    format_version: Version
    rockspec_format: str | None = None
    build: Build | None = None
    dependencies: list[Query] = field(default_factory=list)
    build_dependencies: list[Query] = field(default_factory=list)
    test_dependencies: list[Query] = field(default_factory=list)
    external_dependencies: dict[str, dict[str, Any]] = field(default_factory=dict)
    description: dict[str, Any] = field(default_factory=dict)
    supported_platforms: list[str] | None = None
    hooks: dict[str, Any] | None = None
    test: dict[str, Any] | None = None
    deploy: dict[str, Any] | None = None
    rocks_provided: dict[str, str] = field(default_factory=dict)
    variables: dict[str, str] | None = None
    extra: dict[str, Any] = field(default_factory=dict)
    kind: str = MANIFEST_KIND

    def format_is_at_least(self, version: str) -> bool:
        """清单格式版本是否不低于 version"""
        return format_is_at_least(self.format_version, version)

    def to_dict(self) -> dict[str, Any]:
        """转换为可 JSON / YAML 序列化的字典，依赖输出为规范字符串"""
        data: dict[str, Any] = {
            "kind": self.kind,
            "package": self.package,
            "name": self.name,
            "version": self.version,
            "rockspec_format": self.rockspec_format,
            "format_version": str(self.format_version),
            "local_abs_filename": self.local_abs_filename,
            "description": copy.deepcopy(self.description),
            "source": _source_dict(self.source),
        }
        if self.supported_platforms is not None:
            data["supported_platforms"] = list(self.supported_platforms)
        if self.build is not None:
            data["build"] = _build_dict(self.build)
        for key in DEPENDENCY_FIELDS:
            data[key] = [str(q) for q in getattr(self, key)]
        data["external_dependencies"] = copy.deepcopy(self.external_dependencies)
        for key in ("hooks", "test", "deploy"):
            value = getattr(self, key)
            if value is not None:
                data[key] = copy.deepcopy(value)
        data["rocks_provided"] = dict(self.rocks_provided)
        if self.variables is not None:
            data["variables"] = dict(self.variables)
        for key, value in self.extra.items():
            data.setdefault(key, copy.deepcopy(value))
        return data


def _source_dict(source: Source) -> dict[str, Any]:
    data: dict[str, Any] = {"url": source.url, "protocol": source.protocol, "pathname": source.pathname}
    for key in ("file", "dir", "module", "tag", "branch", "md5", "cvs_module", "cvs_tag"):
        value = getattr(source, key)
        if value is not None:
            data[key] = value
    data["dir_set"] = source.dir_set
    for key, value in source.extra.items():
        data.setdefault(key, copy.deepcopy(value))
    return data


def _build_dict(build: Build) -> dict[str, Any]:
    data: dict[str, Any] = {}
    if build.type is not None:
        data["type"] = build.type
    if build.install:
        data["install"] = copy.deepcopy(build.install)
    if build.copy_directories is not None:
        data["copy_directories"] = list(build.copy_directories)
    if build.patches:
        data["patches"] = dict(build.patches)
    data.update(copy.deepcopy(build.options))
    return data


def is_manifest(obj: object) -> bool:
    """判断对象是否为规范化后的 rockspec"""
    return isinstance(obj, Manifest) and obj.kind == MANIFEST_KIND


# =========================================================================
# 规范化流水线
# =========================================================================


class ManifestBuilder:
    """单个清单的规范化过程，build() 成功后产出 Manifest"""

    def __init__(
        self,
        filename: str,
        document: dict[str, Any],
        globals_: dict[str, Any] | None = None,
        *,
        quick: bool = False,
        config: Config | None = None,
    ) -> None:
        if not isinstance(document, dict):
            raise ValidationError(
                f"rockspec 文档必须是映射，实际类型: {type(document).__name__}"
            )
        self.filename = filename
        self.doc: dict[str, Any] = copy.deepcopy(document)
        self.globals = globals_ or {}
        self.quick = quick
        self.config = config if config is not None else get_config()

        self.format_version: Version = parse_version(schema.DEFAULT_FORMAT)
        self.name = ""
        self.deps: dict[str, list[Query]] = {}

    def build(self) -> Manifest:
        self.check_format()
        if not self.quick:
            self.validate_schema()
        self.apply_overrides()
        source = self.canonicalize()
        self.convert_deps()
        self.add_build_backend()
        variables = None if self.quick else self.configure_paths()
        return self._assemble(source, variables)

    # -- 1. 格式版本 ------------------------------------------------------

    def check_format(self) -> None:
        """声明的格式版本严格高于支持版本时拒绝"""
        declared = self.doc.get("rockspec_format")
        self.format_version = schema.resolve_format(self.doc)
        if declared is None:
            return
        supported = parse_version(self.config.rockspec_format)
        if self.format_version > supported:
            raise UnsupportedFormatError(str(declared), self.config.rockspec_format)
        logger.debug("[%s] 格式版本 %s 通过", self.filename, declared)

    # -- 2. 结构校验 ------------------------------------------------------

    def validate_schema(self) -> None:
        schema.check(self.doc, self.globals, strict=self.config.strict_fields)
        logger.debug("[%s] 结构校验通过", self.filename)

    # -- 3. 平台覆盖 ------------------------------------------------------

    def apply_overrides(self) -> None:
        platforms = self.config.platforms
        for key in OVERRIDABLE_SECTIONS:
            if key in self.doc:
                self.doc[key] = platform_overrides(self.doc[key], platforms)
        logger.debug("[%s] 平台覆盖已应用: %s", self.filename, ",".join(platforms))

    # -- 4. 名称与来源 ----------------------------------------------------

    def canonicalize(self) -> Source:
        package = self.doc.get("package")
        if not isinstance(package, str) or not package:
            raise ValidationError("rockspec 缺少 package 字段")
        self.name = package.lower()

        raw = self.doc.get("source")
        if not isinstance(raw, dict) or not isinstance(raw.get("url"), str):
            raise ValidationError("rockspec 缺少 source.url 字段")
        raw = dict(raw)

        url = raw.pop("url")
        protocol, pathname = dirs.split_url(url)
        file = raw.pop("file", None)
        if file is None and dirs.is_basic_protocol(protocol):
            file = dirs.base_name(url)

        cvs_module = raw.pop("cvs_module", None)
        cvs_tag = raw.pop("cvs_tag", None)
        module = raw.pop("module", None)
        tag = raw.pop("tag", None)
        # 旧字段只作为兜底
        if module is None:
            module = cvs_module
        if tag is None:
            tag = cvs_tag

        explicit_dir = raw.pop("dir", None)
        _drop_computed(raw, _COMPUTED_SOURCE_KEYS, "source.")
        return Source(
            url=url,
            protocol=protocol,
            pathname=pathname,
            file=file,
            dir=explicit_dir if explicit_dir is not None else module,
            dir_set=explicit_dir is not None,
            module=module,
            tag=tag,
            branch=raw.pop("branch", None),
            md5=raw.pop("md5", None),
            cvs_module=cvs_module,
            cvs_tag=cvs_tag,
            extra=raw,
        )

    # -- 5. 依赖转换 ------------------------------------------------------

    def convert_deps(self) -> None:
        for key in DEPENDENCY_FIELDS:
            entries = self.doc.get(key)
            if entries is None:
                self.deps[key] = []
                continue
            if not isinstance(entries, list):
                raise DependencyParseError(key, str(entries), "依赖必须是列表")
            converted: list[Query] = []
            for entry in entries:
                try:
                    converted.append(from_dep_string(entry))
                except ValidationError as e:
                    raise DependencyParseError(key, str(entry), str(e)) from e
            self.deps[key] = converted

    # -- 6. 外部构建后端 --------------------------------------------------

    def add_build_backend(self) -> None:
        build = self.doc.get("build")
        if not isinstance(build, dict):
            return
        build_type = build.get("type")
        if build_type is not None and not isinstance(build_type, str):
            raise ValidationError(
                f"build.type 必须是字符串，实际类型: {type(build_type).__name__}"
            )
        if not build_type or build_type in BUILTIN_BUILD_TYPES:
            return
        backend = f"{BUILD_BACKEND_PREFIX}{build_type}".lower()
        build_deps = self.deps["build_dependencies"]
        if any(dep.name == backend for dep in build_deps):
            return
        try:
            build_deps.append(from_dep_string(backend))
        except ValidationError as e:
            raise DependencyParseError("build_dependencies", backend, str(e)) from e
        logger.debug("[%s] 补充构建后端依赖: %s", self.filename, backend)

    # -- 7. 安装路径 ------------------------------------------------------

    def configure_paths(self) -> dict[str, str]:
        name, version = self.name, str(self.doc.get("version", ""))
        cfg = self.config
        variables = dict(cfg.variables)
        variables["PREFIX"] = paths.install_dir(name, version, config=cfg)
        variables["LUADIR"] = paths.lua_dir(name, version, config=cfg)
        variables["LIBDIR"] = paths.lib_dir(name, version, config=cfg)
        variables["CONFDIR"] = paths.conf_dir(name, version, config=cfg)
        variables["BINDIR"] = paths.bin_dir(name, version, config=cfg)
        variables["DOCDIR"] = paths.doc_dir(name, version, config=cfg)
        return variables

    # -- 组装 -------------------------------------------------------------

    def _assemble(self, source: Source, variables: dict[str, str] | None) -> Manifest:
        doc = self.doc
        extra = {k: v for k, v in doc.items() if k not in _TOP_LEVEL_KEYS}
        _drop_computed(extra, _COMPUTED_KEYS, "")
        declared = doc.get("rockspec_format")
        return Manifest(
            package=doc["package"],
            name=self.name,
            version=str(doc.get("version", "")),
            source=source,
            local_abs_filename=self.filename,
            format_version=self.format_version,
            rockspec_format=str(declared) if declared is not None else None,
            build=_make_build(doc.get("build")),
            dependencies=self.deps["dependencies"],
            build_dependencies=self.deps["build_dependencies"],
            test_dependencies=self.deps["test_dependencies"],
            external_dependencies=doc.get("external_dependencies") or {},
            description=doc.get("description") or {},
            supported_platforms=doc.get("supported_platforms"),
            hooks=doc.get("hooks"),
            test=doc.get("test"),
            deploy=doc.get("deploy"),
            rocks_provided=get_rocks_provided(self.format_version, self.config),
            variables=variables,
            extra=extra,
        )


def _drop_computed(data: dict[str, Any], keys: tuple[str, ...], prefix: str) -> None:
    """移除与计算字段同名的原始键"""
    for key in keys:
        if key in data:
            data.pop(key)
            logger.warning("忽略字段 %s%s: 该字段由规范化计算得出", prefix, key)


def _make_build(raw: Any) -> Build | None:
    if not isinstance(raw, dict):
        return None
    options = {k: v for k, v in raw.items() if k not in _BUILD_KEYS}
    return Build(
        type=raw.get("type"),
        install=raw.get("install") or {},
        copy_directories=raw.get("copy_directories"),
        patches=raw.get("patches") or {},
        options=options,
    )


def normalize(
    filename: str,
    document: dict[str, Any],
    globals_: dict[str, Any] | None = None,
    quick: bool = False,
    config: Config | None = None,
) -> Manifest:
    """规范化单个 rockspec 文档

    参数:
        filename: 清单文件的绝对路径，记录到 local_abs_filename
        document: 解析后的原始文档（不会被修改）
        globals_: 文档来源中定义的名字，仅供结构校验使用
        quick: 为 True 时跳过结构校验与安装路径计算
        config: 全局配置，默认取 get_config()

    异常:
        UnsupportedFormatError / SchemaInvalidError / DependencyParseError 等
        RockkitError 子类；失败时不产出任何 Manifest。
    """
    builder = ManifestBuilder(filename, document, globals_, quick=quick, config=config)
    try:
        manifest = builder.build()
    except RockkitError as e:
        logger.warning("rockspec 规范化失败 %s: [%s] %s", filename, e.code, e)
        raise
    logger.info("rockspec 已规范化: %s %s (%s)", manifest.name, manifest.version, filename)
    return manifest
