"""rockspec 规范化流水线测试"""

from __future__ import annotations

import dataclasses
import os
from copy import deepcopy

import pytest

from rockkit.core import paths, rockspec, schema
from rockkit.core.config import Config
from rockkit.core.exceptions import (
    DependencyParseError,
    SchemaInvalidError,
    UnsupportedFormatError,
    ValidationError,
)
from rockkit.core.queries import Query
from rockkit.core.rockspec import MANIFEST_KIND, Manifest, is_manifest, normalize

FILENAME = "/work/luasocket-3.1.0-1.rockspec.yml"


# =========================================================================
# 格式版本
# =========================================================================


class TestFormatGate:
    def test_missing_format_passes(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(rockspec_format=None))
        assert m.rockspec_format is None
        assert str(m.format_version) == "1.0"
        assert m.format_is_at_least("1.0")
        assert not m.format_is_at_least("3.0")

    def test_supported_format_passes(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(rockspec_format="3.1"))
        assert m.format_is_at_least("3.0")

    @pytest.mark.parametrize("quick", [False, True])
    def test_newer_format_rejected(
        self, config: Config, make_doc, quick: bool, monkeypatch: pytest.MonkeyPatch,
    ) -> None:
        calls: list[str] = []
        monkeypatch.setattr(schema, "check", lambda *a, **kw: calls.append("schema"))
        monkeypatch.setattr(
            rockspec, "platform_overrides", lambda *a, **kw: calls.append("overrides"),
        )
        monkeypatch.setattr(rockspec, "from_dep_string", lambda *a, **kw: calls.append("deps"))
        doc = make_doc(rockspec_format="4.0")
        with pytest.raises(UnsupportedFormatError) as exc_info:
            normalize(FILENAME, doc, quick=quick)
        assert exc_info.value.declared == "4.0"
        assert exc_info.value.code == "UNSUPPORTED_FORMAT"
        # 后续步骤一个都不执行
        assert calls == []

    def test_padded_comparison(self, config: Config, make_doc) -> None:
        config.rockspec_format = "3"
        normalize(FILENAME, make_doc(rockspec_format="3.0"))
        with pytest.raises(UnsupportedFormatError):
            normalize(FILENAME, make_doc(rockspec_format="3.0.1"), quick=True)

    def test_yaml_float_format(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(rockspec_format=3.0), quick=True)
        assert m.rockspec_format == "3.0"


# =========================================================================
# 结构校验
# =========================================================================


class TestSchemaStep:
    def test_schema_error_passed_through(self, config: Config, make_doc) -> None:
        with pytest.raises(SchemaInvalidError, match="source.url"):
            normalize(FILENAME, make_doc(source={"dir": "x"}))

    def test_quick_skips_schema(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(version="not-a-version"), quick=True)
        assert m.version == "not-a-version"

    def test_quick_still_requires_source_url(self, config: Config, make_doc) -> None:
        with pytest.raises(ValidationError, match="source.url"):
            normalize(FILENAME, make_doc(source={"dir": "x"}), quick=True)

    def test_globals_forwarded(self, config: Config, make_doc) -> None:
        with pytest.raises(SchemaInvalidError, match="helper"):
            normalize(FILENAME, make_doc(), {"helper": True})

    def test_document_must_be_mapping(self, config: Config) -> None:
        with pytest.raises(ValidationError):
            normalize(FILENAME, ["not", "a", "mapping"])  # type: ignore[arg-type]


# =========================================================================
# 平台覆盖
# =========================================================================


class TestPlatformOverrides:
    def test_linux_wins_over_unix(self, config: Config, make_doc) -> None:
        build = {
            "type": "builtin",
            "modules": {"socket.core": "src/luasocket.c"},
            "platforms": {
                "unix": {"modules": {"socket.core": "src/unix.c"}, "variables": {"X": "u"}},
                "linux": {"modules": {"socket.core": "src/linux.c"}},
            },
        }
        m = normalize(FILENAME, make_doc(build=build))
        assert m.build is not None
        assert m.build.options["modules"] == {"socket.core": "src/linux.c"}
        assert m.build.options["variables"] == {"X": "u"}
        assert "platforms" not in m.build.options

    def test_empty_platforms_is_noop(self, config: Config, make_doc) -> None:
        plain = normalize(FILENAME, make_doc())
        source = dict(make_doc()["source"], platforms={})
        with_empty = normalize(FILENAME, make_doc(source=source))
        assert with_empty.source == plain.source

    def test_source_override(self, config: Config, make_doc) -> None:
        source = {
            "url": "https://example.com/a.tar.gz",
            "platforms": {"linux": {"url": "https://example.com/a-linux.tar.gz"}},
        }
        m = normalize(FILENAME, make_doc(source=source))
        assert m.source.url == "https://example.com/a-linux.tar.gz"
        assert m.source.file == "a-linux.tar.gz"

    def test_dependency_list_override(self, config: Config, make_doc) -> None:
        deps = ["lua >= 5.1", {"platforms": {"unix": ["lua >= 5.1", "luaposix"]}}]
        m = normalize(FILENAME, make_doc(dependencies=deps))
        assert [q.name for q in m.dependencies] == ["lua", "luaposix"]

    def test_other_platform_ignored(self, config: Config, make_doc) -> None:
        ext = {
            "OPENSSL": {"header": "openssl/ssl.h"},
            "platforms": {"windows": {"OPENSSL": {"library": "libssl32"}}},
        }
        m = normalize(FILENAME, make_doc(external_dependencies=ext))
        assert m.external_dependencies == {"OPENSSL": {"header": "openssl/ssl.h"}}

    def test_hooks_and_test_sections(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(
            hooks={"post_install": "a", "platforms": {"linux": {"post_install": "b"}}},
            test={"type": "busted", "platforms": {"unix": {"flags": ["-v"]}}},
        ))
        assert m.hooks == {"post_install": "b"}
        assert m.test == {"type": "busted", "flags": ["-v"]}


# =========================================================================
# 名称与来源
# =========================================================================


class TestCanonicalize:
    def test_name_lowercased(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(package="MyLib"))
        assert m.package == "MyLib"
        assert m.name == "mylib"

    def test_basic_protocol_derives_file(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc())
        assert m.source.protocol == "https"
        assert m.source.pathname == "example.com/releases/luasocket-3.1.0.tar.gz"
        assert m.source.file == "luasocket-3.1.0.tar.gz"
        assert m.source.is_basic

    def test_explicit_file_kept(self, config: Config, make_doc) -> None:
        source = {"url": "https://example.com/dl?id=3", "file": "foo.zip"}
        assert normalize(FILENAME, make_doc(source=source)).source.file == "foo.zip"

    def test_scm_protocol_leaves_file_unset(self, config: Config, make_doc) -> None:
        source = {"url": "git+https://github.com/lunarmodules/luasocket.git", "tag": "v3.1.0"}
        m = normalize(FILENAME, make_doc(source=source))
        assert m.source.protocol == "git+https"
        assert m.source.file is None

    def test_explicit_dir(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(source={"url": "git://h/r.git", "dir": "x"}))
        assert m.source.dir == "x"
        assert m.source.dir_set is True

    def test_dir_defaults_from_module(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(source={"url": "git://h/r.git", "module": "y"}))
        assert m.source.dir == "y"
        assert m.source.dir_set is False

    def test_dir_absent(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(source={"url": "https://h/r.tar.gz"}))
        assert m.source.dir is None
        assert m.source.dir_set is False

    def test_cvs_aliases_migrated(self, config: Config, make_doc) -> None:
        source = {"url": "cvs://h/root", "cvs_tag": "v1", "cvs_module": "mod"}
        m = normalize(FILENAME, make_doc(source=source))
        assert m.source.tag == "v1"
        assert m.source.module == "mod"
        assert m.source.dir == "mod"
        assert m.source.dir_set is False

    def test_cvs_aliases_do_not_override(self, config: Config, make_doc) -> None:
        source = {"url": "cvs://h/root", "cvs_tag": "old", "tag": "new", "module": "m", "cvs_module": "c"}
        m = normalize(FILENAME, make_doc(source=source))
        assert m.source.tag == "new"
        assert m.source.module == "m"

    def test_local_abs_filename(self, config: Config, make_doc) -> None:
        assert normalize(FILENAME, make_doc()).local_abs_filename == FILENAME


# =========================================================================
# 依赖转换
# =========================================================================


class TestDependencies:
    def test_all_entries_structured(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(
            dependencies=["lua >= 5.1, < 5.5", "LPeg"],
            build_dependencies=["luarocks-build-rust-mlua"],
            test_dependencies=["busted"],
        ))
        for key in ("dependencies", "build_dependencies", "test_dependencies"):
            entries = getattr(m, key)
            assert entries
            assert all(isinstance(q, Query) and q.name for q in entries)
        assert [q.name for q in m.dependencies] == ["lua", "lpeg"]

    def test_absent_lists_become_empty(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(dependencies=None))
        assert m.dependencies == []
        assert m.build_dependencies == []
        assert m.test_dependencies == []

    def test_parse_error_names_field_and_entry(self, config: Config, make_doc) -> None:
        doc = make_doc(test_dependencies=["busted", "bad dep spec here"])
        with pytest.raises(DependencyParseError) as exc_info:
            normalize(FILENAME, doc)
        err = exc_info.value
        assert err.field == "test_dependencies"
        assert err.dep_string == "bad dep spec here"
        assert "test_dependencies" in str(err)
        assert "bad dep spec here" in str(err)
        assert doc["test_dependencies"] == ["busted", "bad dep spec here"]

    def test_non_string_entry(self, config: Config, make_doc) -> None:
        with pytest.raises(DependencyParseError):
            normalize(FILENAME, make_doc(dependencies=[5]), quick=True)


class TestBuildBackend:
    def test_external_backend_added(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(build={"type": "foo"}))
        names = [q.name for q in m.build_dependencies]
        assert names == ["luarocks-build-foo"]
        assert m.build is not None
        assert m.build.backend_package == "luarocks-build-foo"

    def test_appended_after_existing(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(build={"type": "foo"}, build_dependencies=["cmake"]))
        assert [q.name for q in m.build_dependencies] == ["cmake", "luarocks-build-foo"]

    def test_not_duplicated(self, config: Config, make_doc) -> None:
        doc = make_doc(build={"type": "foo"}, build_dependencies=["luarocks-build-foo >= 1.0"])
        m = normalize(FILENAME, doc)
        assert [str(q) for q in m.build_dependencies] == ["luarocks-build-foo >= 1.0"]

    def test_rerun_on_normalized_output(self, config: Config, make_doc) -> None:
        first = normalize(FILENAME, make_doc(build={"type": "foo"}))
        doc = make_doc(
            build={"type": "foo"},
            build_dependencies=[str(q) for q in first.build_dependencies],
        )
        second = normalize(FILENAME, doc)
        assert [q.name for q in second.build_dependencies] == ["luarocks-build-foo"]

    def test_mixed_case_type_not_duplicated(self, config: Config, make_doc) -> None:
        doc = make_doc(build={"type": "Foo"}, build_dependencies=["luarocks-build-Foo"])
        m = normalize(FILENAME, doc)
        assert [q.name for q in m.build_dependencies] == ["luarocks-build-foo"]
        assert m.build is not None
        assert m.build.backend_package == "luarocks-build-foo"

    @pytest.mark.parametrize("build_type", [{"a": 1}, ["make"], 5])
    def test_non_string_type_in_quick_mode(self, config: Config, make_doc, build_type) -> None:
        with pytest.raises(ValidationError, match="build.type"):
            normalize(FILENAME, make_doc(build={"type": build_type}), quick=True)

    @pytest.mark.parametrize("build_type", ["builtin", "cmake", "command", "make", "module", "none"])
    def test_builtin_types(self, config: Config, make_doc, build_type: str) -> None:
        m = normalize(FILENAME, make_doc(build={"type": build_type}))
        assert m.build_dependencies == []
        assert m.build is not None
        assert m.build.backend_package is None


# =========================================================================
# 安装路径变量
# =========================================================================


class TestVariables:
    def test_quick_mode_has_no_variables(self, config: Config, make_doc) -> None:
        assert normalize(FILENAME, make_doc(), quick=True).variables is None

    def test_variables_populated(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(package="LuaSocket"))
        assert m.variables is not None
        prefix = paths.install_dir("luasocket", "3.1.0-1", config=config)
        assert m.variables["PREFIX"] == prefix
        assert m.variables["LUADIR"] == os.path.join(prefix, "lua")
        assert m.variables["LIBDIR"] == os.path.join(prefix, "lib")
        assert m.variables["CONFDIR"] == os.path.join(prefix, "conf")
        assert m.variables["BINDIR"] == os.path.join(prefix, "bin")
        assert m.variables["DOCDIR"] == os.path.join(prefix, "doc")
        assert m.variables["CC"] == "gcc"

    def test_base_variables_not_mutated(self, config: Config, make_doc) -> None:
        before = dict(config.variables)
        normalize(FILENAME, make_doc())
        normalize(FILENAME, make_doc(package="other"))
        assert config.variables == before

    def test_explicit_config_argument(self, make_doc) -> None:
        cfg = Config(root_dir="/tree", platforms=["unix"], variables={})
        m = normalize(FILENAME, make_doc(), config=cfg)
        assert m.variables is not None
        assert m.variables["PREFIX"].startswith("/tree")


# =========================================================================
# Manifest 模型
# =========================================================================


class TestManifest:
    def test_kind_discriminator(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc())
        assert m.kind == MANIFEST_KIND == "rockspec"
        assert is_manifest(m)
        assert not is_manifest(make_doc())

    def test_frozen(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc())
        with pytest.raises(dataclasses.FrozenInstanceError):
            m.name = "other"  # type: ignore[misc]

    def test_input_not_mutated(self, config: Config, make_doc) -> None:
        doc = make_doc(build={"type": "foo", "platforms": {"unix": {"x": 1}}})
        snapshot = deepcopy(doc)
        normalize(FILENAME, doc)
        assert doc == snapshot

    def test_rocks_provided(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc())
        assert m.rocks_provided["lua"] == "5.4-1"

    def test_to_dict(self, config: Config, make_doc) -> None:
        data = normalize(FILENAME, make_doc(build={"type": "foo"})).to_dict()
        assert data["kind"] == "rockspec"
        assert data["name"] == "luasocket"
        assert data["dependencies"] == ["lua >= 5.1"]
        assert data["build_dependencies"] == ["luarocks-build-foo"]
        assert data["source"]["dir_set"] is True
        assert data["format_version"] == "3.0"
        assert "variables" in data

    def test_unknown_top_level_kept_in_extra(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc(x_custom={"a": 1}), quick=True)
        assert isinstance(m, Manifest)
        assert m.extra == {"x_custom": {"a": 1}}

    def test_computed_fields_win_over_raw_keys(self, config: Config, make_doc) -> None:
        doc = make_doc(name="NotLower", kind="other", variables={"PREFIX": "/evil"}, x_custom=1)
        m = normalize(FILENAME, doc, quick=True)
        assert m.extra == {"x_custom": 1}
        data = m.to_dict()
        assert data["name"] == "luasocket"
        assert data["kind"] == "rockspec"
        assert "variables" not in data
        assert data["x_custom"] == 1

    def test_computed_source_fields_win(self, config: Config, make_doc) -> None:
        source = {"url": "https://h/a.tar.gz", "protocol": "git", "dir_set": True, "x_mirror": "m"}
        m = normalize(FILENAME, make_doc(source=source))
        assert m.source.extra == {"x_mirror": "m"}
        data = m.to_dict()["source"]
        assert data["protocol"] == "https"
        assert data["dir_set"] is False
        assert data["x_mirror"] == "m"

    def test_to_dict_keeps_computed_values_for_direct_extra(self, config: Config, make_doc) -> None:
        m = normalize(FILENAME, make_doc())
        forged = dataclasses.replace(m, extra={"name": "Forged", "x_note": "n"})
        data = forged.to_dict()
        assert data["name"] == "luasocket"
        assert data["x_note"] == "n"
