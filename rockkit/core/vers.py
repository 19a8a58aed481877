"""版本号解析与比较

版本字符串形如 "1.2.3-1"：点/横线/下划线分隔的数字段，可选的
"-<数字>" 修订号后缀。字母段（scm、rc、beta 等）折算为对前一数字段的
增量，使 "1.0rc1" < "1.0" < "scm"。
"""

from __future__ import annotations

import re
from functools import total_ordering

from rockkit.core.exceptions import ValidationError

# 字母段折算增量
DELTAS: dict[str, int] = {
    "dev": 120000000,
    "scm": 110000000,
    "cvs": 100000000,
    "rc": -1000,
    "pre": -10000,
    "beta": -100000,
    "alpha": -1000000,
}

_REVISION_RE = re.compile(r"^(.*)-(\d+)$")
_NUMBER_RE = re.compile(r"^\d+")
_WORD_RE = re.compile(r"^[a-zA-Z]+")
_SEPARATOR_RE = re.compile(r"^[.\-_]")


@total_ordering
class Version:
    """已解析的版本号，支持全序比较"""

    __slots__ = ("text", "segments", "revision")

    def __init__(self, text: str, segments: tuple[float, ...], revision: int = 0) -> None:
        self.text = text
        self.segments = segments
        self.revision = revision

    def _key(self, length: int) -> tuple[tuple[float, ...], int]:
        padded = self.segments + (0,) * (length - len(self.segments))
        return padded, self.revision

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        n = max(len(self.segments), len(other.segments))
        return self._key(n) == other._key(n)

    def __lt__(self, other: Version) -> bool:
        if not isinstance(other, Version):
            return NotImplemented
        n = max(len(self.segments), len(other.segments))
        return self._key(n) < other._key(n)

    def __hash__(self) -> int:
        segs = list(self.segments)
        while segs and segs[-1] == 0:
            segs.pop()
        return hash((tuple(segs), self.revision))

    def __str__(self) -> str:
        return self.text

    def __repr__(self) -> str:
        return f"Version({self.text!r})"


def parse_version(text: str) -> Version:
    """解析版本字符串

    异常:
        ValidationError: 无法识别的版本字符串
    """
    if not isinstance(text, str):
        raise ValidationError(f"版本号必须是字符串: {text!r}")
    raw = text.strip()
    if not raw:
        raise ValidationError("版本号为空")

    main, revision = raw, 0
    m = _REVISION_RE.match(raw)
    if m:
        main, revision = m.group(1), int(m.group(2))

    segments: list[float] = []
    rest = main
    while rest:
        num = _NUMBER_RE.match(rest)
        if num:
            segments.append(int(num.group(0)))
            rest = rest[num.end():]
        else:
            word = _WORD_RE.match(rest)
            if not word:
                raise ValidationError(f"无法解析版本号 '{text}'")
            token = word.group(0).lower()
            delta = DELTAS.get(token, ord(token[0]) / 1000)
            if segments:
                segments[-1] += delta
            else:
                segments.append(delta)
            rest = rest[word.end():]
        sep = _SEPARATOR_RE.match(rest)
        if sep:
            rest = rest[1:]
    return Version(raw, tuple(segments), revision)


def compare_versions(a: str, b: str) -> bool:
    """a 严格新于 b 时返回 True"""
    return parse_version(a) > parse_version(b)


def format_is_at_least(parsed: Version, version: str) -> bool:
    """判断已解析的格式版本是否不低于 version"""
    return parsed >= parse_version(version)
