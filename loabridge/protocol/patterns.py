"""Address pattern compilation.

Grammar (segments are separated by ``/``):

- ``literal`` matches the same segment exactly.
- ``:name`` matches one segment and captures it as ``name``.
- ``*`` matches one arbitrary segment without capturing it.
- ``**`` matches zero or more remaining segments; only valid as the last
  segment.

``/log/:level`` matches ``/log/error`` with ``{"level": "error"}`` but not
``/log/error/extra``; ``/test/**`` matches ``/test``, ``/test/a`` and
``/test/a/b``; ``/*`` matches ``/anything`` but not ``/a/b``.
"""

from __future__ import annotations

import re
from typing import Final

import msgspec

SEGMENT_SEPARATOR: Final[str] = "/"
WILDCARD: Final[str] = "*"
GLOBSTAR: Final[str] = "**"
PARAM_PREFIX: Final[str] = ":"

_ONE_SEGMENT: Final[str] = r"[^/]+"

MatchResult = dict[str, str] | bool


def _compile_segment(segment: str, keys: list[str]) -> str:
    if segment == WILDCARD:
        return _ONE_SEGMENT
    if segment.startswith(PARAM_PREFIX):
        name = segment[len(PARAM_PREFIX) :]
        if not name.isidentifier():
            raise ValueError(f"invalid parameter name {name!r}")
        if name in keys:
            raise ValueError(f"duplicate parameter name {name!r}")
        keys.append(name)
        return f"(?P<{name}>{_ONE_SEGMENT})"
    if WILDCARD in segment or PARAM_PREFIX in segment:
        raise ValueError(f"wildcards and parameters must span a whole segment: {segment!r}")
    return re.escape(segment)


def _compile(pattern: str) -> tuple[re.Pattern[str], tuple[str, ...]]:
    segments = pattern.split(SEGMENT_SEPARATOR)
    globstar = segments[-1] == GLOBSTAR
    if globstar:
        segments = segments[:-1]
    if GLOBSTAR in segments:
        raise ValueError(f"'**' is only allowed as the last segment: {pattern!r}")

    keys: list[str] = []
    body = SEGMENT_SEPARATOR.join(_compile_segment(segment, keys) for segment in segments)
    if globstar:
        # "**" alone matches everything, "prefix/**" matches prefix and below.
        body = f"{body}(?:/.*)?" if segments else ".*"
    return re.compile(f"^{body}$"), tuple(keys)


class PathPattern(msgspec.Struct, frozen=True):
    """A compiled address pattern.

    Attributes:
        pattern: The pattern source text.
        regex: Compiled regular expression for the whole address.
        keys: Parameter names in the order they appear.
    """

    pattern: str
    regex: re.Pattern[str]
    keys: tuple[str, ...] = ()

    @classmethod
    def compile(cls, pattern: str) -> "PathPattern":
        regex, keys = _compile(pattern)
        return cls(pattern=pattern, regex=regex, keys=keys)

    def match(self, address: str) -> MatchResult:
        """Match *address* against the pattern.

        Returns ``False`` when it does not match, ``True`` when it matches a
        pattern without parameters, and the captured parameters otherwise.
        """
        if not address:
            return False
        found = self.regex.match(address)
        if found is None:
            return False
        if not self.keys:
            return True
        return {key: found.group(key) for key in self.keys}


__all__ = [
    "GLOBSTAR",
    "MatchResult",
    "PARAM_PREFIX",
    "PathPattern",
    "SEGMENT_SEPARATOR",
    "WILDCARD",
]
