from __future__ import annotations

import re
from typing import List, Tuple

from .errors import GlobError, PatternError


def _find_brace(pattern: str) -> Tuple[int, int, List[str]] | None:
    """Locate the first top-level ``{a,b}`` group.

    Returns ``(begin, end, alternatives)`` with ``end`` one past the closing
    brace, or None when the pattern has no group.
    """
    begin = -1
    depth = 0
    items: List[str] = []
    start = 0
    i = 0
    while i < len(pattern):
        c = pattern[i]
        if c == "\\":
            i += 2
            continue
        if c == "{":
            if depth == 0:
                begin = i
                start = i + 1
            depth += 1
        elif c == "}" and depth > 0:
            depth -= 1
            if depth == 0:
                items.append(pattern[start:i])
                return begin, i + 1, items
        elif c == "," and depth == 1:
            items.append(pattern[start:i])
            start = i + 1
        i += 1
    if depth:
        raise PatternError(f"Unbalanced '{{' in pattern {pattern!r}")
    return None


def expand_braces(pattern: str) -> List[str]:
    """Expand ``{a,b}`` alternatives, nested groups included."""
    group = _find_brace(pattern)
    if group is None:
        if "}" in pattern.replace("\\}", ""):
            raise PatternError(f"Unbalanced '}}' in pattern {pattern!r}")
        return [pattern]
    begin, end, items = group
    out: List[str] = []
    for item in items:
        out.extend(expand_braces(pattern[:begin] + item + pattern[end:]))
    return out


def _translate(pattern: str) -> str:
    res: List[str] = []
    i, n = 0, len(pattern)
    while i < n:
        c = pattern[i]
        if c == "*":
            j = i
            while j < n and pattern[j] == "*":
                j += 1
            if j - i >= 2:
                # '**/' may also match zero directories
                if j < n and pattern[j] == "/" and (i == 0 or pattern[i - 1] == "/"):
                    res.append("(?:.*/)?")
                    j += 1
                else:
                    res.append(".*")
            else:
                res.append("[^/]*")
            i = j
        elif c == "?":
            res.append("[^/]")
            i += 1
        elif c == "[":
            j = i + 1
            if j < n and pattern[j] in "!^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 1
            if j >= n:
                raise PatternError(f"Unclosed '[' in pattern {pattern!r}")
            body = pattern[i + 1 : j]
            if body[:1] in ("!", "^"):
                body = "^" + body[1:]
            res.append("[" + body.replace("\\", "\\\\") + "]")
            i = j + 1
        elif c == "\\":
            if i + 1 >= n:
                raise PatternError(f"Trailing escape in pattern {pattern!r}")
            res.append(re.escape(pattern[i + 1]))
            i += 2
        else:
            res.append(re.escape(c))
            i += 1
    return "".join(res)


class UnpackPattern:
    """A compiled glob used to pick files and directories to leave unpacked.

    Semantics:
    - Case-sensitive; paths are '/'-separated and archive-relative
    - ``*`` and ``?`` stay within one path component, ``**`` crosses them
    - ``[...]`` classes, ``[!...]`` negation, ``\\`` escapes, ``{a,b}`` groups
    - A pattern without '/' is matched against the basename only when
      ``match_base`` is requested
    """

    def __init__(self, pattern: str):
        if not isinstance(pattern, str) or not pattern:
            raise PatternError("Pattern must be a non-empty string")
        self.pattern = pattern
        self._compiled: List[Tuple[bool, re.Pattern[str]]] = []
        for alt in expand_braces(pattern):
            try:
                rx = re.compile(r"(?s:" + _translate(alt) + r")\Z")
            except re.error as exc:
                raise PatternError(f"Invalid pattern {pattern!r}: {exc}") from exc
            self._compiled.append(("/" in alt, rx))

    def __repr__(self) -> str:
        return f"UnpackPattern({self.pattern!r})"

    def matches(self, rel_path: str, *, match_base: bool = False) -> bool:
        if not isinstance(rel_path, str):
            raise GlobError(f"Cannot match {rel_path!r} against {self.pattern!r}")
        basename = rel_path.rsplit("/", 1)[-1]
        for has_sep, rx in self._compiled:
            target = basename if (match_base and not has_sep) else rel_path
            if rx.match(target):
                return True
        return False

    def covers_dir(self, rel_dir: str) -> bool:
        """True when ``rel_dir`` matches or sits below the literal pattern."""
        prefix = self.pattern.rstrip("/")
        if rel_dir == prefix or rel_dir.startswith(prefix + "/"):
            return True
        return self.matches(rel_dir)
