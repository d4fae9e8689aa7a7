"""Version ordering for deployment history.

Handles semver-like strings ("2.3.45", "v1.0.0"), pipeline IID fallbacks
("#123") and None.
"""
import re
from typing import List, Optional


_LEADING_INT_RE = re.compile(r"\s*(\d+)")


def _leading_int(part: str) -> Optional[int]:
    """Integer prefix of a component: "3-rc1" -> 3, "rc1" -> None."""
    m = _LEADING_INT_RE.match(part)
    return int(m.group(1)) if m else None


def parse_version(version: Optional[str]) -> List[int]:
    """Split a version into numeric components.

    "v2.3.45" -> [2, 3, 45], "#123" -> [123], "1.2.x" -> [1, 2],
    "1-rc.5" -> [1, 5]. A component keeps its integer prefix; the first
    component without one ends the version. Returns [] when nothing
    numeric can be read.
    """
    if not version:
        return []

    if version.startswith("#"):
        n = _leading_int(version[1:])
        return [] if n is None else [n]

    cleaned = version[1:] if version[:1] in ("v", "V") else version

    nums: List[int] = []
    for part in cleaned.split("."):
        n = _leading_int(part)
        if n is None:
            break
        nums.append(n)
    return nums


def compare_versions(a: Optional[str], b: Optional[str]) -> int:
    """Return -1, 0 or 1. None sorts lowest, then unparseable strings."""
    if a is None and b is None:
        return 0
    if a is None:
        return -1
    if b is None:
        return 1

    parts_a = parse_version(a)
    parts_b = parse_version(b)

    if not parts_a and not parts_b:
        return (a > b) - (a < b)
    if not parts_a:
        return -1
    if not parts_b:
        return 1

    for i in range(max(len(parts_a), len(parts_b))):
        na = parts_a[i] if i < len(parts_a) else 0
        nb = parts_b[i] if i < len(parts_b) else 0
        if na < nb:
            return -1
        if na > nb:
            return 1
    return 0
