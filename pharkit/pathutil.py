from __future__ import annotations

import re


_SEPARATORS = re.compile(r"[\\/]")


def canonical_name(name: str) -> str:
    """Rejoin an entry name with forward slashes.

    Both separators split the name; empty interior segments are dropped while
    a leading or trailing slash survives (a trailing slash marks a directory).
    """
    parts = _SEPARATORS.split(name)
    if len(parts) == 1:
        return name
    head, *middle, tail = parts
    return "/".join([head] + [p for p in middle if p] + [tail])


def norm_path(p: str) -> str:
    """Normalize archive paths to a relative forward-slash form for extraction.

    Rules:
    - Convert backslashes to slashes
    - Strip leading/trailing slashes
    - Remove empty and '.' segments
    - Reject '..' segments
    """
    p = p.replace("\\", "/").strip("/")
    parts = [q for q in p.split("/") if q not in ("", ".")]
    for q in parts:
        if q == "..":
            raise ValueError("Path may not contain '..'")
    return "/".join(parts)
