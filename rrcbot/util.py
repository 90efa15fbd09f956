from __future__ import annotations

import os

from .constants import NICK_MAX_CHARS


def expand_path(p: str) -> str:
    return os.path.expanduser(os.path.expandvars(p))


def normalize_nick(value, *, max_chars: int = NICK_MAX_CHARS) -> str | None:
    if not isinstance(value, str):
        return None

    s = value.strip()
    if not s or any(ch.isspace() for ch in s):
        return None

    if max_chars > 0 and len(s) > max_chars:
        return None

    if "\x00" in s:
        return None

    return s
