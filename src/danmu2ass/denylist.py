from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

_RE_LINE_BREAK = re.compile(r"\r?\n")


def parse_denylist(text: str) -> list[str]:
    """One substring per line; blank lines and surrounding whitespace are ignored."""
    return [s for s in (line.strip() for line in _RE_LINE_BREAK.split(text)) if s]


def load_denylist(path: Path) -> list[str]:
    return parse_denylist(path.read_text(encoding="utf-8", errors="replace"))


def find_denied(text: str, denylist: Iterable[str]) -> str | None:
    """Return the first denylist entry contained in `text` (case-sensitive), if any."""
    for entry in denylist:
        if entry and entry in text:
            return entry
    return None
