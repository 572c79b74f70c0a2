from __future__ import annotations

import os
import re
import tempfile
import time
from pathlib import Path

_RE_FORBIDDEN = re.compile(r'[\\/*?:"<>|]')
_RE_EXT = re.compile(r"\.[^./\\]+$")
_RE_XML_EXT = re.compile(r"\.xml$", re.IGNORECASE)


class OutputEncodingError(RuntimeError):
    """The generated text cannot be encoded for writing."""


def sanitize_filename(filename: str) -> str:
    cleaned = _RE_FORBIDDEN.sub("", filename).strip()
    if cleaned:
        return cleaned
    return f"bilibili_danmu_{int(time.time() * 1000)}"


def replace_ext(path: str, ext: str) -> str:
    if _RE_EXT.search(path):
        return _RE_EXT.sub(ext, path)
    return f"{path}{ext}"


def file_stem_from_path(path: str) -> str:
    name = path.replace("\\", "/").split("/")[-1] or "untitled"
    name = _RE_XML_EXT.sub("", name)
    return _RE_EXT.sub("", name)


def encode_output(text: str) -> bytes:
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError as e:
        raise OutputEncodingError(f"Cannot encode output as UTF-8: {e}") from e


def write_text_all_or_nothing(path: Path, text: str) -> None:
    """
    Write UTF-8 text to `path` without ever leaving a partial file behind.

    The text is encoded before anything touches the filesystem, then written to a
    sibling temporary file and renamed over the target.
    """
    data = encode_output(text)
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp, path)
    except BaseException:
        Path(tmp).unlink(missing_ok=True)
        raise
