from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any
from urllib.parse import quote, unquote

from danmu2ass.comments import decode_entities
from danmu2ass.files import encode_output

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "danmu2ass/0.1"

VIDEO_EXTENSIONS = (
    ".mp4",
    ".mkv",
    ".avi",
    ".mov",
    ".flv",
    ".wmv",
    ".m4v",
    ".ts",
    ".webm",
)

PROPFIND_BODY = (
    '<?xml version="1.0" encoding="utf-8" ?>'
    '<d:propfind xmlns:d="DAV:"><d:prop><d:resourcetype/><d:getcontentlength/>'
    "</d:prop></d:propfind>"
)

_RE_BASE_URL = re.compile(r"^(https?://)([^/]+)(/.*)?$", re.IGNORECASE)
_RE_RESPONSE = re.compile(r"<(?:\w+:)?response\b.*?</(?:\w+:)?response>", re.I | re.S)
_RE_HREF = re.compile(r"<(?:\w+:)?href[^>]*>(.*?)</(?:\w+:)?href>", re.I | re.S)
_RE_COLLECTION = re.compile(r"<(?:\w+:)?collection\b", re.I)
_RE_LENGTH = re.compile(
    r"<(?:\w+:)?getcontentlength[^>]*>(\d+)</(?:\w+:)?getcontentlength>", re.I
)
_RE_ABS_URL = re.compile(r"^https?://[^/]+(/.*)?$", re.IGNORECASE)


class WebDavError(RuntimeError):
    pass


@dataclass(frozen=True)
class WebDavConfig:
    base_url: str
    username: str = ""
    password: str = ""
    start_path: str = "/"
    user_agent: str = DEFAULT_USER_AGENT


@dataclass(frozen=True)
class WebDavEntry:
    name: str
    path: str
    is_directory: bool
    size: int | None = None


def normalize_dir(path: str) -> str:
    """Absolute, slash-collapsed path without a trailing slash (except the root)."""
    if not path:
        return "/"
    if not path.startswith("/"):
        path = "/" + path
    path = re.sub(r"/+", "/", path)
    if path == "/":
        return path
    return path.rstrip("/")


def join_path(base: str, child: str) -> str:
    a = normalize_dir(base)
    b = normalize_dir(child)
    if b == "/":
        return a
    if a == "/":
        return b
    return a + b


def parent_path(path: str) -> str:
    p = normalize_dir(path)
    idx = p.rfind("/")
    if idx <= 0:
        return "/"
    return p[:idx]


def _basename(path: str) -> str:
    p = normalize_dir(path)
    if p == "/":
        return "/"
    return p[p.rfind("/") + 1 :]


def split_base_url(base_url: str) -> tuple[str, str]:
    """Split `http(s)://host/path` into (`scheme://host`, normalized base path)."""
    cleaned = base_url.strip().rstrip("/")
    m = _RE_BASE_URL.match(cleaned)
    if not m:
        raise ValueError(f"Invalid WebDAV URL (expected http(s)://host/path): {base_url!r}")
    return m.group(1) + m.group(2), normalize_dir(m.group(3) or "/")


def encode_path_segments(path: str) -> str:
    # Already-escaped segments are unescaped first so they are not encoded twice.
    return "/".join(
        quote(unquote(seg), safe="!~*'()") if seg else seg for seg in path.split("/")
    )


def _href_to_path(href: str) -> str:
    decoded = unquote(decode_entities(href).strip())
    no_query = decoded.split("?", 1)[0].split("#", 1)[0]
    m = _RE_ABS_URL.match(no_query)
    path = (m.group(1) or "/") if m else no_query
    return path if path.startswith("/") else "/" + path


def is_video_entry(entry: WebDavEntry) -> bool:
    return not entry.is_directory and entry.name.lower().endswith(VIDEO_EXTENSIONS)


def is_ass_entry(entry: WebDavEntry) -> bool:
    return not entry.is_directory and entry.name.lower().endswith(".ass")


def _default_session() -> Any:
    try:
        import requests  # type: ignore[import-not-found]
    except ImportError as e:
        raise RuntimeError(
            "WebDAV access requires `requests`. "
            'Install with `pip install -e ".[webdav]"`.'
        ) from e
    return requests.Session()


class WebDavClient:
    """
    Minimal WebDAV client: one-level directory listing and text upload.

    Remote paths are relative to the path part of `config.base_url`. `session` only
    needs a requests-compatible `request(method, url, data=, headers=, auth=, timeout=)`.
    """

    def __init__(
        self, config: WebDavConfig, *, session: Any | None = None, timeout: float = 30.0
    ) -> None:
        self.config = config
        self._prefix, self._base_path = split_base_url(config.base_url)
        self._session = session
        self._timeout = timeout

    @property
    def session(self) -> Any:
        if self._session is None:
            self._session = _default_session()
        return self._session

    def build_remote_file_url(self, remote_path: str) -> str:
        full = join_path(self._base_path, remote_path)
        return self._prefix + encode_path_segments(full)

    def _relative_path(self, href_path: str) -> str:
        full = normalize_dir(href_path)
        base = self._base_path
        if base == "/":
            return full
        if full == base:
            return "/"
        if full.startswith(base + "/"):
            return normalize_dir(full[len(base) :])
        return full

    def _request(
        self, method: str, remote_path: str, *, data: bytes, headers: dict[str, str]
    ) -> Any:
        url = self.build_remote_file_url(remote_path)
        auth = (
            (self.config.username, self.config.password) if self.config.username else None
        )
        resp = self.session.request(
            method,
            url,
            data=data,
            headers={"User-Agent": self.config.user_agent, **headers},
            auth=auth,
            timeout=self._timeout,
        )
        if not resp.ok:
            raise WebDavError(f"{method} failed ({resp.status_code}): {url}")
        return resp

    def list_directory(self, remote_path: str) -> list[WebDavEntry]:
        """
        Direct children of `remote_path`, directories first, then by name.

        The entry for the directory itself and anything deeper are skipped.
        """
        resp = self._request(
            "PROPFIND",
            remote_path,
            data=PROPFIND_BODY.encode("utf-8"),
            headers={"Depth": "1", "Content-Type": "application/xml; charset=utf-8"},
        )
        current = normalize_dir(remote_path)
        prefix = "/" if current == "/" else current + "/"
        entries: list[WebDavEntry] = []
        for block in _RE_RESPONSE.findall(resp.text):
            href = _RE_HREF.search(block)
            if href is None:
                continue
            rel = self._relative_path(_href_to_path(href.group(1)))
            if rel == current or not rel.startswith(prefix):
                continue
            child = rel[len(prefix) :]
            if not child or "/" in child:
                continue
            size = _RE_LENGTH.search(block)
            entries.append(
                WebDavEntry(
                    name=_basename(rel),
                    path=rel,
                    is_directory=_RE_COLLECTION.search(block) is not None,
                    size=int(size.group(1)) if size else None,
                )
            )
        entries.sort(key=lambda e: (not e.is_directory, e.name.casefold(), e.name))
        logger.info("WebDAV: %d entries in %s", len(entries), current)
        return entries

    def upload_text(
        self,
        remote_path: str,
        content: str,
        *,
        content_type: str = "text/plain; charset=utf-8",
    ) -> str:
        """Upload `content` as UTF-8 with PUT. Returns the remote file URL."""
        self._request(
            "PUT",
            remote_path,
            data=encode_output(content),
            headers={"Content-Type": content_type},
        )
        url = self.build_remote_file_url(remote_path)
        logger.info("WebDAV: uploaded %s", url)
        return url
