from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

logger = logging.getLogger(__name__)

HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    ),
    "Referer": "https://www.bilibili.com/",
}

VIEW_API = "https://api.bilibili.com/x/web-interface/view"
SEASON_API = "https://api.bilibili.com/pgc/view/web/season"
COMMENT_XML_URL = "https://comment.bilibili.com/{cid}.xml"

_RE_BVID = re.compile(r"(BV[0-9A-Za-z]+)", re.IGNORECASE)
_RE_EPID = re.compile(r"ep(\d+)", re.IGNORECASE)


class BilibiliError(RuntimeError):
    pass


@dataclass(frozen=True)
class VideoRef:
    bvid: str | None = None
    epid: str | None = None


@dataclass(frozen=True)
class VideoMeta:
    cid: str
    title: str


def parse_video_ref(raw: str) -> VideoRef:
    """
    Find a BV id or an `ep<digits>` episode id in a URL or free text.

    A BV id wins when both are present.
    """
    m = _RE_BVID.search(raw)
    if m:
        return VideoRef(bvid=m.group(1))
    m = _RE_EPID.search(raw)
    if m:
        return VideoRef(epid=m.group(1))
    raise ValueError(f"No BV or ep id found in: {raw!r}")


def _default_session() -> Any:
    try:
        import requests  # type: ignore[import-not-found]
    except ImportError as e:
        raise RuntimeError(
            "Fetching from bilibili requires `requests`. "
            'Install with `pip install -e ".[bilibili]"`.'
        ) from e
    return requests.Session()


class BilibiliClient:
    """
    Thin client for the two metadata APIs and the comment XML endpoint.

    `session` only needs a requests-compatible `get(url, params=, headers=, timeout=)`.
    """

    def __init__(self, *, session: Any | None = None, timeout: float = 20.0) -> None:
        self._session = session
        self._timeout = timeout

    @property
    def session(self) -> Any:
        if self._session is None:
            self._session = _default_session()
        return self._session

    def _get(
        self, url: str, *, params: dict[str, str] | None = None, timeout: float
    ) -> Any:
        resp = self.session.get(url, params=params, headers=HEADERS, timeout=timeout)
        if not resp.ok:
            raise BilibiliError(f"Request failed ({resp.status_code}): {url}")
        return resp

    def _get_json(self, url: str, *, params: dict[str, str]) -> dict[str, Any]:
        data = self._get(url, params=params, timeout=self._timeout).json()
        if not isinstance(data, dict) or data.get("code") != 0:
            raise BilibiliError(f"API returned an error: {data!r}")
        return data

    def fetch_by_bvid(self, bvid: str) -> VideoMeta:
        data = self._get_json(VIEW_API, params={"bvid": bvid})
        info = data.get("data")
        if not isinstance(info, dict):
            raise BilibiliError(f"Missing video data for {bvid}: {data!r}")
        return VideoMeta(cid=str(info["cid"]), title=str(info["title"]))

    def fetch_by_epid(self, epid: str) -> VideoMeta:
        data = self._get_json(SEASON_API, params={"ep_id": epid})
        season = data.get("result")
        if not isinstance(season, dict):
            raise BilibiliError(f"Missing season data for ep{epid}: {data!r}")
        episodes = season.get("episodes")
        if not isinstance(episodes, list):
            episodes = []
        target = next((ep for ep in episodes if str(ep.get("id")) == str(epid)), None)
        if target is None:
            raise BilibiliError(f"Episode ep{epid} not found in its season.")
        title = " - ".join(
            str(x if x is not None else "")
            for x in (season.get("title"), target.get("title"), target.get("long_title"))
        )
        return VideoMeta(cid=str(target["cid"]), title=title)

    def resolve_meta(self, raw: str) -> VideoMeta:
        ref = parse_video_ref(raw)
        if ref.bvid is not None:
            meta = self.fetch_by_bvid(ref.bvid)
        else:
            meta = self.fetch_by_epid(str(ref.epid))
        logger.info("Bilibili: cid=%s title=%s", meta.cid, meta.title)
        return meta

    def fetch_comment_xml(self, cid: str) -> str:
        url = COMMENT_XML_URL.format(cid=cid)
        resp = self._get(url, timeout=max(self._timeout, 30.0))
        return resp.content.decode("utf-8", errors="replace")
