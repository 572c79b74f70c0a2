from __future__ import annotations

from typing import Any

import pytest

from danmu2ass.external.bilibili import (
    HEADERS,
    BilibiliClient,
    BilibiliError,
    VideoRef,
    parse_video_ref,
)


class FakeResponse:
    def __init__(self, *, status: int = 200, payload: Any = None, content: bytes = b"") -> None:
        self.status_code = status
        self.ok = 200 <= status < 300
        self._payload = payload
        self.content = content

    def json(self) -> Any:
        return self._payload


class FakeSession:
    def __init__(self, routes: dict[str, FakeResponse]) -> None:
        self.routes = routes
        self.calls: list[tuple[str, dict[str, str] | None, dict[str, str]]] = []

    def get(self, url: str, *, params=None, headers=None, timeout=None) -> FakeResponse:
        self.calls.append((url, params, headers))
        return self.routes[url]


def test_parse_video_ref() -> None:
    assert parse_video_ref("https://www.bilibili.com/video/BV1xx411c7mD?p=1") == VideoRef(
        bvid="BV1xx411c7mD"
    )
    assert parse_video_ref("bv1AB") == VideoRef(bvid="bv1AB")
    assert parse_video_ref("https://www.bilibili.com/bangumi/play/ep12345") == VideoRef(
        epid="12345"
    )
    with pytest.raises(ValueError):
        parse_video_ref("https://example.com/watch")


def test_resolve_meta_by_bvid_sends_browser_headers() -> None:
    session = FakeSession(
        {
            "https://api.bilibili.com/x/web-interface/view": FakeResponse(
                payload={"code": 0, "data": {"cid": 998, "title": "视频"}}
            )
        }
    )
    meta = BilibiliClient(session=session).resolve_meta("BV1xx411c7mD")
    assert (meta.cid, meta.title) == ("998", "视频")
    url, params, headers = session.calls[0]
    assert params == {"bvid": "BV1xx411c7mD"}
    assert headers == HEADERS
    assert headers["Referer"] == "https://www.bilibili.com/"


def test_resolve_meta_by_epid_builds_title() -> None:
    session = FakeSession(
        {
            "https://api.bilibili.com/pgc/view/web/season": FakeResponse(
                payload={
                    "code": 0,
                    "result": {
                        "title": "番剧",
                        "episodes": [
                            {"id": 1, "cid": 10, "title": "1", "long_title": "开始"},
                            {"id": 2, "cid": 20, "title": "2", "long_title": None},
                        ],
                    },
                }
            )
        }
    )
    client = BilibiliClient(session=session)
    meta = client.resolve_meta("ep2")
    assert meta.cid == "20"
    assert meta.title == "番剧 - 2 - "
    with pytest.raises(BilibiliError):
        client.resolve_meta("ep3")


def test_api_error_code_raises() -> None:
    session = FakeSession(
        {
            "https://api.bilibili.com/x/web-interface/view": FakeResponse(
                payload={"code": -404, "message": "啥都木有"}
            )
        }
    )
    with pytest.raises(BilibiliError):
        BilibiliClient(session=session).fetch_by_bvid("BV1")


def test_fetch_comment_xml() -> None:
    xml = '<i><d p="1,1,25,255">你好</d></i>'
    session = FakeSession(
        {
            "https://comment.bilibili.com/998.xml": FakeResponse(content=xml.encode("utf-8")),
            "https://comment.bilibili.com/999.xml": FakeResponse(status=404),
        }
    )
    client = BilibiliClient(session=session)
    assert client.fetch_comment_xml("998") == xml
    with pytest.raises(BilibiliError):
        client.fetch_comment_xml("999")
