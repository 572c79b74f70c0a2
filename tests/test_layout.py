from __future__ import annotations

import pytest

from danmu2ass.comments import CommentKind, CommentRecord
from danmu2ass.config import LayoutConfig
from danmu2ass.layout import (
    Clear,
    Collides,
    Lane,
    LaneAllocator,
    PendingClear,
    allocate_lanes,
    check_collision,
    estimate_width,
    prepare_timeline,
    weighted_char_count,
)


def _c(t: float, text: str = "ab", kind: CommentKind = "scroll") -> CommentRecord:
    return CommentRecord(
        time_offset=t, text=text, kind=kind, font_size=25, color=(255, 255, 255)
    )


# width == 2 px per ASCII char, 100 px screen, 10 s to cross, no gap.
SMALL = LayoutConfig(
    screen_width=100,
    font_size=3,
    width_scale=1.0,
    travel_duration=10,
    horizontal_gap=0,
)


def test_weighted_char_count() -> None:
    assert weighted_char_count("ab") == 4
    assert weighted_char_count("测试") == 6
    assert weighted_char_count("a测") == 5


def test_estimate_width_uses_font_size_and_scale() -> None:
    cfg = LayoutConfig(font_size=56, width_scale=1.2)
    assert estimate_width(_c(0, "abc"), cfg) == pytest.approx(134.4)
    assert estimate_width(_c(0, "ab"), SMALL) == pytest.approx(4.0)


def test_check_collision_clear_when_shorter_and_gap_open() -> None:
    lane = Lane(index=0, last_start=0, last_length=10)
    out = check_collision(lane, start=5, length=10, config=SMALL)
    assert isinstance(out, Clear)
    assert out.margin_px == pytest.approx(45)


def test_check_collision_pending_clear_for_faster_candidate() -> None:
    lane = Lane(index=0, last_start=0, last_length=10)
    out = check_collision(lane, start=5, length=20, config=SMALL)
    assert isinstance(out, PendingClear)
    # v2 = 12 px/s, head at 60 px when the occupant leaves.
    assert out.margin_px == pytest.approx(40)


def test_check_collision_faster_candidate_catches_up() -> None:
    lane = Lane(index=0, last_start=0, last_length=10)
    out = check_collision(lane, start=1, length=20, config=SMALL)
    assert isinstance(out, Collides)
    assert out.min_delay_s == pytest.approx((108 - 100) / 12)


def test_check_collision_gap_not_open_shorter_candidate() -> None:
    lane = Lane(index=0, last_start=0, last_length=10)
    out = check_collision(lane, start=0.5, length=10, config=SMALL)
    assert isinstance(out, Collides)
    assert out.min_delay_s == pytest.approx(4.5 / 11)


def test_check_collision_gap_not_open_faster_candidate() -> None:
    lane = Lane(index=0, last_start=0, last_length=10)
    out = check_collision(lane, start=0.5, length=20, config=SMALL)
    assert isinstance(out, Collides)
    assert out.min_delay_s == pytest.approx((10 - 100 / 12) - 0.5)


def test_prepare_timeline_offsets_normalizes_and_sorts_stably() -> None:
    cfg = LayoutConfig(time_offset=-1.0)
    comments = [_c(3, "c"), _c(0.5, "neg"), _c(2, "a", "top"), _c(2, "b", "bottom")]
    out = prepare_timeline(comments, cfg)
    assert [c.text for c in out] == ["a", "b", "c"]
    assert [c.time_offset for c in out] == [1.0, 1.0, 2.0]
    assert all(c.kind == "scroll" for c in out)


def test_three_simultaneous_comments_in_two_lanes() -> None:
    cfg = LayoutConfig(screen_height=128, scroll_fraction=0.5, lane_height=32)
    assert cfg.lane_count == 2

    placements, dropped = allocate_lanes([_c(0), _c(0), _c(0)], cfg)
    assert dropped == 0
    assert [p.lane for p in placements] == [0, 1, 0]
    assert [p.y for p in placements] == [0, 32, 0]
    assert placements[0].start == 0
    assert placements[1].start == 0

    length = estimate_width(_c(0), cfg)
    v1 = (cfg.screen_width + length) / cfg.travel_duration
    delay = (cfg.horizontal_gap + length) / v1
    third = placements[2]
    assert isinstance(third.outcome, Collides)
    assert third.outcome.min_delay_s == pytest.approx(delay)
    assert third.start == pytest.approx(delay + 0.01)
    assert third.shifted_by == pytest.approx(delay + 0.01)
    assert third.comment.time_offset == pytest.approx(delay + 0.01)


def test_collision_beyond_tolerance_is_dropped() -> None:
    cfg = LayoutConfig(screen_height=32, scroll_fraction=1.0, lane_height=32)
    assert cfg.lane_count == 1

    placements, dropped = allocate_lanes([_c(0), _c(0), _c(0)], cfg)
    assert len(placements) == 2
    assert dropped == 1


def test_placements_never_collide_within_a_lane() -> None:
    cfg = LayoutConfig(screen_height=96, scroll_fraction=1.0, lane_height=32)
    texts = ["短", "a much longer comment here", "ok", "测试测试测试", "x", "2333333"]
    comments = [_c(i * 0.3, texts[i % len(texts)]) for i in range(60)]
    placements, dropped = allocate_lanes(comments, cfg)
    assert len(placements) + dropped == len(comments)

    last: dict[int, Lane] = {}
    for p in placements:
        prev = last.get(p.lane)
        if prev is not None:
            out = check_collision(prev, start=p.start, length=p.length, config=cfg)
            assert not (isinstance(out, Collides) and out.min_delay_s > 0)
        last[p.lane] = Lane(index=p.lane, last_start=p.start, last_length=p.length)


def test_lane_allocator_prefers_lowest_free_lane() -> None:
    cfg = LayoutConfig(screen_height=96, scroll_fraction=1.0, lane_height=32)
    allocator = LaneAllocator(cfg)
    first = allocator.place(_c(0))
    # Long after the first one left the screen, lane 0 is clear again.
    second = allocator.place(_c(100))
    assert first is not None and second is not None
    assert (first.lane, second.lane) == (0, 0)
    assert isinstance(second.outcome, Clear)
    assert allocator.lanes[1] is None
