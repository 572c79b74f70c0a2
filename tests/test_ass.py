from __future__ import annotations

from danmu2ass.ass import (
    alpha_to_ass_opacity,
    escape_ass_text,
    format_ass_time,
    render_ass,
    render_dialogue,
    render_styles,
)
from danmu2ass.comments import CommentRecord
from danmu2ass.config import LayoutConfig
from danmu2ass.layout import Placement


def _placement(text: str, *, start: float, length: float, lane: int = 0) -> Placement:
    comment = CommentRecord(
        time_offset=start, text=text, kind="scroll", font_size=25, color=(255, 0, 128)
    )
    return Placement(comment=comment, lane=lane, start=start, length=length, y=lane * 32)


def test_format_ass_time() -> None:
    assert format_ass_time(0) == "0:00:00.00"
    assert format_ass_time(3661.5) == "1:01:01.50"
    assert format_ass_time(59.25) == "0:00:59.25"
    assert format_ass_time(600.04) == "0:10:00.04"
    assert format_ass_time(36000) == "10:00:00.00"


def test_format_ass_time_rounds_ties_up() -> None:
    assert format_ass_time(1.125) == "0:00:01.13"
    assert format_ass_time(0.375) == "0:00:00.38"
    # 1.005 is stored just below the tie.
    assert format_ass_time(1.005) == "0:00:01.00"
    assert format_ass_time(59.999) == "0:00:60.00"


def test_escape_ass_text_trims_and_breaks_lines() -> None:
    assert escape_ass_text("  hello\nworld \n") == r"hello\Nworld"
    assert escape_ass_text("a\r\nb") == r"a\Nb"
    assert escape_ass_text("{keep}") == "{keep}"


def test_alpha_to_ass_opacity_clamps() -> None:
    assert alpha_to_ass_opacity(0) == 255
    assert alpha_to_ass_opacity(1) == 0
    assert alpha_to_ass_opacity(0.7) == 77
    assert alpha_to_ass_opacity(-3) == 255
    assert alpha_to_ass_opacity(9) == 0


def test_render_styles_three_names_same_look() -> None:
    lines = render_styles(LayoutConfig()).splitlines()
    assert lines == [
        f"Style: {name},PingFang SC,56,&H4dFFFFFF,&H00FFFFFF,&H4d000000,&H00000000,"
        "1,0,0,0,100,100,0.00,0.00,1,0.8,0,7,0,0,0,1"
        for name in ("Float", "Bottom", "Top")
    ]


def test_render_styles_without_bold_and_integral_outline() -> None:
    line = render_styles(LayoutConfig(bold=False, outline_width=2.0)).splitlines()[0]
    assert ",0,0,0,0,100,100,0.00,0.00,1,2,0,7," in line


def test_render_dialogue_move_and_reversed_color() -> None:
    line = render_dialogue(_placement(" a\nb ", start=1.5, length=134.4), LayoutConfig())
    assert line == (
        r"Dialogue: 2,0:00:01.50,0:00:16.50,Float,,0,0,0,,"
        r"{\move(1920, 0, -134, 0)\c&H8000ff&}a\Nb"
    )


def test_render_dialogue_uses_lane_offset() -> None:
    line = render_dialogue(_placement("x", start=0, length=10.9, lane=3), LayoutConfig())
    assert r"{\move(1920, 96, -10, 96)" in line


def test_render_ass_sections_in_order() -> None:
    cfg = LayoutConfig(screen_width=1280, screen_height=720)
    ass = render_ass(
        [_placement("one", start=0, length=10), _placement("two", start=1, length=10)],
        "My\nTitle",
        cfg,
    )
    lines = ass.splitlines()
    assert lines[0] == "[Script Info]"
    assert "Title: My Title" in lines
    assert "PlayResX: 1280" in lines
    assert "PlayResY: 720" in lines
    assert "Aspect Ratio: 1280:720" in lines
    assert lines.index("[V4+ Styles]") < lines.index("[Events]")
    assert lines[lines.index("[Events]") + 1].startswith("Format: Layer, Start, End")
    dialogues = [ln for ln in lines if ln.startswith("Dialogue:")]
    assert [d.rsplit("}", 1)[1] for d in dialogues] == ["one", "two"]
    assert not ass.endswith("\n")


def test_render_ass_without_events_ends_after_format_line() -> None:
    ass = render_ass([], "t", LayoutConfig())
    assert ass.endswith("MarginV, Effect, Text\n")
