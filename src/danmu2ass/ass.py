from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from danmu2ass.config import LayoutConfig, format_number
from danmu2ass.layout import Placement

# All three display kinds share one look; players key some behavior off the style name.
STYLE_NAMES = ("Float", "Bottom", "Top")

_STYLE_FORMAT = (
    "Format: Name, Fontname, Fontsize, PrimaryColour, SecondaryColour, OutlineColour, "
    "BackColour, Bold, Italic, Underline, StrikeOut, ScaleX, ScaleY, Spacing, Angle, "
    "BorderStyle, Outline, Shadow, Alignment, MarginL, MarginR, MarginV, Encoding"
)
_EVENT_FORMAT = (
    "Format: Layer, Start, End, Style, Name, MarginL, MarginR, MarginV, Effect, Text"
)
_CENTISECOND = Decimal("0.01")


def format_ass_time(seconds: float) -> str:
    """
    Format seconds as `H:MM:SS.CC`.

    Hours and minutes come from the floored second count; the seconds field is the
    remainder by subtraction, rounded to centiseconds with ties going up (1.125 -> 1.13).
    """
    sec_floor = math.floor(seconds)
    hours = sec_floor // 3600
    minutes = (sec_floor % 3600) // 60
    left = Decimal(seconds - hours * 3600 - minutes * 60).quantize(
        _CENTISECOND, rounding=ROUND_HALF_UP
    )
    return f"{hours}:{minutes:02d}:{left:05.2f}"


def escape_ass_text(text: str) -> str:
    # Newlines become \N. Override braces are passed through untouched.
    return text.strip().replace("\r\n", "\n").replace("\n", r"\N")


def alpha_to_ass_opacity(alpha: float) -> int:
    clamped = max(0.0, min(1.0, float(alpha)))
    return 255 - math.floor(clamped * 255)


def _bgr_hex(rgb: tuple[int, int, int]) -> str:
    r, g, b = rgb
    return f"{b:02x}{g:02x}{r:02x}"


def render_styles(config: LayoutConfig) -> str:
    a = f"{alpha_to_ass_opacity(config.background_alpha):02x}"
    bold = 1 if config.bold else 0
    lines = [
        f"Style: {name},{config.font_family},{format_number(config.font_size)},"
        f"&H{a}FFFFFF,&H00FFFFFF,&H{a}000000,&H00000000,"
        f"{bold},0,0,0,100,100,0.00,0.00,1,{format_number(config.outline_width)},"
        "0,7,0,0,0,1"
        for name in STYLE_NAMES
    ]
    return "\n".join(lines)


def render_header(title: str, config: LayoutConfig) -> str:
    title = " ".join(title.splitlines())
    return "\n".join(
        [
            "[Script Info]",
            "; Script generated by danmu2ass",
            f"Title: {title}",
            "ScriptType: v4.00+",
            f"PlayResX: {config.screen_width}",
            f"PlayResY: {config.screen_height}",
            f"Aspect Ratio: {config.screen_width}:{config.screen_height}",
            "Collisions: Normal",
            "WrapStyle: 2",
            "ScaledBorderAndShadow: yes",
            "YCbCr Matrix: TV.601",
            "",
            "[V4+ Styles]",
            _STYLE_FORMAT,
            render_styles(config),
            "",
            "[Events]",
            _EVENT_FORMAT,
        ]
    )


def render_dialogue(placement: Placement, config: LayoutConfig) -> str:
    """
    One Dialogue line: the comment moves from the right edge to fully off the left edge
    over `travel_duration` seconds at its lane's y offset.
    """
    start = placement.start
    end = start + config.travel_duration
    y = placement.y
    move = rf"\move({config.screen_width}, {y}, {-math.floor(placement.length)}, {y})"
    color = rf"\c&H{_bgr_hex(placement.comment.color)}&"
    return (
        f"Dialogue: 2,{format_ass_time(start)},{format_ass_time(end)},Float,,0,0,0,,"
        f"{{{move}{color}}}{escape_ass_text(placement.comment.text)}"
    )


def render_ass(placements: Iterable[Placement], title: str, config: LayoutConfig) -> str:
    events = [render_dialogue(p, config) for p in placements]
    return render_header(title, config) + "\n" + "\n".join(events)
