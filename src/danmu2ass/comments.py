from __future__ import annotations

import logging
import math
import re
from dataclasses import dataclass
from typing import Literal, cast

logger = logging.getLogger(__name__)

CommentKind = Literal["scroll", "top", "bottom", "reverse"]

_KIND_BY_CODE: dict[int, CommentKind] = {
    1: "scroll",
    4: "bottom",
    5: "top",
    6: "reverse",
}

# One <d p="..."> element. Other attributes may appear before or after `p`.
_RE_COMMENT = re.compile(
    r"<d\s+(?:[^>]*?\s)?p=(?P<q>[\"'])(?P<attrs>.*?)(?P=q)[^>]*>(?P<body>.*?)</d\s*>",
    re.DOTALL,
)
_RE_ENTITY = re.compile(r"&(amp|lt|gt|quot|#39|#[0-9]+|#[xX][0-9a-fA-F]+);")

_NAMED_ENTITIES = {
    "amp": "&",
    "lt": "<",
    "gt": ">",
    "quot": '"',
    "#39": "'",
}

# Largest value of the decimal-grouped encoding (R*10^6 + G*10^3 + B).
_GROUPED_COLOR_MAX = 255255255


class ColorDecodeError(ValueError):
    """A color value matches neither the packed nor the decimal-grouped encoding."""


@dataclass(frozen=True)
class CommentRecord:
    time_offset: float
    text: str
    kind: CommentKind
    font_size: float
    color: tuple[int, int, int]


def _entity_to_text(m: re.Match[str]) -> str:
    name = m.group(1)
    named = _NAMED_ENTITIES.get(name)
    if named is not None:
        return named
    if name[1] in "xX":
        code = int(name[2:], 16)
    else:
        code = int(name[1:])
    try:
        return chr(code)
    except (ValueError, OverflowError):
        # Out of Unicode range: keep the reference as literal text.
        return m.group(0)


def decode_entities(text: str) -> str:
    """
    Reverse the minimal XML escaping used by comment payloads.

    Single pass, so `&amp;lt;` decodes to `&lt;` and not to `<`.
    """
    return _RE_ENTITY.sub(_entity_to_text, text)


def decode_color(value: float) -> tuple[int, int, int]:
    """
    Decode a numeric color into an RGB triple.

    The value is viewed as an unsigned 32-bit word. Packed 0xRRGGBB is used when its
    top byte is zero; otherwise values up to 255255255 (negatives included) are read as
    decimal groups `R*10^6 + G*10^3 + B`. Anything else raises `ColorDecodeError`.
    """
    n = int(value)
    word = n % 2**32
    if (word >> 24) == 0:
        return ((word >> 16) & 0xFF, (word >> 8) & 0xFF, word & 0xFF)
    if n <= _GROUPED_COLOR_MAX:
        k = 1000
        return (_group(n // k // k), _group(n // k), _group(n))
    raise ColorDecodeError(f"Unsupported color value: {value!r}")


def _group(n: int) -> int:
    # Remainder keeps the sign of `n`, then the low byte of its two's complement.
    return int(math.fmod(n, 1000)) & 0xFF


def _finite(raw: str) -> float | None:
    # A blank field reads as 0.
    if not raw.strip():
        return 0.0
    try:
        v = float(raw)
    except ValueError:
        return None
    if not math.isfinite(v):
        return None
    return v


def decode_comment(attrs: str, body: str) -> CommentRecord | None:
    """
    Decode one `p` attribute string plus its escaped text body.

    Returns `None` for routine malformed records (too few fields, non-numeric fields,
    unknown type codes). Unsupported color values raise `ColorDecodeError` instead,
    since they point at a corrupt source rather than noise; callers decide whether to
    abort or skip.
    """
    parts = attrs.split(",")
    if len(parts) < 4:
        return None

    values = [_finite(p) for p in parts[:4]]
    if any(v is None for v in values):
        return None
    time_offset, type_code, font_size, color_value = cast("list[float]", values)

    kind = _KIND_BY_CODE.get(int(type_code)) if type_code.is_integer() else None
    if kind is None:
        return None

    return CommentRecord(
        time_offset=time_offset,
        text=decode_entities(body),
        kind=kind,
        font_size=font_size,
        color=decode_color(color_value),
    )


def parse_comments(payload: str, *, skip_bad_colors: bool = False) -> list[CommentRecord]:
    """
    Extract and decode every comment element in a raw comment-container document.

    Only the local `<d p="...">text</d>` pattern is recognized; everything else in the
    document is ignored. Malformed elements are skipped.

    A `ColorDecodeError` aborts the whole parse unless `skip_bad_colors` is set.
    This differs on purpose from the silent skip used for other malformed fields.
    """
    out: list[CommentRecord] = []
    skipped = 0
    for m in _RE_COMMENT.finditer(payload):
        try:
            rec = decode_comment(m.group("attrs"), m.group("body"))
        except ColorDecodeError:
            if not skip_bad_colors:
                raise
            logger.debug("Comments: dropping record with bad color: %s", m.group("attrs"))
            rec = None
        if rec is None:
            skipped += 1
            continue
        out.append(rec)
    if skipped:
        logger.debug("Comments: skipped %d malformed elements", skipped)
    return out
