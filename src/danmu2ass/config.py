from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Iterable, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LayoutConfig:
    screen_width: int = 1920
    screen_height: int = 1080
    font_family: str = "PingFang SC"
    font_size: int = 56
    travel_duration: float = 15
    width_scale: float = 1.2
    horizontal_gap: float = 20
    lane_height: int = 32
    scroll_fraction: float = 0.2
    background_alpha: float = 0.7
    bold: bool = True
    outline_width: float = 0.8
    time_offset: float = 0

    @property
    def lane_count(self) -> int:
        return max(
            1, math.floor(self.scroll_fraction * self.screen_height / self.lane_height)
        )


DEFAULT_CONFIG = LayoutConfig()
CLI_DEFAULT_CONFIG = LayoutConfig()
WEBUI_DEFAULT_CONFIG = LayoutConfig(travel_duration=10, lane_height=46)

PRESETS: dict[str, LayoutConfig] = {
    "default": DEFAULT_CONFIG,
    "cli": CLI_DEFAULT_CONFIG,
    "webui": WEBUI_DEFAULT_CONFIG,
}

# Short names used by settings files written by older tools.
_ALIASES = {
    "width": "screen_width",
    "height": "screen_height",
    "font": "font_family",
    "fontSize": "font_size",
    "duration": "travel_duration",
    "laneSize": "lane_height",
    "widthRatio": "width_scale",
    "horizontalGap": "horizontal_gap",
    "floatPercentage": "scroll_fraction",
    "alpha": "background_alpha",
    "outline": "outline_width",
    "timeOffset": "time_offset",
}

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


def format_number(value: float) -> str:
    # Integral floats print without a trailing ".0" (56.0 -> "56", 0.8 -> "0.8").
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _parse_number(value: Any, fallback: float) -> float:
    if value is None or isinstance(value, bool):
        return fallback
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return fallback
    try:
        n = float(value)
    except (TypeError, ValueError):
        return fallback
    if not math.isfinite(n):
        return fallback
    return n


def _parse_bool(value: Any, fallback: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return bool(value)
    if isinstance(value, str):
        key = value.strip().lower()
        if key in _TRUE:
            return True
        if key in _FALSE:
            return False
    return fallback


def _normalize_keys(raw: Mapping[str, Any]) -> dict[str, Any]:
    known = {f.name for f in fields(LayoutConfig)}
    out: dict[str, Any] = {}
    for key, value in raw.items():
        name = _ALIASES.get(key, key)
        if name not in known:
            logger.debug("Config: ignoring unknown key %r", key)
            continue
        out[name] = value
    return out


def build_config(
    raw: Mapping[str, Any] | None = None, *, base: LayoutConfig = DEFAULT_CONFIG
) -> LayoutConfig:
    """
    Build a validated `LayoutConfig` from loosely typed input (strings or numbers).

    Missing keys keep the value from `base`. Invalid values fall back to the default
    for that field; out-of-range values are clamped. Never raises.
    """
    values = _normalize_keys(raw or {})
    d = DEFAULT_CONFIG

    def num(name: str) -> float:
        if name not in values:
            return getattr(base, name)
        return _parse_number(values[name], getattr(d, name))

    font = values.get("font_family", base.font_family)
    font = str(font).strip() if font is not None else ""

    return LayoutConfig(
        screen_width=max(1, math.floor(num("screen_width"))),
        screen_height=max(1, math.floor(num("screen_height"))),
        font_family=font or d.font_family,
        font_size=max(1, math.floor(num("font_size"))),
        travel_duration=max(0.1, num("travel_duration")),
        width_scale=max(0.1, num("width_scale")),
        horizontal_gap=max(0, num("horizontal_gap")),
        lane_height=max(1, math.floor(num("lane_height"))),
        scroll_fraction=max(0, min(1, num("scroll_fraction"))),
        background_alpha=max(0, min(1, num("background_alpha"))),
        bold=_parse_bool(values["bold"], d.bold) if "bold" in values else base.bold,
        outline_width=max(0, num("outline_width")),
        time_offset=num("time_offset"),
    )


def config_to_input(config: LayoutConfig) -> dict[str, Any]:
    """String-valued form of a config, suitable for settings files and forms."""
    out: dict[str, Any] = {}
    for f in fields(LayoutConfig):
        value = getattr(config, f.name)
        if isinstance(value, bool):
            out[f.name] = value
        elif isinstance(value, (int, float)):
            out[f.name] = format_number(value)
        else:
            out[f.name] = str(value)
    return out


def load_config_file(path: Path, *, base: LayoutConfig = DEFAULT_CONFIG) -> LayoutConfig:
    data = json.loads(path.read_text(encoding="utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"Expected a JSON object in config file: {path}")
    return build_config(data, base=base)


def override_config(config: LayoutConfig, **overrides: Any) -> LayoutConfig:
    """Apply loosely typed overrides (`None` means "not given") on top of `config`."""
    given = {k: v for k, v in overrides.items() if v is not None}
    if not given:
        return config
    return build_config(given, base=config)


def summarize_config(config: LayoutConfig, denylist: Iterable[str] = ()) -> str:
    return (
        f"{config.screen_width}x{config.screen_height} | "
        f"{config.font_family} {format_number(config.font_size)}px | "
        f"{format_number(config.travel_duration)}s | "
        f"denylist {len(list(denylist))}"
    )

