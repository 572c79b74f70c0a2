from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from danmu2ass.comments import CommentRecord
from danmu2ass.config import LayoutConfig
from danmu2ass.layout import Placement


@dataclass(frozen=True)
class ConversionResult:
    rendered_text: str
    total_count: int
    placed_count: int
    filtered_by_denylist_count: int

    @property
    def dropped_count(self) -> int:
        return self.total_count - self.placed_count - self.filtered_by_denylist_count


@dataclass
class ConversionContext:
    payload: str
    title: str
    config: LayoutConfig
    denylist: list[str]
    skip_bad_colors: bool = False
    comments: list[CommentRecord] | None = None
    timeline: list[CommentRecord] | None = None
    timeline_count: int = 0
    filtered_by_denylist: int = 0
    placements: list[Placement] | None = None
    dropped: int = 0
    rendered_text: str | None = None

    def result(self) -> ConversionResult:
        if self.timeline is None or self.placements is None or self.rendered_text is None:
            raise ValueError("Conversion has not finished.")
        return ConversionResult(
            rendered_text=self.rendered_text,
            total_count=self.timeline_count,
            placed_count=len(self.placements),
            filtered_by_denylist_count=self.filtered_by_denylist,
        )


@dataclass
class BatchSummary:
    files: list[Path] = field(default_factory=list)
    succeeded: int = 0
    failed: int = 0
    total_comments: int = 0
    placed_comments: int = 0
    failures: dict[Path, str] = field(default_factory=dict)
