from __future__ import annotations

import logging
from pathlib import Path
from time import perf_counter
from typing import Iterable

from danmu2ass.config import DEFAULT_CONFIG, LayoutConfig
from danmu2ass.files import (
    file_stem_from_path,
    replace_ext,
    sanitize_filename,
    write_text_all_or_nothing,
)

from .stages import DenylistStage, LayoutStage, ParseStage, RenderStage, TimelineStage
from .types import BatchSummary, ConversionContext, ConversionResult

__all__ = [
    # API
    "ConversionPipeline",
    "convert",
    "convert_file",
    "batch_convert_directory",
    # Types
    "BatchSummary",
    "ConversionContext",
    "ConversionResult",
]

logger = logging.getLogger(__name__)


class ConversionPipeline:
    def __init__(self) -> None:
        self._stages = [
            ParseStage(),
            TimelineStage(),
            DenylistStage(),
            LayoutStage(),
            RenderStage(),
        ]

    def run(self, ctx: ConversionContext) -> ConversionResult:
        for stage in self._stages:
            stage_name = stage.__class__.__name__
            logger.info("[%s] start", stage_name)
            t0 = perf_counter()
            stage.run(ctx)
            dt = perf_counter() - t0
            logger.info("[%s] done (%.3fs)", stage_name, dt)
        return ctx.result()


def convert(
    payload: str,
    title: str,
    config: LayoutConfig = DEFAULT_CONFIG,
    denylist: Iterable[str] = (),
    *,
    skip_bad_colors: bool = False,
) -> ConversionResult:
    """
    Convert a raw comment document into ASS text.

    Stateless: every call starts from empty lanes.
    """
    ctx = ConversionContext(
        payload=payload,
        title=title,
        config=config,
        denylist=list(denylist),
        skip_bad_colors=skip_bad_colors,
    )
    return ConversionPipeline().run(ctx)


def convert_file(
    xml_path: Path,
    ass_path: Path | None = None,
    *,
    config: LayoutConfig = DEFAULT_CONFIG,
    denylist: Iterable[str] = (),
    title: str | None = None,
    skip_bad_colors: bool = False,
) -> ConversionResult:
    """Convert a local comment XML file; by default writes `<stem>.ass` next to it."""
    payload = xml_path.read_text(encoding="utf-8", errors="replace")
    if title is None:
        title = file_stem_from_path(str(xml_path))
    if ass_path is None:
        ass_path = Path(replace_ext(str(xml_path), ".ass"))

    result = convert(
        payload,
        sanitize_filename(title),
        config,
        denylist,
        skip_bad_colors=skip_bad_colors,
    )
    write_text_all_or_nothing(ass_path, result.rendered_text)
    logger.info(
        "Wrote: %s (%d/%d placed, %d filtered)",
        str(ass_path),
        result.placed_count,
        result.total_count,
        result.filtered_by_denylist_count,
    )
    return result


def _find_xml_files(directory: Path, *, recursive: bool) -> list[Path]:
    candidates = directory.rglob("*") if recursive else directory.iterdir()
    return sorted(
        p for p in candidates if p.is_file() and p.suffix.lower() == ".xml"
    )


def batch_convert_directory(
    directory: Path,
    *,
    recursive: bool = True,
    config: LayoutConfig = DEFAULT_CONFIG,
    denylist: Iterable[str] = (),
    skip_bad_colors: bool = False,
) -> BatchSummary:
    """
    Convert every `.xml` file under `directory` in place.

    A failing file is recorded in the summary and does not stop the batch.
    """
    deny = list(denylist)
    summary = BatchSummary(files=_find_xml_files(directory, recursive=recursive))
    logger.info("Batch: %d XML files under %s", len(summary.files), str(directory))

    for i, xml_path in enumerate(summary.files, start=1):
        logger.info("Batch: %d/%d %s", i, len(summary.files), str(xml_path))
        try:
            result = convert_file(
                xml_path,
                config=config,
                denylist=deny,
                skip_bad_colors=skip_bad_colors,
            )
        except Exception as e:
            logger.warning("Batch: failed %s: %s", str(xml_path), e)
            summary.failed += 1
            summary.failures[xml_path] = str(e)
            continue
        summary.succeeded += 1
        summary.total_comments += result.total_count
        summary.placed_comments += result.placed_count
    return summary
