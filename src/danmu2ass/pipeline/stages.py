from __future__ import annotations

import logging

from danmu2ass.ass import render_ass
from danmu2ass.comments import parse_comments
from danmu2ass.denylist import find_denied
from danmu2ass.files import encode_output
from danmu2ass.layout import allocate_lanes, prepare_timeline
from danmu2ass.pipeline.types import ConversionContext

logger = logging.getLogger(__name__)


class ParseStage:
    def run(self, ctx: ConversionContext) -> None:
        ctx.comments = parse_comments(ctx.payload, skip_bad_colors=ctx.skip_bad_colors)
        logger.info("Parse: %d comments decoded", len(ctx.comments))


class TimelineStage:
    def run(self, ctx: ConversionContext) -> None:
        if ctx.comments is None:
            raise ValueError("Parse stage must run before timeline stage.")
        ctx.timeline = prepare_timeline(ctx.comments, ctx.config)
        # Comments before zero are not part of the conversion at all.
        ctx.timeline_count = len(ctx.timeline)
        if len(ctx.timeline) != len(ctx.comments):
            logger.info(
                "Timeline: %d comments before zero after offset %ss",
                len(ctx.comments) - len(ctx.timeline),
                ctx.config.time_offset,
            )


class DenylistStage:
    def run(self, ctx: ConversionContext) -> None:
        if ctx.timeline is None:
            raise ValueError("Timeline stage must run before denylist stage.")
        if not ctx.denylist:
            return
        kept = []
        for c in ctx.timeline:
            entry = find_denied(c.text, ctx.denylist)
            if entry is not None:
                logger.debug("Denylist: %r matched %r", entry, c.text)
                ctx.filtered_by_denylist += 1
                continue
            kept.append(c)
        ctx.timeline = kept
        logger.info("Denylist: %d comments filtered", ctx.filtered_by_denylist)


class LayoutStage:
    def run(self, ctx: ConversionContext) -> None:
        if ctx.timeline is None:
            raise ValueError("Timeline stage must run before layout stage.")
        ctx.placements, ctx.dropped = allocate_lanes(ctx.timeline, ctx.config)
        logger.info(
            "Layout: %d placed, %d dropped (%d lanes)",
            len(ctx.placements),
            ctx.dropped,
            ctx.config.lane_count,
        )


class RenderStage:
    def run(self, ctx: ConversionContext) -> None:
        if ctx.placements is None:
            raise ValueError("Layout stage must run before render stage.")
        text = render_ass(ctx.placements, ctx.title, ctx.config)
        # Lone surrogates from numeric character references end up here.
        encode_output(text)
        ctx.rendered_text = text
