from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path

from danmu2ass.config import (
    PRESETS,
    LayoutConfig,
    load_config_file,
    override_config,
    summarize_config,
)
from danmu2ass.denylist import load_denylist
from danmu2ass.files import sanitize_filename, write_text_all_or_nothing
from danmu2ass.pipeline import (
    ConversionResult,
    batch_convert_directory,
    convert,
    convert_file,
)


def _add_layout_args(p: argparse.ArgumentParser) -> None:
    p.add_argument(
        "--preset",
        choices=sorted(PRESETS),
        default="default",
        help="Base settings preset (default: %(default)s).",
    )
    p.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON settings file applied on top of the preset.",
    )
    p.add_argument(
        "--denylist",
        type=Path,
        default=None,
        help="Text file with one blocked substring per line.",
    )
    p.add_argument(
        "--skip-bad-colors",
        action="store_true",
        help="Drop comments with unsupported color values instead of failing.",
    )

    # Per-field overrides. Values are validated like settings files: invalid input
    # falls back to the default for that field.
    g = p.add_argument_group("layout overrides")
    g.add_argument("--width", default=None, help="Canvas width in px.")
    g.add_argument("--height", default=None, help="Canvas height in px.")
    g.add_argument("--font", default=None, help="Font family.")
    g.add_argument("--font-size", default=None, help="Font size in px.")
    g.add_argument(
        "--duration", default=None, help="Seconds a comment takes to cross the screen."
    )
    g.add_argument("--lane-size", default=None, help="Lane height in px.")
    g.add_argument("--width-ratio", default=None, help="Width estimate scale factor.")
    g.add_argument(
        "--horizontal-gap", default=None, help="Minimum gap between comments in px."
    )
    g.add_argument(
        "--float-percentage",
        default=None,
        help="Fraction of the screen height used for lanes (0-1).",
    )
    g.add_argument("--alpha", default=None, help="Background transparency (0-1).")
    g.add_argument("--outline", default=None, help="Outline width.")
    g.add_argument(
        "--time-offset", default=None, help="Seconds added to every comment."
    )
    g.add_argument(
        "--bold",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Bold text (default: from preset).",
    )


def _add_webdav_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--url", required=True, help="WebDAV base URL, http(s)://host/path.")
    p.add_argument("--user", default="", help="WebDAV user name.")
    p.add_argument(
        "--password",
        default=os.environ.get("DANMU2ASS_WEBDAV_PASSWORD", ""),
        help="WebDAV password (default: $DANMU2ASS_WEBDAV_PASSWORD).",
    )


def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="danmu2ass")
    verbosity = p.add_mutually_exclusive_group()
    verbosity.add_argument("-v", "--verbose", action="store_true")
    verbosity.add_argument("-q", "--quiet", action="store_true")
    sub = p.add_subparsers(dest="cmd", required=True)

    conv = sub.add_parser("convert", help="Convert a local comment XML file to ASS.")
    conv.add_argument("--input", required=True, type=Path, help="Comment XML path.")
    conv.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Output .ass path (default: input path with .ass extension).",
    )
    conv.add_argument(
        "--title", default=None, help="Script title (default: input file stem)."
    )
    _add_layout_args(conv)

    batch = sub.add_parser(
        "batch", help="Convert every .xml file in a directory, writing .ass beside each."
    )
    batch.add_argument("--dir", required=True, type=Path)
    batch.add_argument(
        "--recursive",
        action=argparse.BooleanOptionalAction,
        default=True,
        help="Descend into subdirectories (default: enabled).",
    )
    _add_layout_args(batch)

    fetch = sub.add_parser(
        "fetch",
        help="Download comments for a BV/ep id or URL (requires the bilibili extra).",
    )
    fetch.add_argument("--ref", required=True, help="BV id, ep id, or a video URL.")
    fetch.add_argument("--output-xml", type=Path, default=None)
    fetch.add_argument(
        "--output-ass",
        type=Path,
        default=None,
        help="Output .ass path (default: <title>.ass when --output-xml is not given).",
    )
    _add_layout_args(fetch)

    ls = sub.add_parser("ls", help="List a WebDAV directory (requires the webdav extra).")
    _add_webdav_args(ls)
    ls.add_argument("--path", default="/", help="Remote directory (default: /).")

    upload = sub.add_parser(
        "upload", help="Upload a subtitle file to WebDAV (requires the webdav extra)."
    )
    _add_webdav_args(upload)
    upload.add_argument("--input", required=True, type=Path, help="Local .ass file.")
    upload.add_argument(
        "--remote-dir",
        default="/",
        help="Remote directory; the file keeps its local name (default: /).",
    )

    return p


def _load_layout(args: argparse.Namespace) -> tuple[LayoutConfig, list[str]]:
    config = PRESETS[args.preset]
    if args.config is not None:
        config = load_config_file(args.config, base=config)
    config = override_config(
        config,
        screen_width=args.width,
        screen_height=args.height,
        font_family=args.font,
        font_size=args.font_size,
        travel_duration=args.duration,
        lane_height=args.lane_size,
        width_scale=args.width_ratio,
        horizontal_gap=args.horizontal_gap,
        scroll_fraction=args.float_percentage,
        background_alpha=args.alpha,
        outline_width=args.outline,
        time_offset=args.time_offset,
        bold=args.bold,
    )
    denylist = load_denylist(args.denylist) if args.denylist is not None else []
    return config, denylist


def _print_result(result: ConversionResult, output: Path) -> None:
    print(f"ASS: {output}")
    print(f"comments: {result.total_count}")
    print(f"placed: {result.placed_count}")
    print(f"denylist filtered: {result.filtered_by_denylist_count}")
    print(f"dropped: {result.dropped_count}")


def main(argv: list[str] | None = None) -> int:
    p = build_parser()
    args = p.parse_args(argv)

    level = logging.INFO
    if args.verbose:
        level = logging.DEBUG
    elif args.quiet:
        level = logging.WARNING
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    try:
        return _run(args)
    except (ValueError, RuntimeError, OSError) as e:
        # Covers ColorDecodeError, OutputEncodingError and the remote client errors.
        raise SystemExit(f"error: {e}") from e


def _run(args: argparse.Namespace) -> int:
    if args.cmd in ("ls", "upload"):
        return _run_webdav(args)

    config, denylist = _load_layout(args)
    logging.getLogger(__name__).info("Settings: %s", summarize_config(config, denylist))

    if args.cmd == "convert":
        output = args.output or args.input.with_suffix(".ass")
        result = convert_file(
            args.input,
            output,
            config=config,
            denylist=denylist,
            title=args.title,
            skip_bad_colors=args.skip_bad_colors,
        )
        _print_result(result, output)
        return 0
    if args.cmd == "batch":
        summary = batch_convert_directory(
            args.dir,
            recursive=args.recursive,
            config=config,
            denylist=denylist,
            skip_bad_colors=args.skip_bad_colors,
        )
        print(f"XML files: {len(summary.files)}")
        print(f"succeeded: {summary.succeeded}")
        print(f"failed: {summary.failed}")
        print(f"comments: {summary.total_comments}")
        print(f"placed: {summary.placed_comments}")
        return 0 if summary.failed == 0 else 1
    if args.cmd == "fetch":
        from danmu2ass.external.bilibili import BilibiliClient

        client = BilibiliClient()
        meta = client.resolve_meta(args.ref)
        xml = client.fetch_comment_xml(meta.cid)
        title = sanitize_filename(meta.title)

        if args.output_xml is not None:
            write_text_all_or_nothing(args.output_xml, xml)
            print(f"XML: {args.output_xml}")
        output_ass = args.output_ass
        if output_ass is None and args.output_xml is None:
            output_ass = Path(f"{title}.ass")
        if output_ass is not None:
            result = convert(
                xml, title, config, denylist, skip_bad_colors=args.skip_bad_colors
            )
            write_text_all_or_nothing(output_ass, result.rendered_text)
            _print_result(result, output_ass)
        return 0

    raise AssertionError(f"unhandled cmd: {args.cmd}")


def _run_webdav(args: argparse.Namespace) -> int:
    from danmu2ass.external.webdav import WebDavClient, WebDavConfig, join_path

    client = WebDavClient(
        WebDavConfig(base_url=args.url, username=args.user, password=args.password)
    )
    if args.cmd == "ls":
        for entry in client.list_directory(args.path):
            if entry.is_directory:
                print(f"{entry.name}/")
            else:
                size = "" if entry.size is None else f"\t{entry.size}"
                print(f"{entry.name}{size}")
        return 0
    if args.cmd == "upload":
        text = args.input.read_text(encoding="utf-8")
        remote = join_path(args.remote_dir, args.input.name)
        url = client.upload_text(remote, text)
        print(f"uploaded: {url}")
        return 0

    raise AssertionError(f"unhandled cmd: {args.cmd}")


if __name__ == "__main__":
    raise SystemExit(main())
