from danmu2ass.comments import ColorDecodeError, CommentRecord, parse_comments
from danmu2ass.config import DEFAULT_CONFIG, LayoutConfig, build_config
from danmu2ass.denylist import parse_denylist
from danmu2ass.files import OutputEncodingError
from danmu2ass.pipeline import ConversionResult, convert, convert_file

__all__ = [
    "ColorDecodeError",
    "CommentRecord",
    "ConversionResult",
    "DEFAULT_CONFIG",
    "LayoutConfig",
    "OutputEncodingError",
    "build_config",
    "convert",
    "convert_file",
    "parse_comments",
    "parse_denylist",
]
