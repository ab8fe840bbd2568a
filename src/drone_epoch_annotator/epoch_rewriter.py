# src/drone_epoch_annotator/epoch_rewriter.py
from datetime import datetime, timezone
from email.utils import format_datetime
from itertools import groupby
from typing import Iterator, NamedTuple, Optional

DIGITS = "0123456789"

# 9999-12-31T23:59:59Z, the last second datetime can represent
MAX_EPOCH_DIGITS = len(str(253402300799))


class Span(NamedTuple):
    text: str
    is_digits: bool


def tokenize(line: str) -> Iterator[Span]:
    """
    Splits a line into maximal runs of ASCII digits and the text between them.

    Joining the text of every span gives back the original line.
    """
    for is_digits, chars in groupby(line, key=lambda ch: ch in DIGITS):
        yield Span("".join(chars), is_digits)


def epoch_to_http_date(epoch: int) -> Optional[str]:
    """
    Formats seconds since 1970-01-01T00:00:00Z as ``Thu, 01 Jan 1970 00:13:09 GMT``.

    Returns None when the value lies outside the calendar range datetime supports.
    """
    try:
        moment = datetime.fromtimestamp(epoch, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None
    return format_datetime(moment, usegmt=True)


def rewrite_span(span: Span, min_epoch: int) -> str:
    if not span.is_digits:
        return span.text
    digits = span.text.lstrip("0") or "0"
    if len(digits) > MAX_EPOCH_DIGITS:
        return span.text
    epoch = int(digits)
    if epoch < min_epoch:
        return span.text
    return epoch_to_http_date(epoch) or span.text


def rewrite_line(line: str, min_epoch: int = 0, max_line_length: int = 0) -> str:
    """
    Replaces every integer in ``line`` that is at least ``min_epoch`` with the
    UTC date it denotes as a Unix timestamp.

    Args:
        line: The text to rewrite, without any diff marker.
        min_epoch: Smallest integer treated as a timestamp. Raising it keeps
            line numbers, counters and the like out of the output.
        max_line_length: Lines longer than this are returned unchanged.
            0 disables the limit.

    Returns:
        The rewritten line, or ``line`` itself when nothing qualified.
    """
    if max_line_length > 0 and len(line) > max_line_length:
        return line
    return "".join(rewrite_span(span, min_epoch) for span in tokenize(line))
