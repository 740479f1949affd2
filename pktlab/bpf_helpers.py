"""Helper functions offered to eBPF programs: trace printing and a clock."""

from __future__ import annotations

import re
import sys
import time
from typing import TextIO

MAX_TRACE_ARGS = 4
"""Most integer arguments a trace format is given."""

_CONVERSION = re.compile(
    r"%(?P<flags>[-+ #0]*)(?P<width>\d*)(?P<prec>(?:\.\d*)?)"
    r"(?P<len>hh|h|ll|l|j|z|t)?(?P<conv>[diouxXc%])"
)

_BITS = {"hh": 8, "h": 16, "l": 64, "ll": 64, "j": 64, "z": 64, "t": 64}


def _as_text(fmt: str | bytes | bytearray) -> str:
    text = fmt.decode("latin-1") if isinstance(fmt, (bytes, bytearray)) else fmt
    return text.split("\0", 1)[0]


def count_conversions(fmt: str | bytes | bytearray) -> int:
    """Count the '%' signs of fmt up to its first NUL."""
    return _as_text(fmt).count("%")


def _convert(match: re.Match[str], value: int) -> str:
    flags, width, prec = match["flags"], match["width"], match["prec"]
    conv = match["conv"]
    bits = _BITS.get(match["len"] or "", 32)
    mask = (1 << bits) - 1
    unsigned = value & mask
    signed = unsigned - (1 << bits) if unsigned >> (bits - 1) else unsigned

    if conv in "di":
        return f"%{flags}{width}{prec}d" % signed
    if conv == "u":
        return f"%{flags}{width}{prec}d" % unsigned
    if conv == "c":
        return f"%{flags.replace('0', '')}{width}c" % chr(unsigned & 0xFF)
    if conv == "o" and "#" in flags:
        body = f"%{flags.replace('#', '')}{prec}o" % unsigned
        if not body.lstrip(" -+").startswith("0"):
            body = "0" + body
        return f"{body:>{width or 0}}" if "-" not in flags else f"{body:<{width or 0}}"
    return f"%{flags}{width}{prec}{conv}" % unsigned


def format_trace(fmt: str | bytes | bytearray, *args: int) -> str:
    """Format fmt printf-style with up to four integer arguments.

    The number of arguments used is the number of '%' signs in fmt; with
    none, or more than four, the format is used without arguments.
    """
    text = _as_text(fmt)
    count = count_conversions(text)
    usable = list(args[:count]) if 1 <= count <= MAX_TRACE_ARGS else []
    supply = iter(usable)

    def substitute(match: re.Match[str]) -> str:
        if match["conv"] == "%":
            return "%"
        try:
            value = next(supply)
        except StopIteration:
            raise ValueError(
                f"format {text!r} needs more arguments than are given"
            ) from None
        return _convert(match, int(value))

    return _CONVERSION.sub(substitute, text)


def trace_printk(
    fmt: str | bytes | bytearray, *args: int, stream: TextIO | None = None
) -> str:
    """Write the formatted trace message to stream (stdout by default)."""
    message = format_trace(fmt, *args)
    out = stream if stream is not None else sys.stdout
    out.write(message)
    return message


def ktime_get_ns() -> int:
    """Return the monotonic clock in nanoseconds."""
    return time.monotonic_ns()