"""The minimal printf dialects used by the kernel console and by user programs."""

from __future__ import annotations

from collections.abc import Iterator
from typing import Any

from sixfs.errors import KernelPanic

_LOWER = "0123456789abcdef"
_UPPER = "0123456789ABCDEF"


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - (1 << 32) if value & 0x80000000 else value


def format_int(value: int, base: int = 10, signed: bool = True, upper: bool = False) -> str:
    """Render a 32-bit integer; unsigned rendering wraps negative values."""
    if not 2 <= base <= 16:
        raise ValueError("base must be between 2 and 16")
    digits = _UPPER if upper else _LOWER
    xx = _int32(value)
    negative = signed and xx < 0
    x = -xx if negative else xx & 0xFFFFFFFF
    out = []
    while True:
        x, r = divmod(x, base)
        out.append(digits[r])
        if x == 0:
            break
    if negative:
        out.append("-")
    return "".join(reversed(out))


def _take(args: Iterator[Any]) -> Any:
    try:
        return next(args)
    except StopIteration:
        raise TypeError("not enough arguments for format string") from None


def _string(value: Any) -> str:
    return "(null)" if value is None else str(value)


def format_kernel(fmt: str, *args: Any) -> str:
    """Format like the kernel console: %d, %x, %p, %s and %%."""
    if fmt is None:
        raise KernelPanic("null fmt")
    fmt = fmt.split("\0", 1)[0]
    values = iter(args)
    chars = iter(fmt)
    out = []
    for c in chars:
        if c != "%":
            out.append(c)
            continue
        c = next(chars, None)
        if c is None:
            break
        if c == "d":
            out.append(format_int(_take(values), 10, True, False))
        elif c in "xp":
            out.append(format_int(_take(values), 16, False, False))
        elif c == "s":
            out.append(_string(_take(values)))
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
    return "".join(out)


def format_user(fmt: str, *args: Any) -> str:
    """Format like the user library printf: %d, %x, %p, %s, %c and %%."""
    values = iter(args)
    out = []
    pending = False
    for c in fmt.split("\0", 1)[0]:
        if not pending:
            if c == "%":
                pending = True
            else:
                out.append(c)
            continue
        if c == "d":
            out.append(format_int(_take(values), 10, True, True))
        elif c in "xp":
            out.append(format_int(_take(values), 16, False, True))
        elif c == "s":
            out.append(_string(_take(values)))
        elif c == "c":
            value = _take(values)
            out.append(chr(value & 0xFF) if isinstance(value, int) else str(value)[:1])
        elif c == "%":
            out.append("%")
        else:
            out.append("%" + c)
        pending = False
    return "".join(out)