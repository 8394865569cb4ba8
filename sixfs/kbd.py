"""Translation of PC keyboard scan codes into characters."""

from __future__ import annotations

from collections.abc import Iterable

SHIFT = 1 << 0
CTL = 1 << 1
ALT = 1 << 2
CAPSLOCK = 1 << 3
NUMLOCK = 1 << 4
SCROLLLOCK = 1 << 5
E0ESC = 1 << 6

KEY_HOME = 0xE0
KEY_END = 0xE1
KEY_UP = 0xE2
KEY_DN = 0xE3
KEY_LF = 0xE4
KEY_RT = 0xE5
KEY_PGUP = 0xE6
KEY_PGDN = 0xE7
KEY_INS = 0xE8
KEY_DEL = 0xE9


def _ctrl(ch: str) -> int:
    return (ord(ch) - ord("@")) & 0xFF


_SPECIAL = {
    0xC8: KEY_UP,
    0xD0: KEY_DN,
    0xC9: KEY_PGUP,
    0xD1: KEY_PGDN,
    0xCB: KEY_LF,
    0xCD: KEY_RT,
    0x97: KEY_HOME,
    0xCF: KEY_END,
    0xD2: KEY_INS,
    0xD3: KEY_DEL,
}

_KEYPAD_TAIL = "\0 " + "\0" * 13 + "789-456+1230." + "\0" * 4


def _table(base: list[int], extra: dict[int, int]) -> tuple[int, ...]:
    table = [0] * 256
    table[: len(base)] = base
    for index, code in {**_SPECIAL, **extra}.items():
        table[index] = code
    return tuple(table)


_NORMAL = _table(
    [
        ord(c)
        for c in "\0\x1b1234567890-=\b\tqwertyuiop[]\n\0asdfghjkl;'`\0\\zxcvbnm,./\0*"
        + _KEYPAD_TAIL
    ],
    {0x9C: ord("\n"), 0xB5: ord("/")},
)

_SHIFTED = _table(
    [
        ord(c)
        for c in '\0\x1b!@#$%^&*()_+\b\tQWERTYUIOP{}\n\0ASDFGHJKL:"~\0|ZXCVBNM<>?\0*'
        + _KEYPAD_TAIL
    ],
    {0x9C: ord("\n"), 0xB5: ord("/")},
)

_CONTROL = _table(
    [0] * 16
    + [_ctrl(c) for c in "QWERTYUIOP"]
    + [0, 0, ord("\r"), 0]
    + [_ctrl(c) for c in "ASDFGHJKL"]
    + [0, 0, 0, 0]
    + [_ctrl(c) for c in "\\ZXCVBNM"]
    + [0, 0, _ctrl("/"), 0, 0],
    {0x9C: ord("\r"), 0xB5: _ctrl("/")},
)

_SHIFTCODE = {0x1D: CTL, 0x2A: SHIFT, 0x36: SHIFT, 0x38: ALT, 0x9D: CTL, 0xB8: ALT}
_TOGGLECODE = {0x3A: CAPSLOCK, 0x45: NUMLOCK, 0x46: SCROLLLOCK}
_CHARCODE = (_NORMAL, _SHIFTED, _CONTROL, _CONTROL)


class KeyboardDecoder:
    """Tracks modifier state across scan codes."""

    def __init__(self) -> None:
        self.shift = 0

    def feed(self, data: int) -> int:
        """Process one scan code; return the character code, or 0 if none."""
        data &= 0xFF
        if data == 0xE0:
            self.shift |= E0ESC
            return 0
        if data & 0x80:
            if not self.shift & E0ESC:
                data &= 0x7F
            self.shift &= ~(_SHIFTCODE.get(data, 0) | E0ESC)
            return 0
        if self.shift & E0ESC:
            data |= 0x80
            self.shift &= ~E0ESC

        self.shift |= _SHIFTCODE.get(data, 0)
        self.shift ^= _TOGGLECODE.get(data, 0)
        c = _CHARCODE[self.shift & (CTL | SHIFT)][data]
        if self.shift & CAPSLOCK:
            if ord("a") <= c <= ord("z"):
                c += ord("A") - ord("a")
            elif ord("A") <= c <= ord("Z"):
                c += ord("a") - ord("A")
        return c

    def decode(self, scancodes: Iterable[int]) -> list[int]:
        """Decode a sequence of scan codes, keeping only those that produce characters."""
        return [c for c in map(self.feed, scancodes) if c]