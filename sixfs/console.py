"""Console: line-edited keyboard input and output to a text screen and serial line."""

from __future__ import annotations

import threading
from collections.abc import Callable, Iterable

from sixfs.errors import KernelPanic

BACKSPACE = 0x100
INPUT_BUF = 128
COLS = 80
ROWS = 25


def ctrl(ch: str) -> int:
    """Code of Control-ch."""
    return ord(ch) - ord("@")


class CgaScreen:
    """An 80x25 text-mode screen with a cursor."""

    def __init__(self) -> None:
        self.cells = [0] * (COLS * ROWS)
        self.pos = 0

    def putc(self, c: int) -> None:
        pos = self.pos
        if c == ord("\n"):
            pos += COLS - pos % COLS
        elif c == BACKSPACE:
            if pos > 0:
                pos -= 1
        else:
            self.cells[pos] = (c & 0xFF) | 0x0700
            pos += 1
        if pos < 0 or pos > ROWS * COLS:
            raise KernelPanic("pos under/overflow")
        if pos // COLS >= 24:
            self.cells[: 23 * COLS] = self.cells[COLS:24 * COLS]
            pos -= COLS
            self.cells[pos:24 * COLS] = [0] * (24 * COLS - pos)
        self.pos = pos
        self.cells[pos] = ord(" ") | 0x0700

    def text(self) -> str:
        """The visible characters, one line per row, without trailing blanks."""
        rows = []
        for r in range(ROWS):
            row = self.cells[r * COLS:(r + 1) * COLS]
            rows.append("".join(chr(cell & 0xFF) if cell & 0xFF else " " for cell in row).rstrip())
        return "\n".join(rows).rstrip("\n")


class Console:
    """Keyboard input buffer with line editing, echoing to screen and serial."""

    def __init__(
        self,
        screen: CgaScreen | None = None,
        procdump: Callable[[], None] | None = None,
    ) -> None:
        self.screen = screen if screen is not None else CgaScreen()
        self.procdump = procdump
        self.serial = bytearray()
        self._buf = [0] * INPUT_BUF
        self.r = 0
        self.w = 0
        self.e = 0
        self._cond = threading.Condition()

    def putc(self, c: int) -> None:
        if c == BACKSPACE:
            self.serial += b"\b \b"
        else:
            self.serial.append(c & 0xFF)
        self.screen.putc(c)

    def interrupt(self, chars: Iterable[int] | str) -> None:
        """Handle typed characters."""
        if isinstance(chars, str):
            chars = [ord(ch) for ch in chars]
        doprocdump = False
        with self._cond:
            for c in chars:
                if c == ctrl("P"):
                    doprocdump = True
                elif c == ctrl("U"):
                    while self.e != self.w and self._buf[(self.e - 1) % INPUT_BUF] != ord("\n"):
                        self.e -= 1
                        self.putc(BACKSPACE)
                elif c in (ctrl("H"), 0x7F):
                    if self.e != self.w:
                        self.e -= 1
                        self.putc(BACKSPACE)
                elif c != 0 and self.e - self.r < INPUT_BUF:
                    if c == ord("\r"):
                        c = ord("\n")
                    self._buf[self.e % INPUT_BUF] = c
                    self.e += 1
                    self.putc(c)
                    if c == ord("\n") or c == ctrl("D") or self.e == self.r + INPUT_BUF:
                        self.w = self.e
                        self._cond.notify_all()
        if doprocdump and self.procdump is not None:
            self.procdump()

    def read(self, n: int) -> bytes:
        """Read up to n bytes, stopping after a newline; ^D marks end of input."""
        target = n
        out = bytearray()
        with self._cond:
            while n > 0:
                while self.r == self.w:
                    self._cond.wait()
                c = self._buf[self.r % INPUT_BUF]
                self.r += 1
                if c == ctrl("D"):
                    if n < target:
                        # Keep ^D so the next read returns nothing.
                        self.r -= 1
                    break
                out.append(c & 0xFF)
                n -= 1
                if c == ord("\n"):
                    break
        return bytes(out)

    def write(self, data: bytes) -> int:
        with self._cond:
            for b in data:
                self.putc(b & 0xFF)
        return len(data)