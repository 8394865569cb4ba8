import pytest

from sixfs.console import BACKSPACE, CgaScreen, Console, ctrl
from sixfs.errors import KernelPanic


def test_write_echoes_to_serial_and_screen():
    con = Console()
    assert con.write(b"hi\nthere") == 8
    assert bytes(con.serial) == b"hi\nthere"
    assert con.screen.text() == "hi\nthere"


def test_line_read():
    con = Console()
    con.interrupt("abc\rdef\n")
    assert con.read(100) == b"abc\n"
    assert con.read(100) == b"def\n"


def test_backspace_and_kill_line():
    con = Console()
    con.interrupt("abx")
    con.interrupt([0x7F])
    assert bytes(con.serial).endswith(b"\b \b")
    con.interrupt("c\n")
    assert con.read(10) == b"abc\n"
    con.interrupt("junk")
    con.interrupt([ctrl("U")])
    con.interrupt("ok\n")
    assert con.read(10) == b"ok\n"


def test_eof_handling():
    con = Console()
    con.interrupt([ord("x"), ctrl("D")])
    assert con.read(10) == b"x"
    assert con.read(10) == b""


def test_procdump_called():
    calls = []
    con = Console(procdump=lambda: calls.append(1))
    con.interrupt([ctrl("P")])
    assert calls == [1]


def test_screen_scrolls():
    screen = CgaScreen()
    for i in range(30):
        for ch in f"line{i}\n":
            screen.putc(ord(ch))
    lines = screen.text().split("\n")
    assert lines[-1] == "line29"
    assert "line0" not in lines
    assert screen.pos // 80 < 24