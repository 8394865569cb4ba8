"""A small grep supporting only the ^ . * $ operators."""

from __future__ import annotations

import sys
from collections.abc import Iterable, Iterator


def _matchhere(regexp: str, text: str) -> bool:
    if not regexp:
        return True
    if len(regexp) >= 2 and regexp[1] == "*":
        return _matchstar(regexp[0], regexp[2:], text)
    if regexp == "$":
        return not text
    if text and (regexp[0] == "." or regexp[0] == text[0]):
        return _matchhere(regexp[1:], text[1:])
    return False


def _matchstar(c: str, regexp: str, text: str) -> bool:
    i = 0
    while True:
        if _matchhere(regexp, text[i:]):
            return True
        if i < len(text) and (text[i] == c or c == "."):
            i += 1
        else:
            return False


def match(regexp: str, text: str) -> bool:
    """Search for regexp anywhere in text."""
    if regexp.startswith("^"):
        return _matchhere(regexp[1:], text)
    return any(_matchhere(regexp, text[i:]) for i in range(len(text) + 1))


def grep(pattern: str, stream: Iterable[str]) -> Iterator[str]:
    """Yield the newline-terminated lines that match; an unterminated last line is ignored."""
    for line in stream:
        if line.endswith("\n") and match(pattern, line[:-1]):
            yield line


def main(argv: list[str] | None = None) -> int:
    args = sys.argv[1:] if argv is None else list(argv)
    if not args:
        sys.stderr.write("usage: grep pattern [file ...]\n")
        return 1
    pattern, paths = args[0], args[1:]
    if not paths:
        sys.stdout.writelines(grep(pattern, sys.stdin))
        return 0
    for path in paths:
        try:
            fh = open(path, encoding="utf-8", errors="surrogateescape", newline="\n")
        except OSError:
            sys.stdout.write(f"grep: cannot open {path}\n")
            return 1
        with fh:
            sys.stdout.writelines(grep(pattern, fh))
    return 0