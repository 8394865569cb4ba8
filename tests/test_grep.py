import io

import pytest

from sixfs.grep import grep, main, match


@pytest.mark.parametrize(
    "regexp, text, expected",
    [
        ("abc", "xxabcxx", True),
        ("^ab", "abc", True),
        ("^ab", "cab", False),
        ("a.c", "xabcx", True),
        ("ab*c", "ac", True),
        ("ab*c", "abbbc", True),
        ("c$", "abc", True),
        ("c$", "cab", False),
        (".*", "", True),
        ("", "", True),
        ("x", "", False),
        ("^$", "", True),
        ("^$", "a", False),
    ],
)
def test_match(regexp, text, expected):
    assert match(regexp, text) is expected


def test_grep_yields_matching_lines():
    stream = io.StringIO("apple\nbanana\ncherry\n")
    assert list(grep("an", stream)) == ["banana\n"]


def test_grep_ignores_unterminated_last_line():
    stream = io.StringIO("foo\nfoo")
    assert list(grep("foo", stream)) == ["foo\n"]


def test_main_with_file(tmp_path, capsys):
    path = tmp_path / "words"
    path.write_text("one\ntwo\nthree\n")
    assert main(["^t", str(path)]) == 0
    assert capsys.readouterr().out == "two\nthree\n"


def test_main_usage(capsys):
    assert main([]) == 1
    assert capsys.readouterr().err == "usage: grep pattern [file ...]\n"


def test_main_cannot_open(tmp_path, capsys):
    missing = tmp_path / "nope"
    assert main(["x", str(missing)]) == 1
    assert capsys.readouterr().out == f"grep: cannot open {missing}\n"