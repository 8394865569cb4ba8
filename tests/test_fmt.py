import pytest

from sixfs.errors import KernelPanic
from sixfs.fmt import format_int, format_kernel, format_user


def test_kernel_decimal_and_string():
    assert format_kernel("cpu%d: starting %d\n", 0, 0) == "cpu0: starting 0\n"
    assert format_kernel("%s!", "hi") == "hi!"


def test_kernel_hex_is_lowercase_and_user_hex_uppercase():
    assert format_kernel("%x", 0xAB) == "ab"
    assert format_user("%x", 0xAB) == "AB"


def test_hex_wraps_negative_to_32_bits():
    assert format_kernel("%x", -1) == "ffffffff"
    assert int(format_user("%p", -2), 16) == (-2) & 0xFFFFFFFF


def test_decimal_treats_value_as_int32():
    assert format_int(-5) == "-5"
    assert format_int(0xFFFFFFFF) == "-1"
    assert format_int(0xFFFFFFFF, 10, False) == str(0xFFFFFFFF)


@pytest.mark.parametrize("value", [0, 1, 9, 10, 12345, 2**31 - 1, -(2**31), -77])
def test_decimal_round_trip(value):
    assert int(format_int(value)) == value


def test_null_string():
    assert format_kernel("%s", None) == "(null)"
    assert format_user("%s", None) == "(null)"


def test_percent_and_unknown_sequences():
    assert format_kernel("100%%") == "100%"
    assert format_kernel("%q") == "%q"
    assert format_user("%q") == "%q"


def test_trailing_percent_dropped():
    assert format_kernel("abc%") == "abc"
    assert format_user("abc%") == "abc"


def test_char_only_in_user_format():
    assert format_user("%c%c", 65, "b") == "Ab"
    assert format_kernel("%c", 65) == "%c"


def test_missing_argument():
    with pytest.raises(TypeError):
        format_user("%d")


def test_null_fmt_panics():
    with pytest.raises(KernelPanic):
        format_kernel(None)


def test_bad_base():
    with pytest.raises(ValueError):
        format_int(1, 1)