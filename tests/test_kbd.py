from sixfs.kbd import CTL, KEY_UP, KeyboardDecoder


def codes(text):
    return [ord(c) for c in text]


def test_plain_letters():
    kbd = KeyboardDecoder()
    assert kbd.feed(0x1E) == ord("a")
    assert kbd.decode([0x23, 0x17]) == codes("hi")


def test_shift_press_and_release():
    kbd = KeyboardDecoder()
    assert kbd.decode([0x2A, 0x23, 0xAA, 0x17]) == codes("Hi")


def test_modifier_alone_produces_nothing():
    kbd = KeyboardDecoder()
    assert kbd.decode([0x2A, 0xAA, 0x1D, 0x9D]) == []
    assert kbd.shift == 0


def test_control_letter():
    kbd = KeyboardDecoder()
    assert kbd.decode([0x1D, 0x19]) == [ord("P") - ord("@")]


def test_capslock_toggles_case():
    kbd = KeyboardDecoder()
    assert kbd.decode([0x3A, 0xBA, 0x1E]) == codes("A")
    assert kbd.decode([0x2A, 0x1E]) == codes("a")
    assert kbd.decode([0xAA, 0x3A, 0xBA, 0x1E]) == codes("a")


def test_escaped_arrow_key():
    kbd = KeyboardDecoder()
    assert kbd.decode([0xE0, 0x48]) == [KEY_UP]


def test_right_control_press_and_release():
    kbd = KeyboardDecoder()
    kbd.decode([0xE0, 0x1D])
    assert kbd.shift & CTL
    kbd.decode([0xE0, 0x9D])
    assert not kbd.shift & CTL
    assert kbd.feed(0x1E) == ord("a")


def test_enter_with_and_without_control():
    kbd = KeyboardDecoder()
    assert kbd.feed(0x1C) == ord("\n")
    assert kbd.decode([0x1D, 0x1C]) == codes("\r")