import pytest

from extfs.keyboard import (
    KCAP_P,
    KF12_P,
    KLSH_P,
    KRSH_P,
    MAX_KEYBUFFER_SIZE,
    RELEASE,
    Keyboard,
    is_valid_code,
)

KEY_A = 0x1E
KEY_H = 0x23
KEY_I = 0x17
KEY_ENTER = 0x1C
KEY_1 = 0x02


@pytest.mark.parametrize(
    "code, valid",
    [(0, False), (KEY_A, True), (KF12_P + RELEASE, True), (KF12_P + RELEASE + 1, False)],
)
def test_is_valid_code(code, valid):
    assert is_valid_code(code) is valid


def test_translate_plain_letter():
    kb = Keyboard()
    assert kb.translate(KEY_A) == "a"


def test_release_code_gives_nothing():
    kb = Keyboard()
    assert kb.translate(KEY_A + RELEASE) == ""


def test_shift_held_gives_upper_case():
    kb = Keyboard()
    assert kb.translate(KLSH_P) == ""
    assert kb.translate(KEY_A) == "A"
    kb.translate(KLSH_P + RELEASE)
    assert kb.translate(KEY_A) == "a"


def test_right_shift_gives_symbols():
    kb = Keyboard()
    kb.translate(KRSH_P)
    assert kb.translate(KEY_1) == "!"


def test_caps_lock_toggles_until_pressed_again():
    kb = Keyboard()
    kb.translate(KCAP_P)
    kb.translate(KCAP_P + RELEASE)
    assert kb.translate(KEY_A) == "A"
    kb.translate(KCAP_P)
    assert kb.translate(KEY_A) == "A"
    kb.translate(KCAP_P + RELEASE)
    assert kb.translate(KEY_A) == "a"


def test_f12_and_beyond_give_nothing():
    kb = Keyboard()
    assert kb.translate(KF12_P) == ""


def test_negative_code_is_rejected():
    with pytest.raises(ValueError):
        Keyboard().translate(-1)


def test_feed_drops_invalid_codes():
    kb = Keyboard()
    assert kb.feed([0, KEY_A, 0xFF]) == 1
    assert len(kb) == 1


def test_read_returns_typed_text():
    kb = Keyboard()
    kb.feed([KEY_H, KEY_H + RELEASE, KEY_I, KEY_I + RELEASE, KEY_ENTER])
    assert kb.read(10) == "hi\n"
    assert len(kb) == 0


def test_read_applies_shift_in_order():
    kb = Keyboard()
    kb.feed([KLSH_P, KEY_H, KLSH_P + RELEASE, KEY_I])
    assert kb.read(10) == "Hi"


def test_read_leaves_room_for_terminator():
    kb = Keyboard()
    kb.feed([KEY_H, KEY_I])
    assert kb.read(2) == "h"
    assert kb.read(1) == ""
    assert len(kb) == 1


def test_read_negative_size_is_rejected():
    with pytest.raises(ValueError):
        Keyboard().read(-1)


def test_buffer_keeps_at_most_one_less_than_its_size():
    kb = Keyboard()
    kb.feed([KEY_A] * (MAX_KEYBUFFER_SIZE + 50))
    text = kb.read(MAX_KEYBUFFER_SIZE * 4)
    assert len(text) == MAX_KEYBUFFER_SIZE - 1
    assert set(text) == {"a"}