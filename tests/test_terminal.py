import pytest

from minicore.terminal import Terminal, VgaColor, vga_entry, vga_entry_color


def test_new_terminal_is_blank_in_light_grey():
    term = Terminal()
    assert term.screen_text() == ""
    assert term.color_at(0, 0) == vga_entry_color(VgaColor.LIGHT_GREY, VgaColor.BLACK)
    assert (term.row, term.column) == (0, 0)


def test_vga_entry_packs_char_and_color():
    color = vga_entry_color(VgaColor.WHITE, VgaColor.BLUE)
    entry = vga_entry("A", color)
    assert entry & 0xFF == ord("A")
    assert entry >> 8 == color
    assert color & 0x0F == VgaColor.WHITE
    assert color >> 4 == VgaColor.BLUE


def test_write_places_text_and_moves_cursor():
    term = Terminal()
    term.write("hello")
    assert term.row_text(0) == "hello"
    assert term.column == len("hello")


def test_newline_moves_to_next_row():
    term = Terminal()
    term.write("ab\ncd")
    assert term.row_text(0) == "ab"
    assert term.row_text(1) == "cd"
    assert (term.row, term.column) == (1, 2)


def test_line_wraps_at_width():
    term = Terminal()
    term.write("a" * Terminal.WIDTH + "b")
    assert term.row_text(0) == "a" * Terminal.WIDTH
    assert term.row_text(1) == "b"


def test_scrolls_when_bottom_is_passed():
    term = Terminal()
    for i in range(Terminal.HEIGHT):
        term.write(f"line{i}\n")
    assert term.row_text(0) == "line1"
    assert term.row_text(Terminal.HEIGHT - 2) == f"line{Terminal.HEIGHT - 1}"
    assert term.row_text(Terminal.HEIGHT - 1) == ""
    assert term.row == Terminal.HEIGHT - 1


def test_set_color_applies_to_new_characters():
    term = Terminal()
    color = vga_entry_color(VgaColor.LIGHT_RED, VgaColor.BLACK)
    term.set_color(color)
    term.putchar("x")
    assert term.color_at(0, 0) == color
    assert term.char_at(0, 0) == "x"


def test_write_hex_is_eight_upper_case_digits():
    term = Terminal()
    term.write_hex(0xABCDEF)
    term.putchar("\n")
    term.write_hex(0)
    assert term.row_text(0) == "00ABCDEF"
    assert term.row_text(1) == "00000000"


@pytest.mark.parametrize("value", [0, 7, 1234, 4294967295])
def test_write_dec(value):
    term = Terminal()
    term.write_dec(value)
    assert term.row_text(0) == str(value)


def test_clear_resets_screen_and_cursor():
    term = Terminal()
    term.write("some text\nmore")
    term.clear()
    assert term.screen_text() == ""
    assert (term.row, term.column) == (0, 0)


def test_put_entry_off_screen_raises():
    term = Terminal()
    with pytest.raises(IndexError):
        term.put_entry_at("a", 7, Terminal.WIDTH, 0)


def test_screen_text_joins_rows():
    term = Terminal()
    term.write("one\ntwo")
    assert term.screen_text() == "one\ntwo"


def test_write_accepts_bytes():
    term = Terminal()
    term.write(b"hi\nyo")
    assert term.screen_text() == "hi\nyo"