"""VGA text-mode terminal kept in an in-memory character/attribute buffer."""

from __future__ import annotations

from enum import IntEnum
from typing import Iterable, Union

CharLike = Union[str, int]


class VgaColor(IntEnum):
    """Hardware text-mode colour codes."""

    BLACK = 0
    BLUE = 1
    GREEN = 2
    CYAN = 3
    RED = 4
    MAGENTA = 5
    BROWN = 6
    LIGHT_GREY = 7
    DARK_GREY = 8
    LIGHT_BLUE = 9
    LIGHT_GREEN = 10
    LIGHT_CYAN = 11
    LIGHT_RED = 12
    LIGHT_MAGENTA = 13
    LIGHT_BROWN = 14
    WHITE = 15


def vga_entry_color(fg: int, bg: int) -> int:
    """Combine a foreground and background colour into one attribute byte."""
    return (int(fg) | int(bg) << 4) & 0xFF


def _char_code(char: CharLike) -> int:
    if isinstance(char, int):
        return char & 0xFF
    code = ord(char)
    return code if code <= 0xFF else ord("?")


def vga_entry(char: CharLike, color: int) -> int:
    """Build the 16-bit cell value for a character and attribute byte."""
    return _char_code(char) | (int(color) & 0xFF) << 8


class Terminal:
    """An 80x25 text screen with a cursor, colour and scrolling."""

    WIDTH = 80
    HEIGHT = 25

    def __init__(self) -> None:
        self.color = vga_entry_color(VgaColor.LIGHT_GREY, VgaColor.BLACK)
        self.row = 0
        self.column = 0
        self.buffer = [vga_entry(" ", self.color)] * (self.WIDTH * self.HEIGHT)
        self.clear()

    def _index(self, x: int, y: int) -> int:
        if not (0 <= x < self.WIDTH and 0 <= y < self.HEIGHT):
            raise IndexError(f"position ({x}, {y}) is off screen")
        return y * self.WIDTH + x

    def clear(self) -> None:
        """Blank the screen in the current colour and home the cursor."""
        self.row = 0
        self.column = 0
        blank = vga_entry(" ", self.color)
        self.buffer = [blank] * (self.WIDTH * self.HEIGHT)

    def set_color(self, color: int) -> None:
        self.color = int(color) & 0xFF

    def put_entry_at(self, char: CharLike, color: int, x: int, y: int) -> None:
        self.buffer[self._index(x, y)] = vga_entry(char, color)

    def _newline(self) -> None:
        self.column = 0
        self.row += 1
        if self.row == self.HEIGHT:
            self.scroll_up()
            self.row = self.HEIGHT - 1

    def putchar(self, char: CharLike) -> None:
        """Write one character at the cursor, wrapping and scrolling as needed."""
        if char == "\n" or char == 10:
            self._newline()
            return
        self.put_entry_at(char, self.color, self.column, self.row)
        self.column += 1
        if self.column == self.WIDTH:
            self._newline()

    def write(self, data: Iterable[CharLike]) -> None:
        for char in data:
            self.putchar(char)

    def scroll_up(self) -> None:
        """Move every line up by one and blank the bottom line."""
        blank = vga_entry(" ", self.color)
        self.buffer = self.buffer[self.WIDTH:] + [blank] * self.WIDTH

    def write_hex(self, value: int) -> None:
        """Write a 32-bit value as eight upper-case hex digits."""
        self.write(f"{value & 0xFFFFFFFF:08X}")

    def write_dec(self, value: int) -> None:
        """Write a 32-bit unsigned value in decimal."""
        self.write(str(value & 0xFFFFFFFF))

    def char_at(self, x: int, y: int) -> str:
        return chr(self.buffer[self._index(x, y)] & 0xFF)

    def color_at(self, x: int, y: int) -> int:
        return self.buffer[self._index(x, y)] >> 8

    def row_text(self, y: int) -> str:
        """Text of one screen row without trailing blanks."""
        return "".join(self.char_at(x, y) for x in range(self.WIDTH)).rstrip(" ")

    def screen_text(self) -> str:
        """Text of the whole screen, rows joined by newlines, trailing empty rows dropped."""
        return "\n".join(self.row_text(y) for y in range(self.HEIGHT)).rstrip("\n")