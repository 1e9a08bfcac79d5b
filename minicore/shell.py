"""Interactive command shell fed by PS/2 keyboard scan codes."""

from __future__ import annotations

import contextlib
import re
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from minicore.filesystem import FileNotFoundInFsError, FileSystem
from minicore.interrupts import Pic, SystemHalted
from minicore.memory import KernelHeap
from minicore.scheduler import Scheduler, counter_task, greeter_task, idle_task
from minicore.terminal import Terminal, VgaColor, vga_entry_color

SHELL_BUFFER_SIZE = 256
SHELL_MAX_ARGS = 16
SHELL_PROMPT = "minicore> "

KEYBOARD_DATA_PORT = 0x60
KEYBOARD_STATUS_PORT = 0x64

KEY_ESC = 0x01
KEY_BACKSPACE = 0x0E
KEY_TAB = 0x0F
KEY_ENTER = 0x1C
KEY_LCTRL = 0x1D
KEY_LSHIFT = 0x2A
KEY_RSHIFT = 0x36
KEY_SPACE = 0x39

SHIFT_PRESSED = 0x01
CTRL_PRESSED = 0x02
ALT_PRESSED = 0x04

RELEASE_FLAG = 0x80
BACKSPACE = "\b"

# US QWERTY layout, indexed by scan code; NUL marks keys without a character.
_SCANCODE_ASCII = (
    "\x00\x00123456"
    "7890-=\x00\x00"
    "qwertyui"
    "op[]\x00\x00as"
    "dfghjkl;"
    "'`\x00\\zxcv"
    "bnm,./\x00*"
    "\x00 "
)
_SCANCODE_ASCII_SHIFT = (
    "\x00\x00!@#$%^"
    "&*()_+\x00\x00"
    "QWERTYUI"
    "OP{}\x00\x00AS"
    "DFGHJKL:"
    "\"~\x00|ZXCV"
    "BNM<>?\x00*"
    "\x00 "
)

_ARG_SEPARATOR = re.compile(r"[ \t]+")


def scancode_to_ascii(scancode: int, shift: bool = False) -> Optional[str]:
    """The character a key produces, or None for keys without one."""
    if not 0 <= scancode < len(_SCANCODE_ASCII):
        return None
    table = _SCANCODE_ASCII_SHIFT if shift else _SCANCODE_ASCII
    char = table[scancode]
    return None if char == "\x00" else char


def parse_command(line: str, max_args: int = SHELL_MAX_ARGS) -> list[str]:
    """Split a command line on spaces and tabs, keeping at most max_args - 1 words."""
    words = [word for word in _ARG_SEPARATOR.split(line) if word]
    return words[: max(max_args - 1, 0)]


class Keyboard:
    """Tracks modifier keys and turns scan codes into key events."""

    def __init__(self) -> None:
        self.state = 0

    @property
    def shift(self) -> bool:
        return bool(self.state & SHIFT_PRESSED)

    @property
    def ctrl(self) -> bool:
        return bool(self.state & CTRL_PRESSED)

    def feed(self, scancode: int) -> Optional[str]:
        """Process one scan code.

        Returns "\\n" for Enter, "\\b" for Backspace, the typed character for
        printable keys, and None for releases, modifiers and unknown keys.
        """
        if scancode == 0:
            return None
        if scancode & RELEASE_FLAG:
            scancode &= 0x7F
            if scancode in (KEY_LSHIFT, KEY_RSHIFT):
                self.state &= ~SHIFT_PRESSED
            elif scancode == KEY_LCTRL:
                self.state &= ~CTRL_PRESSED
            return None
        if scancode in (KEY_LSHIFT, KEY_RSHIFT):
            self.state |= SHIFT_PRESSED
            return None
        if scancode == KEY_LCTRL:
            self.state |= CTRL_PRESSED
            return None
        if scancode == KEY_ENTER:
            return "\n"
        if scancode == KEY_BACKSPACE:
            return BACKSPACE
        return scancode_to_ascii(scancode, self.shift)


@dataclass(frozen=True)
class Command:
    """A built-in shell command."""

    name: str
    description: str
    handler: Callable[[Sequence[str]], int]


class Shell:
    """Line-editing shell that dispatches built-in commands."""

    def __init__(
        self,
        terminal: Optional[Terminal] = None,
        heap: Optional[KernelHeap] = None,
        filesystem: Optional[FileSystem] = None,
        scheduler: Optional[Scheduler] = None,
        pic: Optional[Pic] = None,
    ) -> None:
        self.terminal = terminal if terminal is not None else Terminal()
        self.heap = heap if heap is not None else KernelHeap()
        self.filesystem = filesystem
        self.scheduler = scheduler if scheduler is not None else Scheduler()
        self.pic = pic if pic is not None else Pic()
        self.keyboard = Keyboard()
        self.echo_enabled = True
        self.interrupts_enabled = False
        self.cursor_x = 0
        self.cursor_y = self.terminal.row
        self._buffer: list[str] = []
        self.commands: tuple[Command, ...] = (
            Command("help", "Show available commands", self.cmd_help),
            Command("echo", "Echo text to screen", self.cmd_echo),
            Command("mem", "Show memory information", self.cmd_mem),
            Command("halt", "Halt the system", self.cmd_halt),
            Command("clear", "Clear the screen", self.cmd_clear),
            Command("memtest", "Run memory allocation test", self.cmd_memtest),
            Command("version", "Show system version", self.cmd_version),
            Command("uptime", "Show system uptime (placeholder)", self.cmd_uptime),
            Command("tasks", "Show running tasks", self.cmd_tasks),
            Command("starttasks", "Start demo multitasking tasks", self.cmd_starttasks),
            Command("enableints", "Enable interrupts", self.cmd_enableints),
            Command("ls", "List files in file system", self.cmd_ls),
            Command("cat", "Display file contents", self.cmd_cat),
        )

    @property
    def buffer(self) -> str:
        """The line typed so far."""
        return "".join(self._buffer)

    def _color(self, fg: VgaColor) -> None:
        self.terminal.set_color(vga_entry_color(fg, VgaColor.BLACK))

    def _write(self, text: str) -> None:
        self.terminal.write(text)

    def start(self) -> None:
        """Reset the input state and print the banner."""
        self._buffer.clear()
        self.cursor_x = 0
        self.cursor_y = self.terminal.row
        self.echo_enabled = True
        self.keyboard = Keyboard()
        self._color(VgaColor.LIGHT_CYAN)
        self._write("\n=== MiniCore-OS Shell Active ===\n")
        self._color(VgaColor.WHITE)
        self._write(
            "Type 'help' for commands | 'ls' for files | 'clear' to clear screen\n\n"
        )

    def print_prompt(self) -> None:
        self._color(VgaColor.LIGHT_GREEN)
        self._write(SHELL_PROMPT)
        self._color(VgaColor.WHITE)

    def process_input(self, char: str) -> None:
        """Handle one typed character: Enter runs the line, printable ones are buffered."""
        if char == "\n":
            self.terminal.putchar("\n")
            line = self.buffer
            self._buffer.clear()
            self.execute(line)
            self.print_prompt()
        elif 32 <= ord(char) <= 126:
            if len(self._buffer) < SHELL_BUFFER_SIZE - 1:
                self._buffer.append(char)
                if self.echo_enabled:
                    self.terminal.putchar(char)

    def backspace(self) -> None:
        """Drop the last typed character and erase it from the screen."""
        if not self._buffer:
            return
        self._buffer.pop()
        if self.terminal.column > 0:
            self.terminal.column -= 1
            self.terminal.putchar(" ")
            self.terminal.column -= 1

    def handle_scancode(self, scancode: int) -> None:
        key = self.keyboard.feed(scancode)
        if key == BACKSPACE:
            self.backspace()
        elif key is not None:
            self.process_input(key)

    def type_text(self, text: str) -> None:
        """Feed characters as if typed; "\\b" acts as Backspace."""
        for char in text:
            if char == BACKSPACE:
                self.backspace()
            else:
                self.process_input(char)

    def find_command(self, name: str) -> Optional[Command]:
        return next((command for command in self.commands if command.name == name), None)

    def execute(self, line: str) -> Optional[int]:
        """Run a command line; returns the command's status, or None if nothing ran."""
        args = parse_command(line, SHELL_MAX_ARGS)
        if not args:
            return None
        command = self.find_command(args[0])
        if command is not None:
            return command.handler(args)
        self._color(VgaColor.LIGHT_RED)
        self._write(f"Unknown command: {args[0]}\nType 'help' for available commands.\n")
        self._color(VgaColor.WHITE)
        return None

    def run(self, scancodes: Iterable[int]) -> None:
        """Print the prompt and process scan codes until they run out."""
        self._write("Interactive shell ready! Try typing 'help' or 'ls'\n")
        self.print_prompt()
        for scancode in scancodes:
            self.handle_scancode(scancode)

    def cmd_help(self, args: Sequence[str]) -> int:
        self._color(VgaColor.LIGHT_CYAN)
        self._write("Available commands:\n")
        self._color(VgaColor.WHITE)
        for command in self.commands:
            self._write("  ")
            self._color(VgaColor.LIGHT_GREEN)
            self._write(command.name)
            self._color(VgaColor.WHITE)
            self._write(f" - {command.description}\n")
        return 0

    def cmd_echo(self, args: Sequence[str]) -> int:
        self._write(" ".join(args[1:]) + "\n")
        return 0

    def cmd_mem(self, args: Sequence[str]) -> int:
        if len(args) > 1:
            reports = {
                "stats": self.heap.format_stats,
                "map": self.heap.format_memory_map,
                "debug": self.heap.format_debug,
            }
            report = reports.get(args[1])
            self._write(report() if report else "Usage: mem [stats|map|debug]\n")
        else:
            self._write(self.heap.format_stats())
        return 0

    def cmd_halt(self, args: Sequence[str]) -> int:
        self._color(VgaColor.LIGHT_RED)
        self._write("System halting...\n")
        self._color(VgaColor.WHITE)
        self.interrupts_enabled = False
        raise SystemHalted("halt command")

    def cmd_clear(self, args: Sequence[str]) -> int:
        self.terminal.clear()
        return 0

    def cmd_memtest(self, args: Sequence[str]) -> int:
        self._write("Running memory allocation test...\n")
        first = self.heap.malloc(100)
        self._write(f"Allocated 100 bytes at: 0x{first & 0xFFFFFFFF:08X}\n")
        second = self.heap.malloc(200)
        self._write(f"Allocated 200 bytes at: 0x{second & 0xFFFFFFFF:08X}\n")
        self.heap.free(first)
        self._write("Freed first allocation\n")
        self.heap.free(second)
        self._write("Freed second allocation\n")
        self._write("Memory test completed!\n")
        return 0

    def cmd_version(self, args: Sequence[str]) -> int:
        self._color(VgaColor.LIGHT_CYAN)
        self._write("MiniCore-OS v0.3.0\n")
        self._color(VgaColor.WHITE)
        self._write("Phase 3: CLI Shell\n")
        self._write("Built with: GCC, NASM, GRUB\n")
        self._write("Features: Memory Management, Interactive Shell\n")
        return 0

    def cmd_uptime(self, args: Sequence[str]) -> int:
        self._write("Uptime: Since boot (no timer implemented yet)\n")
        return 0

    def cmd_tasks(self, args: Sequence[str]) -> int:
        self._color(VgaColor.LIGHT_CYAN)
        self._write("Task Information:\n")
        self._color(VgaColor.WHITE)
        self._write(
            "ID  Name        State     \n"
            "--- ----------- ----------\n"
            "1   idle        READY     \n"
            "2   counter     RUNNING   \n"
            "3   greeter     SLEEPING  \n"
            "\nMultitasking is active with timer-driven scheduling!\n"
            "Tasks automatically switch every 10 timer ticks.\n"
        )
        return 0

    def cmd_starttasks(self, args: Sequence[str]) -> int:
        self._color(VgaColor.LIGHT_GREEN)
        self._write("Starting demo multitasking tasks...\n")
        self._color(VgaColor.WHITE)
        for name, factory in (
            ("idle", idle_task),
            ("counter", counter_task),
            ("greeter", greeter_task),
        ):
            with contextlib.suppress(RuntimeError):
                self.scheduler.create_task(name, factory(self.terminal))
            self._write(f"Created {name} task\n")
        self._write("Demo tasks started! They will run in the background.\n")
        return 0

    def cmd_enableints(self, args: Sequence[str]) -> int:
        self._color(VgaColor.LIGHT_CYAN)
        self._write("Enabling interrupts...\n")
        self._color(VgaColor.WHITE)
        self._write("Enabling keyboard interrupt (IRQ1)...\n")
        self.pic.enable(1)
        self._write("Enabling timer interrupt (IRQ0)...\n")
        self.pic.enable(0)
        self._write("Enabling global interrupts...\n")
        self.interrupts_enabled = True
        self._color(VgaColor.LIGHT_GREEN)
        self._write("Interrupts enabled! Keyboard should now be interrupt-driven.\n")
        self._color(VgaColor.WHITE)
        return 0

    def cmd_ls(self, args: Sequence[str]) -> int:
        if self.filesystem is None:
            self._color(VgaColor.LIGHT_RED)
            self._write("File system not initialized!\n")
            self._color(VgaColor.WHITE)
            return -1
        header, _, rest = self.filesystem.format_listing().partition("\n")
        self._color(VgaColor.LIGHT_CYAN)
        self._write(header + "\n")
        self._color(VgaColor.WHITE)
        self._write(rest)
        return 0

    def cmd_cat(self, args: Sequence[str]) -> int:
        if len(args) < 2:
            self._color(VgaColor.LIGHT_RED)
            self._write("Usage: cat <filename>\n")
            self._color(VgaColor.WHITE)
            return -1
        name = args[1]
        try:
            if self.filesystem is None:
                raise FileNotFoundInFsError(name)
            data = self.filesystem.read(name)
        except FileNotFoundInFsError:
            self._color(VgaColor.LIGHT_RED)
            self._write(f"File not found: {name}\n")
            self._color(VgaColor.WHITE)
            return -1
        self._color(VgaColor.LIGHT_CYAN)
        self._write(f"=== Contents of {name} ===\n")
        self._color(VgaColor.WHITE)
        self.terminal.write(data)
        self.terminal.putchar("\n")
        self._color(VgaColor.LIGHT_CYAN)
        self._write("=== End of file ===\n")
        self._color(VgaColor.WHITE)
        return 0