import pytest

from minicore.filesystem import FileSystem
from minicore.interrupts import Pic, SystemHalted
from minicore.memory import KernelHeap
from minicore.scheduler import Scheduler
from minicore.shell import (
    KEY_BACKSPACE,
    KEY_ENTER,
    KEY_LSHIFT,
    SHELL_BUFFER_SIZE,
    SHELL_PROMPT,
    Keyboard,
    Shell,
    parse_command,
    scancode_to_ascii,
)
from minicore.terminal import Terminal, VgaColor, vga_entry_color


def _scancodes_for(text):
    lookup = {}
    for code in range(0x3A):
        char = scancode_to_ascii(code, False)
        if char is not None and char not in lookup:
            lookup[char] = code
    return [lookup[char] for char in text]


@pytest.fixture
def shell():
    sh = Shell(Terminal(), KernelHeap(), FileSystem(), Scheduler(), Pic())
    sh.terminal.clear()
    return sh


def test_scancode_table_values():
    assert scancode_to_ascii(0x10, False) == "q"
    assert scancode_to_ascii(0x10, True) == "Q"
    assert scancode_to_ascii(0x02, True) == "!"
    assert scancode_to_ascii(0x39, False) == " "


def test_scancode_without_character():
    assert scancode_to_ascii(KEY_ENTER, False) is None
    assert scancode_to_ascii(0x3A, False) is None
    assert scancode_to_ascii(0x00, True) is None


def test_parse_command_splits_on_spaces_and_tabs():
    assert parse_command("  ls   -l\tfoo ") == ["ls", "-l", "foo"]
    assert parse_command("   ") == []


def test_parse_command_limits_argument_count():
    assert parse_command("a b c d", 3) == ["a", "b"]


def test_keyboard_shift_state():
    keyboard = Keyboard()
    a = _scancodes_for("a")[0]
    assert keyboard.feed(a) == "a"
    assert keyboard.feed(KEY_LSHIFT) is None
    assert keyboard.feed(a) == "A"
    assert keyboard.feed(KEY_LSHIFT | 0x80) is None
    assert keyboard.feed(a) == "a"


def test_keyboard_special_keys():
    keyboard = Keyboard()
    assert keyboard.feed(KEY_ENTER) == "\n"
    assert keyboard.feed(KEY_BACKSPACE) == "\b"
    assert keyboard.feed(0) is None


def test_echo_command(shell):
    assert shell.execute("echo hello   world") == 0
    assert shell.terminal.screen_text() == "hello world"


def test_unknown_command(shell):
    assert shell.execute("bogus") is None
    assert shell.terminal.row_text(0) == "Unknown command: bogus"
    assert shell.terminal.color_at(0, 0) == vga_entry_color(VgaColor.LIGHT_RED, VgaColor.BLACK)


def test_find_command(shell):
    assert shell.find_command("cat").name == "cat"
    assert shell.find_command("nope") is None


def test_help_lists_every_command(shell):
    shell.cmd_help(["help"])
    text = shell.terminal.screen_text()
    for command in shell.commands:
        assert f"  {command.name} - {command.description}" in text


def test_typing_and_backspace(shell):
    shell.type_text("ab")
    shell.backspace()
    assert shell.buffer == "a"
    assert shell.terminal.row_text(0) == "a"


def test_buffer_limit(shell):
    shell.echo_enabled = False
    shell.type_text("x" * (SHELL_BUFFER_SIZE + 10))
    assert len(shell.buffer) == SHELL_BUFFER_SIZE - 1


def test_enter_runs_line_and_prompts(shell):
    shell.type_text("echo hi\n")
    lines = shell.terminal.screen_text().split("\n")
    assert lines[1] == "hi"
    assert lines[2] == SHELL_PROMPT.rstrip()
    assert shell.buffer == ""


def test_run_with_scancodes(shell):
    codes = _scancodes_for("echo ok") + [KEY_ENTER]
    shell.run(codes)
    assert "\nok\n" in shell.terminal.screen_text()


def test_cat_shows_file(shell):
    assert shell.execute("cat hello.c") == 0
    text = shell.terminal.screen_text()
    assert "=== Contents of hello.c ===" in text
    assert "int main(void) {" in text
    assert "=== End of file ===" in text


def test_cat_errors(shell):
    assert shell.execute("cat") == -1
    assert shell.execute("cat missing.txt") == -1
    text = shell.terminal.screen_text()
    assert "Usage: cat <filename>" in text
    assert "File not found: missing.txt" in text


def test_ls_lists_files(shell):
    assert shell.execute("ls") == 0
    text = shell.terminal.screen_text()
    assert text.startswith("=== File System Contents ===")
    for entry in shell.filesystem:
        assert entry.name in text


def test_ls_without_filesystem():
    sh = Shell(Terminal(), KernelHeap(), None, Scheduler(), Pic())
    sh.terminal.clear()
    assert sh.execute("ls") == -1
    assert sh.terminal.row_text(0) == "File system not initialized!"


def test_memtest_releases_everything(shell):
    shell.execute("memtest")
    stats = shell.heap.stats()
    assert stats.used_memory == 0
    assert stats.num_allocations == 2
    assert stats.num_frees == 2
    assert "Memory test completed!" in shell.terminal.screen_text()


def test_mem_subcommands(shell):
    shell.execute("mem map")
    assert "=== Memory Map ===" in shell.terminal.screen_text()
    shell.terminal.clear()
    shell.execute("mem nonsense")
    assert shell.terminal.row_text(0) == "Usage: mem [stats|map|debug]"


def test_starttasks_creates_tasks(shell):
    shell.execute("starttasks")
    assert [task.name for task in shell.scheduler.tasks()] == ["idle", "counter", "greeter"]


def test_enableints_unmasks_timer_and_keyboard(shell):
    shell.pic.remap()
    shell.execute("enableints")
    assert not shell.pic.is_masked(0)
    assert not shell.pic.is_masked(1)
    assert shell.pic.is_masked(2)
    assert shell.interrupts_enabled


def test_halt_raises(shell):
    with pytest.raises(SystemHalted):
        shell.execute("halt")
    assert shell.terminal.row_text(0) == "System halting..."


def test_clear_command(shell):
    shell.execute("echo text")
    shell.execute("clear")
    assert shell.terminal.screen_text() == ""
    assert (shell.terminal.row, shell.terminal.column) == (0, 0)


def test_version(shell):
    shell.execute("version")
    assert shell.terminal.row_text(0) == "MiniCore-OS v0.3.0"