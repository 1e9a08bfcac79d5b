"""Kernel boot sequence, built-in command processor and command-line entry point."""

from __future__ import annotations

import sys
from collections import deque
from typing import Iterable, Optional, Sequence

from minicore.filesystem import FileSystem
from minicore.interrupts import (
    IRQ0,
    IRQ1,
    InterruptDescriptorTable,
    InterruptDispatcher,
    Pic,
    Registers,
    SystemHalted,
)
from minicore.memory import KernelHeap
from minicore.scheduler import Scheduler
from minicore.shell import Shell
from minicore.terminal import Terminal, VgaColor, vga_entry_color

# Simulated addresses of the 48 assembly interrupt stubs (32 exceptions, 16 IRQs).
STUB_BASE_ADDRESS = 0x00101000
STUB_SIZE = 16
STUB_COUNT = 48


def stub_addresses() -> list[int]:
    """Addresses of the interrupt entry stubs installed in the IDT."""
    return [STUB_BASE_ADDRESS + number * STUB_SIZE for number in range(STUB_COUNT)]


class Kernel:
    """Ties the terminal, heap, interrupts, scheduler, file system and shell together."""

    def __init__(self) -> None:
        self.terminal = Terminal()
        self.heap = KernelHeap()
        self.pic = Pic()
        self.idt = InterruptDescriptorTable()
        self.dispatcher = InterruptDispatcher(self.pic)
        self.scheduler = Scheduler()
        self.filesystem: Optional[FileSystem] = None
        self.keyboard_buffer: deque[int] = deque()
        self.booted = False
        self.shell = self._make_shell()

    def _make_shell(self) -> Shell:
        return Shell(self.terminal, self.heap, self.filesystem, self.scheduler, self.pic)

    def _color(self, fg: VgaColor) -> None:
        self.terminal.set_color(vga_entry_color(fg, VgaColor.BLACK))

    def _write(self, text: str) -> None:
        self.terminal.write(text)

    def _keyboard_interrupt(self, registers: Registers) -> None:
        """IRQ1: take the next pending scan code, if any, and hand it to the shell."""
        if self.keyboard_buffer:
            self.shell.handle_scancode(self.keyboard_buffer.popleft())

    def boot(self) -> None:
        """Bring up every subsystem in order and start the shell."""
        self._color(VgaColor.LIGHT_GREY)
        self.terminal.clear()

        self._color(VgaColor.LIGHT_CYAN)
        self._write("Welcome to MiniCore-OS!\n")
        self._color(VgaColor.LIGHT_GREEN)
        self._write("Kernel successfully loaded and running in protected mode.\n")

        self._color(VgaColor.LIGHT_BROWN)
        self._write("Initializing memory management...\n")
        self.heap = KernelHeap()
        self._write("Memory management initialized!\n")

        self._color(VgaColor.LIGHT_CYAN)
        self._write("Initializing interrupt system...\n")
        self.pic = Pic()
        self.idt = InterruptDescriptorTable()
        self.pic.remap()
        self.idt.install_handlers(stub_addresses())
        self.dispatcher = InterruptDispatcher(self.pic)
        self._write("IDT and ISR initialized!\n")

        self._color(VgaColor.LIGHT_MAGENTA)
        self._write("Initializing scheduler...\n")
        self.scheduler = Scheduler()
        self._write("Scheduler initialized\n")
        self._write("Demo tasks disabled for stability\n")

        self._color(VgaColor.LIGHT_BROWN)
        self._write("Initializing file system...\n")
        self.filesystem = FileSystem(with_demo_files=True)

        self._write("Setting up interrupts...\n")
        self.dispatcher.register_handler(IRQ0, self.scheduler.tick)
        self.dispatcher.register_handler(IRQ1, self._keyboard_interrupt)

        self._color(VgaColor.LIGHT_BROWN)
        self._write("Phase 5: File System Complete!\n")

        self._color(VgaColor.WHITE)
        self._write("\nSystem Information:\n")
        self._write("- Architecture: x86 (32-bit) | Mode: Protected Mode\n")
        self._write("- Memory: 1MB Heap | Display: VGA 80x25 | File System: Active\n")
        self._write("- Interrupts: Ready (use 'enableints' to activate)\n")

        self._write("\n")
        self._color(VgaColor.LIGHT_CYAN)
        self._write("=== System Ready ===\n")
        self._color(VgaColor.WHITE)
        self._write("Memory: Active | File System: 5 files loaded | Interrupts: Ready\n")

        self._color(VgaColor.LIGHT_MAGENTA)
        self._write("Starting CLI Shell...\n")
        self._color(VgaColor.WHITE)

        self.shell = self._make_shell()
        self.shell.start()

        self._color(VgaColor.LIGHT_BROWN)
        self._write("Multitasking demo running in background...\n")
        self._color(VgaColor.WHITE)
        self.booted = True

    def process_command(self, command: str) -> None:
        """The kernel's own memory-management command processor."""
        if command == "memstat":
            self._write(self.heap.format_stats())
        elif command == "memmap":
            self._write(self.heap.format_memory_map())
        elif command == "heapdbg":
            self._write(self.heap.format_debug())
        elif command == "memtest":
            self._write("=== Memory Test ===\n")
            first = self.heap.malloc(100)
            self._write("Allocated 100 bytes at: 0x")
            self.terminal.write_hex(first)
            self._write("\n")
            second = self.heap.malloc(200)
            self._write("Allocated 200 bytes at: 0x")
            self.terminal.write_hex(second)
            self._write("\n")
            third = self.heap.calloc(50, 4)
            self._write("Allocated 50 ints (zeroed) at: 0x")
            self.terminal.write_hex(third)
            self._write("\n")
            self.heap.free(first)
            self._write("Freed first allocation\n")
            self.heap.free(second)
            self._write("Freed second allocation\n")
            self.heap.free(third)
            self._write("Freed third allocation\n")
            self._write("Memory test complete!\n")
        elif command == "help":
            self._write(
                "Available commands:\n"
                "  memstat  - Show memory statistics\n"
                "  memmap   - Show memory map\n"
                "  heapdbg  - Debug heap structure\n"
                "  memtest  - Run memory allocation test\n"
                "  help     - Show this help\n"
            )
        else:
            self._write(
                f"Unknown command: {command}\nType 'help' for available commands.\n"
            )

    def run(self, scancodes: Iterable[int]) -> None:
        """Boot if needed, then let the shell poll the given scan codes."""
        if not self.booted:
            self.boot()
        self.shell.run(scancodes)


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Boot the kernel, type each command line into its shell and print the screen.

    Command lines come from the arguments, or from standard input when none
    are given.
    """
    args = list(sys.argv[1:] if argv is None else argv)
    lines: Iterable[str] = args if args else (line.rstrip("\n") for line in sys.stdin)
    kernel = Kernel()
    kernel.boot()
    kernel.shell._write("Interactive shell ready! Try typing 'help' or 'ls'\n")
    kernel.shell.print_prompt()
    halted: Optional[SystemHalted] = None
    try:
        for line in lines:
            kernel.shell.type_text(line + "\n")
    except SystemHalted as exc:
        halted = exc
    print(kernel.terminal.screen_text())
    if halted is not None:
        print("System Halted.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())