import io

import pytest

from minicore.interrupts import IRQ0, IRQ1, Registers, SystemHalted
from minicore.kernel import Kernel, main, stub_addresses


@pytest.fixture
def booted():
    kernel = Kernel()
    kernel.boot()
    return kernel


def test_boot_screen_shows_final_messages(booted):
    screen = booted.terminal.screen_text()
    assert "Phase 5: File System Complete!" in screen
    assert "=== MiniCore-OS Shell Active ===" in screen
    assert "Multitasking demo running in background..." in screen
    assert booted.booted is True


def test_boot_loads_demo_files(booted):
    assert len(booted.filesystem) == 5
    assert "welcome.txt" in booted.filesystem
    assert booted.shell.filesystem is booted.filesystem


def test_boot_installs_idt_gates(booted):
    addresses = stub_addresses()
    assert len(addresses) == 48
    entry = booted.idt.entries[32]
    assert entry.base == addresses[32]
    assert entry.selector == 0x08
    assert entry.type_attr == 0x8E
    assert booted.idt.entries[48].type_attr == 0


def test_boot_masks_all_irqs(booted):
    assert all(booted.pic.is_masked(irq) for irq in range(16))


def test_timer_interrupt_ticks_scheduler(booted):
    booted.dispatcher.irq_handler(Registers(int_no=IRQ0))
    booted.dispatcher.irq_handler(Registers(int_no=IRQ0))
    assert booted.scheduler.ticks == 2
    assert booted.pic.writes[-1] == (0x20, 0x20)


def test_keyboard_interrupt_feeds_shell(booted):
    booted.keyboard_buffer.extend([0x1E, 0x1F])
    booted.dispatcher.irq_handler(Registers(int_no=IRQ1))
    assert booted.shell.buffer == "a"
    booted.dispatcher.irq_handler(Registers(int_no=IRQ1))
    assert booted.shell.buffer == "as"
    booted.dispatcher.irq_handler(Registers(int_no=IRQ1))
    assert booted.shell.buffer == "as"


def test_unhandled_exception_halts(booted):
    with pytest.raises(SystemHalted) as info:
        booted.dispatcher.isr_handler(Registers(int_no=0))
    assert info.value.reason == "Division By Zero"


def test_process_command_memstat():
    kernel = Kernel()
    kernel.process_command("memstat")
    assert "=== Memory Statistics ===" in kernel.terminal.screen_text()


def test_process_command_memmap():
    kernel = Kernel()
    kernel.process_command("memmap")
    screen = kernel.terminal.screen_text()
    assert "Kernel Heap Start: 0x00200000" in screen
    assert "Kernel Heap End: 0x00300000" in screen


def test_process_command_memtest_leaves_heap_clean():
    kernel = Kernel()
    kernel.process_command("memtest")
    stats = kernel.heap.stats()
    assert stats.num_allocations == 3
    assert stats.num_frees == 3
    assert stats.used_memory == 0
    assert kernel.heap.check_integrity()
    assert "Memory test complete!" in kernel.terminal.screen_text()


def test_process_command_help_and_unknown():
    kernel = Kernel()
    kernel.process_command("help")
    kernel.process_command("bogus")
    screen = kernel.terminal.screen_text()
    assert "memtest  - Run memory allocation test" in screen
    assert "Unknown command: bogus" in screen


def test_process_command_heapdbg():
    kernel = Kernel()
    kernel.process_command("heapdbg")
    screen = kernel.terminal.screen_text()
    assert "=== Heap Debug ===" in screen
    assert "Block 0: Addr=0x00200000" in screen


def test_run_lists_files_from_scancodes():
    kernel = Kernel()
    kernel.run([0x26, 0x1F, 0x1C])
    screen = kernel.terminal.screen_text()
    assert "minicore> ls" in screen
    assert "welcome.txt" in screen
    assert kernel.booted is True


def test_main_with_arguments(capsys):
    assert main(["echo hello world"]) == 0
    out = capsys.readouterr().out
    assert "minicore> echo hello world" in out
    assert "\nhello world\n" in out


def test_main_reads_stdin(capsys, monkeypatch):
    monkeypatch.setattr("sys.stdin", io.StringIO("cat hello.c\n"))
    assert main([]) == 0
    out = capsys.readouterr().out
    assert "=== Contents of hello.c ===" in out
    assert "=== End of file ===" in out


def test_main_stops_on_halt(capsys):
    assert main(["halt", "echo later"]) == 0
    out = capsys.readouterr().out
    assert "System halting..." in out
    assert "later" not in out
    assert out.rstrip().endswith("System Halted.")