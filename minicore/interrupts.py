"""Interrupt descriptor table, programmable interrupt controller and dispatch."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Callable, Optional, Sequence

IDT_ENTRIES = 256
KERNEL_CODE_SELECTOR = 0x08
INTERRUPT_GATE_FLAGS = 0x8E
IRQ_BASE = 32

IRQ0, IRQ1, IRQ2, IRQ3, IRQ4, IRQ5, IRQ6, IRQ7 = range(32, 40)
IRQ8, IRQ9, IRQ10, IRQ11, IRQ12, IRQ13, IRQ14, IRQ15 = range(40, 48)

MASTER_COMMAND = 0x20
MASTER_DATA = 0x21
SLAVE_COMMAND = 0xA0
SLAVE_DATA = 0xA1
END_OF_INTERRUPT = 0x20

_ENTRY_FORMAT = "<HHBBH"
_POINTER_FORMAT = "<HI"
_HANDLED_VECTORS = 48

_EXCEPTION_MESSAGES = (
    "Division By Zero",
    "Debug",
    "Non Maskable Interrupt",
    "Breakpoint",
    "Into Detected Overflow",
    "Out of Bounds",
    "Invalid Opcode",
    "No Coprocessor",
    "Double Fault",
    "Coprocessor Segment Overrun",
    "Bad TSS",
    "Segment Not Present",
    "Stack Fault",
    "General Protection Fault",
    "Page Fault",
    "Unknown Interrupt",
    "Coprocessor Fault",
    "Alignment Check",
    "Machine Check",
) + ("Reserved",) * 13


def exception_message(int_no: int) -> str:
    """Description of a CPU exception vector."""
    if int_no < 0:
        raise ValueError("interrupt number must not be negative")
    if int_no < len(_EXCEPTION_MESSAGES):
        return _EXCEPTION_MESSAGES[int_no]
    return "Unknown Exception"


class SystemHalted(Exception):
    """An unhandled exception stopped the machine."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason

    @property
    def report(self) -> str:
        return f"Exception: {self.reason}\nSystem Halted.\n"


@dataclass
class Registers:
    """CPU state saved on entry to an interrupt."""

    ds: int = 0
    edi: int = 0
    esi: int = 0
    ebp: int = 0
    esp: int = 0
    ebx: int = 0
    edx: int = 0
    ecx: int = 0
    eax: int = 0
    int_no: int = 0
    err_code: int = 0
    eip: int = 0
    cs: int = 0
    eflags: int = 0
    useresp: int = 0
    ss: int = 0


Handler = Callable[[Registers], object]


@dataclass
class IdtEntry:
    base_low: int = 0
    selector: int = 0
    zero: int = 0
    type_attr: int = 0
    base_high: int = 0

    @property
    def base(self) -> int:
        return self.base_high << 16 | self.base_low

    def pack(self) -> bytes:
        """The eight-byte hardware form of the gate."""
        return struct.pack(
            _ENTRY_FORMAT,
            self.base_low,
            self.selector,
            self.zero,
            self.type_attr,
            self.base_high,
        )


class InterruptDescriptorTable:
    """The 256 interrupt gates."""

    def __init__(self) -> None:
        self.entries = [IdtEntry() for _ in range(IDT_ENTRIES)]
        self.base_address = 0

    def set_gate(self, num: int, base: int, selector: int, flags: int) -> None:
        if not 0 <= num < IDT_ENTRIES:
            raise IndexError(f"gate {num} is outside the table")
        self.entries[num] = IdtEntry(
            base_low=base & 0xFFFF,
            selector=selector & 0xFFFF,
            zero=0,
            type_attr=flags & 0xFF,
            base_high=(base >> 16) & 0xFFFF,
        )

    def install_handlers(self, stub_addresses: Sequence[int]) -> None:
        """Install the 32 exception and 16 IRQ stubs as kernel interrupt gates."""
        if len(stub_addresses) != _HANDLED_VECTORS:
            raise ValueError(f"expected {_HANDLED_VECTORS} handler addresses")
        for num, address in enumerate(stub_addresses):
            self.set_gate(num, address, KERNEL_CODE_SELECTOR, INTERRUPT_GATE_FLAGS)

    def pointer(self) -> bytes:
        """The six-byte limit/base descriptor loaded by lidt."""
        limit = len(self.entries) * struct.calcsize(_ENTRY_FORMAT) - 1
        return struct.pack(_POINTER_FORMAT, limit, self.base_address & 0xFFFFFFFF)

    def pack(self) -> bytes:
        return b"".join(entry.pack() for entry in self.entries)


class Pic:
    """The cascaded 8259 controllers, recording every port write."""

    def __init__(self) -> None:
        self.masks = {MASTER_DATA: 0x00, SLAVE_DATA: 0x00}
        self.writes: list[tuple[int, int]] = []

    def _outb(self, port: int, value: int) -> None:
        value &= 0xFF
        self.writes.append((port, value))
        if port in self.masks:
            self.masks[port] = value

    @staticmethod
    def _line(irq: int) -> tuple[int, int]:
        if not 0 <= irq < 16:
            raise ValueError(f"IRQ {irq} is out of range")
        return (MASTER_DATA, irq) if irq < 8 else (SLAVE_DATA, irq - 8)

    def remap(self) -> None:
        """Move IRQ0-15 to vectors 32-47 and mask every line."""
        self._outb(MASTER_COMMAND, 0x11)
        self._outb(MASTER_DATA, 0x20)
        self._outb(MASTER_DATA, 0x04)
        self._outb(MASTER_DATA, 0x01)
        self._outb(SLAVE_COMMAND, 0x11)
        self._outb(SLAVE_DATA, 0x28)
        self._outb(SLAVE_DATA, 0x02)
        self._outb(SLAVE_DATA, 0x01)
        self._outb(MASTER_DATA, 0xFF)
        self._outb(SLAVE_DATA, 0xFF)

    def ack(self, irq: int) -> None:
        """Send end-of-interrupt, to the slave too for IRQ 8 and above."""
        if irq >= 8:
            self._outb(SLAVE_COMMAND, END_OF_INTERRUPT)
        self._outb(MASTER_COMMAND, END_OF_INTERRUPT)

    def enable(self, irq: int) -> None:
        port, bit = self._line(irq)
        self._outb(port, self.masks[port] & ~(1 << bit))

    def disable(self, irq: int) -> None:
        port, bit = self._line(irq)
        self._outb(port, self.masks[port] | (1 << bit))

    def is_masked(self, irq: int) -> bool:
        port, bit = self._line(irq)
        return bool(self.masks[port] & (1 << bit))


class InterruptDispatcher:
    """Routes exceptions and IRQs to registered handlers."""

    def __init__(self, pic: Optional[Pic] = None) -> None:
        self.pic = pic if pic is not None else Pic()
        self._handlers: dict[int, Handler] = {}

    def register_handler(self, number: int, handler: Optional[Handler]) -> None:
        if not 0 <= number < IDT_ENTRIES:
            raise ValueError(f"interrupt {number} is out of range")
        if handler is None:
            self._handlers.pop(number, None)
        else:
            self._handlers[number] = handler

    def isr_handler(self, registers: Registers) -> None:
        """Run the handler for an exception or halt with its description."""
        handler = self._handlers.get(registers.int_no)
        if handler is not None:
            handler(registers)
            return
        raise SystemHalted(exception_message(registers.int_no))

    def irq_handler(self, registers: Registers) -> None:
        """Acknowledge a hardware interrupt, then run its handler if any."""
        self.pic.ack(registers.int_no - IRQ_BASE)
        handler = self._handlers.get(registers.int_no)
        if handler is not None:
            handler(registers)