"""Kernel heap: a first-fit free-list allocator over a simulated address range."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Optional

PAGE_SIZE = 4096
KERNEL_HEAP_START = 0x00200000
KERNEL_HEAP_SIZE = 0x00100000
KERNEL_HEAP_END = KERNEL_HEAP_START + KERNEL_HEAP_SIZE

ALLOC_KERNEL = 0x01
ALLOC_USER = 0x02
ALLOC_ZERO = 0x04

# Size of a block header on a 32-bit machine: size, flag, next, prev.
HEADER_SIZE = 16
POINTER_SIZE = 4
MIN_SPLIT_REMAINDER = 32
DEBUG_BLOCK_LIMIT = 20
ENTRIES_PER_TABLE = 1024
_MAX_SIZE = 0xFFFFFFFF


class OutOfMemoryError(MemoryError):
    """No free block is large enough for a request."""


class InvalidPointerError(ValueError):
    """An address does not name an allocation or lies outside the heap."""


@dataclass(frozen=True)
class MemoryStats:
    total_memory: int
    used_memory: int
    free_memory: int
    num_allocations: int
    num_frees: int
    largest_free_block: int


@dataclass
class Block:
    """One block in the heap: header address, payload size and whether it is free."""

    address: int
    size: int
    is_free: bool = True

    @property
    def data_address(self) -> int:
        return self.address + HEADER_SIZE


@dataclass
class PageEntry:
    present: bool = False
    writable: bool = False
    user: bool = False
    accessed: bool = False
    dirty: bool = False
    available: int = 0
    frame: int = 0

    def encode(self) -> int:
        """The 32-bit hardware form of the entry."""
        return (
            int(self.present)
            | int(self.writable) << 1
            | int(self.user) << 2
            | int(self.accessed) << 5
            | int(self.dirty) << 6
            | (self.available & 0x7) << 9
            | (self.frame & 0xFFFFF) << 12
        )


def _empty_entries() -> list[PageEntry]:
    return [PageEntry() for _ in range(ENTRIES_PER_TABLE)]


@dataclass
class PageDirectory:
    """A page directory; its page tables are kept by directory index."""

    entries: list[PageEntry] = field(default_factory=_empty_entries)
    tables: dict[int, list[PageEntry]] = field(default_factory=dict)

    @classmethod
    def identity_mapped(cls) -> "PageDirectory":
        """A directory that identity-maps the first 4 MiB."""
        directory = cls()
        directory.tables[0] = [
            PageEntry(present=True, writable=True, frame=(i * PAGE_SIZE) >> 12)
            for i in range(ENTRIES_PER_TABLE)
        ]
        directory.entries[0] = PageEntry(present=True, writable=True)
        return directory

    def physical_address(self, virtual_address: int) -> int:
        """Translate a virtual address, raising LookupError if it is unmapped."""
        dir_index = (virtual_address >> 22) & 0x3FF
        table_index = (virtual_address >> 12) & 0x3FF
        if not self.entries[dir_index].present or dir_index not in self.tables:
            raise LookupError(f"no page table for address 0x{virtual_address:08X}")
        page = self.tables[dir_index][table_index]
        if not page.present:
            raise LookupError(f"page not present for address 0x{virtual_address:08X}")
        return page.frame << 12 | (virtual_address & 0xFFF)


def _hex(value: int) -> str:
    return f"{value & _MAX_SIZE:08X}"


class KernelHeap:
    """First-fit allocator with block splitting and coalescing."""

    def __init__(self, start: int = KERNEL_HEAP_START, size: int = KERNEL_HEAP_SIZE) -> None:
        if size <= HEADER_SIZE:
            raise ValueError("heap is too small to hold a block header")
        self.start = start
        self.size = size
        self._memory = bytearray(size)
        self._blocks = [Block(start, size - HEADER_SIZE, True)]
        self._used = 0
        self._free = size - HEADER_SIZE
        self._allocations = 0
        self._frees = 0
        self.page_directory = PageDirectory.identity_mapped()

    @property
    def end(self) -> int:
        return self.start + self.size

    def _index_of(self, address: int) -> int:
        for index, block in enumerate(self._blocks):
            if block.data_address == address:
                return index
        raise InvalidPointerError(f"0x{_hex(address)} is not an allocation")

    def _split(self, index: int, size: int) -> None:
        block = self._blocks[index]
        if block.size > size + HEADER_SIZE + MIN_SPLIT_REMAINDER:
            remainder = Block(
                block.address + HEADER_SIZE + size,
                block.size - size - HEADER_SIZE,
                True,
            )
            self._blocks.insert(index + 1, remainder)
            block.size = size

    def _merge(self, index: int) -> None:
        block = self._blocks[index]
        while index + 1 < len(self._blocks) and self._blocks[index + 1].is_free:
            following = self._blocks.pop(index + 1)
            block.size += following.size + HEADER_SIZE
        while index > 0 and self._blocks[index - 1].is_free:
            previous = self._blocks[index - 1]
            previous.size += block.size + HEADER_SIZE
            del self._blocks[index]
            index -= 1
            block = previous

    def malloc(self, size: int) -> int:
        """Allocate size bytes (rounded up to 8) and return the payload address."""
        if size <= 0:
            raise ValueError("allocation size must be positive")
        size = (size + 7) & ~7
        index = next(
            (i for i, b in enumerate(self._blocks) if b.is_free and b.size >= size),
            None,
        )
        if index is None:
            raise OutOfMemoryError(f"no free block of {size} bytes")
        self._split(index, size)
        block = self._blocks[index]
        block.is_free = False
        self._used += block.size
        self._free -= block.size
        self._allocations += 1
        return block.data_address

    def malloc_aligned(self, size: int, alignment: int) -> int:
        """Allocate with the payload aligned to a power-of-two boundary."""
        if alignment <= 0 or alignment & (alignment - 1):
            raise ValueError("alignment must be a power of two")
        raw = self.malloc(size + alignment + POINTER_SIZE)
        aligned = (raw + POINTER_SIZE + alignment - 1) & ~(alignment - 1)
        self.write(aligned - POINTER_SIZE, raw.to_bytes(POINTER_SIZE, "little"))
        return aligned

    def calloc(self, count: int, size: int) -> int:
        """Allocate count*size zeroed bytes."""
        total = count * size
        if total > _MAX_SIZE:
            raise OverflowError("allocation size overflows")
        address = self.malloc(total)
        self.write(address, bytes(total))
        return address

    def free(self, address: Optional[int]) -> None:
        """Release an allocation; None and double frees are ignored."""
        if address is None:
            return
        index = self._index_of(address)
        block = self._blocks[index]
        if block.is_free:
            return
        block.is_free = True
        self._used -= block.size
        self._free += block.size
        self._frees += 1
        self._merge(index)

    def realloc(self, address: Optional[int], new_size: int) -> Optional[int]:
        """Resize an allocation, moving it when the current block is too small."""
        if address is None:
            return self.malloc(new_size)
        if new_size == 0:
            self.free(address)
            return None
        index = self._index_of(address)
        block = self._blocks[index]
        if block.size >= new_size:
            self._split(index, new_size)
            return address
        new_address = self.malloc(new_size)
        self.write(new_address, self.read(address, min(block.size, new_size)))
        self.free(address)
        return new_address

    def _offset(self, address: int, length: int) -> int:
        if length < 0:
            raise ValueError("length must not be negative")
        if address < self.start or address + length > self.end:
            raise InvalidPointerError(f"0x{_hex(address)} is outside the heap")
        return address - self.start

    def read(self, address: int, length: int) -> bytes:
        offset = self._offset(address, length)
        return bytes(self._memory[offset:offset + length])

    def write(self, address: int, data: bytes) -> None:
        offset = self._offset(address, len(data))
        self._memory[offset:offset + len(data)] = data

    def blocks(self) -> list[Block]:
        """Snapshot of the block list in address order."""
        return [replace(block) for block in self._blocks]

    def stats(self) -> MemoryStats:
        largest = max((b.size for b in self._blocks if b.is_free), default=0)
        return MemoryStats(
            total_memory=self.size,
            used_memory=self._used,
            free_memory=self._free,
            num_allocations=self._allocations,
            num_frees=self._frees,
            largest_free_block=largest,
        )

    def validate_pointer(self, address: Optional[int]) -> bool:
        if not address:
            return False
        return self.start <= address < self.end

    def check_integrity(self) -> bool:
        total = 0
        for block in self._blocks:
            if not self.start <= block.address < self.end:
                return False
            total += block.size + HEADER_SIZE
        return total <= self.size

    def format_stats(self) -> str:
        stats = self.stats()
        return (
            "=== Memory Statistics ===\n"
            f"Total Memory: {stats.total_memory} bytes\n"
            f"Used Memory: {stats.used_memory} bytes\n"
            f"Free Memory: {stats.free_memory} bytes\n"
            f"Allocations: {stats.num_allocations}\n"
            f"Frees: {stats.num_frees}\n"
            f"Largest Free Block: {stats.largest_free_block} bytes\n"
        )

    def format_memory_map(self) -> str:
        return (
            "=== Memory Map ===\n"
            f"Kernel Heap Start: 0x{_hex(self.start)}\n"
            f"Kernel Heap End: 0x{_hex(self.end)}\n"
            f"Heap Size: {_hex(self.size)} bytes\n"
        )

    def format_debug(self) -> str:
        lines = ["=== Heap Debug ==="]
        for number, block in enumerate(self._blocks[:DEBUG_BLOCK_LIMIT]):
            state = "FREE" if block.is_free else "USED"
            lines.append(
                f"Block {number}: Addr=0x{_hex(block.address)}, Size={block.size}, {state}"
            )
        if len(self._blocks) > DEBUG_BLOCK_LIMIT:
            lines.append("... (more blocks)")
        return "\n".join(lines) + "\n"