"""Read-only in-memory file system with fixed-size file slots."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterator, Optional, Union

MAX_FILES = 16
MAX_FILENAME = 32
MAX_FILESIZE = 4096
FS_MAGIC = 0x4D494E49  # "MINI"

_NAME_COLUMN = 24
_SIZE_COLUMN = 6


class FileType(IntEnum):
    TEXT = 0
    BINARY = 1


_TYPE_LABELS = {FileType.TEXT: "TEXT", FileType.BINARY: "BINARY"}


class FileSystemError(Exception):
    """Base class for file system errors."""


class FileSystemFullError(FileSystemError):
    """Every file slot is taken."""


class EntryTooLargeError(FileSystemError):
    """A file name or its content does not fit its fixed-size slot."""


class DuplicateFileError(FileSystemError):
    """A file with the same name already exists."""


class FileNotFoundInFsError(FileSystemError, LookupError):
    """No file has the requested name."""


@dataclass(frozen=True)
class FileEntry:
    """One stored file: its name, content, type and permission flags."""

    name: str
    data: bytes
    file_type: FileType = FileType.TEXT
    permissions: int = 0  # read-only

    @property
    def size(self) -> int:
        return len(self.data)


class FileSystem:
    """A flat collection of at most MAX_FILES read-only files."""

    def __init__(self, with_demo_files: bool = True) -> None:
        self.magic = FS_MAGIC
        self._files: list[FileEntry] = []
        if with_demo_files:
            create_demo_files(self)

    def add_file(
        self,
        name: str,
        content: Union[str, bytes],
        file_type: FileType = FileType.TEXT,
    ) -> FileEntry:
        """Store a new file and return its entry."""
        if len(self._files) >= MAX_FILES:
            raise FileSystemFullError(f"file system holds at most {MAX_FILES} files")
        data = content.encode("utf-8") if isinstance(content, str) else bytes(content)
        if len(name.encode("utf-8")) >= MAX_FILENAME:
            raise EntryTooLargeError(f"file name {name!r} is too long")
        if len(data) >= MAX_FILESIZE:
            raise EntryTooLargeError(f"content of {name!r} is too large")
        if self.find(name) is not None:
            raise DuplicateFileError(f"file {name!r} already exists")
        entry = FileEntry(name, data, FileType(file_type))
        self._files.append(entry)
        return entry

    def find(self, name: str) -> Optional[FileEntry]:
        return next((entry for entry in self._files if entry.name == name), None)

    def exists(self, name: str) -> bool:
        return self.find(name) is not None

    def read(self, name: str) -> bytes:
        """Content of a file, raising FileNotFoundInFsError when it is missing."""
        entry = self.find(name)
        if entry is None:
            raise FileNotFoundInFsError(f"file {name!r} not found")
        return entry.data

    def __iter__(self) -> Iterator[FileEntry]:
        return iter(list(self._files))

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, name: object) -> bool:
        return isinstance(name, str) and self.exists(name)

    def format_listing(self) -> str:
        """The table printed by the ls command."""
        lines = ["=== File System Contents ==="]
        if not self._files:
            lines.append("No files found.")
            return "\n".join(lines) + "\n"
        lines.append("Name                     Size   Type")
        lines.append("------------------------ ------ --------")
        for entry in self._files:
            lines.append(
                f"{entry.name:<{_NAME_COLUMN}} {entry.size:<{_SIZE_COLUMN}} "
                f"{_TYPE_LABELS[entry.file_type]}"
            )
        lines.append("")
        lines.append(f"Total files: {len(self._files)} / {MAX_FILES}")
        return "\n".join(lines) + "\n"


def format_file_info(entry: Optional[FileEntry]) -> str:
    """Detailed description of one file."""
    if entry is None:
        return "File is NULL\n"
    return (
        "=== File Information ===\n"
        f"Name: {entry.name}\n"
        f"Size: {entry.size} bytes\n"
        f"Type: {_TYPE_LABELS[entry.file_type]}\n"
        "Permissions: READ-ONLY\n"
    )


_DEMO_FILES = (
    (
        "welcome.txt",
        "Welcome to MiniCore-OS!\n"
        "This is a simple read-only file system.\n"
        "Try 'ls' to list files and 'cat <filename>' to read them.\n"
        "\n"
        "Available commands:\n"
        "- help: Show all commands\n"
        "- ls: List files\n"
        "- cat <file>: Display file contents\n"
        "- clear: Clear screen\n"
        "- mem: Memory information\n"
        "- version: System version\n",
    ),
    (
        "system.txt",
        "MiniCore-OS System Information\n"
        "=============================\n"
        "Architecture: x86 (32-bit)\n"
        "Mode: Protected Mode\n"
        "Memory Management: Active\n"
        "File System: Read-only in-memory\n"
        "Multitasking: Cooperative\n"
        "VGA Text Mode: 80x25\n"
        "Build Date: August 2025\n",
    ),
    (
        "readme.txt",
        "MiniCore-OS Phase 5: File System\n"
        "=================================\n"
        "\n"
        "This file system implementation provides:\n"
        "- Read-only access to preloaded files\n"
        "- Fixed-size file allocation\n"
        "- Directory-like abstraction\n"
        "- Shell integration with 'ls' and 'cat'\n"
        "\n"
        "Files are stored in memory and preloaded at boot.\n"
        "Maximum file size: 4KB\n"
        "Maximum files: 16\n",
    ),
    (
        "hello.c",
        "#include <stdio.h>\n"
        "\n"
        "int main(void) {\n"
        '    printf("Hello from MiniCore-OS!\\n");\n'
        "    return 0;\n"
        "}\n",
    ),
    (
        "license.txt",
        "MiniCore-OS License\n"
        "==================\n"
        "\n"
        "This is a demonstration operating system.\n"
        "Created for educational purposes.\n"
        "\n"
        "Feel free to study, modify, and learn from this code.\n",
    ),
)


def create_demo_files(filesystem: FileSystem) -> None:
    """Preload the demonstration files, skipping any that cannot be added."""
    for name, content in _DEMO_FILES:
        try:
            filesystem.add_file(name, content, FileType.TEXT)
        except FileSystemError:
            continue