# minicore

A small 32-bit hobby kernel, simulated in Python. Every part runs in
memory, without real hardware:

- `minicore.terminal`: an 80x25 VGA text-mode screen (`Terminal`) with
  colours (`VgaColor`, `vga_entry_color`), line wrapping and scrolling.
- `minicore.memory`: a first-fit free-list heap (`KernelHeap`) at 2 MB,
  1 MB in size, with `malloc`, `malloc_aligned`, `calloc`, `realloc` and
  `free`, statistics, an integrity check and an identity-mapped
  `PageDirectory` for the first 4 MB.
- `minicore.filesystem`: a read-only in-memory `FileSystem` of up to 16
  files of under 4 KB each, preloaded with five demo files.
- `minicore.interrupts`: an `InterruptDescriptorTable`, a `Pic` model
  that records port writes and line masks, and an `InterruptDispatcher`
  for exceptions and IRQs. An unhandled exception raises `SystemHalted`.
- `minicore.scheduler`: a round-robin `Scheduler` with time slices and
  sleeping tasks. Tasks are generators: yielding `None` gives up the CPU,
  and yielding an integer sleeps for that many ticks.
- `minicore.shell`: a `Shell` fed with PS/2 scan codes or typed text. Its
  commands are `help`, `echo`, `mem [stats|map|debug]`, `halt`, `clear`,
  `memtest`, `version`, `uptime`, `tasks`, `starttasks`, `enableints`,
  `ls` and `cat <file>`.
- `minicore.kernel`: `Kernel`, which boots all of the above in order and
  also has its own small command processor (`process_command`: `memstat`,
  `memmap`, `heapdbg`, `memtest`, `help`).

## Installation

```
pip install .
```

## Command line

```
minicore help ls "cat welcome.txt"
```

This boots the simulated kernel and types each argument into the shell
as one command line. Then it prints the final contents of the 25-line
screen. With no arguments, the command lines are read from standard
input, one per line:

```
printf 'ls\nmem stats\n' | minicore
```

If a `halt` command runs, processing stops and `System Halted.` is
printed after the screen.

## Library use

```python
from minicore.kernel import Kernel

kernel = Kernel()
kernel.boot()
kernel.shell.type_text("cat readme.txt\n")
print(kernel.terminal.screen_text())
```

Each part also works on its own:

```python
from minicore.memory import KernelHeap
from minicore.filesystem import FileSystem

heap = KernelHeap()
address = heap.malloc(100)
heap.free(address)
print(heap.format_stats())

fs = FileSystem()
print(fs.read("welcome.txt").decode())
```

## What it does not do

- The command line is not a live interactive session. It runs the given
  command lines in one batch and then shows only the last screen. Earlier
  output that has scrolled off is lost.
- Nothing drives the timer. Tasks created with `starttasks` or
  `Scheduler.create_task` run only when your code calls
  `Scheduler.step()` and `Scheduler.tick()`.
- The file system is read-only after files are added. It has no
  directories, no deletion and no storage on disk.

## Tests

```
pip install .[test]
pytest
```