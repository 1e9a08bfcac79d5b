"""Round-robin task scheduler driven by timer ticks.

A task's entry point is a generator (or a callable that returns one). Each
value the generator yields is a request to the scheduler: ``None`` gives the
CPU to the next ready task, an integer puts the task to sleep for that many
timer ticks. A task whose generator finishes has exited.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import IntEnum
from itertools import count, cycle
from typing import Any, Callable, Optional, Union

from minicore.terminal import VgaColor, vga_entry_color

MAX_TASKS = 8
TASK_STACK_SIZE = 4096
MAX_NAME_LENGTH = 31
DEFAULT_TIME_SLICE = 10
INITIAL_EFLAGS = 0x202
SCHEDULING_DELAY = 100
COUNTER_SLEEP_TICKS = 50
GREETER_SLEEP_TICKS = 75

GREETINGS = (
    "Hello from multitasking!",
    "Tasks are running!",
    "Scheduler working!",
    "Context switching active!",
)

_UINT32 = 0xFFFFFFFF

EntryPoint = Union[Iterator, Callable[[], Any]]


class TaskState(IntEnum):
    READY = 0
    RUNNING = 1
    SLEEPING = 2
    TERMINATED = 3


@dataclass(eq=False)
class Task:
    """A task control block."""

    id: int
    name: str
    entry_point: EntryPoint = field(repr=False)
    state: TaskState = TaskState.READY
    time_slice: int = DEFAULT_TIME_SLICE
    time_remaining: int = DEFAULT_TIME_SLICE
    sleep_until: int = 0
    eflags: int = INITIAL_EFLAGS
    _runner: Optional[Iterator] = field(default=None, init=False, repr=False)

    def _advance(self) -> Any:
        """Run the task up to its next request; StopIteration when it has finished."""
        if self._runner is None:
            entry = self.entry_point
            if isinstance(entry, Iterator):
                self._runner = entry
            else:
                result = entry()
                self._runner = result if isinstance(result, Iterator) else iter(())
        return next(self._runner)


class Scheduler:
    """Fixed table of task slots with a FIFO ready queue."""

    def __init__(self) -> None:
        self._slots: list[Optional[Task]] = [None] * MAX_TASKS
        self._queue: deque[Task] = deque()
        self.current: Optional[Task] = None
        self.next_task_id = 1
        self.ticks = 0

    def create_task(self, name: str, entry_point: EntryPoint) -> int:
        """Put a new task in a free slot and on the ready queue; return its id."""
        slot = next(
            (
                index
                for index, task in enumerate(self._slots)
                if task is None or task.state is TaskState.TERMINATED
            ),
            None,
        )
        if slot is None:
            raise RuntimeError(f"no free task slots (at most {MAX_TASKS} tasks)")
        task = Task(self.next_task_id, name[:MAX_NAME_LENGTH], entry_point)
        self.next_task_id += 1
        self._slots[slot] = task
        self._queue.append(task)
        return task.id

    def tick(self, registers: Any = None) -> None:
        """Timer interrupt: count the tick, wake sleepers and enforce time slices."""
        self.ticks = (self.ticks + 1) & _UINT32
        for task in self.tasks():
            if task.state is TaskState.SLEEPING and task.sleep_until <= self.ticks:
                task.state = TaskState.READY
                self._queue.append(task)
        current = self.current
        if current is not None and self.ticks > SCHEDULING_DELAY:
            current.time_remaining = (current.time_remaining - 1) & _UINT32
            if current.time_remaining == 0:
                self.schedule()

    def schedule(self) -> None:
        """Switch to the next ready task, requeueing the running one."""
        if not self._queue:
            return
        next_task = self._queue.popleft()
        current = self.current
        if current is not None and current.state is TaskState.RUNNING:
            current.state = TaskState.READY
            current.time_remaining = current.time_slice
            self._queue.append(current)
        next_task.state = TaskState.RUNNING
        next_task.time_remaining = next_task.time_slice
        self.current = next_task

    def yield_task(self) -> None:
        self.schedule()

    def sleep(self, ticks: int) -> None:
        """Put the current task to sleep for a number of ticks."""
        if ticks < 0:
            raise ValueError("sleep duration must not be negative")
        current = self.current
        if current is not None:
            current.state = TaskState.SLEEPING
            current.sleep_until = (self.ticks + ticks) & _UINT32
            self.schedule()

    def exit(self) -> None:
        """Terminate the current task and move on to the next one."""
        current = self.current
        if current is not None:
            current.state = TaskState.TERMINATED
            self.current = None
            self.schedule()

    def step(self) -> Optional[Task]:
        """Run the running task until its next request; return it, or None if idle."""
        task = self.current
        if task is None or task.state is not TaskState.RUNNING:
            self.schedule()
            task = self.current
            if task is None or task.state is not TaskState.RUNNING:
                return None
        try:
            request = task._advance()
        except StopIteration:
            self.exit()
            return task
        if request is None:
            self.yield_task()
        else:
            self.sleep(int(request))
        return task

    def tasks(self) -> list[Task]:
        """Live tasks in slot order."""
        return [
            task
            for task in self._slots
            if task is not None and task.state is not TaskState.TERMINATED
        ]

    def ready_queue(self) -> list[Task]:
        return list(self._queue)


def idle_task(terminal: Any = None) -> Iterator[None]:
    """Give the CPU away forever."""
    while True:
        yield None


def counter_task(terminal: Any) -> Iterator[int]:
    """Print a rising counter, sleeping between prints."""
    for counter in count():
        terminal.set_color(vga_entry_color(VgaColor.LIGHT_GREEN, VgaColor.BLACK))
        terminal.write(f"[Counter: {counter}] ")
        yield COUNTER_SLEEP_TICKS


def greeter_task(terminal: Any) -> Iterator[int]:
    """Print the greetings in turn, sleeping between prints."""
    for greeting in cycle(GREETINGS):
        terminal.set_color(vga_entry_color(VgaColor.LIGHT_BROWN, VgaColor.BLACK))
        terminal.write(f"[{greeting}] ")
        yield GREETER_SLEEP_TICKS