"""Simulated hobby kernel: terminal, heap, file system, interrupts, scheduler and shell."""

__version__ = "0.3.0"

__all__ = ["terminal", "memory", "filesystem", "interrupts", "scheduler", "shell", "kernel"]