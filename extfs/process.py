"""Round-robin process scheduling driven by timer ticks, and counting semaphores."""

from __future__ import annotations

import enum
from collections import deque
from dataclasses import dataclass, field

MAX_PCB_NUM = 4
MAX_TIME_COUNT = 16
MAX_SEM_NUM = 4

# A sleep time that never runs out: blocked on a semaphore or a device.
FOREVER = -1


class ProcessState(enum.IntEnum):
    RUNNABLE = 0
    RUNNING = 1
    BLOCKED = 2
    DEAD = 3


class SemaphoreError(Exception):
    """Raised for a semaphore index that is invalid or not in use."""


@dataclass
class _Process:
    pid: int
    state: ProcessState = ProcessState.DEAD
    time_count: int = 0
    sleep_time: int = 0


class Scheduler:
    """A fixed table of processes; process 0 idles, process 1 starts runnable."""

    def __init__(self, size: int = MAX_PCB_NUM, max_time_count: int = MAX_TIME_COUNT) -> None:
        if size < 2:
            raise ValueError("the process table holds at least two processes")
        if max_time_count < 1:
            raise ValueError("a time slice lasts at least one tick")
        self.max_time_count = max_time_count
        self.processes = [_Process(pid) for pid in range(size)]
        idle = self.processes[0]
        idle.state = ProcessState.RUNNING
        idle.time_count = max_time_count
        self.processes[1].state = ProcessState.RUNNABLE
        self.current = 0

    def _others(self):
        size = len(self.processes)
        return (self.processes[(self.current + step) % size] for step in range(1, size))

    def tick(self) -> int:
        """Advance the clock by one tick and return the pid that runs next."""
        for proc in self._others():
            if proc.state == ProcessState.BLOCKED and proc.sleep_time != FOREVER:
                proc.sleep_time -= 1
                if proc.sleep_time == 0:
                    proc.state = ProcessState.RUNNABLE

        running = self.processes[self.current]
        if running.state == ProcessState.RUNNING and running.time_count != self.max_time_count:
            running.time_count += 1
            return self.current
        if running.state == ProcessState.RUNNING:
            running.state = ProcessState.RUNNABLE
            running.time_count = 0

        chosen = next(
            (
                proc.pid
                for proc in self._others()
                if proc.pid != 0 and proc.state == ProcessState.RUNNABLE
            ),
            None,
        )
        if chosen is None:
            chosen = self.current if running.state == ProcessState.RUNNABLE else 0
        self.current = chosen
        proc = self.processes[chosen]
        proc.state = ProcessState.RUNNING
        proc.time_count = 1
        return chosen

    def fork(self) -> int:
        """Copy the current process into the first free slot; return the child's pid."""
        child = next(
            (proc for proc in self.processes if proc.state == ProcessState.DEAD), None
        )
        if child is None:
            raise RuntimeError("the process table is full")
        parent = self.processes[self.current]
        child.state = ProcessState.RUNNABLE
        child.time_count = parent.time_count
        child.sleep_time = parent.sleep_time
        return child.pid

    def sleep(self, ticks: int) -> int:
        """Put the current process to sleep for ``ticks`` ticks; return who runs."""
        if ticks < 0:
            raise ValueError("sleep time must not be negative")
        if ticks == 0:
            return self.current
        proc = self.processes[self.current]
        proc.state = ProcessState.BLOCKED
        proc.sleep_time = ticks
        return self.tick()

    def exit(self) -> int:
        """End the current process; return who runs next."""
        self.processes[self.current].state = ProcessState.DEAD
        return self.tick()

    def block(self) -> int:
        """Block the current process until it is woken; return who runs next."""
        proc = self.processes[self.current]
        proc.state = ProcessState.BLOCKED
        proc.sleep_time = FOREVER
        return self.tick()

    def wake(self, pid: int) -> None:
        """Make a blocked process runnable again."""
        if not 0 <= pid < len(self.processes):
            raise ValueError(f"no process {pid}")
        proc = self.processes[pid]
        proc.state = ProcessState.RUNNABLE
        proc.sleep_time = 0


@dataclass
class _Semaphore:
    in_use: bool = False
    value: int = 0
    waiters: deque = field(default_factory=deque)


class SemaphoreTable:
    """Counting semaphores whose waiters are woken in the order they blocked."""

    def __init__(self, scheduler: Scheduler, size: int = MAX_SEM_NUM) -> None:
        if size < 1:
            raise ValueError("the semaphore table holds at least one semaphore")
        self.scheduler = scheduler
        self.semaphores = [_Semaphore() for _ in range(size)]

    def _get(self, index: int) -> _Semaphore:
        if not 0 <= index < len(self.semaphores):
            raise SemaphoreError(f"no semaphore {index}")
        sem = self.semaphores[index]
        if not sem.in_use:
            raise SemaphoreError(f"semaphore {index} is not in use")
        return sem

    def init(self, value: int) -> int:
        """Take a free semaphore, set it to ``value`` and return its index."""
        for index, sem in enumerate(self.semaphores):
            if not sem.in_use:
                sem.in_use = True
                sem.value = value
                sem.waiters.clear()
                return index
        raise SemaphoreError("no free semaphore")

    def wait(self, index: int) -> bool:
        """Decrement the semaphore; return True if the caller had to block."""
        sem = self._get(index)
        sem.value -= 1
        if sem.value >= 0:
            return False
        sem.waiters.append(self.scheduler.current)
        self.scheduler.block()
        return True

    def post(self, index: int) -> int | None:
        """Increment the semaphore; return the pid woken, if any."""
        sem = self._get(index)
        sem.value += 1
        if sem.value > 0 or not sem.waiters:
            return None
        pid = sem.waiters.popleft()
        self.scheduler.wake(pid)
        return pid

    def destroy(self, index: int) -> None:
        """Release the semaphore."""
        sem = self._get(index)
        sem.in_use = False
        sem.value = 0
        sem.waiters.clear()