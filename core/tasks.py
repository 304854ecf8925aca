"""
Deferred task simulation.

A ``DeferredTask`` is a frozen value. ``advance`` is the only transition:
it moves progress forward by the task's step and returns the lines that
tick emits, the next task value, and whether the task is done. The
``TaskScheduler`` decides *when* to call it, using a monotonic clock the
host supplies, so nothing here sleeps or spawns threads.

Completion side effects are plain ``Session -> Session`` functions. The
scheduler hands them back to the caller, which applies them to whatever
snapshot is current at that moment.
"""
from __future__ import annotations

import itertools
import json
import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Callable, Optional, Sequence

_log = logging.getLogger("commands")


class TaskState(str, Enum):
    PENDING   = "pending"
    RUNNING   = "running"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class CancellationToken:
    """Shared flag; once cancelled a task never ticks or applies its effect again."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


@dataclass(frozen=True)
class DeferredTask:
    command: str
    step: int
    interval: float
    # Lines emitted by the tick that reaches the given progress.
    render: Callable[[int], Sequence[str]]
    preamble: tuple[str, ...] = ()
    effect: Optional[Callable] = None
    progress: int = 0
    task_id: int = 0
    token: CancellationToken = field(default_factory=CancellationToken, compare=False)

    @property
    def state(self) -> TaskState:
        if self.token.cancelled:
            return TaskState.CANCELLED
        if self.progress >= 100:
            return TaskState.COMPLETED
        if self.progress == 0:
            return TaskState.PENDING
        return TaskState.RUNNING


@dataclass(frozen=True)
class TickOutcome:
    task: DeferredTask
    lines: list[str]
    completed: bool


def advance(task: DeferredTask) -> TickOutcome:
    """Pure tick transition: ``task -> (task', lines, completed)``."""
    progress = min(100, task.progress + task.step)
    lines = list(task.render(progress))
    return TickOutcome(replace(task, progress=progress), lines, progress >= 100)


class _Entry:
    __slots__ = ("task", "due")

    def __init__(self, task: DeferredTask, due: float):
        self.task = task
        self.due  = due


class TaskScheduler:
    """Runs any number of deferred tasks side by side against a host clock."""

    def __init__(self):
        self._entries: dict[int, _Entry] = {}
        self._ids = itertools.count(1)

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def running(self) -> list[DeferredTask]:
        return [e.task for e in self._entries.values()]

    def start(self, task: DeferredTask, now: float) -> DeferredTask:
        task = replace(task, task_id=next(self._ids))
        self._entries[task.task_id] = _Entry(task, now + task.interval)
        _log.info(json.dumps({
            "event_type": "task_start", "task_id": task.task_id, "command": task.command,
        }))
        return task

    def next_due(self) -> Optional[float]:
        if not self._entries:
            return None
        return min(e.due for e in self._entries.values())

    def tick(self, now: float) -> list[TickOutcome]:
        """
        Advance every task whose tick is due at ``now``.

        A task that fell behind catches up with several ticks. Ticks of
        different tasks are ordered by their due time.
        """
        outcomes = []
        while True:
            self._drop_cancelled()
            due = [e for e in self._entries.values() if e.due <= now]
            if not due:
                return outcomes
            entry = min(due, key=lambda e: (e.due, e.task.task_id))
            outcome = advance(entry.task)
            outcomes.append(outcome)
            if outcome.completed:
                del self._entries[entry.task.task_id]
                _log.info(json.dumps({
                    "event_type": "task_complete", "task_id": entry.task.task_id,
                    "command": entry.task.command,
                }))
            else:
                entry.task = outcome.task
                entry.due += entry.task.interval

    def cancel(self, task_id: int) -> bool:
        entry = self._entries.pop(task_id, None)
        if entry is None:
            return False
        entry.task.token.cancel()
        _log.info(json.dumps({
            "event_type": "task_cancel", "task_id": task_id, "command": entry.task.command,
        }))
        return True

    def cancel_all(self) -> int:
        ids = list(self._entries)
        for task_id in ids:
            self.cancel(task_id)
        return len(ids)

    def _drop_cancelled(self) -> None:
        for task_id in [i for i, e in self._entries.items() if e.task.token.cancelled]:
            del self._entries[task_id]
