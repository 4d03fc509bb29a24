"""Delayed actions for connected clients: hello timeouts, delayed sends and removals."""

from __future__ import annotations

import bisect
import enum
import itertools
import time
from collections.abc import Callable, Hashable
from dataclasses import dataclass, field
from typing import Any

HELLO_TIMEOUT = 3.0


class TaskKind(enum.IntEnum):
    """What a scheduled task does when it becomes due."""

    WAIT_FOR_HELLO = 0
    SEND_WITH_DELAY = 1
    REMOVE = 2


@dataclass(order=True)
class _Task:
    when: float
    kind: TaskKind
    seq: int
    client: Any = field(compare=False)
    message: str | None = field(default=None, compare=False)


class TaskScheduler:
    """Keeps the tasks to run later, ordered by due time.

    ``send(target, text)`` writes a delayed message, ``close(client)`` closes a
    client's connection and ``drop(client)`` forgets a client for good.
    """

    def __init__(
        self,
        send: Callable[[Any, str], Any],
        close: Callable[[Any], Any],
        drop: Callable[[Any], Any],
    ) -> None:
        self._send = send
        self._close = close
        self._drop = drop
        self._tasks: list[_Task] = []
        self._seq = itertools.count()
        self._clients: list[Hashable] = []
        self._clock = time.monotonic

    @property
    def clients(self) -> list[Any]:
        """Clients added and not yet dropped, in the order they joined."""
        return list(self._clients)

    def _schedule(self, when: float, kind: TaskKind, client: Any, message: str | None = None) -> None:
        bisect.insort(self._tasks, _Task(when, kind, next(self._seq), client, message))

    def add_player(self, client: Any) -> None:
        """Register a new client; it is removed unless it says hello in time."""
        self._clients.append(client)
        self._schedule(self._clock() + HELLO_TIMEOUT, TaskKind.WAIT_FOR_HELLO, client)

    def add_send(self, client: Any, delay: float, message: str) -> None:
        """Send message to client after delay seconds."""
        self._schedule(self._clock() + delay, TaskKind.SEND_WITH_DELAY, client, message)

    def remove_client(self, client: Any) -> None:
        """Close client now, cancel its tasks and drop it on the next execution."""
        self._close(client)
        self._tasks = [task for task in self._tasks if task.client != client]
        self._schedule(self._clock(), TaskKind.REMOVE, client)

    def handle_hello(self, client: Any) -> None:
        """Cancel the hello timeout of client."""
        self._tasks = [
            task
            for task in self._tasks
            if not (task.client == client and task.kind is TaskKind.WAIT_FOR_HELLO)
        ]

    def execute_due(self, now: float | None = None) -> None:
        """Run every task due strictly before now; tasks added meanwhile wait."""
        if now is None:
            now = self._clock()
        boundary = next(self._seq)
        while self._tasks and self._tasks[0].when < now:
            index = next(
                (i for i, task in enumerate(self._tasks) if task.when < now and task.seq < boundary),
                None,
            )
            if index is None:
                break
            task = self._tasks.pop(index)
            if task.kind is TaskKind.WAIT_FOR_HELLO:
                self.remove_client(task.client)
            elif task.kind is TaskKind.SEND_WITH_DELAY:
                self._send(task.client, task.message or "")
            else:
                if task.client in self._clients:
                    self._clients.remove(task.client)
                self._drop(task.client)

    def is_answering(self, client: Any) -> bool:
        """True if a delayed message for client is still waiting to be sent."""
        return any(
            task.client == client and task.kind is TaskKind.SEND_WITH_DELAY
            for task in self._tasks
        )

    def timeout(self, now: float | None = None) -> float | None:
        """Seconds until the earliest task, or None if there is nothing to wait for."""
        if not self._tasks:
            return None
        if now is None:
            now = self._clock()
        return abs(self._tasks[0].when - now)

    def clear(self) -> None:
        """Forget all tasks, closing and dropping every client."""
        self._tasks.clear()
        clients, self._clients = self._clients, []
        for client in clients:
            self._close(client)
            self._drop(client)