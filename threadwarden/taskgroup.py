"""Join-all task group for independent remote mutations."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any

logger = logging.getLogger(__name__)


class TaskGroup:
    """Run scheduled callables concurrently and report the first failure.

    Every task runs to completion even when a sibling fails; nothing is
    cancelled or rolled back. ``max_workers`` caps the pool, otherwise each
    task gets its own worker.
    """

    def __init__(self, max_workers: int | None = None) -> None:
        if max_workers is not None and max_workers < 1:
            raise ValueError("max_workers must be positive")
        self.max_workers = max_workers
        self.errors: list[BaseException] = []
        self._tasks: list[Callable[[], Any]] = []

    def __len__(self) -> int:
        return len(self._tasks)

    def go(self, fn: Callable[..., Any], /, *args: Any, **kwargs: Any) -> None:
        self._tasks.append(lambda: fn(*args, **kwargs))

    def wait(self) -> None:
        tasks, self._tasks = self._tasks, []
        self.errors = []
        if not tasks:
            return
        workers = min(self.max_workers or len(tasks), len(tasks))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="threadwarden-task") as pool:
            futures = [pool.submit(task) for task in tasks]
            for future in as_completed(futures):
                exc = future.exception()
                if exc is not None:
                    logger.debug("Task failed: %s", exc)
                    self.errors.append(exc)
        if self.errors:
            raise self.errors[0]


def run_all(operations: Iterable[Callable[[], Any]], max_workers: int | None = None) -> None:
    group = TaskGroup(max_workers=max_workers)
    for operation in operations:
        group.go(operation)
    group.wait()
