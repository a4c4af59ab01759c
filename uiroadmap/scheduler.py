"""
Commit queue for owner notifications.

Graph edits are applied synchronously, but the owner must only hear about the
new document once the edit call has returned. Notifications are therefore
queued and delivered in a separate commit phase:

- With a running asyncio loop (the NiceGUI app), the phase is scheduled with
  loop.call_soon, i.e. on the next loop iteration.
- Without one (scripts, tests), callers run the phase themselves via flush().

Callbacks queued while a commit phase is running are delivered in the next one.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Callable, Deque, Optional, Set, Tuple

logger = logging.getLogger(__name__)


class CommitQueue:
    """FIFO of deferred callbacks, drained one batch per commit phase."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        """
        Args:
            loop: Event loop to schedule commit phases on. Defaults to the loop
                running at schedule time, if any.
        """
        self._loop = loop
        self._pending: Deque[Tuple[Callable[..., Any], Tuple[Any, ...]]] = deque()
        self._handle: Optional[asyncio.Handle] = None
        self._flushing = False
        # running async callbacks, referenced until done
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        """Number of callbacks waiting for the next commit phase."""
        return len(self._pending)

    def schedule(self, callback: Callable[..., Any], *args: Any) -> None:
        """Queue callback(*args). Never calls it inline."""
        self._pending.append((callback, args))
        self._arm()

    def _current_loop(self) -> Optional[asyncio.AbstractEventLoop]:
        if self._loop is not None:
            return self._loop
        try:
            return asyncio.get_running_loop()
        except RuntimeError:
            return None

    def _arm(self) -> None:
        if self._handle is not None or self._flushing:
            return
        loop = self._current_loop()
        if loop is None or loop.is_closed():
            return
        self._handle = loop.call_soon(self._on_tick)

    def _on_tick(self) -> None:
        self._handle = None
        self.flush()

    def flush(self) -> int:
        """
        Run one commit phase: deliver every callback queued before it started.
        Returns the number of callbacks delivered.
        """
        if self._flushing:
            return 0

        batch = list(self._pending)
        self._pending.clear()
        self._flushing = True
        try:
            for callback, args in batch:
                try:
                    result = callback(*args)
                    if asyncio.iscoroutine(result):
                        loop = self._current_loop()
                        if loop is None:
                            logger.warning(f"No event loop for async callback {callback!r}; dropping it")
                            result.close()
                        else:
                            task = loop.create_task(result)
                            self._tasks.add(task)
                            task.add_done_callback(self._task_done)
                except Exception as e:
                    logger.error(f"Error in commit callback {callback!r}: {e}")
        finally:
            self._flushing = False

        if self._pending:
            self._arm()
        return len(batch)

    @property
    def running_tasks(self) -> int:
        """Number of async callbacks still running."""
        return len(self._tasks)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Error in async commit callback: {error}")

    def clear(self) -> None:
        """Drop queued callbacks (editor unmount)."""
        self._pending.clear()
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
