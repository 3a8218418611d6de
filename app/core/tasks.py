import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

logger = logging.getLogger(__name__)

ErrorCallback = Callable[[BaseException], Awaitable[None]]


class BackgroundTaskRunner:
    """Runs fire-and-forget coroutines as tracked asyncio tasks.

    A job that raises is reported to its ``on_error`` callback, which runs as
    a tracked task of its own. Exceptions never propagate to the submitter.
    """

    def __init__(self):
        self._tasks: Set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def submit(
        self,
        func: Callable[..., Awaitable[Any]],
        *args: Any,
        on_error: Optional[ErrorCallback] = None,
        name: Optional[str] = None,
    ) -> asyncio.Task:
        task = asyncio.create_task(func(*args), name=name)
        self._track(task)
        task.add_done_callback(lambda t: self._on_done(t, on_error))
        logger.debug(f"Task {task.get_name()} started")
        return task

    def _track(self, task: asyncio.Task) -> None:
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_done(self, task: asyncio.Task, on_error: Optional[ErrorCallback]) -> None:
        if task.cancelled():
            logger.warning(f"Task {task.get_name()} was cancelled")
            return

        exc = task.exception()
        if exc is None:
            return

        logger.error(f"Task {task.get_name()} failed: {exc}", exc_info=exc)
        if on_error is not None:
            self._track(asyncio.ensure_future(self._run_error_callback(task.get_name(), on_error, exc)))

    async def _run_error_callback(self, name: str, on_error: ErrorCallback, exc: BaseException) -> None:
        try:
            await on_error(exc)
        except Exception as callback_exc:
            logger.error(f"Error callback for task {name} failed: {callback_exc}", exc_info=callback_exc)

    async def wait_all(self) -> None:
        # Error callbacks may be added while waiting
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self, timeout: float) -> None:
        if not self._tasks:
            return

        logger.info(f"Waiting up to {timeout}s for {len(self._tasks)} background tasks")
        try:
            await asyncio.wait_for(self.wait_all(), timeout=timeout)
        except asyncio.TimeoutError:
            for task in list(self._tasks):
                task.cancel()
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
            logger.warning("Cancelled background tasks still running at shutdown")
