import asyncio
from typing import Awaitable, Callable, Protocol

TickCallback = Callable[[], Awaitable[None]]


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def schedule_repeating(self, interval: float, callback: TickCallback) -> Cancellable: ...


class _TaskHandle:
    def __init__(self, task: asyncio.Task):
        self._task = task

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()

    @property
    def cancelled(self) -> bool:
        return self._task.cancelled()


class AsyncioScheduler:
    """Runs the callback every `interval` seconds on the running event loop.

    Ticks never overlap: the next sleep starts after the previous callback
    returned. Must be used from inside a running loop.
    """

    def schedule_repeating(self, interval: float, callback: TickCallback) -> _TaskHandle:
        async def _loop():
            while True:
                await asyncio.sleep(interval)
                try:
                    await callback()
                except asyncio.CancelledError:
                    raise
                except Exception as e:
                    print(f"[Scheduler] Tick callback failed: {e}")

        task = asyncio.get_running_loop().create_task(_loop())
        return _TaskHandle(task)
