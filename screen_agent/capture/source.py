import asyncio
from typing import Callable, List, Optional, Set, Union

import mss
from PIL import Image

from ..core import config
from ..core.errors import CaptureError, CapturePermissionError
from ..core.types import Frame
from .differ import ChangeFingerprint, changed
from .scheduler import AsyncioScheduler, Cancellable, Scheduler

DEBUG_CAPTURE = False

FrameCallback = Callable[[Frame], None]
ErrorCallback = Callable[[CaptureError], None]
Grabber = Callable[[int], Union[Image.Image, Frame]]


def _debug(msg: str) -> None:
    if DEBUG_CAPTURE:
        print(msg)


class MssGrabber:
    """Grab a whole physical display. `display_id` is an mss monitor index (1 = primary)."""

    def __call__(self, display_id: int) -> Image.Image:
        with mss.mss() as sct:
            monitors = sct.monitors
            if display_id is None or not 0 <= display_id < len(monitors):
                raise CaptureError(display_id, f"Display {display_id} not found ({len(monitors) - 1} attached)")
            shot = sct.grab(monitors[display_id])
        return Image.frombytes("RGB", shot.size, shot.bgra, "raw", "BGRX")

    def probe(self) -> bool:
        """A grab only succeeds when the OS lets us record the screen."""
        with mss.mss() as sct:
            if len(sct.monitors) < 2:
                raise CapturePermissionError(None, "No display is visible to screen capture")
            sct.grab(sct.monitors[1])
        return True


class CaptureSource:
    """Timer-driven screen capture that only publishes frames that changed.

    Polling runs on its own scheduler and never waits for the consumers. The
    change-detection reference is kept per target and dropped whenever the
    target display switches, so the first frame on a new display always counts
    as changed.
    """

    def __init__(
        self,
        grabber: Optional[Grabber] = None,
        scheduler: Optional[Scheduler] = None,
        display_id: int = None,
        permission_probe: Optional[Callable[[], bool]] = None,
    ):
        self._grabber = grabber or MssGrabber()
        self._scheduler = scheduler or AsyncioScheduler()
        self._permission_probe = permission_probe
        self.current_target = config.DEFAULT_DISPLAY if display_id is None else display_id
        self.interval = config.POLL_INTERVAL
        self.polling_active = False
        self.last_fingerprint: Optional[ChangeFingerprint] = None
        self.last_error: Optional[str] = None
        self._handle: Optional[Cancellable] = None
        self._inflight: Set[asyncio.Task] = set()
        self._subscribers: List[FrameCallback] = []
        self._error_subscribers: List[ErrorCallback] = []

    # --- subscriptions ---

    def subscribe(self, callback: FrameCallback) -> Callable[[], None]:
        self._subscribers.append(callback)
        return lambda: self._subscribers.remove(callback) if callback in self._subscribers else None

    def subscribe_errors(self, callback: ErrorCallback) -> Callable[[], None]:
        self._error_subscribers.append(callback)
        return lambda: self._error_subscribers.remove(callback) if callback in self._error_subscribers else None

    # --- permission ---

    async def request_permission(self) -> bool:
        probe = self._permission_probe or getattr(self._grabber, "probe", None)
        if probe is None:
            return True
        try:
            granted = bool(await asyncio.to_thread(probe))
        except CapturePermissionError as e:
            print(f"[Capture] {e}")
            granted = False
        except Exception as e:
            print(f"[Capture] Permission check failed: {e}")
            granted = False
        print(f"[Capture] Permission check: {'GRANTED' if granted else 'DENIED'}")
        return granted

    # --- polling ---

    def start_polling(self, interval: Optional[float] = None) -> Optional[asyncio.Task]:
        """Start the repeating capture and fire one capture right away.

        Returns the task of that immediate capture, or None when already polling.
        """
        if self.polling_active:
            return None
        self.interval = interval or self.interval
        self.polling_active = True
        self.last_error = None
        print(f"[Capture] Starting polling every {self.interval}s on display {self.current_target}")
        self._handle = self._scheduler.schedule_repeating(self.interval, self._tick)
        return self._spawn(self._tick())

    def stop_polling(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        for task in list(self._inflight):
            task.cancel()
        self._inflight.clear()
        if self.polling_active:
            print("[Capture] Polling stopped")
        self.polling_active = False

    def update_target(self, display_id: int) -> Optional[asyncio.Task]:
        """Switch displays; the next capture is treated as changed no matter what it shows."""
        if display_id == self.current_target:
            return None
        print(f"[Capture] Switching to display {display_id}")
        self.current_target = display_id
        self.last_fingerprint = None
        return self._spawn(self._tick())

    # --- capture ---

    async def capture_once(self) -> Frame:
        """Grab the current target and publish it if it differs from the last accepted frame.

        Raises CaptureError on failure (after notifying error subscribers).
        """
        target = self.current_target
        try:
            grabbed = await asyncio.to_thread(self._grabber, target)
            frame = grabbed if isinstance(grabbed, Frame) else Frame.from_image(grabbed, display_id=target)
        except CaptureError as e:
            self._report(e)
            raise
        except Exception as e:
            err = CaptureError(target, f"Capture failed on display {target}: {e}")
            self._report(err)
            raise err from e

        self.last_error = None
        if target != self.current_target:
            # Target switched while we were grabbing; this frame belongs to the old display.
            _debug(f"[Capture] Dropping frame from previous display {target}")
            return frame

        is_changed, fp = await asyncio.to_thread(changed, frame, self.last_fingerprint)
        if target != self.current_target:
            return frame
        if not is_changed:
            _debug("[Capture] Screen unchanged, skipping")
            return frame

        self.last_fingerprint = fp
        print(f"[Capture] New frame from display {target} ({frame.width}x{frame.height})")
        for callback in list(self._subscribers):
            try:
                callback(frame)
            except Exception as e:
                print(f"[Capture] Subscriber failed: {e}")
        return frame

    async def _tick(self) -> None:
        try:
            await self.capture_once()
        except CaptureError:
            # Already reported; the next tick tries again.
            pass

    def _report(self, err: CaptureError) -> None:
        self.last_error = str(err)
        print(f"[Capture] ERROR: {err}")
        for callback in list(self._error_subscribers):
            try:
                callback(err)
            except Exception as e:
                print(f"[Capture] Error subscriber failed: {e}")

    def _spawn(self, coro) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)
        return task
