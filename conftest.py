import asyncio
from collections import deque

import pytest
from PIL import Image

from screen_agent.core.errors import VisionClientError
from screen_agent.core.types import Frame


def solid_frame(color=(255, 255, 255), size=(64, 48), display_id=1) -> Frame:
    return Frame.from_image(Image.new("RGB", size, color), display_id=display_id)


class FakeVisionClient:
    """Replays scripted responses. An Exception in the script is raised instead of returned.

    Set `gate` to an asyncio.Event to hold every analyze() call until it is set.
    """

    def __init__(self, responses=None, text_responses=None):
        self.responses = deque(responses or [])
        self.text_responses = deque(text_responses or [])
        self.calls = []
        self.frames = []
        self.gate = None

    async def analyze(self, frame, prompt, system=None):
        self.calls.append(("analyze", prompt))
        self.frames.append(frame)
        # The answer is taken when the call is made, so held calls keep their place in the script
        item = self.responses.popleft() if self.responses else None
        gate = self.gate
        if gate is not None:
            await gate.wait()
        return self._resolve(item)

    async def complete(self, prompt, system=None):
        self.calls.append(("complete", prompt))
        return self._resolve(self.text_responses.popleft() if self.text_responses else None)

    @staticmethod
    def _resolve(item):
        if item is None:
            raise VisionClientError("fake", "no scripted response left")
        if isinstance(item, Exception):
            raise item
        return item


class _ManualHandle:
    def __init__(self):
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose ticks only happen when the test calls tick()."""

    def __init__(self):
        self.interval = None
        self._jobs = []

    def schedule_repeating(self, interval, callback):
        self.interval = interval
        handle = _ManualHandle()
        self._jobs.append((callback, handle))
        return handle

    @property
    def active(self):
        return sum(1 for _, handle in self._jobs if not handle.cancelled)

    async def tick(self):
        for callback, handle in list(self._jobs):
            if not handle.cancelled:
                await callback()


async def eventually(predicate, timeout: float = 2.0):
    """Yield to the loop until predicate() holds."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.01)


@pytest.fixture
def make_frame():
    return solid_frame


@pytest.fixture
def fake_client():
    return FakeVisionClient


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def wait_until():
    return eventually
