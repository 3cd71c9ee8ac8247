import asyncio

import pytest
from PIL import Image

from screen_agent.capture.source import CaptureSource
from screen_agent.core.errors import CaptureError


class FlakyGrabber:
    """Fails the first `failures` grabs, then returns a solid image per display."""

    def __init__(self, failures=0, colors=None):
        self.failures = failures
        self.colors = colors or {}
        self.calls = []

    def __call__(self, display_id):
        self.calls.append(display_id)
        if len(self.calls) <= self.failures:
            raise OSError("display went away")
        return Image.new("RGB", (32, 24), self.colors.get(display_id, (200, 200, 200)))


def _source(scheduler, grabber, **kwargs):
    source = CaptureSource(grabber=grabber, scheduler=scheduler, display_id=1, **kwargs)
    published, errors = [], []
    source.subscribe(published.append)
    source.subscribe_errors(errors.append)
    return source, published, errors


def test_unchanged_frames_are_published_once(scheduler):
    async def scenario():
        source, published, _ = _source(scheduler, FlakyGrabber())
        await source.start_polling()
        await scheduler.tick()
        await scheduler.tick()
        source.stop_polling()
        return published

    published = asyncio.run(scenario())
    assert len(published) == 1
    assert published[0].display_id == 1


def test_start_polling_twice_is_a_no_op(scheduler):
    async def scenario():
        source, _, _ = _source(scheduler, FlakyGrabber())
        first = source.start_polling()
        second = source.start_polling()
        await first
        source.stop_polling()
        return second

    assert asyncio.run(scenario()) is None
    assert scheduler.active == 0


def test_target_switch_resets_deduplication(scheduler):
    async def scenario():
        # Both displays show exactly the same pixels
        source, published, _ = _source(scheduler, FlakyGrabber())
        await source.start_polling()
        assert source.update_target(1) is None
        await source.update_target(2)
        await scheduler.tick()
        source.stop_polling()
        return source, published

    source, published = asyncio.run(scenario())
    assert [f.display_id for f in published] == [1, 2]
    assert source.current_target == 2


def test_failing_ticks_recover_without_restart(scheduler):
    async def scenario():
        grabber = FlakyGrabber(failures=3)
        source, published, errors = _source(scheduler, grabber)
        await source.start_polling()
        await scheduler.tick()
        await scheduler.tick()
        assert published == []
        assert source.last_error is not None
        await scheduler.tick()
        source.stop_polling()
        return source, grabber, published, errors

    source, grabber, published, errors = asyncio.run(scenario())
    assert len(grabber.calls) == 4
    assert len(errors) == 3
    assert all(isinstance(e, CaptureError) for e in errors)
    assert len(published) == 1
    assert source.last_error is None


def test_capture_once_raises_capture_error(scheduler):
    async def scenario():
        source, _, errors = _source(scheduler, FlakyGrabber(failures=1))
        with pytest.raises(CaptureError):
            await source.capture_once()
        return errors

    assert len(asyncio.run(scenario())) == 1


def test_subscriber_failure_does_not_stop_publishing(scheduler):
    async def scenario():
        grabber = FlakyGrabber(colors={1: (0, 0, 0), 2: (255, 0, 0)})
        source = CaptureSource(grabber=grabber, scheduler=scheduler, display_id=1)
        seen = []

        def broken(frame):
            raise RuntimeError("boom")

        source.subscribe(broken)
        unsubscribe = source.subscribe(seen.append)
        await source.capture_once()
        unsubscribe()
        await source.update_target(2)
        return seen

    assert len(asyncio.run(scenario())) == 1


def test_permission_probe(scheduler):
    async def scenario(probe):
        source = CaptureSource(grabber=FlakyGrabber(), scheduler=scheduler, permission_probe=probe)
        return await source.request_permission()

    def broken_probe():
        raise RuntimeError("no access")

    assert asyncio.run(scenario(lambda: True)) is True
    assert asyncio.run(scenario(lambda: False)) is False
    assert asyncio.run(scenario(broken_probe)) is False
