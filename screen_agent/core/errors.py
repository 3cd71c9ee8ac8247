"""Error hierarchy for the screen agent.

Infrastructure failures (backend unreachable, capture failed) are kept apart from
semantic failures (the model answered, but not in the shape we asked for) so the
session can decide what is worth retrying on the next driven step.
"""


class ScreenAgentError(RuntimeError):
    """Base class for all errors raised by this package."""


class VisionClientError(ScreenAgentError):
    """The vision/language backend could not produce a response."""

    def __init__(self, provider: str, message: str):
        super().__init__(message)
        self.provider = provider

    def __str__(self):
        return f"[{self.provider}] {super().__str__()}"


class MalformedResponseError(ScreenAgentError, ValueError):
    """The backend answered but the payload could not be parsed."""

    def __init__(self, stage: str, raw: str):
        preview = raw if len(raw) <= 200 else raw[:197] + "..."
        super().__init__(f"{stage} returned malformed output: {preview}")
        self.stage = stage
        self.raw = raw


class CaptureError(ScreenAgentError):
    """A single screen capture failed (display gone, OS refused, ...)."""

    def __init__(self, display_id, message: str):
        super().__init__(message)
        self.display_id = display_id


class CapturePermissionError(CaptureError):
    """Screen recording permission was not granted."""
