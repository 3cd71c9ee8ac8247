from ..core.errors import VisionClientError
from ..core.types import Frame, WatchResult
from ..llm.client import VisionClient
from ..llm.parsing import extract_json, preview
from . import prompts


def _as_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    return False


def parse_watch(raw_text: str) -> WatchResult:
    """A verdict without reasoning is not trusted and never counts as complete."""
    try:
        parsed = extract_json(raw_text, stage="watcher")
    except ValueError:
        return WatchResult(False, "Watcher response was not valid JSON", trusted=False)

    if isinstance(parsed, list) and len(parsed) == 1:
        parsed = parsed[0]
    if not isinstance(parsed, dict) or "is_complete" not in parsed:
        return WatchResult(False, "Watcher response had no verdict", trusted=False)

    reasoning = str(parsed.get("reasoning") or "").strip()
    if not reasoning:
        return WatchResult(False, "Watcher gave a verdict without reasoning", trusted=False)
    return WatchResult(_as_bool(parsed.get("is_complete")), reasoning)


class CompletionWatcher:
    """Judges the current screen against a previously committed success criterion."""

    def __init__(self, client: VisionClient):
        self.client = client

    async def check(self, success_criteria: str, frame: Frame) -> WatchResult:
        print(f"[Watcher] Checking criteria: {preview(success_criteria)}")
        try:
            raw = await self.client.analyze(
                frame, prompts.watcher_request(success_criteria), system=prompts.WATCHER_SYSTEM
            )
        except VisionClientError as e:
            print(f"[Watcher] Model call failed: {e}")
            return WatchResult(False, f"Watcher call failed: {e}", trusted=False)

        result = parse_watch(raw)
        if not result.trusted:
            print(f"[Watcher] Discarding response ({result.reasoning}): {preview(raw)}")
        else:
            print(f"[Watcher] is_complete={result.is_complete} reasoning='{preview(result.reasoning)}'")
        return result
