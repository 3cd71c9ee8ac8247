from typing import Any, Dict, Mapping, Optional

from ..core.blackboard import Blackboard
from ..core.errors import VisionClientError
from ..core.types import Frame, Milestone, StepResult
from ..llm.client import VisionClient
from ..llm.parsing import extract_json, preview
from . import prompts

NO_STEP_MESSAGE = "Could not work out the next step. Request the next step again to retry."


def _clean_memory(raw: Any) -> Dict[str, str]:
    """Keep only string-keyed, non-empty entries; values are stringified."""
    if not isinstance(raw, dict):
        return {}
    memory: Dict[str, str] = {}
    for key, value in raw.items():
        if value is None or isinstance(value, (dict, list)):
            continue
        key_s = str(key).strip()
        value_s = str(value).strip()
        if key_s and value_s:
            memory[key_s] = value_s
    return memory


def parse_step(raw_text: str, blackboard: Mapping[str, str]) -> StepResult:
    try:
        parsed = extract_json(raw_text, stage="navigator")
    except ValueError:
        return StepResult(instruction=NO_STEP_MESSAGE, malformed=True)

    if isinstance(parsed, list) and len(parsed) == 1:
        parsed = parsed[0]
    if not isinstance(parsed, dict):
        return StepResult(instruction=NO_STEP_MESSAGE, malformed=True)

    instruction = str(parsed.get("instruction") or "").strip()
    criteria = str(parsed.get("success_criteria") or "").strip()
    if not instruction or not criteria:
        return StepResult(instruction=NO_STEP_MESSAGE, malformed=True)

    memory = _clean_memory(parsed.get("memory_to_save"))

    value_to_copy: Optional[str] = parsed.get("value_to_copy")
    if value_to_copy is not None:
        value_to_copy = str(value_to_copy).strip() or None
    if value_to_copy is not None:
        known = set(blackboard.values()) | set(memory.values())
        if value_to_copy not in known:
            print(f"[Navigator] Dropping value_to_copy not found in blackboard: {preview(value_to_copy, 60)}")
            value_to_copy = None

    return StepResult(
        instruction=instruction,
        success_criteria=criteria,
        memory_writes=memory,
        value_to_copy=value_to_copy,
    )


class StepNavigator:
    """Produces the single next instruction for the active milestone."""

    def __init__(self, client: VisionClient):
        self.client = client

    async def next(self, milestone: Milestone, blackboard: Mapping[str, str], frame: Frame) -> StepResult:
        print(f"[Navigator] Getting next step for milestone {milestone.id}: {milestone.title}")
        request = prompts.navigator_request(milestone, Blackboard(blackboard).format())
        try:
            raw = await self.client.analyze(frame, request, system=prompts.NAVIGATOR_SYSTEM)
        except VisionClientError as e:
            print(f"[Navigator] Model call failed: {e}")
            return StepResult(instruction=NO_STEP_MESSAGE, malformed=True)

        step = parse_step(raw, blackboard)
        if step.malformed:
            print(f"[Navigator] Malformed response: {preview(raw)}")
            return step

        print(
            f"[Navigator] instruction='{preview(step.instruction)}' criteria='{preview(step.success_criteria)}' "
            f"memory_keys={sorted(step.memory_writes)} copy={'yes' if step.value_to_copy else 'no'}"
        )
        return step
