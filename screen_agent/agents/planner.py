from typing import Any, List

from ..core.errors import VisionClientError
from ..core.types import Frame, Milestone
from ..llm.client import VisionClient
from ..llm.parsing import extract_json, preview
from . import prompts


def parse_milestones(raw_text: str) -> List[Milestone]:
    """Turn a planner response into milestones with ids 1..n in emission order.

    Accepts {"goals": [...]} or a bare list. Entries without a title are
    dropped. Anything unparseable yields an empty list.
    """
    try:
        parsed: Any = extract_json(raw_text, stage="planner")
    except ValueError:
        return []

    if isinstance(parsed, dict):
        goals = parsed.get("goals")
        if goals is None:
            goals = parsed.get("milestones")
    else:
        goals = parsed
    if not isinstance(goals, list):
        return []

    milestones: List[Milestone] = []
    for item in goals:
        if not isinstance(item, dict):
            continue
        title = str(item.get("title") or "").strip()
        if not title:
            continue
        description = str(item.get("description") or "").strip()
        # Model-supplied ids are ignored; ours are contiguous from 1.
        milestones.append(Milestone(id=len(milestones) + 1, title=title, description=description))
    return milestones


class MilestonePlanner:
    """Decomposes the goal into the remaining milestones, given what is already done."""

    def __init__(self, client: VisionClient):
        self.client = client

    async def plan(self, goal: str, history_summary: str, frame: Frame) -> List[Milestone]:
        print(f"[Planner] Generating plan for goal: {goal}")
        try:
            raw = await self.client.analyze(
                frame, prompts.planner_request(goal, history_summary), system=prompts.PLANNER_SYSTEM
            )
        except VisionClientError as e:
            print(f"[Planner] Model call failed: {e}")
            return []

        milestones = parse_milestones(raw)
        if not milestones:
            print(f"[Planner] Could not parse a plan from: {preview(raw)}")
            return []

        print(f"[Planner] Plan has {len(milestones)} milestones:")
        for m in milestones:
            print(f"  - {m.id}. {m.title}")
        return milestones
