from typing import Optional

from ..core.errors import VisionClientError
from ..core.types import Frame
from ..llm.client import VisionClient
from ..llm.parsing import preview
from . import prompts


class Diagnoser:
    """Looks for something on screen that blocks the current step."""

    def __init__(self, client: VisionClient):
        self.client = client

    async def diagnose(self, goal: str, instruction: str, frame: Frame) -> Optional[str]:
        try:
            raw = await self.client.analyze(
                frame, prompts.diagnoser_request(goal, instruction), system=prompts.DIAGNOSER_SYSTEM
            )
        except VisionClientError as e:
            print(f"[Diagnoser] Model call failed: {e}")
            return None

        text = raw.strip()
        # A bare "OK" (or something too short to be a diagnosis) means nothing is blocking
        if len(text) <= 10 or text.strip(" .,!:;\"'`").lower() == "ok":
            print("[Diagnoser] No blocking issue found")
            return None
        print(f"[Diagnoser] {preview(text)}")
        return text
