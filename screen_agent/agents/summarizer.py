from typing import List

from ..core import config
from ..core.errors import VisionClientError
from ..core.types import Milestone
from ..llm.client import VisionClient
from ..llm.parsing import preview
from . import prompts


def clean_summary(raw_text: str, max_words: int = None) -> str:
    max_words = max_words or config.SUMMARY_MAX_WORDS
    text = " ".join((raw_text or "").split())
    text = text.strip().strip("\"'`").strip()
    words = text.split(" ")
    if len(words) > max_words:
        text = " ".join(words[:max_words]).rstrip(",;:") + "..."
    return text


def fallback_summary(milestone: Milestone) -> str:
    return f"Completed milestone '{milestone.title}'."


class MilestoneSummarizer:
    """One-sentence history entry per completed milestone; the planner only ever sees these."""

    def __init__(self, client: VisionClient):
        self.client = client

    async def summarize(self, milestone: Milestone, action_log: List[str]) -> str:
        print(f"[Summarizer] Summarizing milestone {milestone.id}: {milestone.title}")
        try:
            raw = await self.client.complete(
                prompts.summarizer_request(milestone, action_log), system=prompts.SUMMARIZER_SYSTEM
            )
        except VisionClientError as e:
            print(f"[Summarizer] Model call failed: {e}")
            return fallback_summary(milestone)

        summary = clean_summary(raw)
        if not summary:
            return fallback_summary(milestone)
        print(f"[Summarizer] Summary: {preview(summary)}")
        return summary
