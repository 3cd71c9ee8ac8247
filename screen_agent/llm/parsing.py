import json
from typing import Any

from ..core.errors import MalformedResponseError


def flatten_content(content: Any) -> str:
    """Flatten OpenAI-style mixed content into a single string."""
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
            elif isinstance(block, str):
                parts.append(block)
        return "\n".join(parts).strip()
    return str(content)


def strip_code_fences(raw_text: str) -> str:
    if "```json" in raw_text:
        return raw_text.split("```json")[1].split("```")[0].strip()
    if "```" in raw_text:
        return raw_text.split("```")[1].split("```")[0].strip()
    return raw_text.strip()


def extract_json(raw_text: str, stage: str = "model") -> Any:
    """Parse the JSON payload of a model response.

    Handles markdown code fences and chatter around the payload by falling back
    to the outermost {...} (then [...]) span. Raises MalformedResponseError (a
    ValueError) when nothing parses.
    """
    text = strip_code_fences(raw_text)
    try:
        return json.loads(text)
    except ValueError:
        pass

    for open_ch, close_ch in (("{", "}"), ("[", "]")):
        start = text.find(open_ch)
        end = text.rfind(close_ch)
        if start != -1 and end > start:
            try:
                return json.loads(text[start: end + 1])
            except ValueError:
                continue
    raise MalformedResponseError(stage, raw_text or "")


def preview(text: str, limit: int = 220) -> str:
    text = text or ""
    return text if len(text) <= limit else text[: limit - 3] + "..."
