import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# Model backends (OPENAI_API_KEY is picked up by langchain-openai itself)
VISION_MODEL = os.getenv("VISION_MODEL", "gpt-4o-mini")
TEXT_MODEL = os.getenv("TEXT_MODEL", VISION_MODEL)
VISION_TEMPERATURE = float(os.getenv("VISION_TEMPERATURE", "0.1"))
MODEL_TIMEOUT = float(os.getenv("MODEL_TIMEOUT", "45"))
MODEL_MAX_RETRIES = int(os.getenv("MODEL_MAX_RETRIES", "1"))

# Images sent to the model are downscaled to keep token usage sane
IMAGE_MAX_SIZE = int(os.getenv("IMAGE_MAX_SIZE", "1024"))
JPEG_QUALITY = int(os.getenv("JPEG_QUALITY", "80"))

# Capture
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "1.0"))
DEFAULT_DISPLAY = int(os.getenv("DEFAULT_DISPLAY", "1"))  # mss monitor index, 1 = primary

# Session
HISTORY_LIMIT = int(os.getenv("HISTORY_LIMIT", "10"))
SUMMARY_MAX_WORDS = int(os.getenv("SUMMARY_MAX_WORDS", "50"))
AUTO_NAVIGATE = _flag("AUTO_NAVIGATE", True)
AUTO_WATCH = _flag("AUTO_WATCH", True)
# Screen must stay unchanged this long before a new frame triggers a completion check
WATCH_SETTLE_SECONDS = float(os.getenv("WATCH_SETTLE_SECONDS", "1.5"))
GRAPH_RECURSION_LIMIT = int(os.getenv("GRAPH_RECURSION_LIMIT", "25"))

# Optional on-disk trace of every committed step
TRACE_DIR = Path(os.environ["TRACE_DIR"]) if os.getenv("TRACE_DIR") else None

# User-facing messages
READY_MESSAGE = "Ready to assist..."
PLANNING_MESSAGE = "Analyzing your request and creating a plan..."
PLAN_FAILED_MESSAGE = "Could not generate a plan. Please try rephrasing your goal."
PERMISSION_DENIED_MESSAGE = (
    "Screen capture permission denied. Grant screen recording permission "
    "and start a new task."
)
NO_FRAME_MESSAGE = "No screenshot available yet. Please try again in a moment."
COMPLETED_MESSAGE = "All tasks completed!"
