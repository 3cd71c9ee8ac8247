import json
import re
import time
from pathlib import Path
from typing import Optional

from ..utils.imaging import save_frame
from .context import SessionContext
from .types import AgentPhase, Frame


def sanitize_filename(name: str) -> str:
    # Keep only alphanumerics, spaces, dashes, underscores
    s = re.sub(r"[^a-zA-Z0-9 \-_]", "", name)
    s = s.strip().replace(" ", "_")
    return s[:64] or "session"


class SessionTrace:
    """Writes every committed step of a session under <root>/<goal>/steps/step_NN/."""

    def __init__(self, root: Path):
        self.root = Path(root)
        self.task_dir: Optional[Path] = None
        self.step = 0

    def init(self, ctx: SessionContext) -> Optional[Path]:
        task_name = sanitize_filename(ctx.goal)
        task_dir = self.root / task_name
        self.step = 0
        try:
            (task_dir / "steps").mkdir(parents=True, exist_ok=True)
            meta = {
                "task_name": task_name,
                "user_goal": ctx.goal,
                "session_id": ctx.session_id,
                "app_name": "screen_agent",
                "timestamp": time.strftime("%Y-%m-%dT%H:%M:%S"),
            }
            (task_dir / "meta.json").write_text(json.dumps(meta, indent=2))
        except OSError as e:
            print(f"[Trace] Failed to initialize trace at {task_dir}: {e}")
            self.task_dir = None
            return None

        self.task_dir = task_dir
        print(f"[Trace] Initialized trace at {task_dir}")
        return task_dir

    def log_step(self, ctx: SessionContext, phase: AgentPhase, frame: Optional[Frame], error: Optional[str] = None) -> None:
        if self.task_dir is None:
            return

        self.step += 1
        step_dir = self.task_dir / "steps" / f"step_{self.step:02d}"
        try:
            step_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            print(f"[Trace] Failed to create {step_dir}: {e}")
            return

        if frame is not None:
            try:
                save_frame(frame, step_dir / "frame.png")
            except OSError as e:
                print(f"[Trace] Failed to save frame: {e}")

        milestone = ctx.current_milestone
        done, total = ctx.progress
        lines = [
            f"Phase: {phase.value}",
            f"Milestone: {milestone.title if milestone else '-'} ({done}/{total} done)",
            f"Instruction: {ctx.current_instruction or ''}",
            f"Success criteria: {ctx.success_criteria or ''}",
            f"Blackboard: {ctx.blackboard.format()}",
        ]
        if error:
            lines.append(f"Error: {error}")
        try:
            (step_dir / "note.txt").write_text("\n".join(lines) + "\n")
        except OSError as e:
            print(f"[Trace] Failed to write note.txt: {e}")
