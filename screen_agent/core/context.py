import copy
import time
from dataclasses import dataclass, field
from typing import List, Optional, Tuple
from uuid import uuid4

from . import config
from .blackboard import Blackboard
from .types import Milestone


@dataclass
class SessionContext:
    goal: str
    session_id: str = field(default_factory=lambda: str(uuid4()))
    started_at: float = field(default_factory=time.time)
    active_milestone_index: int = 0
    milestones: List[Milestone] = field(default_factory=list)
    blackboard: Blackboard = field(default_factory=Blackboard)
    history_log: List[str] = field(default_factory=list)
    # Step-scoped: what the navigator committed to and what it told the user
    success_criteria: Optional[str] = None
    current_instruction: Optional[str] = None
    value_to_copy: Optional[str] = None
    # Instructions issued while working on the active milestone
    action_log: List[str] = field(default_factory=list)

    @property
    def current_milestone(self) -> Optional[Milestone]:
        if 0 <= self.active_milestone_index < len(self.milestones):
            return self.milestones[self.active_milestone_index]
        return None

    @property
    def has_more_milestones(self) -> bool:
        return self.active_milestone_index < len(self.milestones)

    @property
    def is_finished(self) -> bool:
        return bool(self.milestones) and self.active_milestone_index >= len(self.milestones)

    @property
    def completed_count(self) -> int:
        return sum(1 for m in self.milestones if m.is_completed)

    @property
    def progress(self) -> Tuple[int, int]:
        return (self.completed_count, len(self.milestones))

    def install_plan(self, milestones: List[Milestone]) -> None:
        self.milestones = list(milestones)
        self.active_milestone_index = 0
        self.clear_step()
        self.action_log = []

    def add_history(self, summary: str) -> None:
        """Append a milestone summary, keeping a rolling window."""
        self.history_log.append(summary)
        if len(self.history_log) > config.HISTORY_LIMIT:
            self.history_log = self.history_log[-config.HISTORY_LIMIT:]

    @property
    def formatted_history(self) -> str:
        if not self.history_log:
            return "No previous actions."
        return "\n".join(f"{i}. {entry}" for i, entry in enumerate(self.history_log, start=1))

    def complete_current(self) -> Optional[Milestone]:
        """Mark the active milestone done, recording the instruction that finished it."""
        milestone = self.current_milestone
        if milestone is None:
            return None
        if self.current_instruction:
            milestone.completed_actions.append(self.current_instruction)
        milestone.mark_completed()
        return milestone

    def advance(self) -> None:
        if self.active_milestone_index < len(self.milestones):
            self.active_milestone_index += 1
        self.clear_step()
        self.action_log = []

    def clear_step(self) -> None:
        self.success_criteria = None
        self.current_instruction = None
        self.value_to_copy = None

    def clear(self) -> None:
        self.goal = ""
        self.active_milestone_index = 0
        self.milestones = []
        self.blackboard.clear()
        self.history_log = []
        self.action_log = []
        self.clear_step()

    def working_copy(self) -> "SessionContext":
        return copy.deepcopy(self)
