from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List, Optional, Tuple

from PIL import Image


@dataclass(frozen=True)
class Frame:
    """Immutable screen snapshot: raw pixel bytes plus geometry and source display."""

    pixels: bytes
    width: int
    height: int
    mode: str = "RGB"
    display_id: Optional[int] = None

    @classmethod
    def from_image(cls, img: Image.Image, display_id: Optional[int] = None) -> "Frame":
        if img.mode not in ("RGB", "RGBA", "L"):
            img = img.convert("RGB")
        w, h = img.size
        return cls(pixels=img.tobytes(), width=w, height=h, mode=img.mode, display_id=display_id)

    def to_image(self) -> Image.Image:
        return Image.frombytes(self.mode, (self.width, self.height), self.pixels)

    @property
    def size(self):
        return (self.width, self.height)

    def __repr__(self) -> str:
        return f"Frame({self.width}x{self.height} {self.mode} display={self.display_id})"


@dataclass
class Milestone:
    id: int
    title: str
    description: str = ""
    is_completed: bool = False
    completed_actions: List[str] = field(default_factory=list)

    def mark_completed(self) -> None:
        self.is_completed = True


@dataclass
class StepResult:
    instruction: str
    success_criteria: Optional[str] = None
    memory_writes: Dict[str, str] = field(default_factory=dict)
    value_to_copy: Optional[str] = None
    # Set when the navigator output could not be turned into a usable step.
    malformed: bool = False


@dataclass
class WatchResult:
    is_complete: bool
    reasoning: str
    trusted: bool = True


class AgentPhase(str, Enum):
    IDLE = "idle"
    PLANNING = "planning"
    NAVIGATING = "navigating"
    WATCHING = "watching"
    SUMMARIZING = "summarizing"
    COMPLETED = "completed"


@dataclass(frozen=True)
class AgentSnapshot:
    """What the presentation layer sees after every state change."""

    current_instruction: str
    is_processing: bool
    value_to_copy: Optional[str] = None
    phase: AgentPhase = AgentPhase.IDLE
    error: Optional[str] = None
    milestone: Optional[str] = None
    progress: Tuple[int, int] = (0, 0)
    # Status line that does not replace the instruction (e.g. why the step is not done yet)
    notice: Optional[str] = None
