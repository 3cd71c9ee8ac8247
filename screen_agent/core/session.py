import asyncio
from typing import Callable, List, Optional, Set

from ..agents.diagnoser import Diagnoser
from ..agents.navigator import StepNavigator
from ..agents.planner import MilestonePlanner
from ..agents.summarizer import MilestoneSummarizer
from ..agents.watcher import CompletionWatcher
from ..capture.source import CaptureSource
from ..llm.client import VisionClient
from . import config
from .context import SessionContext
from .errors import CaptureError
from .graph import build_graph
from .trace import SessionTrace
from .types import AgentPhase, AgentSnapshot, Frame, Milestone

SnapshotListener = Callable[[AgentSnapshot], None]


class CancellationToken:
    """Handed to every driven step; once cancelled, whatever the step produces is dropped."""

    def __init__(self):
        self._cancelled = False

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class AgentSession:
    """Drives one user goal from plan to completion, one step at a time.

    The session owns the SessionContext. Each driven step runs the step graph on
    a working copy and commits it only if no reset happened in the meantime.
    Only one step runs at a time; requests arriving while busy are ignored and
    get the current snapshot back.
    """

    def __init__(
        self,
        planner: MilestonePlanner,
        navigator: StepNavigator,
        watcher: CompletionWatcher,
        summarizer: MilestoneSummarizer,
        diagnoser: Optional[Diagnoser] = None,
        capture: Optional[CaptureSource] = None,
        auto_navigate: Optional[bool] = None,
        auto_watch: Optional[bool] = None,
        trace: Optional[SessionTrace] = None,
        settle_delay: Optional[float] = None,
    ):
        self.planner = planner
        self.navigator = navigator
        self.watcher = watcher
        self.summarizer = summarizer
        self.diagnoser = diagnoser
        self.auto_watch = config.AUTO_WATCH if auto_watch is None else auto_watch
        self.settle_delay = config.WATCH_SETTLE_SECONDS if settle_delay is None else settle_delay
        if trace is None and config.TRACE_DIR is not None:
            trace = SessionTrace(config.TRACE_DIR)
        self.trace = trace
        self._graph = build_graph(
            planner, navigator, watcher, summarizer, auto_navigate=auto_navigate, on_phase=self._on_phase
        )

        self.context: Optional[SessionContext] = None
        self.phase = AgentPhase.IDLE
        self.current_instruction = config.READY_MESSAGE
        self.value_to_copy: Optional[str] = None
        self.error: Optional[str] = None
        self.notice: Optional[str] = None
        self.is_processing = False
        self.latest_frame: Optional[Frame] = None

        self._token = CancellationToken()
        self._listeners: List[SnapshotListener] = []
        self._pending: Set[asyncio.Task] = set()
        self._settle: Optional[asyncio.TimerHandle] = None
        self._observed_frame: Optional[Frame] = None
        self.capture: Optional[CaptureSource] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        if capture is not None:
            self.attach_capture(capture)

    @classmethod
    def from_client(cls, client: VisionClient, **kwargs) -> "AgentSession":
        """All stages sharing one vision client."""
        return cls(
            MilestonePlanner(client),
            StepNavigator(client),
            CompletionWatcher(client),
            MilestoneSummarizer(client),
            diagnoser=Diagnoser(client),
            **kwargs,
        )

    # --- presentation ---

    def add_listener(self, listener: SnapshotListener) -> Callable[[], None]:
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def snapshot(self) -> AgentSnapshot:
        milestone = self.current_milestone
        return AgentSnapshot(
            current_instruction=self.current_instruction,
            is_processing=self.is_processing,
            value_to_copy=self.value_to_copy,
            phase=self.phase,
            error=self.error,
            milestone=milestone.title if milestone else None,
            progress=self.progress,
            notice=self.notice,
        )

    @property
    def current_milestone(self) -> Optional[Milestone]:
        return self.context.current_milestone if self.context else None

    @property
    def progress(self):
        return self.context.progress if self.context else (0, 0)

    def _publish(self) -> None:
        snap = self.snapshot()
        for listener in list(self._listeners):
            try:
                listener(snap)
            except Exception as e:
                print(f"[Session] Listener failed: {e}")

    def _show_error(self, message: str) -> AgentSnapshot:
        self.error = message
        self.current_instruction = message
        self.value_to_copy = None
        self._publish()
        return self.snapshot()

    # --- capture ---

    def attach_capture(self, capture: CaptureSource) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
        self.capture = capture
        self._unsubscribe = capture.subscribe(self._on_frame)

    def update_target(self, display_id: int):
        if self.capture is None:
            return None
        self.latest_frame = None
        return self.capture.update_target(display_id)

    def _on_frame(self, frame: Frame) -> None:
        self.latest_frame = frame
        if not self.auto_watch or self.context is None:
            return
        if self.phase != AgentPhase.WATCHING:
            return
        # Every new frame restarts the settle timer; only a screen that stopped changing gets checked.
        if self._settle is not None:
            self._settle.cancel()
        self._settle = asyncio.get_running_loop().call_later(self.settle_delay, self._on_settled, self._token)

    def _on_settled(self, token: CancellationToken) -> None:
        self._settle = None
        if token is not self._token or token.cancelled:
            return
        if self.context is None or self.phase != AgentPhase.WATCHING:
            return
        if self.is_processing:
            # Look again once the running step is done
            self._settle = asyncio.get_running_loop().call_later(self.settle_delay, self._on_settled, token)
            return
        if self.latest_frame is None or self.latest_frame is self._observed_frame:
            return
        self._observed_frame = self.latest_frame
        task = asyncio.get_running_loop().create_task(self._drive(self.context, self.latest_frame, "observe"))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _current_frame(self) -> Optional[Frame]:
        if self.latest_frame is not None:
            return self.latest_frame
        if self.capture is None:
            return None
        try:
            return await self.capture.capture_once()
        except CaptureError as e:
            print(f"[Session] No frame available: {e}")
            return None

    # --- operations ---

    async def start_session(self, goal: str, frame: Optional[Frame] = None) -> AgentSnapshot:
        goal = (goal or "").strip()
        if not goal:
            return self._show_error("Please describe what you want to do.")
        if self.is_processing:
            print("[Session] Busy, ignoring new session request")
            return self.snapshot()

        self.reset()
        token = self._token
        print(f"[Session] Starting session for goal: {goal}")

        if self.capture is not None:
            granted = await self.capture.request_permission()
            if token.cancelled:
                return self.snapshot()
            if not granted:
                self.phase = AgentPhase.IDLE
                return self._show_error(config.PERMISSION_DENIED_MESSAGE)
            if not self.capture.polling_active:
                self.capture.start_polling()

        if frame is None:
            frame = await self._current_frame()
            if token.cancelled:
                return self.snapshot()
        if frame is None:
            return self._show_error(config.NO_FRAME_MESSAGE)

        return await self._drive(SessionContext(goal=goal), frame, "step")

    async def process_step(self, frame: Optional[Frame] = None) -> AgentSnapshot:
        if self.context is None or self.phase != AgentPhase.NAVIGATING:
            print(f"[Session] process_step ignored in phase {self.phase.value}")
            return self.snapshot()
        return await self._drive(self.context, frame or self.latest_frame, "step")

    async def check(self, frame: Optional[Frame] = None) -> AgentSnapshot:
        if self.context is None or self.phase != AgentPhase.WATCHING:
            print(f"[Session] check ignored in phase {self.phase.value}")
            return self.snapshot()
        return await self._drive(self.context, frame or self.latest_frame, "step")

    async def request_next_step(self) -> AgentSnapshot:
        if self.is_processing:
            print("[Session] Busy, ignoring next-step request")
            return self.snapshot()
        if self.context is None:
            print("[Session] No active session")
            return self.snapshot()
        if self.phase not in (AgentPhase.NAVIGATING, AgentPhase.WATCHING):
            return self.snapshot()

        token = self._token
        frame = await self._current_frame()
        if token.cancelled:
            return self.snapshot()
        if frame is None:
            return self._show_error(config.NO_FRAME_MESSAGE)
        if self.phase == AgentPhase.WATCHING:
            return await self.check(frame)
        return await self.process_step(frame)

    async def mark_step_complete(self, frame: Optional[Frame] = None) -> AgentSnapshot:
        """The user says the active milestone is done; skip the watcher and move on."""
        if self.context is None or self.current_milestone is None:
            print("[Session] Nothing to mark complete")
            return self.snapshot()
        if self.is_processing:
            print("[Session] Busy, ignoring mark-complete request")
            return self.snapshot()
        token = self._token
        if frame is None:
            frame = await self._current_frame()
            if token.cancelled:
                return self.snapshot()
        return await self._drive(self.context, frame, "complete")

    async def replan(self, frame: Optional[Frame] = None) -> AgentSnapshot:
        if self.context is None:
            print("[Session] Nothing to replan")
            return self.snapshot()
        if self.is_processing:
            print("[Session] Busy, ignoring replan request")
            return self.snapshot()
        token = self._token
        if frame is None:
            frame = await self._current_frame()
            if token.cancelled:
                return self.snapshot()
        return await self._drive(self.context, frame, "replan")

    async def diagnose(self, frame: Optional[Frame] = None) -> Optional[str]:
        if self.diagnoser is None or self.context is None:
            return None
        if self.is_processing:
            print("[Session] Busy, ignoring diagnose request")
            return None

        token = self._token
        self.is_processing = True
        self._publish()
        try:
            if frame is None:
                frame = await self._current_frame()
            if frame is None:
                return None
            instruction = self.context.current_instruction or self.current_instruction
            issue = await self.diagnoser.diagnose(self.context.goal, instruction, frame)
        finally:
            if not token.cancelled:
                self.is_processing = False
                self._publish()
        if token.cancelled:
            return None
        return issue

    def reset(self) -> AgentSnapshot:
        self._token.cancel()
        self._token = CancellationToken()
        if self._settle is not None:
            self._settle.cancel()
            self._settle = None
        for task in list(self._pending):
            task.cancel()
        self._pending.clear()
        if self.context is not None:
            self.context.clear()
            print("[Session] Session reset")
        self.context = None
        self.phase = AgentPhase.IDLE
        self.current_instruction = config.READY_MESSAGE
        self.value_to_copy = None
        self.error = None
        self.notice = None
        self.is_processing = False
        self._publish()
        return self.snapshot()

    # --- driving the graph ---

    def _on_phase(self, token: Optional[CancellationToken], phase: AgentPhase) -> None:
        if token is not self._token or token.cancelled or phase == self.phase:
            return
        self.phase = phase
        if phase == AgentPhase.PLANNING:
            self.current_instruction = config.PLANNING_MESSAGE
        self._publish()

    async def _drive(self, base: SessionContext, frame: Optional[Frame], intent: str) -> AgentSnapshot:
        if self.is_processing:
            print("[Session] Busy, ignoring request")
            return self.snapshot()

        token = self._token
        prior_phase = self.phase
        self.is_processing = True
        self.error = None
        self.notice = None
        self._publish()

        state = {
            "context": base.working_copy(),
            "frame": frame,
            "intent": intent,
            "phase": prior_phase,
            "token": token,
            "error": None,
            "notice": None,
            "watch": None,
        }
        result = None
        try:
            result = await self._graph.ainvoke(
                state, config={"run_name": "screen_agent_step", "recursion_limit": config.GRAPH_RECURSION_LIMIT}
            )
        except Exception as e:
            if not token.cancelled:
                print(f"[Session] Step failed: {e}")
                self.phase = prior_phase
                self.error = f"Something went wrong: {e}"
        finally:
            if not token.cancelled:
                self.is_processing = False

        if token.cancelled:
            print("[Session] Discarding result of a step from a reset session")
            return self.snapshot()
        if result is None:
            return self._show_error(self.error or "Something went wrong.")

        self._commit(result, prior_phase, intent)
        self._publish()
        self._record(frame)
        return self.snapshot()

    def _commit(self, result, prior_phase: AgentPhase, intent: str) -> None:
        ctx: SessionContext = result["context"]
        started = self.context is None
        if ctx.milestones:
            self.context = ctx
        phase = result["phase"]
        if self.context is None:
            # Plan never came through; the session stays unstarted.
            phase = AgentPhase.IDLE
        elif phase in (AgentPhase.PLANNING, AgentPhase.SUMMARIZING):
            phase = prior_phase
        self.phase = phase
        self.error = result.get("error")
        self.notice = result.get("notice")
        # A check nobody asked for never takes the instruction away from the user
        keep_step = intent == "observe" and phase == AgentPhase.WATCHING

        if phase == AgentPhase.COMPLETED:
            self.current_instruction = config.COMPLETED_MESSAGE
            self.value_to_copy = None
        elif self.error and not keep_step:
            self.current_instruction = self.error
            self.value_to_copy = None
        elif phase == AgentPhase.WATCHING and ctx.current_instruction:
            self.current_instruction = ctx.current_instruction
            self.value_to_copy = ctx.value_to_copy
        else:
            self.current_instruction = result.get("notice") or self.current_instruction
            self.value_to_copy = None

        if started and self.context is not None and self.trace is not None:
            self.trace.init(self.context)

    def _record(self, frame: Optional[Frame]) -> None:
        if self.trace is None or self.context is None:
            return
        self.trace.log_step(self.context, self.phase, frame, error=self.error)
