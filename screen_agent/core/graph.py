"""One driven step of the agent as a langgraph StateGraph.

    START ─┬─> plan ──(auto_navigate)──> navigate ─> END
           ├─> navigate ─> END
           ├─> watch ──(complete)──> summarize ──(more, auto_navigate)──> navigate ─> END
           └─> summarize (user marked the milestone done)

Nodes work on a private copy of the SessionContext; the session decides whether
the resulting state is committed. Model failures are recorded in `error`
instead of being raised, so a failure in a later node never throws away the
progress an earlier node made.
"""

from typing import Any, Callable, Optional, TypedDict

from langgraph.graph import END, START, StateGraph

from . import config
from .context import SessionContext
from .types import AgentPhase, Frame, WatchResult

PhaseCallback = Callable[[Any, AgentPhase], None]


class StepState(TypedDict):
    context: SessionContext
    frame: Optional[Frame]
    # "step" (follow the phase), "observe" (check triggered by a new frame),
    # "replan" or "complete" (user marked the milestone done)
    intent: str
    phase: AgentPhase
    token: Any
    error: Optional[str]
    notice: Optional[str]
    watch: Optional[WatchResult]


def route_entry(state: StepState) -> str:
    ctx = state["context"]
    intent = state.get("intent") or "step"
    if intent == "replan" or not ctx.milestones:
        return "plan"
    if intent == "complete":
        return "summarize" if ctx.current_milestone is not None else END
    if state["phase"] == AgentPhase.WATCHING:
        return "watch"
    if state["phase"] == AgentPhase.NAVIGATING:
        return "navigate"
    return END


def build_graph(
    planner,
    navigator,
    watcher,
    summarizer,
    auto_navigate: Optional[bool] = None,
    on_phase: Optional[PhaseCallback] = None,
):
    if auto_navigate is None:
        auto_navigate = config.AUTO_NAVIGATE

    def enter(state: StepState, phase: AgentPhase) -> None:
        if on_phase is not None:
            on_phase(state.get("token"), phase)

    async def plan(state: StepState) -> StepState:
        ctx = state["context"]
        enter(state, AgentPhase.PLANNING)
        if state["frame"] is None:
            state["error"] = config.NO_FRAME_MESSAGE
            return state

        milestones = await planner.plan(ctx.goal, ctx.formatted_history, state["frame"])
        if not milestones:
            # Nothing is committed: an existing plan (if any) stays in place.
            state["error"] = config.PLAN_FAILED_MESSAGE
            return state

        ctx.install_plan(milestones)
        state["phase"] = AgentPhase.NAVIGATING
        state["notice"] = f"Plan ready: {len(milestones)} milestones. Request the next step to begin."
        state["error"] = None
        return state

    async def navigate(state: StepState) -> StepState:
        ctx = state["context"]
        milestone = ctx.current_milestone
        if milestone is None:
            state["phase"] = AgentPhase.COMPLETED
            return state
        enter(state, AgentPhase.NAVIGATING)
        state["phase"] = AgentPhase.NAVIGATING
        if state["frame"] is None:
            state["error"] = config.NO_FRAME_MESSAGE
            return state

        step = await navigator.next(milestone, ctx.blackboard.snapshot(), state["frame"])
        if step.malformed:
            state["error"] = step.instruction
            return state

        ctx.blackboard.merge(step.memory_writes)
        ctx.success_criteria = step.success_criteria
        ctx.current_instruction = step.instruction
        ctx.value_to_copy = step.value_to_copy
        ctx.action_log.append(step.instruction)
        state["phase"] = AgentPhase.WATCHING
        state["error"] = None
        return state

    async def watch(state: StepState) -> StepState:
        ctx = state["context"]
        if not ctx.success_criteria:
            state["phase"] = AgentPhase.NAVIGATING
            return state
        if state["frame"] is None:
            state["error"] = config.NO_FRAME_MESSAGE
            return state

        result = await watcher.check(ctx.success_criteria, state["frame"])
        state["watch"] = result
        if not result.trusted:
            # Same criteria get checked again on the next driven step.
            state["error"] = f"Could not verify the step: {result.reasoning}"
            return state
        if not result.is_complete:
            state["notice"] = f"Not done yet: {result.reasoning}"
            # A check triggered by a screen change keeps watching the same step
            if state.get("intent") != "observe":
                state["phase"] = AgentPhase.NAVIGATING
        state["error"] = None
        return state

    async def summarize(state: StepState) -> StepState:
        ctx = state["context"]
        enter(state, AgentPhase.SUMMARIZING)
        actions = list(ctx.action_log)
        milestone = ctx.complete_current()
        if milestone is None:
            return state
        if not actions:
            actions = list(milestone.completed_actions)

        summary = await summarizer.summarize(milestone, actions)
        ctx.add_history(summary)
        ctx.advance()
        if ctx.is_finished:
            state["phase"] = AgentPhase.COMPLETED
            state["notice"] = config.COMPLETED_MESSAGE
            print(f"[Graph] All {len(ctx.milestones)} milestones completed")
        else:
            state["phase"] = AgentPhase.NAVIGATING
            state["notice"] = f"Milestone '{milestone.title}' completed. Request the next step to continue."
            print(f"[Graph] Milestone {milestone.id} completed, moving to {ctx.current_milestone.title}")
        state["error"] = None
        return state

    def after_plan(state: StepState) -> str:
        if state.get("error") or not auto_navigate:
            return END
        return "navigate"

    def after_watch(state: StepState) -> str:
        result = state.get("watch")
        if result is not None and result.trusted and result.is_complete:
            return "summarize"
        return END

    def after_summarize(state: StepState) -> str:
        if auto_navigate and state["phase"] == AgentPhase.NAVIGATING:
            return "navigate"
        return END

    graph = StateGraph(StepState)
    graph.add_node("plan", plan)
    graph.add_node("navigate", navigate)
    graph.add_node("watch", watch)
    graph.add_node("summarize", summarize)

    graph.add_conditional_edges(
        START,
        route_entry,
        {"plan": "plan", "navigate": "navigate", "watch": "watch", "summarize": "summarize", END: END},
    )
    graph.add_conditional_edges("plan", after_plan, {"navigate": "navigate", END: END})
    graph.add_edge("navigate", END)
    graph.add_conditional_edges("watch", after_watch, {"summarize": "summarize", END: END})
    graph.add_conditional_edges("summarize", after_summarize, {"navigate": "navigate", END: END})

    return graph.compile()
