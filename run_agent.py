"""
Entry point for the screen agent: watches the primary display, plans the
user's goal into milestones, and prints one instruction at a time.

Press Enter for the next step or 'q' to quit. Other commands: 'd' looks for
blockers, 'm' marks the current milestone done, 'r' starts over.
"""

from __future__ import annotations

import asyncio
import sys
from typing import Optional

from screen_agent.capture.source import CaptureSource
from screen_agent.core.session import AgentSession
from screen_agent.core.types import AgentSnapshot
from screen_agent.llm.client import ChatVisionClient

USER_QUERY = "Open Safari and go to apple.com"


def print_snapshot(snap: AgentSnapshot) -> None:
    if snap.is_processing:
        return
    done, total = snap.progress
    header = f"[{snap.phase.value}"
    if total:
        header += f" {done}/{total}"
    header += "]"
    print(f"\n{header} {snap.current_instruction}")
    if snap.notice and snap.notice != snap.current_instruction:
        print(f"  {snap.notice}")
    if snap.value_to_copy:
        print(f"  Copy: {snap.value_to_copy}")


def print_summary(user_query: str, session: AgentSession) -> None:
    print("\n=== Screen agent result ===")
    print("User query:", user_query)
    print("Phase:", session.phase.value)
    ctx = session.context
    if ctx is None:
        print("No plan was made.")
        return
    print("Session:", ctx.session_id)
    print("Milestones:")
    for m in ctx.milestones:
        mark = "x" if m.is_completed else " "
        print(f"  [{mark}] {m.id}. {m.title}")
    if ctx.history_log:
        print("History:")
        for entry in ctx.history_log:
            print(f"  - {entry}")
    print("Blackboard:", ctx.blackboard.format())


async def run(user_query: str) -> Optional[AgentSession]:
    capture = CaptureSource()
    session = AgentSession.from_client(ChatVisionClient(), capture=capture)
    session.add_listener(print_snapshot)

    await session.start_session(user_query)
    try:
        while True:
            cmd = (await asyncio.to_thread(input, "> ")).strip().lower()
            if cmd == "q":
                break
            if cmd == "r":
                session.reset()
                await session.start_session(user_query)
            elif cmd == "d":
                issue = await session.diagnose()
                print(f"\n[Diagnose] {issue or 'Nothing seems to be blocking this step.'}")
            elif cmd == "m":
                await session.mark_step_complete()
            else:
                await session.request_next_step()
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        capture.stop_polling()
    return session


def main():
    user_query = " ".join(sys.argv[1:]) or USER_QUERY
    session = asyncio.run(run(user_query))
    print_summary(user_query, session)


if __name__ == "__main__":
    main()
