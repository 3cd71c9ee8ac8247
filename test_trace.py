import asyncio
import json

from screen_agent.core.session import AgentSession
from screen_agent.core.trace import SessionTrace, sanitize_filename


def test_sanitize_filename():
    assert sanitize_filename("Open Safari & go to apple.com!") == "Open_Safari__go_to_applecom"
    assert sanitize_filename("???") == "session"
    assert len(sanitize_filename("x" * 200)) == 64


def test_session_writes_trace(tmp_path, fake_client, make_frame):
    client = fake_client([
        '{"goals": [{"title": "Open Notes"}]}',
        '{"instruction": "Click Notes in the Dock", "success_criteria": "Notes is open"}',
    ])
    session = AgentSession.from_client(
        client, auto_navigate=True, auto_watch=False, trace=SessionTrace(tmp_path)
    )
    asyncio.run(session.start_session("Open Notes", make_frame()))

    task_dir = tmp_path / "Open_Notes"
    meta = json.loads((task_dir / "meta.json").read_text())
    assert meta["user_goal"] == "Open Notes"
    assert meta["session_id"] == session.context.session_id

    step_dir = task_dir / "steps" / "step_01"
    assert (step_dir / "frame.png").exists()
    note = (step_dir / "note.txt").read_text()
    assert "Phase: watching" in note
    assert "Instruction: Click Notes in the Dock" in note


def test_failed_plan_writes_no_trace(tmp_path, fake_client, make_frame):
    session = AgentSession.from_client(
        fake_client(["no plan"]), auto_watch=False, trace=SessionTrace(tmp_path)
    )
    asyncio.run(session.start_session("Open Notes", make_frame()))
    assert list(tmp_path.iterdir()) == []
