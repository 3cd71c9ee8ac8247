import asyncio

import pytest

from screen_agent.agents.diagnoser import Diagnoser
from screen_agent.agents.navigator import NO_STEP_MESSAGE, StepNavigator, parse_step
from screen_agent.agents.planner import MilestonePlanner, parse_milestones
from screen_agent.agents.summarizer import MilestoneSummarizer, clean_summary
from screen_agent.agents.watcher import CompletionWatcher, parse_watch
from screen_agent.core.errors import MalformedResponseError, VisionClientError
from screen_agent.core.types import Milestone
from screen_agent.llm.parsing import extract_json, flatten_content


# --- JSON extraction ---

def test_extract_json_handles_fences_and_chatter():
    assert extract_json('```json\n{"a": 1}\n```') == {"a": 1}
    assert extract_json('Sure! Here it is: {"a": {"b": 2}} Hope that helps.') == {"a": {"b": 2}}
    assert extract_json("[1, 2]") == [1, 2]


def test_extract_json_raises_on_garbage():
    with pytest.raises(MalformedResponseError) as exc:
        extract_json("I cannot see the screen.", stage="planner")
    assert exc.value.stage == "planner"
    assert isinstance(exc.value, ValueError)


def test_flatten_content():
    blocks = [{"type": "text", "text": "one"}, {"type": "image_url"}, "two"]
    assert flatten_content(blocks) == "one\ntwo"
    assert flatten_content("  plain  ") == "plain"


# --- planner ---

def test_milestone_ids_are_contiguous_in_emission_order():
    raw = """{"goals": [
        {"id": 7, "title": "Open Safari", "description": "Launch the browser"},
        {"id": 7, "title": ""},
        {"title": "Go to apple.com"},
        "not a milestone",
        {"id": 2, "title": "Open the Store tab"}
    ]}"""
    milestones = parse_milestones(raw)
    assert [m.id for m in milestones] == [1, 2, 3]
    assert [m.title for m in milestones] == ["Open Safari", "Go to apple.com", "Open the Store tab"]
    assert not any(m.is_completed for m in milestones)


def test_planner_accepts_a_bare_list():
    milestones = parse_milestones('[{"title": "Open Notes"}]')
    assert len(milestones) == 1 and milestones[0].id == 1


def test_planner_failure_yields_empty_plan(fake_client, make_frame):
    client = fake_client([VisionClientError("fake", "down"), "no json here", '{"goals": []}'])
    planner = MilestonePlanner(client)

    async def scenario():
        return [await planner.plan("goal", "No previous actions.", make_frame()) for _ in range(3)]

    assert asyncio.run(scenario()) == [[], [], []]
    assert "No previous actions." in client.calls[0][1]


# --- navigator ---

def test_navigator_step_with_memory():
    raw = """{"instruction": "Click the order number to copy it",
              "success_criteria": "The order details page is open",
              "memory_to_save": {"order_id": "A-42", "empty": "", "nested": {"x": 1}},
              "value_to_copy": "A-42"}"""
    step = parse_step(raw, {})
    assert not step.malformed
    assert step.memory_writes == {"order_id": "A-42"}
    assert step.value_to_copy == "A-42"


def test_navigator_drops_value_to_copy_not_on_blackboard():
    raw = '{"instruction": "Paste the code", "success_criteria": "Code field filled", "value_to_copy": "999999"}'
    assert parse_step(raw, {"code": "123456"}).value_to_copy is None
    assert parse_step(raw.replace("999999", "123456"), {"code": "123456"}).value_to_copy == "123456"


def test_malformed_navigator_step():
    assert parse_step("Click somewhere.", {}).malformed
    step = parse_step('{"instruction": "Click Safari"}', {})
    assert step.malformed
    assert step.instruction == NO_STEP_MESSAGE
    assert step.success_criteria is None


def test_navigator_sees_blackboard(fake_client, make_frame):
    client = fake_client(['{"instruction": "Type it", "success_criteria": "Typed"}'])
    navigator = StepNavigator(client)
    milestone = Milestone(id=1, title="Fill the form")
    step = asyncio.run(navigator.next(milestone, {"email": "me@example.com"}, make_frame()))
    assert step.instruction == "Type it"
    assert "email: me@example.com" in client.calls[0][1]


# --- watcher ---

def test_watch_verdicts():
    done = parse_watch('{"is_complete": true, "reasoning": "Safari window is visible"}')
    assert done.trusted and done.is_complete

    not_done = parse_watch('{"is_complete": "false", "reasoning": "Still on the desktop"}')
    assert not_done.trusted and not not_done.is_complete


def test_watch_without_reasoning_is_untrusted():
    for raw in ('{"is_complete": true}', '{"reasoning": "looks fine"}', "yes it is done"):
        result = parse_watch(raw)
        assert not result.trusted
        assert not result.is_complete


def test_watcher_backend_failure_is_untrusted(fake_client, make_frame):
    watcher = CompletionWatcher(fake_client([VisionClientError("fake", "timeout")]))
    result = asyncio.run(watcher.check("Safari is open", make_frame()))
    assert not result.trusted and not result.is_complete


# --- summarizer ---

def test_summary_is_capped_and_unquoted():
    assert clean_summary('"Opened Safari from the Dock."') == "Opened Safari from the Dock."
    long_text = " ".join(f"word{i}" for i in range(80))
    capped = clean_summary(long_text, max_words=50)
    assert capped.endswith("...")
    assert len(capped.split(" ")) == 50


def test_summarizer_falls_back_on_failure(fake_client):
    client = fake_client(text_responses=[VisionClientError("fake", "down"), "   "])
    summarizer = MilestoneSummarizer(client)
    milestone = Milestone(id=1, title="Open Safari")

    async def scenario():
        return [await summarizer.summarize(milestone, ["Click Safari"]) for _ in range(2)]

    assert asyncio.run(scenario()) == ["Completed milestone 'Open Safari'."] * 2
    assert "1. Click Safari" in client.calls[0][1]


# --- diagnoser ---

def test_diagnoser(fake_client, make_frame):
    client = fake_client([
        "OK",
        "\"\"\"Ok!!!\"\"\"",
        "A 'Save changes?' dialog is covering the window. Click Don't Save first.",
        "An error dialog is open; click OK to dismiss it, then retry.",
        VisionClientError("fake", "down"),
    ])
    diagnoser = Diagnoser(client)

    async def scenario():
        return [await diagnoser.diagnose("goal", "Click File", make_frame()) for _ in range(5)]

    results = asyncio.run(scenario())
    assert results[0] is None
    assert results[1] is None
    assert results[2].startswith("A 'Save changes?' dialog")
    # Mentioning an OK button is still a diagnosis
    assert results[3] == "An error dialog is open; click OK to dismiss it, then retry."
    assert results[4] is None
