import pytest

from plancoach.domain.errors import NoAssistantResponse
from plancoach.security.rate_limit import RequestSpacer
from plancoach.services.assistant_gateway import ThreadMessage
from plancoach.services.run_poller import RunPoller
from plancoach.services.turn import TurnOrchestrator, latest_assistant_message

from .utils import FakeGateway


def _orchestrator(gateway):
    poller = RunPoller(gateway, interval=0, max_attempts=5, sleep=lambda _s: None)
    return TurnOrchestrator(gateway, poller, RequestSpacer(0))


def _thread(gateway, *messages):
    thread_id = gateway.create_thread()
    gateway.threads[thread_id] = list(messages)
    return thread_id


def test_newest_assistant_message_wins():
    gateway = FakeGateway()
    thread_id = _thread(
        gateway,
        ThreadMessage(id="m1", role="assistant", text="Older", run_id="run_a"),
        ThreadMessage(id="m2", role="user", text="Question"),
        ThreadMessage(id="m3", role="assistant", text="Newer", run_id="run_b"),
    )
    assert latest_assistant_message(gateway, thread_id, "run_b").id == "m3"


def test_textless_newest_reply_does_not_fall_back_to_older_one():
    gateway = FakeGateway()
    thread_id = _thread(
        gateway,
        ThreadMessage(id="m1", role="assistant", text="Older", run_id="run_a"),
        ThreadMessage(id="m2", role="assistant", text=None, run_id="run_b"),
    )
    with pytest.raises(NoAssistantResponse):
        latest_assistant_message(gateway, thread_id, "run_b")


def test_reply_from_another_run_is_not_accepted():
    gateway = FakeGateway()
    thread_id = _thread(gateway, ThreadMessage(id="m1", role="assistant", text="Older", run_id="run_a"))
    with pytest.raises(NoAssistantResponse):
        latest_assistant_message(gateway, thread_id, "run_b")


def test_empty_thread_has_no_reply():
    gateway = FakeGateway()
    with pytest.raises(NoAssistantResponse):
        latest_assistant_message(gateway, gateway.create_thread())


def test_run_turn_sanitizes_the_reply_of_its_own_run():
    gateway = FakeGateway(replies=['Great plan. ```json\n{"a": 1}\n``` Tell me more about your pricing tiers.'])
    thread_id = gateway.create_thread()

    result = _orchestrator(gateway).run_turn(thread_id, "We sell bread", assistant_id="asst_chat")

    assert "Tell me more about your pricing tiers." in result.reply
    assert "{" not in result.reply
    assert result.raw_reply.startswith("Great plan.")
    assert gateway.threads[thread_id][-1].run_id == result.run_id


def test_run_turn_with_textless_reply_raises():
    gateway = FakeGateway(replies=["First answer", None])
    thread_id = gateway.create_thread()
    orchestrator = _orchestrator(gateway)

    assert orchestrator.run_turn(thread_id, "One", assistant_id="asst_chat").reply == "First answer"
    with pytest.raises(NoAssistantResponse):
        orchestrator.run_turn(thread_id, "Two", assistant_id="asst_chat")
