import asyncio

import pytest

from ayursutra.errors import EmptyResponse, ProviderError, TransportError
from ayursutra.services.conversation import ChatMessage, ExchangeStage, Role
from ayursutra.services.safety import (
    APOLOGIES,
    APOLOGY,
    DISCLAIMER,
    EMPTY_REPLY,
    VETTED_DISCLAIMERS,
)

from conftest import REPLY, wait_until


@pytest.mark.asyncio
async def test_successful_exchanges_alternate_user_and_assistant(make_orchestrator):
    orch, _ = make_orchestrator()

    for question in ("How do I sleep better?", "What should I eat?", "Is walking good?"):
        reply = await orch.submit(question)
        assert reply.role == Role.ASSISTANT

    history = orch.session.history
    assert len(history) == 6
    assert [m.role for m in history] == [Role.USER, Role.ASSISTANT] * 3
    assert history[0].text == "How do I sleep better?"
    assert history[1].text == REPLY
    assert orch.in_flight is False


@pytest.mark.asyncio
async def test_english_session_makes_no_translation_calls(make_orchestrator, calls):
    orch, _ = make_orchestrator("en-GB")

    await orch.submit("I feel tired")

    assert calls == [("generate", "I feel tired")]


@pytest.mark.asyncio
async def test_second_submission_rejected_while_first_in_flight(make_orchestrator, calls):
    orch, llm = make_orchestrator()
    llm.gate = asyncio.Event()

    first = asyncio.create_task(orch.submit("first question"))
    await wait_until(lambda: calls)
    assert orch.in_flight is True
    assert orch.current.stage == ExchangeStage.GENERATING

    second = await orch.submit("second question")
    assert second is None

    llm.gate.set()
    reply = await first

    assert reply.text == REPLY
    assert orch.in_flight is False
    assert [m.text for m in orch.session.history] == ["first question", REPLY]
    assert calls == [("generate", "first question")]


@pytest.mark.asyncio
async def test_concurrent_submits_only_run_one_exchange(make_orchestrator, calls):
    orch, _ = make_orchestrator()

    results = await asyncio.gather(orch.submit("a"), orch.submit("b"))

    assert sum(r is not None for r in results) == 1
    assert len(orch.session.history) == 2
    assert len([c for c in calls if c[0] == "generate"]) == 1


@pytest.mark.asyncio
async def test_resubmitting_same_text_runs_a_new_exchange(make_orchestrator, calls):
    orch, _ = make_orchestrator()

    await orch.submit("Tell me about Abhyanga")
    await orch.submit("Tell me about Abhyanga")

    assert calls == [("generate", "Tell me about Abhyanga")] * 2
    assert len(orch.session.history) == 4


@pytest.mark.asyncio
async def test_transport_error_appends_one_apology(make_orchestrator):
    orch, _ = make_orchestrator(error=TransportError("connection reset"))

    reply = await orch.submit("hello")

    history = orch.session.history
    assert len(history) == 2
    assert history[0] == ChatMessage(Role.USER, "hello")
    assert history[1].role == Role.ASSISTANT
    assert history[1].text == APOLOGY
    assert reply is history[1]
    assert orch.in_flight is False


@pytest.mark.asyncio
async def test_provider_error_does_not_raise(make_orchestrator):
    orch, _ = make_orchestrator(error=ProviderError("API error: 500", status_code=500))

    reply = await orch.submit("hello")

    assert reply.text == APOLOGY


@pytest.mark.asyncio
async def test_hindi_exchange_translates_around_generation(make_orchestrator, calls):
    orch, _ = make_orchestrator("hi-IN")

    reply = await orch.submit("मुझे तनाव है")

    assert calls == [
        ("translate", "hi-IN", "en-US", "मुझे तनाव है"),
        ("generate", "[en-US] मुझे तनाव है"),
        ("translate", "en-US", "hi-IN", "Try slow, deep breathing before your Shirodhara session."),
    ]
    assert reply.text == (
        "[hi-IN] Try slow, deep breathing before your Shirodhara session. "
        + VETTED_DISCLAIMERS["hi"]
    )
    assert orch.session.history[0].text == "मुझे तनाव है"


@pytest.mark.asyncio
async def test_disclaimer_without_vetted_rendering_is_translated_separately(make_orchestrator, calls):
    orch, _ = make_orchestrator("ta-IN")

    reply = await orch.submit("வணக்கம்")

    translate_out = [c for c in calls if c[0] == "translate" and c[2] == "ta-IN"]
    assert [c[3] for c in translate_out] == [
        "Try slow, deep breathing before your Shirodhara session.",
        DISCLAIMER,
    ]
    assert reply.text.endswith(f"[ta-IN] {DISCLAIMER}")


@pytest.mark.asyncio
async def test_missing_disclaimer_is_appended(make_orchestrator):
    orch, _ = make_orchestrator(reply="Warm water with ginger can help digestion.")

    reply = await orch.submit("Any tips for digestion?")

    assert reply.text == f"Warm water with ginger can help digestion. {DISCLAIMER}"


@pytest.mark.asyncio
async def test_bold_disclaimer_is_not_duplicated(make_orchestrator):
    text = f"Rest well tonight.\n\n**{DISCLAIMER}**"
    orch, _ = make_orchestrator(reply=text)

    reply = await orch.submit("I can't sleep")

    assert reply.text == text


@pytest.mark.asyncio
async def test_empty_generation_uses_placeholder(make_orchestrator):
    orch, _ = make_orchestrator(error=EmptyResponse("no text"))

    reply = await orch.submit("hello")

    assert reply.text == f"{EMPTY_REPLY} {DISCLAIMER}"


@pytest.mark.asyncio
async def test_translation_failure_falls_back_in_patient_language(make_orchestrator, calls):
    orch, _ = make_orchestrator("mr-IN", translate_fail=True)

    reply = await orch.submit("मला झोप येत नाही")

    assert reply.text == APOLOGIES["mr"]
    assert [c[0] for c in calls] == ["translate"]
    assert len(orch.session.history) == 2
    assert orch.in_flight is False


@pytest.mark.asyncio
async def test_hung_generation_times_out_into_apology(make_orchestrator):
    orch, llm = make_orchestrator(timeout=0.05)
    llm.gate = asyncio.Event()

    reply = await orch.submit("hello")

    assert reply.text == APOLOGY
    assert orch.in_flight is False


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_blank_input_is_ignored(make_orchestrator, calls, text):
    orch, _ = make_orchestrator("hi-IN")

    assert await orch.submit(text) is None

    assert calls == []
    assert orch.session.history == ()
    assert orch.in_flight is False


@pytest.mark.asyncio
async def test_language_change_mid_exchange_keeps_original_language(make_orchestrator, calls):
    orch, llm = make_orchestrator("hi-IN")
    llm.gate = asyncio.Event()

    task = asyncio.create_task(orch.submit("नमस्ते"))
    await asyncio.sleep(0.01)
    orch.session.set_language("en-US")
    llm.gate.set()
    reply = await task

    assert reply.text.endswith(VETTED_DISCLAIMERS["hi"])
    assert calls[-1][2] == "hi-IN"


@pytest.mark.asyncio
async def test_exchange_finishes_when_caller_stops_waiting(make_orchestrator):
    orch, llm = make_orchestrator()
    llm.gate = asyncio.Event()

    waiter = asyncio.create_task(orch.submit("hello"))
    await asyncio.sleep(0)
    waiter.cancel()
    llm.gate.set()
    await orch.wait()

    assert len(orch.session.history) == 2
    assert orch.in_flight is False


def test_invalid_language_tag_rejected(make_orchestrator):
    orch, _ = make_orchestrator()

    with pytest.raises(ValueError):
        orch.session.set_language("not a tag")
    assert orch.session.language == "en-US"
