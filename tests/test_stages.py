"""Tests for the three council stages in isolation."""

from council_backend.council.events import EventChannel
from council_backend.council.models import CouncilSession, ModelResponse, RankingResult
from council_backend.council.stage1 import stage1_collect_responses
from council_backend.council.stage2 import stage2_collect_rankings
from council_backend.council.stage3 import CHAIRMAN_FAILED, stage3_synthesize_final
from council_backend.council.utils import call_model, make_limiter
from tests.conftest import FakeBackend, all_succeed, collect, event_types


def _session(models, chairman=None, history=None):
    return CouncilSession(
        prompt="What is the best sorting algorithm?",
        models=list(models),
        chairman=chairman or models[0],
        history=history or [],
        conversation_id="conv-1",
        user_id="user-1",
        user_message_id="user-msg-1",
    )


# ---------- call_model ----------

async def test_call_model_tags_success():
    backend = FakeBackend({("m1", 1): "  hi  "})
    result = await call_model(backend, "m1", 1, "question")
    assert result == ModelResponse(model="m1", stage=1, text="hi", success=True)


async def test_call_model_converts_exceptions_to_failure():
    backend = FakeBackend(raise_for={("m1", 1)})
    result = await call_model(backend, "m1", 1, "question")
    assert result.success is False
    assert result.text == ""


async def test_call_model_treats_blank_text_as_failure():
    backend = FakeBackend({("m1", 1): "   "})
    assert (await call_model(backend, "m1", 1, "question")).success is False


def test_make_limiter():
    assert make_limiter(None) is None
    assert make_limiter(0) is None
    assert make_limiter(2) is not None


# ---------- Stage 1 ----------

async def test_stage1_start_lists_all_models_before_results():
    models = ["m1", "m2", "m3"]
    channel = EventChannel()
    await stage1_collect_responses(_session(models), FakeBackend(all_succeed(models)), channel)
    events = await collect(channel)
    assert events[0] == {"type": "stage1_start", "models": models}
    assert event_types(events[1:]) == ["stage1_result"] * 3


async def test_stage1_streams_in_arrival_order_but_returns_requested_order():
    models = ["slow", "medium", "fast"]
    backend = FakeBackend(all_succeed(models), delays={"slow": 0.06, "medium": 0.03, "fast": 0})
    channel = EventChannel()

    successes = await stage1_collect_responses(_session(models), backend, channel)
    events = await collect(channel)

    assert [e["model"] for e in events if e["type"] == "stage1_result"] == ["fast", "medium", "slow"]
    assert [r.model for r in successes] == ["slow", "medium", "fast"]


async def test_stage1_filters_failures_silently():
    models = ["m1", "m2", "m3"]
    replies = all_succeed(models)
    replies[("m2", 1)] = None
    channel = EventChannel()

    successes = await stage1_collect_responses(_session(models), FakeBackend(replies), channel)
    events = await collect(channel)

    assert [r.model for r in successes] == ["m1", "m3"]
    assert [e["model"] for e in events if e["type"] == "stage1_result"] == ["m1", "m3"]
    assert "error" not in event_types(events)


async def test_stage1_passes_history_and_length_budget():
    history = [{"role": "user", "content": "earlier"}, {"role": "assistant", "content": "reply"}]
    models = ["m1", "m2"]
    backend = FakeBackend(all_succeed(models))
    await stage1_collect_responses(_session(models, history=history), backend, EventChannel(), max_length=2000)
    for call in backend.calls_for(1):
        assert call["history"] == history
        assert call["max_length"] == 2000
        assert call["prompt"] == "What is the best sorting algorithm?"


async def test_stage1_persists_each_success():
    models = ["m1", "m2"]
    recorded = []

    async def persist(content, model, stage, reply_to):
        recorded.append((content, model, stage, reply_to))

    await stage1_collect_responses(_session(models), FakeBackend(all_succeed(models)), EventChannel(), persist)
    assert sorted(recorded) == [
        ("Answer from m1", "m1", 1, "user-msg-1"),
        ("Answer from m2", "m2", 1, "user-msg-1"),
    ]


async def test_stage1_respects_concurrency_limit():
    models = ["m1", "m2", "m3", "m4"]
    backend = FakeBackend(all_succeed(models), delays={m: 0.01 for m in models})
    await stage1_collect_responses(_session(models), backend, EventChannel(), limiter=make_limiter(2))
    assert backend.max_in_flight == 2
    assert len(backend.calls_for(1)) == 4


# ---------- Stage 2 ----------

def _stage1(*models):
    return [ModelResponse(model=m, stage=1, text=f"Answer from {m}", success=True) for m in models]


async def test_stage2_sends_one_shared_prompt_to_survivors_only():
    session = _session(["m1", "m2", "m3"])
    backend = FakeBackend(all_succeed(["m1", "m2", "m3"]))
    channel = EventChannel()

    rankings, label_to_model = await stage2_collect_rankings(session, _stage1("m1", "m3"), backend, channel)

    calls = backend.calls_for(2)
    assert sorted(c["model"] for c in calls) == ["m1", "m3"]
    assert len({c["prompt"] for c in calls}) == 1
    assert all(c["system_prompt"] is None and c["history"] == [] for c in calls)
    assert label_to_model == {"Response A": "m1", "Response B": "m3"}
    assert "Response B:\nAnswer from m3" in calls[0]["prompt"]
    assert "Response C:\n" not in calls[0]["prompt"]
    assert [r.model for r in rankings] == ["m1", "m3"]


async def test_stage2_result_events_carry_ranking_and_parsed_labels():
    backend = FakeBackend(all_succeed(["m1", "m2"]))
    channel = EventChannel()
    await stage2_collect_rankings(_session(["m1", "m2"]), _stage1("m1", "m2"), backend, channel)
    events = await collect(channel)

    assert events[0] == {"type": "stage2_start"}
    results = [e for e in events if e["type"] == "stage2_result"]
    assert {e["model"] for e in results} == {"m1", "m2"}
    for e in results:
        assert e["ranking"].endswith("FINAL RANKING:\n1. Response A\n2. Response B")
        assert e["parsed_ranking"] == ["Response A", "Response B"]


async def test_stage2_zero_rankings_is_not_an_error():
    backend = FakeBackend({})
    channel = EventChannel()
    rankings, label_to_model = await stage2_collect_rankings(
        _session(["m1", "m2"]), _stage1("m1", "m2"), backend, channel,
    )
    events = await collect(channel)
    assert rankings == []
    assert label_to_model == {"Response A": "m1", "Response B": "m2"}
    assert event_types(events) == ["stage2_start"]


async def test_stage2_persists_without_reply_target():
    recorded = []

    async def persist(content, model, stage, reply_to):
        recorded.append((model, stage, reply_to))

    backend = FakeBackend(all_succeed(["m1", "m2"]))
    await stage2_collect_rankings(_session(["m1", "m2"]), _stage1("m1", "m2"), backend, EventChannel(), persist)
    assert sorted(recorded) == [("m1", 2, None), ("m2", 2, None)]


# ---------- Stage 3 ----------

async def test_stage3_success_streams_and_persists():
    recorded = []

    async def persist(content, model, stage, reply_to):
        recorded.append((content, model, stage, reply_to))

    backend = FakeBackend({("chair", 3): "Final synthesis"})
    channel = EventChannel()
    rankings = [RankingResult(model="m1", ranking="FINAL RANKING:\n1. Response A")]

    result = await stage3_synthesize_final(
        _session(["m1", "m2"], chairman="chair"), _stage1("m1", "m2"), rankings,
        backend, channel, persist, max_length=4000,
    )
    events = await collect(channel)

    assert result.model == "chair"
    assert result.response == "Final synthesis"
    assert events == [
        {"type": "stage3_start"},
        {"type": "stage3_result", "model": "chair", "chairmanModel": "chair", "response": "Final synthesis"},
    ]
    assert recorded == [("Final synthesis", "chair", 3, "user-msg-1")]
    call = backend.calls_for(3)[0]
    assert call["max_length"] == 4000
    assert "Model: m1\nResponse: Answer from m1" in call["prompt"]
    assert "Model: m1\nRanking: FINAL RANKING:\n1. Response A" in call["prompt"]


async def test_stage3_failure_emits_error_and_returns_none():
    channel = EventChannel()
    result = await stage3_synthesize_final(
        _session(["m1", "m2"], chairman="chair"), _stage1("m1"), [], FakeBackend({}), channel,
    )
    events = await collect(channel)
    assert result is None
    assert events == [{"type": "stage3_start"}, {"type": "error", "message": CHAIRMAN_FAILED}]
