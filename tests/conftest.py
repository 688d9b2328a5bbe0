"""Shared pytest fixtures."""

import asyncio
from typing import Any, Callable, Dict, List, Optional, Sequence

import pytest

from council_backend.config import CouncilConfig
from council_backend.council.events import EventChannel
from council_backend.providers import ModelBackend
from council_backend.storage import MessageSink


def stage_of(prompt: str) -> int:
    """Infer which stage issued a prompt from its fixed opening line."""
    if prompt.startswith("You are evaluating different responses"):
        return 2
    if prompt.startswith("You are the Chairman of an LLM Council"):
        return 3
    return 1


class FakeBackend(ModelBackend):
    """Scripted ModelBackend.

    ``replies`` maps (model, stage) to the text to return; a missing entry or
    None means the call fails. ``delays`` maps model to seconds slept before
    answering, to control arrival order.
    """

    def __init__(
        self,
        replies: Optional[Dict[tuple, Optional[str]]] = None,
        delays: Optional[Dict[str, float]] = None,
        raise_for: Optional[set] = None,
    ) -> None:
        self.replies = replies or {}
        self.delays = delays or {}
        self.raise_for = raise_for or set()
        self.calls: List[Dict[str, Any]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def invoke(
        self,
        model: str,
        prompt: str,
        history: Optional[Sequence[Dict[str, str]]] = None,
        max_length: Optional[int] = None,
        system_prompt: Optional[str] = None,
    ) -> Optional[str]:
        stage = stage_of(prompt)
        self.calls.append({
            "model": model,
            "stage": stage,
            "prompt": prompt,
            "history": list(history or []),
            "max_length": max_length,
            "system_prompt": system_prompt,
        })
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            await asyncio.sleep(self.delays.get(model, 0))
            if (model, stage) in self.raise_for:
                raise RuntimeError(f"boom from {model}")
            return self.replies.get((model, stage))
        finally:
            self.in_flight -= 1

    def calls_for(self, stage: int) -> List[Dict[str, Any]]:
        return [c for c in self.calls if c["stage"] == stage]


def all_succeed(models: List[str], chairman: Optional[str] = None) -> Dict[tuple, str]:
    """Replies where every model answers Stage 1 and 2, and the chairman answers Stage 3."""
    replies = {}
    for m in models:
        replies[(m, 1)] = f"Answer from {m}"
        replies[(m, 2)] = f"Review by {m}\n\nFINAL RANKING:\n1. Response A\n2. Response B"
    replies[(chairman or models[0], 3)] = "The council's final answer"
    return replies


class RecordingSink(MessageSink):
    """In-memory MessageSink that records every call."""

    def __init__(self, fail_records: bool = False, history: Optional[List[Dict[str, Any]]] = None):
        self.fail_records = fail_records
        self.history = history or []
        self.conversations: List[Dict[str, Any]] = []
        self.user_messages: List[Dict[str, Any]] = []
        self.records: List[Dict[str, Any]] = []
        self.context_requests: List[Dict[str, Any]] = []

    async def create_conversation(self, user_id: str, title: str = "New Chat") -> Dict[str, Any]:
        conversation = {"id": f"conv-{len(self.conversations) + 1}", "user_id": user_id, "title": title}
        self.conversations.append(conversation)
        return conversation

    async def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        for conversation in self.conversations:
            if conversation["id"] == conversation_id:
                return conversation
        return None

    async def create_user_message(self, content, conversation_id, reply_to_id=None, mode="council", user_id=None):
        message = {
            "id": f"user-msg-{len(self.user_messages) + 1}",
            "content": content,
            "conversation_id": conversation_id,
            "mode": mode,
            "user_id": user_id,
        }
        self.user_messages.append(message)
        return message

    async def record_message(self, content, model_id, is_primary, conversation_id, reply_to_id, mode, user_id, metadata=None):
        if self.fail_records:
            raise ConnectionError("database unavailable")
        record = {
            "content": content,
            "model_id": model_id,
            "is_primary": is_primary,
            "conversation_id": conversation_id,
            "reply_to_id": reply_to_id,
            "mode": mode,
            "user_id": user_id,
            "metadata": metadata or {},
        }
        self.records.append(record)
        return record

    async def get_conversation_context(self, conversation_id, limit=10, user_id=None):
        self.context_requests.append({"conversation_id": conversation_id, "limit": limit, "user_id": user_id})
        return self.history[-limit:]


async def collect(channel: EventChannel) -> List[Dict[str, Any]]:
    """Close the channel and return everything published on it."""
    channel.close()
    return [event async for event in channel.drain()]


def event_types(events: List[Dict[str, Any]]) -> List[str]:
    return [e["type"] for e in events]


@pytest.fixture
def council_config(tmp_path) -> CouncilConfig:
    return CouncilConfig(
        api_key="test-key",
        base_url="https://openrouter.test/api/v1",
        data_dir=tmp_path / "conversations",
    )


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()
