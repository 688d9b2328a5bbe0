"""Stream events and the single-writer channel that carries them to the client."""

import asyncio
import json
from typing import Any, AsyncIterator, Dict, List, Optional

Event = Dict[str, Any]

# Marks the end of the channel; never sent to the client.
_CLOSED = object()


def stage1_start(models: List[str]) -> Event:
    return {"type": "stage1_start", "models": list(models)}


def stage1_result(model: str, response: str) -> Event:
    return {"type": "stage1_result", "model": model, "response": response}


def stage2_start() -> Event:
    return {"type": "stage2_start"}


def stage2_result(model: str, ranking: str, parsed_ranking: Optional[List[str]] = None) -> Event:
    return {
        "type": "stage2_result",
        "model": model,
        "ranking": ranking,
        "parsed_ranking": list(parsed_ranking or []),
    }


def stage3_start() -> Event:
    return {"type": "stage3_start"}


def stage3_result(model: str, response: str) -> Event:
    return {"type": "stage3_result", "model": model, "chairmanModel": model, "response": response}


def error(message: str) -> Event:
    return {"type": "error", "message": message}


def complete(
    label_to_model: Optional[Dict[str, str]] = None,
    aggregate_rankings: Optional[Dict[str, int]] = None,
) -> Event:
    """Final event; carries the Stage 2 label mapping and aggregate positions for display."""
    return {
        "type": "complete",
        "label_to_model": dict(label_to_model or {}),
        "aggregate_rankings": dict(aggregate_rankings or {}),
    }


def encode_sse(event: Event) -> str:
    """Encode one event as a Server-Sent Events frame."""
    return f"data: {json.dumps(event)}\n\n"


class EventChannel:
    """Ordered event queue with many producers and exactly one consumer.

    Stages ``publish`` events as their calls complete; ``drain`` is the only
    reader, so frames reach the transport whole and in publish order.
    """

    def __init__(self):
        self._queue: asyncio.Queue = asyncio.Queue()
        self._closed = False

    def publish(self, event: Event) -> None:
        if self._closed:
            raise RuntimeError("Cannot publish to a closed event channel")
        self._queue.put_nowait(event)

    def close(self) -> None:
        if not self._closed:
            self._closed = True
            self._queue.put_nowait(_CLOSED)

    @property
    def closed(self) -> bool:
        return self._closed

    async def drain(self) -> AsyncIterator[Event]:
        while True:
            item = await self._queue.get()
            if item is _CLOSED:
                return
            yield item
