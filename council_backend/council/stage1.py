"""Stage 1: Collect individual responses from council members."""

import asyncio
import logging
from typing import List, Optional

from ..providers import ModelBackend
from . import events
from .events import EventChannel
from .models import CouncilSession, ModelResponse
from .utils import PersistFn, call_model

logger = logging.getLogger(__name__)


async def stage1_collect_responses(
    session: CouncilSession,
    backend: ModelBackend,
    channel: EventChannel,
    persist: Optional[PersistFn] = None,
    max_length: Optional[int] = None,
    limiter: Optional[asyncio.Semaphore] = None,
) -> List[ModelResponse]:
    """Stage 1: ask every selected model the user's question concurrently.

    Each success is streamed the moment it arrives. The returned success set
    keeps the caller's requested model order, not arrival order.
    """
    channel.publish(events.stage1_start(session.models))

    async def ask(model: str) -> ModelResponse:
        result = await call_model(
            backend, model, 1, session.prompt,
            history=session.history, max_length=max_length, limiter=limiter,
        )
        if result.success:
            channel.publish(events.stage1_result(model, result.text))
            if persist is not None:
                await persist(result.text, model, 1, session.user_message_id)
        return result

    responses = await asyncio.gather(*(ask(m) for m in session.models))
    successes = [r for r in responses if r.success]

    logger.info(
        "Stage 1 [%s]: %d/%d models responded",
        session.session_id, len(successes), len(session.models),
    )
    return successes
