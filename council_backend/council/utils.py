"""Shared helpers for council stages: tagged model calls and optional fan-out limits."""

import asyncio
import logging
from contextlib import nullcontext
from typing import Awaitable, Callable, Dict, Optional, Sequence

from ..providers import ModelBackend
from .models import ModelResponse

logger = logging.getLogger(__name__)

# persist(content, model, stage, reply_to_id) -> awaitable; must not raise.
PersistFn = Callable[[str, str, int, Optional[str]], Awaitable[None]]


def make_limiter(max_concurrency: Optional[int]) -> Optional[asyncio.Semaphore]:
    if max_concurrency is None or max_concurrency <= 0:
        return None
    return asyncio.Semaphore(max_concurrency)


async def call_model(
    backend: ModelBackend,
    model: str,
    stage: int,
    prompt: str,
    history: Optional[Sequence[Dict[str, str]]] = None,
    max_length: Optional[int] = None,
    system_prompt: Optional[str] = None,
    limiter: Optional[asyncio.Semaphore] = None,
) -> ModelResponse:
    """Invoke one model and capture the outcome as data, never as an exception."""
    try:
        async with limiter if limiter is not None else nullcontext():
            text = await backend.invoke(
                model,
                prompt,
                history=history,
                max_length=max_length,
                system_prompt=system_prompt,
            )
    except asyncio.CancelledError:
        raise
    except Exception:
        logger.exception("Stage %d call to %s raised", stage, model)
        text = None

    if not text or not text.strip():
        logger.warning("Stage %d: %s produced no usable response", stage, model)
        return ModelResponse(model=model, stage=stage, success=False)
    return ModelResponse(model=model, stage=stage, text=text.strip(), success=True)
