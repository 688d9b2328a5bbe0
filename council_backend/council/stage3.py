"""Stage 3: Chairman synthesis of the council's answers and rankings."""

import logging
from typing import List, Optional

from ..providers import ModelBackend
from . import events
from .events import EventChannel
from .models import CouncilSession, ModelResponse, RankingResult, SynthesisResult
from .prompts import build_chairman_prompt
from .utils import PersistFn, call_model

logger = logging.getLogger(__name__)

CHAIRMAN_FAILED = "Chairman failed to synthesize response."


async def stage3_synthesize_final(
    session: CouncilSession,
    stage1_results: List[ModelResponse],
    stage2_results: List[RankingResult],
    backend: ModelBackend,
    channel: EventChannel,
    persist: Optional[PersistFn] = None,
    max_length: Optional[int] = None,
    template: Optional[str] = None,
) -> Optional[SynthesisResult]:
    """Stage 3: one chairman call over the de-anonymized Stage 1 and Stage 2 text.

    A chairman failure publishes an ``error`` event and returns None; the
    session still completes.
    """
    channel.publish(events.stage3_start())

    chairman = session.chairman
    chairman_prompt = build_chairman_prompt(session.prompt, stage1_results, stage2_results, template)
    logger.debug("Stage 3 [%s]: chairman prompt is %d chars", session.session_id, len(chairman_prompt))

    result = await call_model(backend, chairman, 3, chairman_prompt, max_length=max_length)
    if not result.success:
        logger.warning("Stage 3 [%s]: chairman %s failed", session.session_id, chairman)
        channel.publish(events.error(CHAIRMAN_FAILED))
        return None

    channel.publish(events.stage3_result(chairman, result.text))
    if persist is not None:
        await persist(result.text, chairman, 3, session.user_message_id)
    return SynthesisResult(model=chairman, response=result.text)
