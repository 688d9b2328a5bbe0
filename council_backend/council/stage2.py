"""Stage 2: Anonymous peer review and ranking of Stage 1 answers."""

import asyncio
import logging
from typing import List, Dict, Optional, Tuple

from ..providers import ModelBackend
from . import events
from .events import EventChannel
from .models import CouncilSession, ModelResponse, RankingResult
from .prompts import assign_labels, build_ranking_prompt, label_to_model_map
from .ranking import parse_ranking_from_text
from .utils import PersistFn, call_model

logger = logging.getLogger(__name__)


async def stage2_collect_rankings(
    session: CouncilSession,
    stage1_results: List[ModelResponse],
    backend: ModelBackend,
    channel: EventChannel,
    persist: Optional[PersistFn] = None,
    max_length: Optional[int] = None,
    limiter: Optional[asyncio.Semaphore] = None,
    template: Optional[str] = None,
) -> Tuple[List[RankingResult], Dict[str, str]]:
    """Stage 2: every Stage 1 survivor ranks all Stage 1 answers under anonymous labels.

    Reviewers may be shown their own answer; they cannot tell which one it is.
    Returns the successful rankings (requested order) and the label -> model map.
    An empty ranking list is a valid outcome.
    """
    channel.publish(events.stage2_start())

    labeled = assign_labels(stage1_results)
    label_to_model = label_to_model_map(labeled)
    ranking_prompt = build_ranking_prompt(session.prompt, labeled, template)
    logger.debug("Stage 2 [%s]: ranking prompt is %d chars", session.session_id, len(ranking_prompt))

    async def rank(model: str) -> Optional[RankingResult]:
        result = await call_model(
            backend, model, 2, ranking_prompt, max_length=max_length, limiter=limiter,
        )
        if not result.success:
            return None
        ranking = RankingResult(
            model=model,
            ranking=result.text,
            parsed_ranking=parse_ranking_from_text(result.text),
        )
        channel.publish(events.stage2_result(model, ranking.ranking, ranking.parsed_ranking))
        if persist is not None:
            await persist(ranking.ranking, model, 2, None)
        return ranking

    reviewers = [r.model for r in stage1_results]
    outcomes = await asyncio.gather(*(rank(m) for m in reviewers))
    rankings = [r for r in outcomes if r is not None]

    logger.info(
        "Stage 2 [%s]: %d/%d rankings collected",
        session.session_id, len(rankings), len(reviewers),
    )
    return rankings, label_to_model
