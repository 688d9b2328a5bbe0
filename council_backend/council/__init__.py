"""3-stage LLM Council orchestration.

This package provides the full deliberation pipeline:
- Stage 1: Collect individual responses from the selected models
- Stage 2: Anonymous peer rankings of those responses
- Stage 3: Chairman synthesis of the final answer
"""

from .events import EventChannel, encode_sse
from .models import (
    CouncilOutcome,
    CouncilSession,
    CouncilStageError,
    CouncilState,
    CouncilValidationError,
    ModelResponse,
    RankingResult,
    SynthesisResult,
)
from .orchestrator import CouncilOrchestrator
from .stage1 import stage1_collect_responses
from .stage2 import stage2_collect_rankings
from .stage3 import stage3_synthesize_final
from .ranking import calculate_aggregate_rankings, parse_ranking_from_text

__all__ = [
    "CouncilOrchestrator",
    "CouncilOutcome",
    "CouncilSession",
    "CouncilStageError",
    "CouncilState",
    "CouncilValidationError",
    "EventChannel",
    "ModelResponse",
    "RankingResult",
    "SynthesisResult",
    "encode_sse",
    "stage1_collect_responses",
    "stage2_collect_rankings",
    "stage3_synthesize_final",
    "calculate_aggregate_rankings",
    "parse_ranking_from_text",
]
