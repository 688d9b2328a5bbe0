"""Data types shared by the council stages."""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Dict, Optional


class CouncilValidationError(ValueError):
    """The request cannot start a council session."""


class CouncilStageError(RuntimeError):
    """A stage failed in a way that ends the whole session."""


class CouncilState(str, Enum):
    INIT = "init"
    STAGE1 = "stage1"
    STAGE2 = "stage2"
    STAGE3 = "stage3"
    COMPLETE = "complete"
    ERROR = "error"


@dataclass
class CouncilSession:
    """One council run, scoped to a single streaming request."""
    prompt: str
    models: List[str]
    chairman: str
    history: List[Dict[str, str]] = field(default_factory=list)
    conversation_id: Optional[str] = None
    user_id: Optional[str] = None
    user_message_id: Optional[str] = None
    session_id: str = field(default_factory=lambda: str(uuid.uuid4()))


@dataclass
class ModelResponse:
    """Outcome of one adapter call; ``success`` is False when the model gave nothing usable."""
    model: str
    stage: int
    text: str = ""
    success: bool = False


@dataclass
class RankingResult:
    model: str
    ranking: str
    parsed_ranking: List[str] = field(default_factory=list)
    stage: int = 2


@dataclass
class SynthesisResult:
    model: str
    response: str
    stage: int = 3


@dataclass
class CouncilOutcome:
    """Everything a finished (or aborted) session produced, for provenance and display."""
    session_id: str
    state: CouncilState
    stage1: List[ModelResponse] = field(default_factory=list)
    stage2: List[RankingResult] = field(default_factory=list)
    stage3: Optional[SynthesisResult] = None
    label_to_model: Dict[str, str] = field(default_factory=dict)
    aggregate_rankings: Dict[str, int] = field(default_factory=dict)
    error: Optional[str] = None
