"""Abstract base class for model backends."""

import math
from abc import ABC, abstractmethod
from typing import List, Dict, Optional, Sequence

# Rough estimation: one token is about four characters.
CHARS_PER_TOKEN = 4


def max_tokens_for_length(max_length: Optional[int]) -> Optional[int]:
    """Convert a character budget to a token budget, or None to use the backend default."""
    if max_length is None or isinstance(max_length, bool):
        return None
    if not isinstance(max_length, (int, float)) or not math.isfinite(max_length) or max_length <= 0:
        return None
    return max(1, math.ceil(max_length / CHARS_PER_TOKEN))


def build_messages(
    prompt: str,
    history: Optional[Sequence[Dict[str, str]]] = None,
    system_prompt: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Assemble the chat message list: optional system turn, prior turns, then the prompt."""
    messages = []
    if system_prompt:
        messages.append({"role": "system", "content": system_prompt})
    for turn in history or []:
        messages.append({"role": turn["role"], "content": turn["content"]})
    messages.append({"role": "user", "content": prompt})
    return messages


class ModelBackend(ABC):
    """Base class for model backend adapters.

    Implementations never raise for provider-side failures (timeouts, non-2xx
    responses, malformed bodies, empty text). They return None instead, so a
    stage can treat a failed participant as ordinary data.
    """

    @abstractmethod
    async def invoke(
        self,
        model: str,
        prompt: str,
        history: Optional[Sequence[Dict[str, str]]] = None,
        max_length: Optional[int] = None,
        system_prompt: Optional[str] = None,
    ) -> Optional[str]:
        """Invoke one model and return its trimmed, non-empty text, or None on failure."""
        ...

    async def aclose(self) -> None:
        """Release transport resources. Default is a no-op."""
        return None
