"""Model backend adapters.

Every council call goes through a ``ModelBackend``. The default backend routes
all model IDs (e.g. "anthropic/claude-opus-4") through OpenRouter.
"""

from .base import ModelBackend, build_messages, max_tokens_for_length
from .openrouter_provider import OpenRouterProvider, extract_text, normalize_content

__all__ = [
    "ModelBackend",
    "OpenRouterProvider",
    "build_messages",
    "max_tokens_for_length",
    "extract_text",
    "normalize_content",
]
