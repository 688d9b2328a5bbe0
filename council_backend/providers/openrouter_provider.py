"""OpenRouter provider: one chat-completions call per council participant."""

import logging
from typing import Any, Dict, List, Optional, Sequence

import httpx

from ..config import CouncilConfig
from .base import ModelBackend, build_messages, max_tokens_for_length

logger = logging.getLogger(__name__)


def _segment_text(part: Any) -> str:
    if isinstance(part, str):
        return part
    if not isinstance(part, dict):
        return ""
    text = part.get("text")
    if isinstance(text, str):
        return text
    if isinstance(text, dict) and isinstance(text.get("value"), str):
        return text["value"]
    if part.get("type") == "text" and isinstance(part.get("value"), str):
        return part["value"]
    return ""


def normalize_content(content: Any) -> Optional[str]:
    """Normalize a message content payload to trimmed text.

    Providers return content as a plain string, a list of structured segments,
    or a nested object carrying ``text`` (or ``text.value``). Returns None when
    nothing usable remains after trimming.
    """
    if isinstance(content, str):
        text = content.strip()
    elif isinstance(content, list):
        text = "".join(_segment_text(part) for part in content).strip()
    elif isinstance(content, dict):
        inner = content.get("text")
        if isinstance(inner, str):
            text = inner.strip()
        elif isinstance(inner, dict) and isinstance(inner.get("value"), str):
            text = inner["value"].strip()
        else:
            text = ""
    else:
        text = ""
    return text or None


def extract_text(data: Any) -> Optional[str]:
    """Pull the first choice's text out of a chat-completions response body."""
    if not isinstance(data, dict):
        return None
    choices = data.get("choices") or []
    if not choices or not isinstance(choices[0], dict):
        return None
    choice = choices[0]
    message = choice.get("message") or {}
    content = message.get("content") if isinstance(message, dict) else None
    if content is None:
        content = choice.get("text")
    return normalize_content(content)


class OpenRouterProvider(ModelBackend):
    def __init__(self, config: CouncilConfig, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._transport = transport

    def _headers(self) -> Dict[str, str]:
        return {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.config.api_key}",
            "HTTP-Referer": self.config.app_referer,
            "X-Title": self.config.app_title,
        }

    def _payload(
        self,
        model: str,
        messages: List[Dict[str, str]],
        max_length: Optional[int],
    ) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"model": model, "messages": messages}
        max_tokens = max_tokens_for_length(max_length)
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens
        return payload

    async def invoke(
        self,
        model: str,
        prompt: str,
        history: Optional[Sequence[Dict[str, str]]] = None,
        max_length: Optional[int] = None,
        system_prompt: Optional[str] = None,
    ) -> Optional[str]:
        messages = build_messages(prompt, history, system_prompt)
        payload = self._payload(model, messages, max_length)
        timeout = self.config.request_timeout

        try:
            timeout_config = httpx.Timeout(
                connect=self.config.connect_timeout, read=timeout, write=timeout, pool=timeout
            )
            async with httpx.AsyncClient(timeout=timeout_config, transport=self._transport) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(
                "Error calling model %s: status=%s %s",
                model, e.response.status_code, e.response.text[:500],
            )
            return None
        except httpx.TimeoutException:
            logger.warning("Error calling model %s: timed out after %ss", model, timeout)
            return None
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Error calling model %s: %s", model, e)
            return None

        text = extract_text(data)
        if not text:
            logger.warning("Model %s returned an empty council response", model)
            return None
        return text
