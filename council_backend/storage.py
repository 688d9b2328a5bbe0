"""Message persistence: the sink contract and a JSON-file implementation."""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Dict, Any, Optional

logger = logging.getLogger(__name__)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _is_blank(value: Optional[str]) -> bool:
    return not value or not str(value).strip() or value in ("null", "undefined")


def _check_owner(conversation: Dict[str, Any], user_id: Optional[str]) -> None:
    owner = conversation.get("user_id")
    if user_id and owner and owner != user_id:
        raise PermissionError("conversation_access_denied")


class MessageSink(ABC):
    """Where council sessions record their conversation and artifacts."""

    @abstractmethod
    async def create_conversation(self, user_id: str, title: str = "New Chat") -> Dict[str, Any]:
        ...

    @abstractmethod
    async def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        ...

    @abstractmethod
    async def create_user_message(
        self,
        content: str,
        conversation_id: str,
        reply_to_id: Optional[str] = None,
        mode: str = "council",
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        ...

    @abstractmethod
    async def record_message(
        self,
        content: str,
        model_id: str,
        is_primary: bool,
        conversation_id: str,
        reply_to_id: Optional[str],
        mode: str,
        user_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        """Record one AI-authored message."""
        ...

    @abstractmethod
    async def get_conversation_context(
        self,
        conversation_id: str,
        limit: int = 10,
        user_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """Return up to ``limit`` most recent visible messages, oldest first."""
        ...


class JSONMessageStore(MessageSink):
    """One JSON document per conversation under ``data_dir``."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def ensure_data_dir(self):
        self.data_dir.mkdir(parents=True, exist_ok=True)

    def get_conversation_path(self, conversation_id: str) -> Path:
        return self.data_dir / f"{conversation_id}.json"

    def load_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        path = self.get_conversation_path(conversation_id)
        if not path.exists():
            return None
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def save_conversation(self, conversation: Dict[str, Any]):
        self.ensure_data_dir()
        path = self.get_conversation_path(conversation["id"])
        with open(path, "w", encoding="utf-8") as f:
            json.dump(conversation, f, indent=2, default=str)

    def _append(self, conversation_id: str, message: Dict[str, Any]) -> Dict[str, Any]:
        conversation = self.load_conversation(conversation_id)
        if conversation is None:
            raise ValueError(f"Conversation {conversation_id} not found")
        _check_owner(conversation, message.get("user_id"))
        conversation["messages"].append(message)
        conversation["updated_at"] = message["created_at"]
        self.save_conversation(conversation)
        return message

    async def get_conversation(self, conversation_id: str) -> Optional[Dict[str, Any]]:
        return self.load_conversation(conversation_id)

    async def create_conversation(self, user_id: str, title: str = "New Chat") -> Dict[str, Any]:
        conversation_id = str(uuid.uuid4())
        created_at = _now()
        conversation = {
            "id": conversation_id,
            "user_id": user_id,
            "title": title,
            "created_at": created_at,
            "updated_at": created_at,
            "messages": [],
        }
        self.save_conversation(conversation)
        logger.debug("Created conversation %s for user %s", conversation_id, user_id)
        return conversation

    async def create_user_message(
        self,
        content: str,
        conversation_id: str,
        reply_to_id: Optional[str] = None,
        mode: str = "council",
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        if _is_blank(content):
            raise ValueError("User message content is required")
        if _is_blank(conversation_id):
            raise ValueError("Valid conversation ID is required for user message")

        message = {
            "id": str(uuid.uuid4()),
            "conversation_id": conversation_id,
            "sender_type": "user",
            "user_id": user_id,
            "content": content,
            "created_at": _now(),
            "metadata": {"conversation_mode": mode},
        }
        if not _is_blank(reply_to_id):
            message["metadata"]["reply_to_message_id"] = reply_to_id
        return self._append(conversation_id, message)

    async def record_message(
        self,
        content: str,
        model_id: str,
        is_primary: bool,
        conversation_id: str,
        reply_to_id: Optional[str],
        mode: str,
        user_id: str,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Dict[str, Any]:
        if _is_blank(content):
            raise ValueError("AI message content is required")
        if _is_blank(conversation_id):
            raise ValueError("Valid conversation ID is required for AI message")
        if _is_blank(user_id):
            raise ValueError("Valid user ID is required for AI message")
        if _is_blank(model_id):
            raise ValueError("AI model ID is required")

        message = {
            "id": str(uuid.uuid4()),
            "conversation_id": conversation_id,
            "sender_type": "ai",
            "ai_model_id": model_id,
            "user_id": user_id,
            "content": content,
            "is_first_responder": is_primary,
            "created_at": _now(),
            "metadata": {
                "conversation_mode": mode,
                "is_direct_reply": mode == "direct",
                **(metadata or {}),
            },
        }
        if not _is_blank(reply_to_id):
            message["metadata"]["reply_to_message_id"] = reply_to_id
        return self._append(conversation_id, message)

    async def get_conversation_context(
        self,
        conversation_id: str,
        limit: int = 10,
        user_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        conversation = self.load_conversation(conversation_id)
        if conversation is None:
            return []
        _check_owner(conversation, user_id)

        visible = [
            m for m in conversation.get("messages", [])
            if not m.get("metadata", {}).get("is_council_hidden", False)
        ]
        return visible[-limit:] if limit > 0 else []
