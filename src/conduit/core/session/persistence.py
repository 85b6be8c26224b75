"""Chat session persistence - save/load chat history from JSON.

Provides:
- ChatMessage / ChatSession records with to_dict/from_dict
- SessionStore: the most recent chats plus a current-session pointer

Note: This saves conversation *history* and the CLI's remote session id,
not running processes. Resuming a chat means passing remote_session_id
back to ProcessOrchestrator.send_message.
"""

from __future__ import annotations

import json
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Literal

logger = logging.getLogger(__name__)

MAX_SESSIONS = 20
TITLE_LENGTH = 50

Role = Literal["user", "assistant"]


def _parse_datetime(value: Any) -> datetime:
    if isinstance(value, (int, float)):
        # Epoch milliseconds
        return datetime.fromtimestamp(value / 1000)
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            pass
    return datetime.now()


def make_title(text: str, length: int = TITLE_LENGTH) -> str:
    """Title for a chat: the first length characters, "..." if cut."""
    return text[:length] + ("..." if len(text) > length else "")


@dataclass
class ChatMessage:
    """One message of a chat.

    Attributes:
        role: "user" or "assistant".
        content: Message text.
        id: Unique message id.
        timestamp: When the message was created.
        is_error: Whether the message reports a failed run.
    """

    role: Role
    content: str
    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: datetime = field(default_factory=datetime.now)
    is_error: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "role": self.role,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "isError": self.is_error,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatMessage:
        role = data.get("role", "user")
        return cls(
            role=role if role in ("user", "assistant") else "user",
            content=str(data.get("content", "")),
            id=str(data.get("id") or uuid.uuid4()),
            timestamp=_parse_datetime(data.get("timestamp")),
            is_error=bool(data.get("isError", False)),
        )


@dataclass
class ChatSession:
    """A saved chat.

    Attributes:
        id: Local session id (the orchestrator's session id).
        remote_session_id: CLI session id for --resume, once known.
        messages: Conversation history.
        created_at: When the chat was created.
        title: Derived from the first user message.
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    remote_session_id: str | None = None
    messages: list[ChatMessage] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    title: str | None = None

    def update(self, messages: list[ChatMessage], remote_session_id: str | None) -> None:
        """Replace history and remote id, titling the chat on first use."""
        self.messages = list(messages)
        self.remote_session_id = remote_session_id
        if not self.title:
            first_user = next((m for m in self.messages if m.role == "user"), None)
            if first_user is not None:
                self.title = make_title(first_user.content)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "remoteSessionId": self.remote_session_id,
            "messages": [m.to_dict() for m in self.messages],
            "createdAt": self.created_at.isoformat(),
            "title": self.title,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatSession:
        return cls(
            id=str(data.get("id") or uuid.uuid4()),
            remote_session_id=data.get("remoteSessionId", data.get("cliSessionId")),
            messages=[ChatMessage.from_dict(m) for m in data.get("messages", [])],
            created_at=_parse_datetime(data.get("createdAt")),
            title=data.get("title"),
        )


@dataclass
class SessionStore:
    """Persistent storage for chats.

    Newest chats come first; only the MAX_SESSIONS most recent are saved.

    Example:
        >>> store = SessionStore.load(Path("~/.conduit/chats.json"))
        >>> chat = store.create()
        >>> chat.update([ChatMessage("user", "Summarize my notes")], None)
        >>> store.save()
        >>> store.current().title
        'Summarize my notes'
    """

    path: Path
    sessions: list[ChatSession] = field(default_factory=list)
    current_session_id: str | None = None
    version: str = "1.0.0"

    def create(self) -> ChatSession:
        """Start a new chat and make it current."""
        session = ChatSession()
        self.sessions.insert(0, session)
        self.current_session_id = session.id
        logger.debug("chat_created: session_id=%s", session.id)
        return session

    def get(self, session_id: str) -> ChatSession | None:
        for session in self.sessions:
            if session.id == session_id:
                return session
        return None

    def current(self) -> ChatSession | None:
        if self.current_session_id is None:
            return None
        return self.get(self.current_session_id)

    def switch(self, session_id: str) -> ChatSession | None:
        """Make a chat current.

        Returns:
            The chat, or None (pointer unchanged) if it does not exist.
        """
        session = self.get(session_id)
        if session is not None:
            self.current_session_id = session_id
        return session

    def update_current(self, messages: list[ChatMessage], remote_session_id: str | None) -> ChatSession | None:
        session = self.current()
        if session is not None:
            session.update(messages, remote_session_id)
        return session

    def delete(self, session_id: str) -> bool:
        """Delete a chat. If it was current, the newest remaining one becomes current.

        Returns:
            True if the chat was removed, False if not found.
        """
        original_len = len(self.sessions)
        self.sessions = [s for s in self.sessions if s.id != session_id]
        if self.current_session_id == session_id:
            self.current_session_id = self.sessions[0].id if self.sessions else None
        return len(self.sessions) < original_len

    def list(self) -> list[ChatSession]:
        return list(self.sessions)

    def save(self) -> None:
        """Save the most recent chats to the JSON file.

        Creates parent directories if needed.
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            "sessions": [s.to_dict() for s in self.sessions[:MAX_SESSIONS]],
            "currentSessionId": self.current_session_id,
            "version": self.version,
        }

        with open(self.path, "w") as f:
            json.dump(data, f, indent=2)

    @classmethod
    def load(cls, path: Path) -> SessionStore:
        """Load chats from a JSON file.

        A missing or unreadable file yields an empty store.
        """
        path = Path(path).expanduser()

        if not path.exists():
            return cls(path=path)

        try:
            with open(path) as f:
                data = json.load(f)
            sessions = [ChatSession.from_dict(s) for s in data.get("sessions", [])]
        except (OSError, json.JSONDecodeError, AttributeError, TypeError) as e:
            logger.warning("chat_store_unreadable: path=%s, error=%s", path, e)
            return cls(path=path)

        return cls(
            path=path,
            sessions=sessions,
            current_session_id=data.get("currentSessionId"),
            version=data.get("version", "1.0.0"),
        )


def get_default_store_path() -> Path:
    """Default path for chat storage: ~/.conduit/chats.json"""
    return Path.home() / ".conduit" / "chats.json"
