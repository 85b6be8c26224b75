"""Session management - CLI runs keyed by caller-assigned session ids.

Example:
    >>> from conduit.core.session import ProcessOrchestrator
    >>> from conduit.transport import InProcessTransport
    >>>
    >>> transport = InProcessTransport()
    >>> orchestrator = ProcessOrchestrator(cli_path="claude", event_sink=transport)
    >>> await orchestrator.send_message("chat-1", "Hello")
    >>> await orchestrator.abort("chat-1")
    >>>
    >>> # Cleanup
    >>> await orchestrator.aclose()

Example (with chat history):
    >>> from conduit.core.session import ChatMessage, SessionStore, get_default_store_path
    >>>
    >>> store = SessionStore.load(get_default_store_path())
    >>> chat = store.create()
    >>> chat.update([ChatMessage("user", "Hello")], orchestrator.get_remote_session_id(chat.id))
    >>> store.save()
"""

from conduit.core.session.orchestrator import ProcessOrchestrator
from conduit.core.session.permissions import PermissionPolicyWriter
from conduit.core.session.persistence import (
    MAX_SESSIONS,
    ChatMessage,
    ChatSession,
    SessionStore,
    get_default_store_path,
    make_title,
)
from conduit.core.session.table import ProcessHandle, SessionProcessTable

__all__ = [
    # Orchestrator
    "ProcessOrchestrator",
    "ProcessHandle",
    "SessionProcessTable",
    # Permissions
    "PermissionPolicyWriter",
    # Persistence
    "MAX_SESSIONS",
    "ChatMessage",
    "ChatSession",
    "SessionStore",
    "get_default_store_path",
    "make_title",
]
