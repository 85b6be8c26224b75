"""Pydantic models for stream-json wire records.

Only the fields that drive orchestration are declared. Everything else is
kept through ``extra="allow"`` so the raw record can still be handed to
callers untouched.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, field_validator


class ContentBlock(BaseModel):
    """Content block within a conversation message.

    Can be text, tool_use, tool_result, thinking or anything newer;
    extra="allow" lets unknown types pass through.
    """

    model_config = ConfigDict(extra="allow")

    type: Literal["text", "tool_use", "tool_result", "thinking"] | str

    # For text blocks
    text: str | None = None

    # For tool_use blocks
    id: str | None = None
    name: str | None = None
    input: dict[str, Any] | None = None

    # For tool_result blocks
    tool_use_id: str | None = None
    content: str | list[dict[str, Any]] | None = None

    def content_text(self) -> str:
        """Flatten tool_result content to text.

        The CLI sends either a plain string or a list of text blocks.
        """
        if self.content is None:
            return ""
        if isinstance(self.content, str):
            return self.content
        parts = [part.get("text", "") for part in self.content if part.get("type") == "text"]
        return "".join(p for p in parts if isinstance(p, str))


class ConversationMessage(BaseModel):
    model_config = ConfigDict(extra="allow")

    role: Literal["user", "assistant"] | None = None
    content: list[ContentBlock] = []

    @field_validator("content", mode="before")
    @classmethod
    def validate_content(cls, v: Any) -> Any:
        """Normalize content.

        A bare string is the same as a single text block; None means empty.
        """
        if v is None:
            return []
        if isinstance(v, str):
            return [{"type": "text", "text": v}] if v else []
        return v


class CompactMetadata(BaseModel):
    model_config = ConfigDict(extra="allow")

    trigger: str | None = None
    pre_tokens: int = 0


class SystemRecord(BaseModel):
    """``{"type": "system", "subtype": "init" | "compact_boundary", ...}``"""

    model_config = ConfigDict(extra="allow")

    type: Literal["system"]
    subtype: str | None = None
    session_id: str | None = None
    compact_metadata: CompactMetadata | None = None


class ConversationRecord(BaseModel):
    """``{"type": "assistant" | "user", "message": {...}}``"""

    model_config = ConfigDict(extra="allow")

    type: Literal["assistant", "user"]
    message: ConversationMessage
    session_id: str | None = None


class ResultRecord(BaseModel):
    """``{"type": "result", "is_error": bool, "result": str, "usage": {...}}``"""

    model_config = ConfigDict(extra="allow")

    type: Literal["result"]
    subtype: str | None = None
    is_error: bool = False
    result: str | None = None
    session_id: str | None = None
    usage: dict[str, Any] | None = None

    @field_validator("result", mode="before")
    @classmethod
    def validate_result(cls, v: Any) -> Any:
        # Some CLI versions send structured results; keep them as text
        if v is None or isinstance(v, str):
            return v
        return str(v)


class ErrorPayload(BaseModel):
    model_config = ConfigDict(extra="allow")

    type: str = ""
    message: str = ""


class ErrorRecord(BaseModel):
    """``{"type": "error", "error": {"type": ..., "message": ...}}``"""

    model_config = ConfigDict(extra="allow")

    type: Literal["error"]
    error: ErrorPayload


WireRecord = SystemRecord | ConversationRecord | ResultRecord | ErrorRecord

RECORD_MODELS: dict[str, type[BaseModel]] = {
    "system": SystemRecord,
    "assistant": ConversationRecord,
    "user": ConversationRecord,
    "result": ResultRecord,
    "error": ErrorRecord,
}
