"""Decoder for the CLI's ``--output-format stream-json`` records.

Takes one complete record (a line of JSON) and returns the events it
produces. The decoder is per-spawn: it folds assistant text and tool
invocations into a PendingMessage and remembers the remote session id.

Output Structure:
    - {"type": "system", "subtype": "init", "session_id": ...}
    - {"type": "system", "subtype": "compact_boundary", "compact_metadata": ...}
    - {"type": "assistant" | "user", "message": {"content": [...]}}
    - {"type": "result", "is_error": ..., "result": ..., "usage": ...}
    - {"type": "error", "error": {"type": ..., "message": ...}}
"""

from __future__ import annotations

import json
import logging
from typing import Any

from pydantic import ValidationError

from conduit.core.parsers.errors import extract_reset_hint, is_rate_limit_error
from conduit.core.parsers.wire import (
    RECORD_MODELS,
    ConversationRecord,
    ErrorRecord,
    ResultRecord,
    SystemRecord,
)
from conduit.core.types import (
    AssistantTurn,
    CompactionNotice,
    ContextUpdate,
    DecodedEvent,
    ErrorKind,
    GenericError,
    Init,
    PendingMessage,
    RateLimitError,
    Result,
    StreamingText,
    TokenUsage,
    ToolInvocation,
    ToolResult,
    ToolUse,
)

logger = logging.getLogger(__name__)

# Separates the text of consecutive assistant messages in the transcript
MESSAGE_SEPARATOR = "\n\n"


class StreamJsonDecoder:
    """Turn stream-json records into DecodedEvents.

    Malformed records (bad JSON, unexpected shapes) yield no events; they
    are expected at stream boundaries and are only logged.

    Example:
        >>> decoder = StreamJsonDecoder()
        >>> decoder.decode('{"type": "system", "subtype": "init", "session_id": "abc"}')
        [Init(remote_session_id='abc')]
        >>> decoder.remote_session_id
        'abc'
    """

    def __init__(self, pending: PendingMessage | None = None) -> None:
        """Initialize decoder.

        Args:
            pending: Accumulator to fold text and tools into. A private one
                is created when omitted.
        """
        self.pending = pending if pending is not None else PendingMessage()
        self.remote_session_id: str | None = None
        # (message key, text) per assistant message, in arrival order
        self._segments: list[tuple[str, str]] = []
        self._records = 0

    @property
    def text(self) -> str:
        """Full assistant text accumulated so far."""
        return MESSAGE_SEPARATOR.join(text for _, text in self._segments if text)

    def decode(self, record: str) -> list[DecodedEvent]:
        """Decode one complete record.

        Args:
            record: A single line of output, without its newline.

        Returns:
            Events in the order they should be delivered. Empty for blank,
            malformed or uninteresting records.
        """
        if not record.strip():
            return []

        try:
            data = json.loads(record)
        except json.JSONDecodeError:
            logger.debug("record_malformed: reason=json, preview=%r", record[:80])
            return []

        if not isinstance(data, dict):
            logger.debug("record_malformed: reason=not_object, preview=%r", record[:80])
            return []

        record_type = data.get("type")
        model = RECORD_MODELS.get(record_type) if isinstance(record_type, str) else None
        if model is None:
            logger.debug("record_ignored: type=%s", record_type)
            return []

        try:
            parsed = model.model_validate(data)
        except ValidationError as e:
            logger.debug("record_malformed: type=%s, errors=%d", record_type, e.error_count())
            return []

        self._records += 1

        if isinstance(parsed, ErrorRecord):
            return self._handle_error(parsed)
        if isinstance(parsed, SystemRecord):
            return self._handle_system(parsed)
        if isinstance(parsed, ConversationRecord):
            if parsed.type == "assistant":
                return self._handle_assistant(parsed, data)
            return self._handle_user(parsed)
        if isinstance(parsed, ResultRecord):
            return self._handle_result(parsed, data)
        return []

    def _handle_error(self, record: ErrorRecord) -> list[DecodedEvent]:
        error = record.error
        if is_rate_limit_error(error.type) or is_rate_limit_error(error.message):
            reset_hint = extract_reset_hint(error.message)
            logger.debug("rate_limit_error: reset_hint=%s", reset_hint)
            return [RateLimitError(message=error.message, reset_hint=reset_hint)]

        logger.debug("api_error: type=%s", error.type)
        return [GenericError(message=error.message or error.type)]

    def _handle_system(self, record: SystemRecord) -> list[DecodedEvent]:
        if record.subtype == "init":
            if not record.session_id:
                logger.debug("init_without_session_id")
                return []
            self.remote_session_id = record.session_id
            logger.debug("init: remote_session_id=%s", record.session_id)
            return [Init(remote_session_id=record.session_id)]

        if record.subtype == "compact_boundary":
            metadata = record.compact_metadata
            trigger = metadata.trigger if metadata else None
            pre_tokens = metadata.pre_tokens if metadata else 0
            logger.debug("compact_boundary: trigger=%s, pre_tokens=%d", trigger, pre_tokens)
            return [CompactionNotice(trigger=trigger, pre_tokens=pre_tokens)]

        return []

    def _handle_assistant(
        self, record: ConversationRecord, raw: dict[str, Any]
    ) -> list[DecodedEvent]:
        events: list[DecodedEvent] = []

        for block in record.message.content:
            if block.type != "tool_use":
                continue
            invocation = ToolInvocation(
                id=block.id or "",
                name=block.name or "",
                input=dict(block.input or {}),
            )
            self.pending.tools.append(invocation)
            logger.debug("tool_use: name=%s, id=%s", invocation.name, invocation.id)
            events.append(ToolUse(invocation=invocation))

        text = "".join(
            block.text for block in record.message.content if block.type == "text" and block.text
        )
        if text:
            self._fold_text(self._message_key(raw), text)
            self.pending.text = self.text
            events.append(AssistantTurn(message=raw))
            events.append(StreamingText(text=self.pending.text))

        return events

    def _handle_user(self, record: ConversationRecord) -> list[DecodedEvent]:
        events: list[DecodedEvent] = []
        for block in record.message.content:
            if block.type != "tool_result" or not block.tool_use_id:
                continue
            content = block.content_text()
            self.pending.set_tool_result(block.tool_use_id, content)
            events.append(ToolResult(tool_use_id=block.tool_use_id, content=content))
        return events

    def _handle_result(self, record: ResultRecord, raw: dict[str, Any]) -> list[DecodedEvent]:
        events: list[DecodedEvent] = []
        logger.debug("result: is_error=%s, usage=%s", record.is_error, record.usage)

        if record.is_error:
            # Rate limits pre-empt the generic failure path
            if record.result and is_rate_limit_error(record.result):
                events.append(
                    RateLimitError(
                        message=record.result,
                        reset_hint=extract_reset_hint(record.result),
                    )
                )
            else:
                events.append(
                    GenericError(
                        message=record.result or "CLI reported an error",
                        kind=ErrorKind.PROCESS_EXIT_ERROR,
                    )
                )

        events.append(Result(raw=raw, is_error=record.is_error))
        events.append(ContextUpdate(usage=TokenUsage.from_dict(record.usage)))
        return events

    def _message_key(self, raw: dict[str, Any]) -> str:
        message = raw.get("message")
        if isinstance(message, dict) and isinstance(message.get("id"), str):
            return message["id"]
        return f"record-{self._records}"

    def _fold_text(self, key: str, text: str) -> None:
        """Merge text into the transcript so it only ever grows.

        Records sharing a message id either repeat the message so far
        (snapshot) or carry its next block; both extend that message.
        """
        if self._segments and self._segments[-1][0] == key:
            current = self._segments[-1][1]
            merged = text if text.startswith(current) else current + text
            self._segments[-1] = (key, merged)
        else:
            self._segments.append((key, text))
