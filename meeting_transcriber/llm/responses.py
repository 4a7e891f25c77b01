"""Decoding of Responses API output items.

Each item in a response's `output` array is dispatched on its `type` field
into exactly one of MessageOutput, ToolCallOutput, or OtherOutput. Unknown
types are kept as OtherOutput rather than rejected.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from meeting_transcriber.utils.errors import DecodeFailureError


@dataclass(frozen=True)
class OutputContent:
    type: str
    text: str | None = None


@dataclass(frozen=True)
class MessageOutput:
    id: str
    status: str
    role: str | None = None
    content: list[OutputContent] = field(default_factory=list)


@dataclass(frozen=True)
class ToolCallOutput:
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class OtherOutput:
    type: str
    raw: dict[str, Any] = field(default_factory=dict)


OutputItem = MessageOutput | ToolCallOutput | OtherOutput


def _decode_content(raw: Any) -> OutputContent:
    if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
        raise DecodeFailureError(f"Malformed message content: {raw!r}")
    text = raw.get("text")
    return OutputContent(type=raw["type"], text=text if isinstance(text, str) else None)


def decode_output_item(raw: Any) -> OutputItem:
    """Decode one output item by its `type` discriminant.

    Raises:
        DecodeFailureError: If the item has no string `type`, or a message
            item lacks its required fields.
    """
    if not isinstance(raw, dict) or not isinstance(raw.get("type"), str):
        raise DecodeFailureError(f"Output item has no type: {raw!r}")

    item_type = raw["type"]
    if item_type == "message":
        content = raw.get("content")
        if not isinstance(content, list):
            raise DecodeFailureError("Message output has no content list")
        return MessageOutput(
            id=str(raw.get("id", "")),
            status=str(raw.get("status", "")),
            role=raw.get("role"),
            content=[_decode_content(c) for c in content],
        )
    if item_type == "tool_call":
        return ToolCallOutput(raw=raw)
    return OtherOutput(type=item_type, raw=raw)


def decode_output(payload: dict[str, Any]) -> list[OutputItem]:
    """Decode the `output` array of a Responses API payload."""
    output = payload.get("output")
    if not isinstance(output, list):
        raise DecodeFailureError("Response has no output array")
    return [decode_output_item(item) for item in output]


def combined_output_text(items: list[OutputItem]) -> str | None:
    """Concatenate the text of every message item, or None if there is none."""
    chunks = [
        content.text
        for item in items
        if isinstance(item, MessageOutput)
        for content in item.content
        if content.text is not None
    ]
    if not chunks:
        return None
    return "".join(chunks)
