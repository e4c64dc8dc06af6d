"""Decoding of stored message bubbles into plain text.

Cursor stores each message fragment ("bubble") as a JSON row in
``cursorDiskKV`` under ``bubbleId:<composerId>:<bubbleId>``. A bubble body
takes one of three known shapes:

- ``text``: plain text typed or generated in the chat.
- ``richText``: a serialized editor document (``{"root": {"children": [...]}}``).
- ``codeBlocks``: a list of ``{"language": ..., "content": ...}`` fragments.

Anything else decodes to :class:`UnknownBubble`, which renders as empty text.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime

logger = logging.getLogger(__name__)

FENCE = "```"


@dataclass(frozen=True)
class PlainBubble:
    text: str
    timestamp_ms: int | None = None


@dataclass(frozen=True)
class RichTextBubble:
    children: list = field(default_factory=list)
    timestamp_ms: int | None = None


@dataclass(frozen=True)
class CodeBlock:
    language: str
    content: str


@dataclass(frozen=True)
class CodeBlocksBubble:
    blocks: list[CodeBlock] = field(default_factory=list)
    timestamp_ms: int | None = None


@dataclass(frozen=True)
class UnknownBubble:
    timestamp_ms: int | None = None


Bubble = PlainBubble | RichTextBubble | CodeBlocksBubble | UnknownBubble


def decode_bubble(data: dict) -> Bubble:
    """Decode a raw bubble row into its body variant."""
    ts = _bubble_timestamp(data)

    text = data.get("text")
    if isinstance(text, str) and text.strip():
        return PlainBubble(text=text, timestamp_ms=ts)

    children = _parse_rich_text(data.get("richText"))
    if children is not None:
        return RichTextBubble(children=children, timestamp_ms=ts)

    raw_blocks = data.get("codeBlocks")
    if isinstance(raw_blocks, list) and raw_blocks:
        blocks = [
            CodeBlock(language=b.get("language") or "", content=b.get("content") or "")
            for b in raw_blocks
            if isinstance(b, dict)
        ]
        return CodeBlocksBubble(blocks=blocks, timestamp_ms=ts)

    return UnknownBubble(timestamp_ms=ts)


def bubble_text(bubble: Bubble) -> str:
    """Render a decoded bubble as flat text (possibly empty)."""
    if isinstance(bubble, PlainBubble):
        return bubble.text
    if isinstance(bubble, RichTextBubble):
        return render_rich_text(bubble.children)
    if isinstance(bubble, CodeBlocksBubble):
        return "".join(
            f"\n{FENCE}{block.language}\n{block.content}\n{FENCE}"
            for block in bubble.blocks
            if block.content
        )
    return ""


def extract_text(data: dict) -> str:
    """Shortcut: decode a raw bubble row and render its text."""
    return bubble_text(decode_bubble(data))


def render_rich_text(children: list) -> str:
    """Concatenate text from an editor document tree in document order."""
    parts = []
    for child in children:
        if not isinstance(child, dict):
            continue
        node_type = child.get("type")
        sub = child.get("children")
        if node_type == "text" and child.get("text"):
            parts.append(child["text"])
        elif node_type == "code" and isinstance(sub, list):
            parts.append(f"\n{FENCE}\n{render_rich_text(sub)}\n{FENCE}\n")
        elif isinstance(sub, list) and sub:
            parts.append(render_rich_text(sub))
    return "".join(parts)


def _parse_rich_text(raw) -> list | None:
    if not raw:
        return None
    try:
        doc = json.loads(raw) if isinstance(raw, str) else raw
        children = doc["root"]["children"]
    except (json.JSONDecodeError, KeyError, TypeError) as e:
        logger.debug("Ignoring malformed richText: %s", e)
        return None
    return children if isinstance(children, list) else None


def _bubble_timestamp(data: dict) -> int | None:
    """Millisecond creation time from ``timestamp`` or ``createdAt``."""
    for key in ("timestamp", "createdAt"):
        value = data.get(key)
        if isinstance(value, bool):
            continue
        if isinstance(value, (int, float)):
            return int(value)
        if isinstance(value, str) and value:
            try:
                return int(datetime.fromisoformat(value.replace("Z", "+00:00")).timestamp() * 1000)
            except ValueError:
                continue
    return None
