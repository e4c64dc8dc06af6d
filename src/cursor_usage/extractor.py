"""Reconstruct composer conversations from Cursor's global store.

Reads ``globalStorage/state.vscdb`` read-only. Messages live in
``cursorDiskKV`` as ``bubbleId:<composerId>:<bubbleId>`` rows; each
conversation is a ``composerData:<composerId>`` row whose
``fullConversationHeadersOnly`` list gives message order and roles.
"""

import json
import logging
import sqlite3
import time
from contextlib import closing
from typing import Optional

from .bubbles import bubble_text, decode_bubble
from .config import Settings
from .core import BillingRecord, Conversation, MatchedUsage, Message
from .matcher import match_records, summarize
from .window import TimeWindow
from .workspace import WorkspaceIndex, WorkspaceSignals, resolve_workspace

logger = logging.getLogger(__name__)

USER_BUBBLE_TYPE = 1
HEADERS_FIELD = "fullConversationHeadersOnly"


class ConversationExtractor:
    """Loads conversations that fall inside a reporting window."""

    def __init__(self, settings: Settings, workspace_index: WorkspaceIndex | None = None):
        self.settings = settings
        self._workspace_index = workspace_index

    @property
    def workspace_index(self) -> WorkspaceIndex:
        if self._workspace_index is None:
            self._workspace_index = WorkspaceIndex.load(self.settings.workspace_storage)
        return self._workspace_index

    def extract(
        self,
        window: TimeWindow,
        billing_records: list[BillingRecord] | None = None,
    ) -> list[Conversation]:
        """Return conversations in ``window``, oldest first.

        Never raises for store problems; an empty list means nothing was found.
        """
        db_path = self.settings.state_db
        if not db_path.exists():
            logger.warning("Database not found: %s", db_path)
            return []

        workspace_index = self.workspace_index
        try:
            with closing(sqlite3.connect(f"file:{db_path}?mode=ro", uri=True)) as conn:
                bubbles = self._load_bubbles(conn)
                composers = self._load_composers(conn)
                conversations = []
                for composer_id, composer in composers:
                    try:
                        conv = self._build_conversation(
                            conn, composer_id, composer, bubbles, window, workspace_index
                        )
                    except (TypeError, ValueError, AttributeError) as e:
                        logger.debug("Skipping composer %s: %s", composer_id, e)
                        continue
                    if conv is not None:
                        conversations.append(conv)
        except (sqlite3.Error, OSError) as e:
            logger.error("Database error reading %s: %s", db_path, e)
            return []

        if billing_records:
            for conv in conversations:
                conv.usage = summarize(match_records(conv, billing_records))

        conversations.sort(key=lambda c: c.timestamp_ms)
        return conversations

    # ── Private helpers ──────────────────────────────────────────────

    def _load_bubbles(self, conn: sqlite3.Connection) -> dict[str, dict]:
        bubbles = {}
        rows = conn.execute(
            "SELECT key, value FROM cursorDiskKV WHERE key LIKE 'bubbleId:%'"
        ).fetchall()
        for key, value in rows:
            try:
                bubble_id = key.split(":")[2]
                data = json.loads(_as_text(value))
            except (IndexError, json.JSONDecodeError, TypeError, AttributeError) as e:
                logger.debug("Skipping bubble row %s: %s", key, e)
                continue
            if isinstance(data, dict):
                bubbles[bubble_id] = data
        return bubbles

    def _load_composers(self, conn: sqlite3.Connection) -> list[tuple[str, dict]]:
        composers = []
        rows = conn.execute(
            "SELECT key, value FROM cursorDiskKV WHERE key LIKE 'composerData:%' AND value LIKE ?",
            (f"%{HEADERS_FIELD}%",),
        ).fetchall()
        for key, value in rows:
            try:
                composer_id = key.split(":", 1)[1]
                data = json.loads(_as_text(value))
            except (IndexError, json.JSONDecodeError, TypeError, AttributeError) as e:
                logger.debug("Skipping composer row %s: %s", key, e)
                continue
            if isinstance(data, dict):
                composers.append((composer_id, data))
        return composers

    def _lookup_json(self, conn: sqlite3.Connection, key: str) -> Optional[dict]:
        try:
            row = conn.execute("SELECT value FROM cursorDiskKV WHERE key = ?", (key,)).fetchone()
            if not row:
                return None
            data = json.loads(_as_text(row[0]))
        except (sqlite3.Error, json.JSONDecodeError, TypeError, AttributeError) as e:
            logger.debug("Cannot read %s: %s", key, e)
            return None
        return data if isinstance(data, dict) else None

    def _build_conversation(
        self,
        conn: sqlite3.Connection,
        composer_id: str,
        composer: dict,
        bubbles: dict[str, dict],
        window: TimeWindow,
        workspace_index: WorkspaceIndex,
    ) -> Conversation | None:
        now_ms = int(time.time() * 1000)
        created_ms = _as_int(composer.get("createdAt"))
        timestamp = _as_int(composer.get("lastUpdatedAt")) or created_ms or now_ms
        if not window.contains(timestamp):
            return None

        headers = composer.get(HEADERS_FIELD) or []
        if not isinstance(headers, list) or not headers:
            return None

        messages = []
        for header in headers:
            if not isinstance(header, dict):
                continue
            raw = bubbles.get(header.get("bubbleId"))
            if raw is None:
                continue
            bubble = decode_bubble(raw)
            text = bubble_text(bubble).strip()
            if not text:
                continue
            messages.append(Message(
                role="user" if header.get("type") == USER_BUBBLE_TYPE else "assistant",
                text=text,
                timestamp_ms=bubble.timestamp_ms or timestamp,
            ))

        if not messages:
            return None

        first_header = headers[0] if isinstance(headers[0], dict) else {}
        signals = WorkspaceSignals(
            composer_id=composer_id,
            composer=composer,
            first_bubble_id=first_header.get("bubbleId"),
            lookup=lambda key: self._lookup_json(conn, key),
        )
        model_config = composer.get("modelConfig")

        return Conversation(
            composer_id=composer_id,
            name=composer.get("name") or "Untitled Chat",
            timestamp_ms=timestamp,
            created_at_ms=created_ms or timestamp,
            messages=messages,
            workspace=resolve_workspace(signals, workspace_index),
            model=(model_config.get("modelName") if isinstance(model_config, dict) else None) or "unknown",
            context_tokens_used=_as_int(composer.get("contextTokensUsed")),
            context_token_limit=_as_int(composer.get("contextTokenLimit")),
            lines_added=_as_int(composer.get("totalLinesAdded")),
            lines_removed=_as_int(composer.get("totalLinesRemoved")),
            files_changed=_as_int(composer.get("filesChangedCount")),
            usage=MatchedUsage(),
        )


def _as_text(value) -> str:
    return value if isinstance(value, str) else value.decode("utf-8", errors="replace")


def _as_int(value) -> int:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return int(value)
