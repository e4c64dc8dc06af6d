"""Shared test fixtures for cursor-usage."""

from datetime import datetime

import pytest

from cursor_usage.config import Settings
from helpers import create_store, local_ms, rich_text, write_workspace


@pytest.fixture
def conv_times():
    """Timestamps for the main fixture conversation on 2024-01-15."""
    return {
        "created": local_ms(2024, 1, 15, 10, 0, 0),
        "updated": local_ms(2024, 1, 15, 10, 30, 0),
        "msg1": local_ms(2024, 1, 15, 10, 0, 5),
        "msg2": local_ms(2024, 1, 15, 10, 1, 0),
        "msg3": local_ms(2024, 1, 15, 10, 10, 0),
        "msg4": local_ms(2024, 1, 15, 10, 12, 0),
    }


@pytest.fixture
def cursor_user_dir(tmp_path, conv_times):
    """Synthetic Cursor ``User`` directory.

    Contains two workspace descriptors and a global store with:
    - comp-001: two user/assistant pairs on 2024-01-15 in ``my-project``
    - comp-002: a conversation on 2024-01-20 (outside a single-day window)
    - comp-003: headers pointing only at empty bubbles (dropped)
    - a malformed composer row and a malformed bubble row
    """
    user_dir = tmp_path / "User"
    ws_storage = user_dir / "workspaceStorage"
    write_workspace(ws_storage, "ws-aaa", "file:///Users/testuser/dev/my-project")
    write_workspace(ws_storage, "ws-bbb", "file:///Users/testuser/dev/other%20app")

    t = conv_times
    later = local_ms(2024, 1, 20, 15, 0, 0)
    rows = {
        "composerData:comp-001": {
            "composerId": "comp-001",
            "name": "Fix auth bug",
            "createdAt": t["created"],
            "lastUpdatedAt": t["updated"],
            "workspaceId": "ws-aaa",
            "modelConfig": {"modelName": "claude-4-sonnet"},
            "contextTokensUsed": 12000,
            "contextTokenLimit": 200000,
            "totalLinesAdded": 40,
            "totalLinesRemoved": 7,
            "filesChangedCount": 3,
            "fullConversationHeadersOnly": [
                {"bubbleId": "b1", "type": 1},
                {"bubbleId": "b2", "type": 2},
                {"bubbleId": "b3", "type": 1},
                {"bubbleId": "b4", "type": 2},
                {"bubbleId": "missing", "type": 2},
            ],
        },
        "bubbleId:comp-001:b1": {"text": "Fix the login bug in auth.ts", "timestamp": t["msg1"]},
        "bubbleId:comp-001:b2": {
            "text": "",
            "richText": rich_text(
                {"type": "paragraph", "children": [{"type": "text", "text": "Updated the token check:"}]},
                {"type": "code", "children": [{"type": "text", "text": "validate(token)"}]},
            ),
            "timestamp": t["msg2"],
        },
        "bubbleId:comp-001:b3": {"text": "Now handle expired tokens", "timestamp": t["msg3"]},
        "bubbleId:comp-001:b4": {
            "codeBlocks": [{"language": "ts", "content": "if (expired) refresh();"}],
            "timestamp": t["msg4"],
        },
        "composerData:comp-002": {
            "name": "Add dark mode",
            "createdAt": later,
            "lastUpdatedAt": later,
            "addedFiles": ["file:///Users/testuser/dev/other%20app/src/theme.css"],
            "fullConversationHeadersOnly": [{"bubbleId": "c1", "type": 1}],
        },
        "bubbleId:comp-002:c1": {"text": "Add a dark mode toggle", "timestamp": later},
        "composerData:comp-003": {
            "name": "Empty",
            "createdAt": t["created"],
            "fullConversationHeadersOnly": [{"bubbleId": "e1", "type": 1}],
        },
        "bubbleId:comp-003:e1": {"text": "   "},
        "composerData:comp-bad": "{not json fullConversationHeadersOnly",
        "bubbleId:comp-bad:x1": "{broken",
    }
    create_store(user_dir / "globalStorage" / "state.vscdb", rows)
    return user_dir


@pytest.fixture
def settings(cursor_user_dir, tmp_path):
    return Settings(cursor_user_path=cursor_user_dir, output_dir=tmp_path / "out")


@pytest.fixture
def billing_csv(tmp_path, conv_times):
    """Usage export with one row matching comp-001 and two that do not."""
    def iso(ms):
        return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%dT%H:%M:%S")

    header = (
        "Date,User,Kind,Model,Max Mode,Input (w/ Cache Write),Input (w/o Cache Write),"
        "Cache Read,Output Tokens,Total Tokens,Cost"
    )
    lines = [
        header,
        f'{iso(conv_times["msg2"])},me@example.com,Included,claude-4-sonnet-thinking,No,'
        f'"1,000",800,5000,300,"6,300",$0.42',
        f'{iso(conv_times["msg3"])},me@example.com,Included,gpt-5,No,100,100,0,10,110,0.01',
        f'{iso(local_ms(2024, 1, 15, 18, 0, 0))},me@example.com,Included,auto,Yes,1,1,1,1,4,0.01',
    ]
    path = tmp_path / "usage.csv"
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path
