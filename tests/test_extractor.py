"""Tests for the conversation extractor."""

import json
from datetime import date

from cursor_usage import window
from cursor_usage.billing import load_billing_records
from cursor_usage.config import Settings
from cursor_usage.extractor import ConversationExtractor
from helpers import create_store, local_ms, write_workspace

JAN_15 = window.for_date(date(2024, 1, 15))
JANUARY = window.date_range(date(2024, 1, 1), date(2024, 1, 31))


class TestConversationExtractor:
    """Tests for ConversationExtractor."""

    def test_extracts_conversation_in_window(self, settings, conv_times):
        conversations = ConversationExtractor(settings).extract(JAN_15)
        assert len(conversations) == 1

        conv = conversations[0]
        assert conv.composer_id == "comp-001"
        assert conv.name == "Fix auth bug"
        assert conv.timestamp_ms == conv_times["updated"]
        assert conv.created_at_ms == conv_times["created"]
        assert conv.workspace == "my-project"
        assert conv.model == "claude-4-sonnet"
        assert conv.context_tokens_used == 12000
        assert conv.context_token_limit == 200000
        assert conv.lines_added == 40
        assert conv.lines_removed == 7
        assert conv.files_changed == 3
        assert conv.usage.api_call_count == 0

    def test_messages_resolved_in_header_order(self, settings, conv_times):
        (conv,) = ConversationExtractor(settings).extract(JAN_15)
        # the header with a missing bubble is dropped
        assert [m.role for m in conv.messages] == ["user", "assistant", "user", "assistant"]
        assert conv.messages[0].text == "Fix the login bug in auth.ts"
        assert conv.messages[1].text == "Updated the token check:\n```\nvalidate(token)\n```"
        assert conv.messages[3].text == "```ts\nif (expired) refresh();\n```"
        assert conv.messages[2].timestamp_ms == conv_times["msg3"]
        assert conv.end_ms == conv_times["msg4"]

    def test_wider_window_sorted(self, settings):
        conversations = ConversationExtractor(settings).extract(JANUARY)
        assert [c.composer_id for c in conversations] == ["comp-001", "comp-002"]
        assert conversations[1].workspace == "other app"
        assert conversations[1].name == "Add dark mode"
        assert conversations[1].model == "unknown"

    def test_empty_window(self, settings):
        assert ConversationExtractor(settings).extract(window.for_date(date(2023, 6, 1))) == []

    def test_missing_database(self, tmp_path):
        settings = Settings(cursor_user_path=tmp_path / "nowhere", output_dir=tmp_path / "out")
        assert ConversationExtractor(settings).extract(JAN_15) == []

    def test_unreadable_database(self, tmp_path):
        user_dir = tmp_path / "User"
        db_path = user_dir / "globalStorage" / "state.vscdb"
        db_path.parent.mkdir(parents=True)
        db_path.write_bytes(b"this is not a sqlite database at all" * 10)
        settings = Settings(cursor_user_path=user_dir, output_dir=tmp_path / "out")
        assert ConversationExtractor(settings).extract(JAN_15) == []

    def test_attaches_matched_usage(self, settings, billing_csv):
        records = load_billing_records(billing_csv)
        (conv,) = ConversationExtractor(settings).extract(JAN_15, records)
        assert conv.usage.api_call_count == 1
        assert conv.usage.total_tokens == 6300
        assert conv.usage.cost == 0.42

    def test_message_without_timestamp_uses_conversation_time(self, tmp_path):
        ts = local_ms(2024, 1, 15, 8, 0, 0)
        user_dir = tmp_path / "User"
        create_store(user_dir / "globalStorage" / "state.vscdb", {
            "composerData:c1": {
                "createdAt": ts,
                "fullConversationHeadersOnly": [{"bubbleId": "b1", "type": 1}],
            },
            "bubbleId:c1:b1": {"text": "no timestamp here"},
        })
        settings = Settings(cursor_user_path=user_dir, output_dir=tmp_path / "out")
        (conv,) = ConversationExtractor(settings).extract(JAN_15)
        assert conv.name == "Untitled Chat"
        assert conv.messages[0].timestamp_ms == ts
        assert conv.workspace == "unknown"

    def test_workspace_from_request_context(self, tmp_path):
        ts = local_ms(2024, 1, 15, 8, 0, 0)
        user_dir = tmp_path / "User"
        write_workspace(user_dir / "workspaceStorage", "ws1", "file:///work/backend")
        layout = {"listDirV2Result": {"directoryTreeRoot": {"absPath": "/work/backend"}}}
        create_store(user_dir / "globalStorage" / "state.vscdb", {
            "composerData:c1": {
                "createdAt": ts,
                "fullConversationHeadersOnly": [{"bubbleId": "b1", "type": 1}],
            },
            "bubbleId:c1:b1": {"text": "hello", "timestamp": ts},
            "messageRequestContext:c1:b1": {"projectLayouts": [json.dumps(layout)]},
        })
        settings = Settings(cursor_user_path=user_dir, output_dir=tmp_path / "out")
        (conv,) = ConversationExtractor(settings).extract(JAN_15)
        assert conv.workspace == "backend"

    def test_undecodable_descriptor_does_not_drop_conversations(self, settings):
        bad = settings.workspace_storage / "ws-zzz"
        bad.mkdir()
        (bad / "workspace.json").write_bytes(b'{"folder": "file:///x/\xff\xfe"}')
        (conv,) = ConversationExtractor(settings).extract(JAN_15)
        assert conv.workspace == "my-project"
