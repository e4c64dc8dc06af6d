"""Render conversations as text transcripts and statistics as an HTML dashboard."""

import json
import logging
import re
from pathlib import Path

from jinja2 import Environment, PackageLoader

from .config import Settings
from .core import Conversation, MatchedUsage
from .stats import ConversationRow, ReportStats, local_datetime, us_datetime, us_time

logger = logging.getLogger(__name__)

RULE_WIDTH = 80

_jinja_env = Environment(
    loader=PackageLoader("cursor_usage", "templates"),
    autoescape=True,
    keep_trailing_newline=True,
)
_jinja_env.filters["thousands"] = lambda n: f"{n:,}"


def _rule(char: str) -> str:
    return char * RULE_WIDTH


# ── Text transcripts ─────────────────────────────────────────────


def transcript_filename(conv: Conversation, index: int, date_label: str) -> str:
    """``<label>_<HH-MM-SS>_<workspace>_conv<index>.txt``"""
    time_str = local_datetime(conv.timestamp_ms).strftime("%H-%M-%S")
    workspace_short = re.sub(r"[^a-zA-Z0-9]", "_", conv.workspace[:15])
    return f"{date_label}_{time_str}_{workspace_short}_conv{index}.txt"


def _percent(used: int, limit: int) -> str:
    if not limit:
        return "0.0"
    return f"{used / limit * 100:.1f}"


def _usage_lines(usage: MatchedUsage) -> list[str]:
    return [
        f"API Calls: {usage.api_call_count}",
        f"API Tokens: {usage.total_tokens:,} total"
        f" (input w/ cache write {usage.input_with_cache_write:,},"
        f" input w/o cache write {usage.input_without_cache_write:,},"
        f" cache read {usage.cache_read:,},"
        f" output {usage.output_tokens:,})",
        f"API Cost: ${usage.cost:.2f}",
    ]


def render_transcript(conv: Conversation, index: int) -> str:
    """Export a conversation as a fixed-layout plain-text transcript."""
    lines = [
        _rule("="),
        f"CONVERSATION #{index}",
        f"Name: {conv.name}",
        f"Workspace: {conv.workspace}",
        f"Time: {us_datetime(local_datetime(conv.timestamp_ms))}",
        f"Model: {conv.model}",
        f"Tokens: {conv.context_tokens_used:,} / {conv.context_token_limit:,}"
        f" ({_percent(conv.context_tokens_used, conv.context_token_limit)}%)",
        f"Changes: +{conv.lines_added} -{conv.lines_removed} lines in {conv.files_changed} files",
        f"Messages: {conv.message_count}",
        f"Composer ID: {conv.composer_id}",
    ]
    if conv.usage.api_call_count > 0:
        lines.append(_rule("-"))
        lines.extend(_usage_lines(conv.usage))
    lines.extend([_rule("="), ""])

    for msg in conv.messages:
        lines.extend([
            "",
            _rule("-"),
            f"[{msg.role.upper()}] {us_time(local_datetime(msg.timestamp_ms))}",
            _rule("-"),
            msg.text,
        ])

    lines.extend(["", _rule("="), "End of conversation", _rule("=")])
    return "\n".join(lines)


def write_transcripts(
    conversations: list[Conversation], settings: Settings, date_label: str
) -> list[Path]:
    """Write one transcript per conversation, numbered from 1."""
    settings.chats_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for index, conv in enumerate(conversations, start=1):
        path = settings.chats_dir / transcript_filename(conv, index, date_label)
        path.write_text(render_transcript(conv, index), encoding="utf-8")
        paths.append(path)
    return paths


# ── HTML dashboard ───────────────────────────────────────────────


def _usage_to_dict(usage: MatchedUsage) -> dict:
    return {
        "inputWithCache": usage.input_with_cache_write,
        "inputWithoutCache": usage.input_without_cache_write,
        "cacheRead": usage.cache_read,
        "outputTokens": usage.output_tokens,
        "totalTokens": usage.total_tokens,
        "cost": round(usage.cost, 6),
    }


def _row_to_dict(row: ConversationRow) -> dict:
    """Convert a detail row to the JSON shape used by the dashboard script."""
    return {
        "timestamp": row.timestamp,
        "time": row.time_label,
        "date": row.date_label,
        "datetime": row.datetime_label,
        "name": row.name,
        "workspace": row.workspace,
        "model": row.model,
        "messages": row.messages,
        "tokens": row.tokens,
        "contextLimit": row.context_limit,
        "linesChanged": row.lines_changed,
        "files": row.files,
        "preview": row.preview,
        "apiCallCount": row.api_call_count,
        "apiTokens": _usage_to_dict(row.api_usage),
    }


def report_data(stats: ReportStats) -> dict:
    """Data embedded in the dashboard for the client-side charts and table."""
    rows = stats.conversations
    if stats.is_multi_day:
        time_labels = [f"{r.date_label} {r.time_label}" for r in rows]
        activity_labels = list(stats.daily_distribution)
        activity_data = [stats.daily_distribution[k] for k in activity_labels]
    else:
        time_labels = [f"{r.time_label} {r.name[:20]}" for r in rows]
        activity_labels = [f"{h}:00" for h in range(24)]
        activity_data = list(stats.hourly_distribution)

    return {
        "conversations": [_row_to_dict(r) for r in rows],
        "timeLabels": time_labels,
        "tokenData": [r.tokens for r in rows],
        "messageData": [r.messages for r in rows],
        "activityLabels": activity_labels,
        "activityData": activity_data,
        "modelLabels": list(stats.model_usage),
        "modelCounts": list(stats.model_usage.values()),
        "workspaceLabels": list(stats.workspace_usage),
        "workspaceCounts": list(stats.workspace_usage.values()),
        "isMultiDay": stats.is_multi_day,
        "totalApiCalls": stats.total_api_calls,
    }


def _avg(total: int, count: int) -> int:
    return round(total / count) if count > 0 else 0


def render_dashboard(stats: ReportStats, date_label: str) -> str:
    """Render the self-contained HTML report."""
    count = stats.total_conversations
    # "</" inside a <script> element would end it early
    data_json = json.dumps(report_data(stats), ensure_ascii=False).replace("</", "<\\/")
    template = _jinja_env.get_template("report.html")
    return template.render(
        stats=stats,
        date_label=date_label,
        avg_tokens=_avg(stats.total_tokens, count),
        avg_messages=_avg(stats.total_messages, count),
        avg_lines=_avg(stats.total_lines_added + stats.total_lines_removed, count),
        show_api=stats.total_api_calls > 0,
        workspaces=sorted({r.workspace for r in stats.conversations}),
        models=sorted({r.model for r in stats.conversations}),
        data_json=data_json,
    )


def write_dashboard(stats: ReportStats, settings: Settings, date_label: str) -> Path:
    path = settings.report_path
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_dashboard(stats, date_label), encoding="utf-8")
    return path
