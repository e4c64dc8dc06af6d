"""Summary statistics over a set of conversations."""

from dataclasses import dataclass, field
from datetime import datetime

from .core import Conversation, MatchedUsage
from .window import TimeWindow

PREVIEW_LENGTH = 100
NO_USER_MESSAGE = "(no user message)"


def local_datetime(ts_ms: int) -> datetime:
    return datetime.fromtimestamp(ts_ms / 1000)


def us_date(dt: datetime) -> str:
    """``1/15/2024``"""
    return f"{dt.month}/{dt.day}/{dt.year}"


def us_time(dt: datetime) -> str:
    """``9:05:03 AM``"""
    hour = dt.hour % 12 or 12
    suffix = "AM" if dt.hour < 12 else "PM"
    return f"{hour}:{dt.minute:02d}:{dt.second:02d} {suffix}"


def us_datetime(dt: datetime) -> str:
    return f"{us_date(dt)}, {us_time(dt)}"


@dataclass
class ConversationRow:
    """One line of the detail table."""

    timestamp: int
    time_label: str
    date_label: str
    datetime_label: str
    name: str
    workspace: str
    model: str
    messages: int
    tokens: int
    context_limit: int
    lines_changed: str
    files: int
    preview: str
    api_call_count: int = 0
    api_usage: MatchedUsage = field(default_factory=MatchedUsage)


@dataclass
class ReportStats:
    total_conversations: int = 0
    total_messages: int = 0
    total_tokens: int = 0
    total_lines_added: int = 0
    total_lines_removed: int = 0
    total_files_changed: int = 0
    total_api_calls: int = 0
    total_api_usage: MatchedUsage = field(default_factory=MatchedUsage)
    model_usage: dict[str, int] = field(default_factory=dict)
    workspace_usage: dict[str, int] = field(default_factory=dict)
    hourly_distribution: list[int] = field(default_factory=lambda: [0] * 24)
    daily_distribution: dict[str, int] = field(default_factory=dict)
    is_multi_day: bool = False
    conversations: list[ConversationRow] = field(default_factory=list)
    generated_at: str = ""


def preview_text(conv: Conversation) -> str:
    first_user = next((m for m in conv.messages if m.role == "user"), None)
    if first_user is None:
        return NO_USER_MESSAGE
    text = first_user.text
    if len(text) > PREVIEW_LENGTH:
        return text[:PREVIEW_LENGTH] + "..."
    return text


def build_stats(
    conversations: list[Conversation],
    window: TimeWindow,
    now: datetime | None = None,
) -> ReportStats:
    """Reduce conversations to the figures shown in the dashboard."""
    stats = ReportStats(
        total_conversations=len(conversations),
        is_multi_day=window.is_multi_day,
        generated_at=us_datetime(now or datetime.now()),
    )

    # chronological order keeps the daily histogram keys sorted
    for conv in sorted(conversations, key=lambda c: c.timestamp_ms):
        ts = local_datetime(conv.timestamp_ms)

        stats.total_messages += conv.message_count
        stats.total_tokens += conv.context_tokens_used
        stats.total_lines_added += conv.lines_added
        stats.total_lines_removed += conv.lines_removed
        stats.total_files_changed += conv.files_changed
        stats.total_api_calls += conv.usage.api_call_count
        stats.total_api_usage.add(conv.usage)

        stats.model_usage[conv.model] = stats.model_usage.get(conv.model, 0) + 1
        stats.workspace_usage[conv.workspace] = stats.workspace_usage.get(conv.workspace, 0) + 1
        stats.hourly_distribution[ts.hour] += 1

        date_key = us_date(ts)
        stats.daily_distribution[date_key] = stats.daily_distribution.get(date_key, 0) + 1

        stats.conversations.append(ConversationRow(
            timestamp=conv.timestamp_ms,
            time_label=us_time(ts),
            date_label=date_key,
            datetime_label=us_datetime(ts),
            name=conv.name,
            workspace=conv.workspace,
            model=conv.model,
            messages=conv.message_count,
            tokens=conv.context_tokens_used,
            context_limit=conv.context_token_limit,
            lines_changed=f"+{conv.lines_added}/-{conv.lines_removed}",
            files=conv.files_changed,
            preview=preview_text(conv),
            api_call_count=conv.usage.api_call_count,
            api_usage=conv.usage,
        ))

    return stats
