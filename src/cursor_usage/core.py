"""Core data models for cursor-usage."""

from dataclasses import dataclass, field


@dataclass
class Message:
    """A single resolved message within a conversation."""

    role: str  # "user" | "assistant"
    text: str
    timestamp_ms: int


@dataclass(frozen=True)
class BillingRecord:
    """One row of the usage export downloaded from the Cursor dashboard."""

    timestamp_ms: int
    user: str = ""
    kind: str = ""
    model: str = ""
    max_mode: bool = False
    input_with_cache_write: int = 0
    input_without_cache_write: int = 0
    cache_read: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0


@dataclass
class MatchedUsage:
    """Billing records attributed to one conversation, summed."""

    api_call_count: int = 0
    input_with_cache_write: int = 0
    input_without_cache_write: int = 0
    cache_read: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    cost: float = 0.0

    def add(self, other: "MatchedUsage") -> None:
        """Accumulate another summary into this one."""
        self.api_call_count += other.api_call_count
        self.input_with_cache_write += other.input_with_cache_write
        self.input_without_cache_write += other.input_without_cache_write
        self.cache_read += other.cache_read
        self.output_tokens += other.output_tokens
        self.total_tokens += other.total_tokens
        self.cost += other.cost


@dataclass
class Conversation:
    """A composer conversation reconstructed from the global store."""

    composer_id: str
    name: str
    timestamp_ms: int  # last updated, else created
    created_at_ms: int
    messages: list[Message]
    workspace: str = "unknown"
    model: str = "unknown"
    context_tokens_used: int = 0
    context_token_limit: int = 0
    lines_added: int = 0
    lines_removed: int = 0
    files_changed: int = 0
    usage: MatchedUsage = field(default_factory=MatchedUsage)

    @property
    def message_count(self) -> int:
        return len(self.messages)

    @property
    def start_ms(self) -> int:
        return self.created_at_ms

    @property
    def end_ms(self) -> int:
        """Latest message timestamp, or the start when there are no messages."""
        if not self.messages:
            return self.start_ms
        return max(m.timestamp_ms for m in self.messages)
