"""Attribute billing records to conversations.

The usage export and the local store share no identifier, so records are
matched by time (the conversation's span widened by a tolerance) and by a
coarse model family.
"""

from collections.abc import Iterable

from .core import BillingRecord, Conversation, MatchedUsage

DEFAULT_TOLERANCE_MS = 5 * 60 * 1000

ANY_MODEL = "any"
_MODEL_FAMILIES = ("sonnet", "opus", "composer")
_WILDCARD_NAMES = {"auto", "default", "unknown"}


def normalize_model(name: str) -> str:
    """Map a model name to its family token, or ``"any"`` for wildcards."""
    lowered = (name or "").lower()
    for family in _MODEL_FAMILIES:
        if family in lowered:
            return family
    if lowered in _WILDCARD_NAMES:
        return ANY_MODEL
    return name


def models_compatible(conversation_model: str, record_model: str) -> bool:
    a = normalize_model(conversation_model)
    b = normalize_model(record_model)
    return a == ANY_MODEL or b == ANY_MODEL or a == b


def match_records(
    conversation: Conversation,
    records: Iterable[BillingRecord],
    tolerance_ms: int = DEFAULT_TOLERANCE_MS,
) -> list[BillingRecord]:
    """Records that fall inside the conversation's widened time span."""
    lower = conversation.start_ms - tolerance_ms
    upper = conversation.end_ms + tolerance_ms
    return [
        r for r in records
        if lower <= r.timestamp_ms <= upper
        and models_compatible(conversation.model, r.model)
    ]


def summarize(records: Iterable[BillingRecord]) -> MatchedUsage:
    usage = MatchedUsage()
    for r in records:
        usage.api_call_count += 1
        usage.input_with_cache_write += r.input_with_cache_write
        usage.input_without_cache_write += r.input_without_cache_write
        usage.cache_read += r.cache_read
        usage.output_tokens += r.output_tokens
        usage.total_tokens += r.total_tokens
        usage.cost += r.cost
    return usage
