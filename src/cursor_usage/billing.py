"""Parse the usage CSV exported from the Cursor dashboard."""

import csv
import logging
from datetime import datetime
from pathlib import Path

from .core import BillingRecord

logger = logging.getLogger(__name__)

COLUMNS = {
    "date": "Date",
    "user": "User",
    "kind": "Kind",
    "model": "Model",
    "max_mode": "Max Mode",
    "input_with_cache_write": "Input (w/ Cache Write)",
    "input_without_cache_write": "Input (w/o Cache Write)",
    "cache_read": "Cache Read",
    "output_tokens": "Output Tokens",
    "total_tokens": "Total Tokens",
    "cost": "Cost",
}

# Tried after ISO-8601
_DATE_FORMATS = (
    "%Y-%m-%d %H:%M:%S",
    "%Y-%m-%d %H:%M",
    "%m/%d/%Y %H:%M:%S",
    "%m/%d/%Y, %I:%M:%S %p",
    "%b %d, %Y, %I:%M %p",
)

_TRUTHY = {"yes", "true", "1", "on"}


def load_billing_records(path: Path | str) -> list[BillingRecord]:
    """Read every usable row of a usage export.

    A missing or unreadable file yields an empty list.
    """
    path = Path(path)
    if not path.exists():
        logger.warning("Usage export not found: %s", path)
        return []

    try:
        with path.open(newline="", encoding="utf-8-sig") as f:
            reader = csv.DictReader(f)
            records = []
            for row in reader:
                record = parse_row(row)
                if record is not None:
                    records.append(record)
    except (OSError, UnicodeDecodeError, csv.Error) as e:
        logger.error("Failed to read usage export %s: %s", path, e)
        return []

    logger.info("Loaded %d billing records from %s", len(records), path)
    return records


def parse_row(row: dict) -> BillingRecord | None:
    """Build a record from one CSV row, or None if it has no usable date."""
    ts = parse_timestamp(row.get(COLUMNS["date"]) or "")
    if ts is None:
        logger.debug("Skipping usage row with unparseable date: %r", row.get(COLUMNS["date"]))
        return None

    return BillingRecord(
        timestamp_ms=ts,
        user=(row.get(COLUMNS["user"]) or "").strip(),
        kind=(row.get(COLUMNS["kind"]) or "").strip(),
        model=(row.get(COLUMNS["model"]) or "").strip(),
        max_mode=(row.get(COLUMNS["max_mode"]) or "").strip().lower() in _TRUTHY,
        input_with_cache_write=parse_int(row.get(COLUMNS["input_with_cache_write"])),
        input_without_cache_write=parse_int(row.get(COLUMNS["input_without_cache_write"])),
        cache_read=parse_int(row.get(COLUMNS["cache_read"])),
        output_tokens=parse_int(row.get(COLUMNS["output_tokens"])),
        total_tokens=parse_int(row.get(COLUMNS["total_tokens"])),
        cost=parse_float(row.get(COLUMNS["cost"])),
    )


def parse_timestamp(value: str) -> int | None:
    """Milliseconds since epoch; naive values are taken as local time."""
    value = value.strip().strip('"')
    if not value:
        return None
    try:
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        dt = None
        for fmt in _DATE_FORMATS:
            try:
                dt = datetime.strptime(value, fmt)
                break
            except ValueError:
                continue
        if dt is None:
            return None
    return int(dt.timestamp() * 1000)


def _clean_number(value) -> str:
    return str(value or "").strip().replace(",", "").replace("$", "")


def parse_int(value) -> int:
    try:
        return int(float(_clean_number(value)))
    except (ValueError, OverflowError):
        return 0


def parse_float(value) -> float:
    try:
        return float(_clean_number(value))
    except ValueError:
        return 0.0
