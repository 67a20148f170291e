# contract_runtime/core/shared/timestamps.py
"""
ISO-8601 timestamps for server-assigned record fields.

All server timestamps use the same fixed-width UTC format
(2024-01-01T00:00:00.000000Z) so they sort correctly as plain strings.
"""

from datetime import datetime, timezone


def format_timestamp(moment: datetime) -> str:
    if moment.tzinfo is not None:
        moment = moment.astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def utc_now_iso() -> str:
    return format_timestamp(datetime.now(timezone.utc))
