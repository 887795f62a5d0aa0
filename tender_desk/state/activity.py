"""Activity-log entries for watchlist items."""

from __future__ import annotations

import uuid
from dataclasses import replace
from datetime import datetime, timezone
from typing import Callable, Union

from ..models.types import ActivityLog, ActivityType, Tender, WatchlistItem

ItemTransform = Callable[[WatchlistItem], WatchlistItem]
Description = Union[str, Callable[[WatchlistItem], str]]


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def create_activity_log(
    type: ActivityType,
    description: str,
    tender: Tender,
    timestamp: str | None = None,
) -> ActivityLog:
    return ActivityLog(
        id=str(uuid.uuid4()),
        timestamp=timestamp or utc_now_iso(),
        type=type,
        description=description,
        tender_id=tender.id,
        tender_title=tender.title,
    )


def with_activity_log(
    item: WatchlistItem,
    type: ActivityType,
    description: Description,
    transform: ItemTransform,
    timestamp: str | None = None,
) -> WatchlistItem:
    """Apply ``transform`` to ``item`` and prepend exactly one log entry.

    ``description`` may be a callable; it then sees the same item snapshot
    the transform sees. The returned item is new; ``item`` is untouched.
    """
    text = description(item) if callable(description) else description
    log = create_activity_log(type, text, item.tender, timestamp)
    updated = transform(item)
    return replace(updated, activity_log=[log, *item.activity_log])
