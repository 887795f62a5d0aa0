from .types import (
    ActivityLog,
    ActivityType,
    Source,
    Tender,
    TenderStatus,
    WatchlistItem,
)
from .records import (
    AIConfig,
    AIProvider,
    Task,
    TeamMember,
)

__all__ = [
    "ActivityLog",
    "ActivityType",
    "Source",
    "Tender",
    "TenderStatus",
    "WatchlistItem",
    "AIConfig",
    "AIProvider",
    "Task",
    "TeamMember",
]
