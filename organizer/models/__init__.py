"""
Data Models Package

This package contains all Pydantic models used by the Organizer engine.
Every document flowing through the engine conforms to these schemas.
"""

from organizer.models.aggregate import (
    STORAGE_VERSION,
    AIMessage,
    BodyMeasurement,
    CompletionStatus,
    Course,
    DailyStats,
    FinancialEntry,
    FinancialEntryType,
    Habit,
    HabitCompletion,
    JournalEntry,
    MonthlyChart,
    NotificationSettings,
    OrganizerData,
    RecordsData,
    ReviewResult,
    StudyData,
    UserSettings,
    VocabularyWord,
    month_key,
    weekday_index,
)
from organizer.models.audit import (
    AuditEntry,
    Command,
    CommandResult,
)
from organizer.models.sync import (
    SyncEntryStatus,
    SyncOperationType,
    SyncQueueEntry,
    SyncStatus,
)

__all__ = [
    # Aggregate models
    "STORAGE_VERSION",
    "AIMessage",
    "BodyMeasurement",
    "CompletionStatus",
    "Course",
    "DailyStats",
    "FinancialEntry",
    "FinancialEntryType",
    "Habit",
    "HabitCompletion",
    "JournalEntry",
    "MonthlyChart",
    "NotificationSettings",
    "OrganizerData",
    "RecordsData",
    "ReviewResult",
    "StudyData",
    "UserSettings",
    "VocabularyWord",
    "month_key",
    "weekday_index",
    # Audit models
    "AuditEntry",
    "Command",
    "CommandResult",
    # Sync models
    "SyncEntryStatus",
    "SyncOperationType",
    "SyncQueueEntry",
    "SyncStatus",
]
