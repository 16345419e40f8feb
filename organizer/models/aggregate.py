"""
Core Data Models for the Organizer

Everything the application knows lives in ONE document, the aggregate
(OrganizerData). These models define its schema:
1. Typed models for the collections the engine mutates or derives
2. Free-form JSON objects for collections the engine only carries
3. camelCase serialization, the portable export/remote format

DESIGN DECISION: Every model keeps unknown keys (extra="allow").
A document written by a newer version passes through an older one intact.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
)
from pydantic.alias_generators import to_camel


STORAGE_VERSION = "1.0.0"

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def generate_id() -> str:
    return str(uuid4())


class OrganizerModel(BaseModel):
    """Base for every persisted model: camelCase on the wire, extras kept."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class CompletionStatus(str, Enum):
    """
    Outcome of a habit on a given day.

    JUSTIFIED keeps a streak alive but does not count as a completion
    for lastCompleted or for the daily rollup.
    """
    COMPLETED = "completed"
    JUSTIFIED = "justified"
    NOT_COMPLETED = "not_completed"


class FinancialEntryType(str, Enum):
    """Direction of a financial entry."""
    INCOME = "income"
    EXPENSE = "expense"


class ReviewResult(str, Enum):
    """
    Self-graded outcome of a flashcard review.

    AGAIN and HARD break the card's review streak; GOOD and EASY extend it.
    """
    AGAIN = "again"
    HARD = "hard"
    GOOD = "good"
    EASY = "easy"


# =============================================================================
# HABITS
# =============================================================================

class Habit(OrganizerModel):
    """
    A recurring habit.

    daysOfWeek uses 0=Sunday .. 6=Saturday.
    streak and lastCompleted are derived from completions, never set by hand.
    """

    id: str = Field(default_factory=generate_id)
    name: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Habit name"
    )
    category: str = Field(default="disciplina")
    time: Optional[str] = None
    days_of_week: list[int] = Field(
        default_factory=list,
        description="Eligible weekdays (0=Sunday .. 6=Saturday)"
    )
    is_essential: bool = False
    weight: int = Field(
        default=1,
        ge=1,
        le=10,
        description="Points awarded when completed"
    )
    additional_info: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    streak: int = Field(default=0, ge=0)
    last_completed: Optional[date] = None

    @field_validator('days_of_week')
    @classmethod
    def validate_weekdays(cls, v: list[int]) -> list[int]:
        for day in v:
            if day < 0 or day > 6:
                raise ValueError(f"Weekday out of range 0-6: {day}")
        return sorted(set(v))

    def is_eligible_on(self, day: date) -> bool:
        return weekday_index(day) in self.days_of_week


class HabitCompletion(OrganizerModel):
    """
    The outcome of one habit on one calendar date.

    At most one completion exists per (habitId, date).
    """

    id: str = Field(default_factory=generate_id)
    habit_id: str
    date: date
    status: CompletionStatus
    justification: Optional[str] = None
    completed_at: Optional[datetime] = None


# =============================================================================
# ROLLUPS
# =============================================================================

class DailyStats(OrganizerModel):
    """Rollup of one day's habit outcomes."""

    date: date
    total_habits: int = Field(default=0, ge=0)
    completed_habits: int = Field(default=0, ge=0)
    total_points: int = Field(default=0, ge=0)
    earned_points: int = Field(default=0, ge=0)
    percentage: int = Field(default=0, ge=0, le=100)


class MonthlyChart(OrganizerModel):
    """
    Daily stats for one month plus a summary derived from them.

    The summary fields are recomputed from dailyStats on every rollup.
    """

    month: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="Month key YYYY-MM"
    )
    daily_stats: list[DailyStats] = Field(default_factory=list)
    average_performance: int = 0
    best_day: str = ""
    worst_day: str = ""
    total_days: int = 0
    completed_days: int = 0


# =============================================================================
# JOURNAL, BODY, FINANCE
# =============================================================================

class JournalEntry(OrganizerModel):
    """A daily reflection."""

    id: str = Field(default_factory=generate_id)
    date: date
    what_went_well: str = ""
    what_to_improve: str = ""
    how_i_felt: str = ""
    mood: Optional[int] = Field(default=None, ge=1, le=10)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class BodyMeasurement(OrganizerModel):
    """Body metrics captured on a date."""

    id: str = Field(default_factory=generate_id)
    date: date
    weight: Optional[float] = Field(default=None, ge=0)
    measurements: dict[str, float] = Field(default_factory=dict)
    photos: dict[str, str] = Field(default_factory=dict)
    self_assessment: dict[str, int] = Field(default_factory=dict)
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)


class FinancialEntry(OrganizerModel):
    """A single income or expense."""

    id: str = Field(default_factory=generate_id)
    type: FinancialEntryType = FinancialEntryType.EXPENSE
    amount: float = Field(
        ...,
        ge=0,
        description="Positive amount; direction comes from type"
    )
    category: str = ""
    date: date
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# STUDY
# =============================================================================

class Course(OrganizerModel):
    """An online or offline course."""

    id: str = Field(default_factory=generate_id)
    title: str = Field(..., min_length=1)
    provider: str = ""
    category: str = ""
    status: str = Field(
        default="planned",
        pattern="^(in_progress|completed|planned)$"
    )
    progress: int = Field(default=0, ge=0, le=100)
    duration: float = Field(default=0, ge=0, description="Hours")
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    certificate_url: Optional[str] = None
    notes: Optional[str] = None


class VocabularyWord(OrganizerModel):
    """
    A word under spaced review.

    lastReviewed holds a YYYY-MM-DD string, empty until the first review.
    Older documents may carry intervalDays 0, which reviews as 1.
    """

    id: str = Field(default_factory=generate_id)
    word: str = Field(..., min_length=1)
    definition: str = ""
    pronunciation: Optional[str] = None
    example_sentence: str = ""
    category: str = ""
    difficulty: str = "medium"
    review_count: int = Field(default=0, ge=0)
    last_reviewed: str = ""
    next_review_at: Optional[datetime] = None
    interval_days: int = Field(default=1, ge=0)
    created_at: datetime = Field(default_factory=utc_now)


class StudyData(OrganizerModel):
    """
    Study section of the aggregate.

    An object of arrays: documents missing any array get an empty one.
    """

    flashcards: list[dict[str, Any]] = Field(default_factory=list)
    quiz_results: list[dict[str, Any]] = Field(default_factory=list)
    quiz_questions: list[dict[str, Any]] = Field(default_factory=list)
    books: list[dict[str, Any]] = Field(default_factory=list)
    vocabulary: list[VocabularyWord] = Field(default_factory=list)
    courses: list[Course] = Field(default_factory=list)
    study_notes: list[dict[str, Any]] = Field(default_factory=list)
    pomodoro_sessions: list[dict[str, Any]] = Field(default_factory=list)
    quotes: list[dict[str, Any]] = Field(default_factory=list)


class RecordsData(OrganizerModel):
    """Records section: metadata of uploads and galleries (blobs live elsewhere)."""

    uploaded_files: list[dict[str, Any]] = Field(default_factory=list)
    galleries: list[dict[str, Any]] = Field(default_factory=list)
    progress_comparisons: list[dict[str, Any]] = Field(default_factory=list)
    community_posts: list[dict[str, Any]] = Field(default_factory=list)


# =============================================================================
# SETTINGS & AI HISTORY
# =============================================================================

class NotificationSettings(OrganizerModel):
    habit_reminders: bool = True
    workout_reminders: bool = True
    journal_reminders: bool = True


class UserSettings(OrganizerModel):
    """User preferences."""

    theme: str = Field(
        default="system",
        pattern="^(light|dark|system|ocean|sunset|forest|midnight)$"
    )
    sound_enabled: bool = True
    animations_enabled: bool = True
    minimal_mode: bool = False
    daily_motivation: str = ""
    ai_api_keys: list[str] = Field(default_factory=list)
    ai_chat_enabled: bool = False
    motivation_tone: str = "encorajador"
    motivation_length: str = Field(
        default="short",
        pattern="^(short|medium|long)$"
    )
    last_motivation_generated_at: Optional[str] = None
    notifications: NotificationSettings = Field(default_factory=NotificationSettings)
    tests_enabled: bool = False


class AIMessage(OrganizerModel):
    role: str = Field(..., pattern="^(user|assistant|system)$")
    text: str
    created_at: datetime = Field(default_factory=utc_now)


# =============================================================================
# THE AGGREGATE
# =============================================================================

class OrganizerData(OrganizerModel):
    """
    The aggregate: the single authoritative document.

    CRITICAL: Exactly one instance is authoritative at a time.
    Mutations replace a field and then the whole document is rewritten.

    lastUpdated drives last-writer-wins conflict resolution. A freshly
    defaulted document carries the Unix epoch, so any remote copy wins.
    """

    habits: list[Habit] = Field(default_factory=list)
    habit_completions: list[HabitCompletion] = Field(default_factory=list)
    monthly_charts: list[MonthlyChart] = Field(default_factory=list)
    workouts: list[dict[str, Any]] = Field(default_factory=list)
    body_measurements: list[BodyMeasurement] = Field(default_factory=list)
    journal_entries: list[JournalEntry] = Field(default_factory=list)
    goals: list[dict[str, Any]] = Field(default_factory=list)
    settings: UserSettings = Field(default_factory=UserSettings)
    last_updated: datetime = Field(default=EPOCH)
    version: str = STORAGE_VERSION
    study: StudyData = Field(default_factory=StudyData)
    records: RecordsData = Field(default_factory=RecordsData)
    finances: list[FinancialEntry] = Field(default_factory=list)
    ai_conversations: list[AIMessage] = Field(default_factory=list)
    vices: list[dict[str, Any]] = Field(default_factory=list)
    vice_completions: list[dict[str, Any]] = Field(default_factory=list)

    @field_validator('last_updated')
    @classmethod
    def ensure_timezone(cls, v: datetime) -> datetime:
        """Naive timestamps are taken as UTC so comparisons never mix kinds."""
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)

    def to_document(self) -> dict[str, Any]:
        """Serialize to the portable camelCase JSON document."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def find_habit(self, habit_id: str) -> Optional[Habit]:
        for habit in self.habits:
            if habit.id == habit_id:
                return habit
        return None


# =============================================================================
# DATE HELPERS
# =============================================================================

def weekday_index(day: date) -> int:
    """Weekday with 0=Sunday .. 6=Saturday, the convention used in daysOfWeek."""
    return (day.weekday() + 1) % 7


def month_key(day: date) -> str:
    return f"{day.year:04d}-{day.month:02d}"
