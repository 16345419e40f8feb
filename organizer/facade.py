"""
Storage Facade

OrganizerStore is the single entry point the rest of the application uses
to read and change data. It owns the in-memory aggregate.

CRITICAL: Every mutation follows the same path:
    mutate -> recompute derived state -> write local -> enqueue snapshot -> notify

DESIGN DECISION: CRUD always succeeds locally.
Nothing here awaits the network. A failed local write is logged and the
in-memory state stays authoritative; remote delivery is the queue's problem.

Callers get copies. Mutating a returned model never changes the aggregate;
only facade methods do.
"""

import math
from datetime import date, datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional, Union

import structlog

from organizer.analytics.rollup import (
    ensure_monthly_chart,
    find_monthly_chart,
    rollup_day,
)
from organizer.analytics.streaks import recompute_streak
from organizer.events import ChangeKind, ChangeNotifier
from organizer.models.aggregate import (
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
    OrganizerData,
    OrganizerModel,
    ReviewResult,
    UserSettings,
    VocabularyWord,
    generate_id,
    month_key,
)
from organizer.services.storage.aggregate import (
    AggregateStore,
    export_document,
    parse_document,
)
from organizer.services.storage.interface import ImportValidationError
from organizer.sync.queue import SyncQueue
from organizer.sync.scheduler import Scheduler


logger = structlog.get_logger(__name__)

# Fields the caller may never set directly on creation
_GENERATED_FIELDS = {"id", "created_at", "createdAt", "updated_at", "updatedAt"}
_DERIVED_HABIT_FIELDS = {"streak", "last_completed", "lastCompleted"}

_CENTS = Decimal("0.01")
_TENTHS = Decimal("0.1")

# Flashcard spaced-repetition bounds
DEFAULT_EASE = 2.5
MIN_EASE = 1.3
MAX_EASE = 4.0
_FLASHCARD_SCHEDULE_FIELDS = (
    "id", "createdAt", "lastReviewed", "nextReview", "interval", "ease", "streak",
)


def _to_cents(value: float) -> float:
    return float(Decimal(str(value)).quantize(_CENTS, rounding=ROUND_HALF_UP))


def _to_tenths(value: Decimal) -> float:
    return float(value.quantize(_TENTHS, rounding=ROUND_HALF_UP))


def _normalize_keys(model_cls: type[OrganizerModel], values: dict[str, Any]) -> dict[str, Any]:
    """Map camelCase aliases to attribute names so merges never hold both."""
    aliases = {
        field.alias: name
        for name, field in model_cls.model_fields.items()
        if field.alias and field.alias != name
    }
    return {aliases.get(key, key): value for key, value in values.items()}


def _index_of(items: list, item_id: str) -> Optional[int]:
    for idx, item in enumerate(items):
        current_id = item.get("id") if isinstance(item, dict) else item.id
        if current_id == item_id:
            return idx
    return None


class OrganizerStore:
    """The aggregate, its persistence path and every CRUD operation."""

    def __init__(
        self,
        local: AggregateStore,
        queue: SyncQueue,
        scheduler: Scheduler,
        notifier: ChangeNotifier,
    ):
        self._local = local
        self._queue = queue
        self._scheduler = scheduler
        self._notifier = notifier
        self._data = local.read()

    # =========================================================================
    # PERSISTENCE PATH
    # =========================================================================

    def today(self) -> date:
        return self._scheduler.now().date()

    @property
    def last_updated(self) -> datetime:
        return self._data.last_updated

    def _commit(self, reason: str, *extra_kinds: ChangeKind) -> None:
        """Stamp, write, enqueue and notify after a mutation."""
        self._data.last_updated = self._scheduler.utc_now()
        self._persist_and_enqueue()
        self._notifier.publish(ChangeKind.DATA_CHANGED, reason=reason)
        for kind in extra_kinds:
            self._notifier.publish(kind, reason=reason)

    def _persist_and_enqueue(self) -> None:
        self._local.write(self._data)
        self._queue.enqueue_snapshot(self._data)

    def _refresh_derived(self) -> None:
        """
        Recompute every streak, and today's rollup if today is already recorded.

        Runs after anything that changes the habit set or replaces the
        aggregate.
        """
        today = self.today()
        for habit in self._data.habits:
            recompute_streak(self._data, habit.id, today)

        chart = find_monthly_chart(self._data, month_key(today))
        if chart is not None and any(s.date == today for s in chart.daily_stats):
            rollup_day(self._data, today)

    # =========================================================================
    # WHOLE AGGREGATE
    # =========================================================================

    def get_data(self) -> OrganizerData:
        return self._data.model_copy(deep=True)

    def export_data(self) -> str:
        """Full aggregate as pretty-printed camelCase JSON."""
        return export_document(self._data)

    def import_data(self, raw: Union[str, bytes, dict[str, Any]]) -> bool:
        """
        Replace the aggregate with an imported document.

        Missing fields are filled from defaults.

        Returns:
            False if the document is malformed; the current state is untouched
        """
        try:
            imported = parse_document(raw)
        except ImportValidationError as e:
            logger.warning("import_rejected", error=str(e))
            return False

        self._data = imported
        self._refresh_derived()
        self._commit("import")
        logger.info("import_applied", habits=len(imported.habits))
        return True

    def apply_remote(self, data: OrganizerData) -> None:
        """
        Adopt a newer aggregate pulled from the remote service.

        The remote lastUpdated is kept, so the next regular pull finds
        nothing newer.
        """
        self._data = data.model_copy(deep=True)
        self._refresh_derived()
        self._persist_and_enqueue()
        self._notifier.publish(
            ChangeKind.REMOTE_APPLIED,
            last_updated=self._data.last_updated.isoformat(),
        )

    def reset(self) -> None:
        """Drop everything and start from defaults (nothing is enqueued)."""
        self._data = OrganizerData()
        self._local.clear()
        self._notifier.publish(ChangeKind.DATA_CHANGED, reason="reset")

    # =========================================================================
    # GENERIC COLLECTION HELPERS
    # =========================================================================

    def _create(self, model_cls: type[OrganizerModel], fields: dict[str, Any], **overrides: Any):
        values = {
            k: v for k, v in _normalize_keys(model_cls, fields).items()
            if k not in _GENERATED_FIELDS
        }
        values.update(overrides)
        return model_cls.model_validate(values)

    @staticmethod
    def _merge(item: OrganizerModel, updates: dict[str, Any], **overrides: Any) -> OrganizerModel:
        model_cls = type(item)
        merged = item.model_dump()
        merged.update(_normalize_keys(model_cls, updates))
        merged.update(overrides)
        if "id" in model_cls.model_fields:
            merged["id"] = item.id
        return model_cls.model_validate(merged)

    def _update_in(
        self,
        items: list,
        item_id: str,
        updates: dict[str, Any],
        reason: str,
        touch: bool = False,
    ) -> bool:
        idx = _index_of(items, item_id)
        if idx is None:
            return False
        overrides = {"updated_at": self._scheduler.utc_now()} if touch else {}
        items[idx] = self._merge(items[idx], updates, **overrides)
        self._commit(reason)
        return True

    def _update_record(
        self,
        items: list[dict[str, Any]],
        item_id: str,
        updates: dict[str, Any],
        reason: str,
    ) -> bool:
        """Shallow-merge updates into a free-form record; its id never changes."""
        idx = _index_of(items, item_id)
        if idx is None:
            return False
        items[idx] = {**items[idx], **updates, "id": item_id}
        self._commit(reason)
        return True

    def _delete_from(self, items: list, item_id: str, reason: str) -> bool:
        idx = _index_of(items, item_id)
        if idx is None:
            return False
        del items[idx]
        self._commit(reason)
        return True

    # =========================================================================
    # HABITS
    # =========================================================================

    def get_habits(self) -> list[Habit]:
        return [h.model_copy(deep=True) for h in self._data.habits]

    def get_habit(self, habit_id: str) -> Optional[Habit]:
        habit = self._data.find_habit(habit_id)
        return habit.model_copy(deep=True) if habit else None

    def add_habit(self, name: str, **fields: Any) -> Habit:
        fields = {k: v for k, v in fields.items() if k not in _DERIVED_HABIT_FIELDS}
        habit = self._create(
            Habit,
            fields,
            name=name,
            id=generate_id(),
            created_at=self._scheduler.utc_now(),
            streak=0,
        )
        self._data.habits.append(habit)
        self._refresh_derived()
        self._commit("habit_added")
        return habit.model_copy(deep=True)

    def update_habit(self, habit_id: str, updates: dict[str, Any]) -> bool:
        updates = {k: v for k, v in updates.items() if k not in _DERIVED_HABIT_FIELDS}
        idx = _index_of(self._data.habits, habit_id)
        if idx is None:
            return False
        self._data.habits[idx] = self._merge(self._data.habits[idx], updates)
        self._refresh_derived()
        self._commit("habit_updated")
        return True

    def delete_habit(self, habit_id: str) -> bool:
        """Delete a habit and every completion it owns."""
        idx = _index_of(self._data.habits, habit_id)
        if idx is None:
            return False
        del self._data.habits[idx]
        self._data.habit_completions = [
            c for c in self._data.habit_completions if c.habit_id != habit_id
        ]
        self._refresh_derived()
        self._commit("habit_deleted")
        return True

    def get_today_habits(self, day: Optional[date] = None) -> list[Habit]:
        """Habits eligible on a day (today by default)."""
        day = day or self.today()
        return [h.model_copy(deep=True) for h in self._data.habits if h.is_eligible_on(day)]

    def get_habit_completions(self, day: Optional[date] = None) -> list[HabitCompletion]:
        day = day or self.today()
        return [c.model_copy(deep=True) for c in self._data.habit_completions if c.date == day]

    def complete_habit(
        self,
        habit_id: str,
        status: Union[CompletionStatus, str],
        justification: Optional[str] = None,
        on: Optional[date] = None,
    ) -> bool:
        """
        Record a habit's outcome for a day (today by default).

        An existing completion for the same (habit, date) is replaced and
        keeps its id. The streak and the day's rollup are recomputed.

        Returns:
            False if the habit does not exist
        """
        if self._data.find_habit(habit_id) is None:
            return False

        status = CompletionStatus(status)
        day = on or self.today()
        completions = self._data.habit_completions

        existing = next(
            (i for i, c in enumerate(completions) if c.habit_id == habit_id and c.date == day),
            None,
        )
        completion = HabitCompletion(
            id=completions[existing].id if existing is not None else generate_id(),
            habit_id=habit_id,
            date=day,
            status=status,
            justification=justification,
            completed_at=self._scheduler.utc_now() if status == CompletionStatus.COMPLETED else None,
        )
        if existing is not None:
            completions[existing] = completion
        else:
            completions.append(completion)

        recompute_streak(self._data, habit_id, self.today())
        rollup_day(self._data, day)
        self._commit("habit_completed")
        return True

    # =========================================================================
    # STATS
    # =========================================================================

    def get_daily_stats(self, day: Optional[date] = None) -> Optional[DailyStats]:
        day = day or self.today()
        chart = find_monthly_chart(self._data, month_key(day))
        if chart is None:
            return None
        for stats in chart.daily_stats:
            if stats.date == day:
                return stats.model_copy(deep=True)
        return None

    def get_monthly_chart(self, month: Optional[str] = None) -> Optional[MonthlyChart]:
        chart = find_monthly_chart(self._data, month or month_key(self.today()))
        return chart.model_copy(deep=True) if chart else None

    def get_all_monthly_charts(self) -> list[MonthlyChart]:
        """Every chart, newest month first."""
        charts = sorted(self._data.monthly_charts, key=lambda c: c.month, reverse=True)
        return [c.model_copy(deep=True) for c in charts]

    def perform_day_rollover(self) -> DailyStats:
        """
        Close the previous day.

        Makes sure the current month has a chart, records yesterday's stats
        into yesterday's month and persists.
        """
        today = self.today()
        ensure_monthly_chart(self._data, month_key(today))
        stats = rollup_day(self._data, today - timedelta(days=1))
        self._commit("day_rollover")
        logger.info(
            "day_rollover_completed",
            day=stats.date.isoformat(),
            percentage=stats.percentage,
        )
        return stats.model_copy(deep=True)

    # =========================================================================
    # JOURNAL
    # =========================================================================

    def get_journal_entries(self) -> list[JournalEntry]:
        return [e.model_copy(deep=True) for e in self._data.journal_entries]

    def add_journal_entry(self, **fields: Any) -> JournalEntry:
        now = self._scheduler.utc_now()
        fields.setdefault("date", self.today())
        entry = self._create(JournalEntry, fields, id=generate_id(), created_at=now, updated_at=now)
        self._data.journal_entries.append(entry)
        self._commit("journal_added")
        return entry.model_copy(deep=True)

    def update_journal_entry(self, entry_id: str, updates: dict[str, Any]) -> bool:
        return self._update_in(
            self._data.journal_entries, entry_id, updates, "journal_updated", touch=True
        )

    def delete_journal_entry(self, entry_id: str) -> bool:
        return self._delete_from(self._data.journal_entries, entry_id, "journal_deleted")

    # =========================================================================
    # BODY MEASUREMENTS
    # =========================================================================

    def get_body_measurements(self) -> list[BodyMeasurement]:
        return [m.model_copy(deep=True) for m in self._data.body_measurements]

    def add_body_measurement(self, **fields: Any) -> BodyMeasurement:
        now = self._scheduler.utc_now()
        fields.setdefault("date", self.today())
        measurement = self._create(
            BodyMeasurement, fields, id=generate_id(), created_at=now, updated_at=now
        )
        self._data.body_measurements.append(measurement)
        self._commit("body_measurement_added")
        return measurement.model_copy(deep=True)

    def update_body_measurement(self, measurement_id: str, updates: dict[str, Any]) -> bool:
        return self._update_in(
            self._data.body_measurements,
            measurement_id,
            updates,
            "body_measurement_updated",
            touch=True,
        )

    def delete_body_measurement(self, measurement_id: str) -> bool:
        return self._delete_from(
            self._data.body_measurements, measurement_id, "body_measurement_deleted"
        )

    # =========================================================================
    # FINANCES
    # =========================================================================

    def get_financial_entries(self) -> list[FinancialEntry]:
        return [f.model_copy(deep=True) for f in self._data.finances]

    def add_financial_entry(self, amount: float, **fields: Any) -> FinancialEntry:
        fields.setdefault("date", self.today())
        entry = self._create(
            FinancialEntry,
            fields,
            amount=amount,
            id=generate_id(),
            created_at=self._scheduler.utc_now(),
        )
        self._data.finances.append(entry)
        self._commit("financial_entry_added")
        return entry.model_copy(deep=True)

    def update_financial_entry(self, entry_id: str, updates: dict[str, Any]) -> bool:
        return self._update_in(self._data.finances, entry_id, updates, "financial_entry_updated")

    def delete_financial_entry(self, entry_id: str) -> bool:
        return self._delete_from(self._data.finances, entry_id, "financial_entry_deleted")

    def _entries_in_month(self, year: int, month: int) -> list[FinancialEntry]:
        return [f for f in self._data.finances if f.date.year == year and f.date.month == month]

    def get_monthly_financial_summary(self, year: int, month: int) -> dict[str, Any]:
        """
        Income, expenses and profit of a month, plus a per-category breakdown.

        Returns:
            {"income", "expenses", "profit", "byCategory": {cat: {"income", "expenses", "net"}}}
        """
        income = Decimal("0")
        expenses = Decimal("0")
        by_category: dict[str, dict[str, Decimal]] = {}

        for entry in self._entries_in_month(year, month):
            amount = Decimal(str(entry.amount))
            bucket = by_category.setdefault(
                entry.category or "Uncategorized",
                {"income": Decimal("0"), "expenses": Decimal("0")},
            )
            if entry.type == FinancialEntryType.INCOME:
                income += amount
                bucket["income"] += amount
            else:
                expenses += amount
                bucket["expenses"] += amount

        return {
            "income": _to_cents(income),
            "expenses": _to_cents(expenses),
            "profit": _to_cents(income - expenses),
            "byCategory": {
                category: {
                    "income": _to_cents(bucket["income"]),
                    "expenses": _to_cents(bucket["expenses"]),
                    "net": _to_cents(bucket["income"] - bucket["expenses"]),
                }
                for category, bucket in by_category.items()
            },
        }

    def get_daily_profit_for_month(self, year: int, month: int) -> list[float]:
        """Net amount per day of the month; index 0 is day 1."""
        return [day["profit"] for day in self.get_daily_breakdown_for_month(year, month)]

    def get_daily_breakdown_for_month(self, year: int, month: int) -> list[dict[str, float]]:
        """Income, expenses and profit per day of the month; index 0 is day 1."""
        first = date(year, month, 1)
        next_month = date(year + month // 12, month % 12 + 1, 1)
        days = [
            {"income": Decimal("0"), "expenses": Decimal("0")}
            for _ in range((next_month - first).days)
        ]

        for entry in self._entries_in_month(year, month):
            bucket = days[entry.date.day - 1]
            if entry.type == FinancialEntryType.INCOME:
                bucket["income"] += Decimal(str(entry.amount))
            else:
                bucket["expenses"] += Decimal(str(entry.amount))

        return [
            {
                "income": _to_cents(d["income"]),
                "expenses": _to_cents(d["expenses"]),
                "profit": _to_cents(d["income"] - d["expenses"]),
            }
            for d in days
        ]

    # =========================================================================
    # STUDY: COURSES, VOCABULARY, QUIZ QUESTIONS
    # =========================================================================

    def get_courses(self) -> list[Course]:
        return [c.model_copy(deep=True) for c in self._data.study.courses]

    def add_course(self, title: str, **fields: Any) -> Course:
        course = self._create(Course, fields, title=title, id=generate_id())
        self._data.study.courses.append(course)
        self._commit("course_added")
        return course.model_copy(deep=True)

    def update_course(self, course_id: str, updates: dict[str, Any]) -> bool:
        return self._update_in(self._data.study.courses, course_id, updates, "course_updated")

    def delete_course(self, course_id: str) -> bool:
        return self._delete_from(self._data.study.courses, course_id, "course_deleted")

    def get_vocabulary(self) -> list[VocabularyWord]:
        return [w.model_copy(deep=True) for w in self._data.study.vocabulary]

    def add_vocabulary_word(self, word: str, **fields: Any) -> VocabularyWord:
        """Add a word; it is due for review immediately."""
        now = self._scheduler.utc_now()
        for key in ("last_reviewed", "lastReviewed", "review_count", "reviewCount",
                    "next_review_at", "nextReviewAt", "interval_days", "intervalDays"):
            fields.pop(key, None)
        entry = self._create(
            VocabularyWord,
            fields,
            word=word,
            id=generate_id(),
            created_at=now,
            next_review_at=now,
        )
        self._data.study.vocabulary.append(entry)
        self._commit("vocabulary_added")
        return entry.model_copy(deep=True)

    def update_vocabulary_word(self, word_id: str, updates: dict[str, Any]) -> bool:
        return self._update_in(self._data.study.vocabulary, word_id, updates, "vocabulary_updated")

    def delete_vocabulary_word(self, word_id: str) -> bool:
        return self._delete_from(self._data.study.vocabulary, word_id, "vocabulary_deleted")

    def mark_vocabulary_reviewed(self, word_id: str, success: bool = True) -> bool:
        """
        Record a review. At most one review per word per day.

        Success doubles the interval (1, 2, 4, 8 ...), failure resets it to 1.

        Returns:
            False if the word is unknown or was already reviewed today
        """
        idx = _index_of(self._data.study.vocabulary, word_id)
        if idx is None:
            return False

        word = self._data.study.vocabulary[idx]
        today = self.today().isoformat()
        if word.last_reviewed == today:
            return False

        word.last_reviewed = today
        word.review_count += 1
        word.interval_days = (word.interval_days or 1) * 2 if success else 1
        word.next_review_at = self._scheduler.utc_now() + timedelta(days=word.interval_days)

        self._commit("vocabulary_reviewed")
        return True

    def get_due_vocabulary(self, reference: Optional[datetime] = None) -> list[VocabularyWord]:
        """Words whose next review time has come (or was never set)."""
        reference = reference or self._scheduler.utc_now()
        return [
            w.model_copy(deep=True)
            for w in self._data.study.vocabulary
            if w.next_review_at is None or w.next_review_at <= reference
        ]

    def get_due_vocabulary_count(self) -> int:
        return len(self.get_due_vocabulary())

    def get_quiz_questions(self) -> list[dict[str, Any]]:
        return [dict(q) for q in self._data.study.quiz_questions]

    def add_quiz_question(self, question: str, **fields: Any) -> dict[str, Any]:
        entry = {
            **fields,
            "question": question,
            "id": generate_id(),
            "createdAt": self._scheduler.utc_now().isoformat(),
        }
        self._data.study.quiz_questions.append(entry)
        self._commit("quiz_question_added")
        return dict(entry)

    def delete_quiz_question(self, question_id: str) -> bool:
        return self._delete_from(self._data.study.quiz_questions, question_id, "quiz_question_deleted")

    def update_quiz_question(self, question_id: str, updates: dict[str, Any]) -> bool:
        return self._update_record(
            self._data.study.quiz_questions, question_id, updates, "quiz_question_updated"
        )

    # =========================================================================
    # STUDY: QUIZ RESULTS & POMODORO SESSIONS
    # =========================================================================

    def get_quiz_results(self) -> list[dict[str, Any]]:
        return [dict(r) for r in self._data.study.quiz_results]

    def add_quiz_result(self, score: float, **fields: Any) -> dict[str, Any]:
        """Record a finished quiz, dated today."""
        entry = {
            **fields,
            "score": score,
            "id": generate_id(),
            "date": self.today().isoformat(),
        }
        self._data.study.quiz_results.append(entry)
        self._commit("quiz_result_added")
        return dict(entry)

    def get_quiz_stats(self) -> dict[str, Any]:
        """
        Aggregate quiz results.

        Averages are rounded half up to one decimal. Results without a
        category count under "general".

        Returns:
            {"totalAttempts", "averageScore", "bestScore", "lastAttempt",
             "byCategory": {cat: {"attempts", "averageScore"}}}
        """
        results = self._data.study.quiz_results
        if not results:
            return {
                "totalAttempts": 0,
                "averageScore": 0,
                "bestScore": 0,
                "lastAttempt": None,
                "byCategory": {},
            }

        scores = [Decimal(str(r.get("score", 0))) for r in results]
        by_category: dict[str, list[Decimal]] = {}
        for result, score in zip(results, scores):
            by_category.setdefault(result.get("category") or "general", []).append(score)

        return {
            "totalAttempts": len(results),
            "averageScore": _to_tenths(sum(scores) / len(scores)),
            "bestScore": max(r.get("score", 0) for r in results),
            "lastAttempt": results[-1].get("date") or None,
            "byCategory": {
                category: {
                    "attempts": len(values),
                    "averageScore": _to_tenths(sum(values) / len(values)),
                }
                for category, values in by_category.items()
            },
        }

    def get_pomodoro_sessions(self) -> list[dict[str, Any]]:
        return [dict(s) for s in self._data.study.pomodoro_sessions]

    def add_pomodoro_session(self, **fields: Any) -> dict[str, Any]:
        session = {**fields, "id": generate_id(), "date": self.today().isoformat()}
        self._data.study.pomodoro_sessions.append(session)
        self._commit("pomodoro_session_added")
        return dict(session)

    # =========================================================================
    # STUDY: FLASHCARDS & BOOKS
    # =========================================================================

    def get_flashcards(self) -> list[dict[str, Any]]:
        return [dict(f) for f in self._data.study.flashcards]

    def get_due_flashcards(self, on: Optional[date] = None) -> list[dict[str, Any]]:
        """Cards whose nextReview (YYYY-MM-DD) is on or before a day, or unset."""
        target = (on or self.today()).isoformat()
        return [
            dict(f)
            for f in self._data.study.flashcards
            if not f.get("nextReview") or str(f["nextReview"])[:10] <= target
        ]

    def add_flashcard(self, question: str, answer: str, **fields: Any) -> dict[str, Any]:
        """Add a card; it is due today with interval 1 and ease 2.5."""
        for key in _FLASHCARD_SCHEDULE_FIELDS:
            fields.pop(key, None)
        now = self._scheduler.utc_now().isoformat()
        card = {
            **fields,
            "question": question,
            "answer": answer,
            "id": generate_id(),
            "createdAt": now,
            "lastReviewed": now,
            "nextReview": self.today().isoformat(),
            "interval": 1,
            "ease": DEFAULT_EASE,
            "streak": 0,
        }
        self._data.study.flashcards.append(card)
        self._commit("flashcard_added")
        return dict(card)

    def update_flashcard(self, card_id: str, updates: dict[str, Any]) -> bool:
        return self._update_record(self._data.study.flashcards, card_id, updates, "flashcard_updated")

    def delete_flashcard(self, card_id: str) -> bool:
        return self._delete_from(self._data.study.flashcards, card_id, "flashcard_deleted")

    def schedule_review_result(self, card_id: str, result: Union[ReviewResult, str]) -> bool:
        """
        Reschedule a card after a review.

        again: interval 1, ease -0.25, streak reset
        hard:  interval x1.2, ease -0.15, streak reset
        good:  interval x ease, streak +1
        easy:  interval x ease x2.5, ease +0.15, streak +1

        Intervals are floored and at least 1 day; ease stays within
        [1.3, 4.0]. A missing or zero interval/ease reads as the default.

        Returns:
            False if the card does not exist
        """
        idx = _index_of(self._data.study.flashcards, card_id)
        if idx is None:
            return False

        result = ReviewResult(result)
        card = self._data.study.flashcards[idx]
        interval = card.get("interval") or 1
        ease = card.get("ease") or DEFAULT_EASE
        streak = card.get("streak") or 0

        if result == ReviewResult.AGAIN:
            interval = 1
            ease = max(MIN_EASE, ease - 0.25)
            streak = 0
        elif result == ReviewResult.HARD:
            interval = max(1, math.floor(interval * 1.2))
            ease = max(MIN_EASE, ease - 0.15)
            streak = 0
        elif result == ReviewResult.GOOD:
            interval = max(1, math.floor(interval * ease))
            streak += 1
        else:
            interval = max(1, math.floor(interval * ease * 2.5))
            ease = min(MAX_EASE, ease + 0.15)
            streak += 1

        card.update(
            lastReviewed=self._scheduler.utc_now().isoformat(),
            nextReview=(self.today() + timedelta(days=interval)).isoformat(),
            interval=interval,
            ease=round(ease, 2),
            streak=streak,
        )
        self._commit("flashcard_reviewed")
        return True

    def get_books(self) -> list[dict[str, Any]]:
        return [dict(b) for b in self._data.study.books]

    def add_book(self, title: str, **fields: Any) -> dict[str, Any]:
        book = {**fields, "title": title, "id": generate_id()}
        self._data.study.books.append(book)
        self._commit("book_added")
        return dict(book)

    def update_book(self, book_id: str, updates: dict[str, Any]) -> bool:
        return self._update_record(self._data.study.books, book_id, updates, "book_updated")

    def delete_book(self, book_id: str) -> bool:
        return self._delete_from(self._data.study.books, book_id, "book_deleted")

    # =========================================================================
    # SETTINGS & AI HISTORY
    # =========================================================================

    def get_settings(self) -> UserSettings:
        return self._data.settings.model_copy(deep=True)

    def update_settings(self, **updates: Any) -> UserSettings:
        self._data.settings = self._merge(self._data.settings, updates)
        self._commit("settings_updated", ChangeKind.SETTINGS_CHANGED)
        return self.get_settings()

    def get_ai_conversations(self) -> list[AIMessage]:
        return [m.model_copy(deep=True) for m in self._data.ai_conversations]

    def add_ai_message(self, role: str, text: str, **fields: Any) -> AIMessage:
        message = self._create(
            AIMessage, fields, role=role, text=text, created_at=self._scheduler.utc_now()
        )
        self._data.ai_conversations.append(message)
        self._commit("ai_message_added")
        return message.model_copy(deep=True)

    def set_ai_conversations(self, messages: list[Union[AIMessage, dict[str, Any]]]) -> None:
        self._data.ai_conversations = [
            m.model_copy(deep=True) if isinstance(m, AIMessage) else AIMessage.model_validate(m)
            for m in messages
        ]
        self._commit("ai_conversations_replaced")
