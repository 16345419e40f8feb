"""
Tests for the Organizer models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with in-memory stores and a virtual clock)
3. No real network calls in tests
"""

import pytest
from datetime import date, datetime, timezone

from organizer.models.aggregate import (
    EPOCH,
    STORAGE_VERSION,
    CompletionStatus,
    FinancialEntry,
    Habit,
    HabitCompletion,
    JournalEntry,
    MonthlyChart,
    OrganizerData,
    month_key,
    weekday_index,
)
from organizer.models.audit import AuditEntry, Command, CommandResult
from organizer.models.sync import SyncEntryStatus, SyncQueueEntry


class TestHabitModels:
    """Tests for habit-related Pydantic models."""

    def test_habit_creation(self):
        """Test Habit model creation with defaults."""
        habit = Habit(name="Read", days_of_week=[1, 3, 5])
        assert habit.name == "Read"
        assert habit.weight == 1
        assert habit.streak == 0
        assert habit.last_completed is None
        assert habit.id

    def test_habit_accepts_camel_case(self):
        """Test that camelCase keys populate snake_case fields."""
        habit = Habit.model_validate({"name": "Run", "daysOfWeek": [0], "isEssential": True})
        assert habit.days_of_week == [0]
        assert habit.is_essential is True

    def test_habit_weekdays_sorted_and_deduplicated(self):
        habit = Habit(name="Run", days_of_week=[5, 1, 5, 0])
        assert habit.days_of_week == [0, 1, 5]

    def test_habit_rejects_out_of_range_weekday(self):
        """Test that weekdays outside 0-6 are rejected."""
        with pytest.raises(ValueError, match="Weekday out of range"):
            Habit(name="Run", days_of_week=[7])

    def test_habit_rejects_weight_out_of_range(self):
        with pytest.raises(ValueError):
            Habit(name="Run", weight=0)

    def test_habit_eligibility_uses_sunday_zero(self):
        """Test 0=Sunday convention: 2024-01-07 is a Sunday, 2024-01-01 a Monday."""
        habit = Habit(name="Rest", days_of_week=[0])
        assert habit.is_eligible_on(date(2024, 1, 7)) is True
        assert habit.is_eligible_on(date(2024, 1, 1)) is False

    def test_completion_serializes_camel_case(self):
        completion = HabitCompletion(
            habit_id="h1",
            date=date(2024, 1, 1),
            status=CompletionStatus.JUSTIFIED,
            justification="sick",
        )
        dumped = completion.model_dump(mode="json", by_alias=True)
        assert dumped["habitId"] == "h1"
        assert dumped["date"] == "2024-01-01"
        assert dumped["status"] == "justified"


class TestAggregateModel:
    """Tests for the OrganizerData aggregate."""

    def test_defaults(self):
        """Test a fresh aggregate has every collection and the epoch timestamp."""
        data = OrganizerData()
        assert data.habits == []
        assert data.study.vocabulary == []
        assert data.records.galleries == []
        assert data.settings.theme == "system"
        assert data.last_updated == EPOCH
        assert data.version == STORAGE_VERSION

    def test_naive_last_updated_is_utc(self):
        data = OrganizerData(last_updated=datetime(2024, 1, 1, 12, 0))
        assert data.last_updated.tzinfo is not None
        assert data.last_updated == datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def test_unknown_keys_survive(self):
        """Test that fields from a newer version pass through."""
        data = OrganizerData.model_validate({"futureFeature": {"enabled": True}})
        assert data.to_document()["futureFeature"] == {"enabled": True}

    def test_to_document_is_camel_case(self):
        data = OrganizerData(habits=[Habit(name="Read")])
        document = data.to_document()
        assert "habitCompletions" in document
        assert "lastUpdated" in document
        assert "daysOfWeek" in document["habits"][0]

    def test_find_habit(self):
        habit = Habit(name="Read")
        data = OrganizerData(habits=[habit])
        assert data.find_habit(habit.id).name == "Read"
        assert data.find_habit("missing") is None


class TestOtherModels:
    """Tests for journal, finance and chart models."""

    def test_journal_mood_bounds(self):
        with pytest.raises(ValueError):
            JournalEntry(date=date(2024, 1, 1), mood=11)

    def test_financial_entry_rejects_negative_amount(self):
        """Test that negative amounts are rejected."""
        with pytest.raises(ValueError):
            FinancialEntry(amount=-5, date=date(2024, 1, 1))

    def test_monthly_chart_month_pattern(self):
        with pytest.raises(ValueError):
            MonthlyChart(month="2024-1")


class TestSyncAndAuditModels:
    """Tests for queue and audit models."""

    def test_queue_entry_defaults(self):
        entry = SyncQueueEntry(payload={"habits": []})
        assert entry.status == SyncEntryStatus.PENDING
        assert entry.retry_count == 0
        assert entry.model_dump(mode="json", by_alias=True)["status"] == "pending"

    def test_in_flight_wire_value(self):
        assert SyncEntryStatus.IN_FLIGHT.value == "in-flight"

    def test_audit_entry_to_log_dict(self):
        """Test conversion to log dictionary."""
        command = Command(entity="habit", action="create", params={"name": "Read"})
        result = CommandResult(ok=True, message="Habit created")
        entry = AuditEntry(
            command=command.model_dump(mode="json"),
            result=result.model_dump(mode="json"),
            actor="assistant",
        )
        log_dict = entry.to_log_dict()
        assert "audit_id" in log_dict
        assert log_dict["entity"] == "habit"
        assert log_dict["ok"] is True
        assert log_dict["actor"] == "assistant"

    def test_command_requires_entity(self):
        with pytest.raises(ValueError):
            Command(entity="", action="create")


class TestDateHelpers:

    def test_weekday_index(self):
        assert weekday_index(date(2024, 1, 7)) == 0  # Sunday
        assert weekday_index(date(2024, 1, 1)) == 1  # Monday
        assert weekday_index(date(2024, 1, 6)) == 6  # Saturday

    def test_month_key(self):
        assert month_key(date(2024, 3, 9)) == "2024-03"


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
