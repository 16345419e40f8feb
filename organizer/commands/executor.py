"""
Command Execution Engine

DESIGN DECISION: Command execution is DETERMINISTIC.
An external parser (or the AI assistant) turns text into a structured
Command. This engine applies that command through the storage facade and
nothing else: it can only do what a facade operation can do.

Entities and actions accept English and Portuguese spellings
(habit/habito, create/criar, delete/remover, complete/concluir,
summarize/resumir, ...). Params accept both spellings too.

Every execution, successful or not, is written to the audit log.
"""

import math
from datetime import date, timedelta
from fractions import Fraction
from typing import Any, Callable, Optional

from organizer.audit.logger import AuditLogger
from organizer.facade import OrganizerStore
from organizer.models.aggregate import CompletionStatus, FinancialEntryType
from organizer.models.audit import Command, CommandResult


class CommandExecutionError(Exception):
    """A command was understood but could not be carried out."""
    pass


ENTITY_ALIASES = {
    "habit": "habit",
    "habito": "habit",
    "hábito": "habit",
    "journal": "journal",
    "diario": "journal",
    "diário": "journal",
    "entrada": "journal",
    "finance": "finance",
    "financial": "finance",
    "financas": "finance",
    "finanças": "finance",
    "course": "course",
    "curso": "course",
    "quiz": "quiz",
    "question": "quiz",
    "pergunta": "quiz",
}

ACTION_ALIASES = {
    "create": "create",
    "criar": "create",
    "delete": "delete",
    "remover": "delete",
    "complete": "complete",
    "concluir": "complete",
    "summarize": "summarize",
    "resumir": "summarize",
}

# Summary windows in days, by period name
SUMMARY_PERIODS = {
    "semana": 7,
    "week": 7,
    "7dias": 7,
    "7_days": 7,
    "mes": 30,
    "mês": 30,
    "month": 30,
    "30dias": 30,
    "30_days": 30,
}

MAX_SUMMARY_HIGHLIGHTS = 5


def _param(params: dict[str, Any], *names: str, default: Any = None) -> Any:
    """First non-empty param among several spellings."""
    for name in names:
        value = params.get(name)
        if value not in (None, ""):
            return value
    return default


def map_completion_status(raw: Any) -> CompletionStatus:
    """
    Interpret free-text status.

    Anything negative ("not", "nao", "não") is not completed, even "not
    justified". Otherwise anything mentioning "just" is justified and
    everything else is completed.
    """
    text = str(raw or "completed").lower()
    if "not" in text or "nao" in text or "não" in text:
        return CompletionStatus.NOT_COMPLETED
    if "just" in text:
        return CompletionStatus.JUSTIFIED
    return CompletionStatus.COMPLETED


def summary_window_days(period: Any) -> int:
    text = str(period or "semana").strip().lower()
    if text in SUMMARY_PERIODS:
        return SUMMARY_PERIODS[text]
    if text.isdigit() and int(text) > 0:
        return int(text)
    return 7


class CommandExecutor:
    """
    Executes structured commands against the storage facade.

    GUARANTEES:
    - Only facade operations touch the data
    - Never raises: failures come back as CommandResult(ok=False)
    - Every command lands in the audit log
    """

    def __init__(self, store: OrganizerStore, audit: Optional[AuditLogger] = None):
        self._store = store
        self._audit = audit
        self._handlers: dict[tuple[str, str], Callable[[dict[str, Any]], CommandResult]] = {
            ("habit", "create"): self._create_habit,
            ("habit", "delete"): self._delete_habit,
            ("habit", "complete"): self._complete_habit,
            ("journal", "create"): self._create_journal_entry,
            ("journal", "delete"): self._delete_journal_entry,
            ("journal", "summarize"): self._summarize_journal,
            ("finance", "create"): self._create_financial_entry,
            ("finance", "delete"): self._delete_financial_entry,
            ("course", "create"): self._create_course,
            ("course", "delete"): self._delete_course,
            ("quiz", "create"): self._create_quiz_question,
            ("quiz", "delete"): self._delete_quiz_question,
        }

    def execute(self, command: Command, actor: Optional[str] = "assistant") -> CommandResult:
        """
        Execute a command and audit it.

        The result is what the assistant reports back to the user.
        """
        entity = ENTITY_ALIASES.get(command.entity.strip().lower())
        action = ACTION_ALIASES.get(command.action.strip().lower())
        handler = self._handlers.get((entity, action))

        if handler is None:
            result = CommandResult(
                ok=False,
                message=f"Unrecognized command: {command.entity} {command.action}",
            )
        else:
            try:
                result = handler(command.params or {})
            except Exception as e:
                result = CommandResult(ok=False, message=str(e))

        if self._audit is not None:
            self._audit.log_command(command, result, actor=actor)
        return result

    # -------------------------------------------------------------------------
    # Habits
    # -------------------------------------------------------------------------

    def _create_habit(self, p: dict[str, Any]) -> CommandResult:
        habit = self._store.add_habit(
            name=_param(p, "nome", "name", default="New habit"),
            days_of_week=_param(p, "dias", "days", default=[]),
            weight=_param(p, "peso", "weight", default=1),
            category=_param(p, "categoria", "category", default="disciplina"),
        )
        return CommandResult(
            ok=True,
            message="Habit created",
            result=habit.model_dump(mode="json", by_alias=True),
        )

    def _delete_habit(self, p: dict[str, Any]) -> CommandResult:
        habit_id = _param(p, "id", "ID", "name")
        if not habit_id:
            return CommandResult(ok=False, message="Habit id not provided")
        ok = self._store.delete_habit(str(habit_id))
        return CommandResult(ok=ok, message="Habit deleted" if ok else "Habit not found")

    def _complete_habit(self, p: dict[str, Any]) -> CommandResult:
        habit_id = _param(p, "id", "ID", "habitId", "habit")
        if not habit_id:
            return CommandResult(ok=False, message="Habit id not provided")

        status = map_completion_status(_param(p, "status", "estado"))
        justification = _param(p, "justification", "justificacao", "justify", "justificativa")
        ok = self._store.complete_habit(str(habit_id), status, justification)
        return CommandResult(
            ok=ok,
            message=f"Habit marked as {status.value}" if ok else "Habit not found",
        )

    # -------------------------------------------------------------------------
    # Journal
    # -------------------------------------------------------------------------

    def _create_journal_entry(self, p: dict[str, Any]) -> CommandResult:
        fields: dict[str, Any] = {
            "what_went_well": _param(p, "whatWentWell", "texto", "content", "body", default=""),
            "what_to_improve": _param(p, "whatToImprove", default=""),
            "how_i_felt": _param(p, "howIFelt", default=""),
            "mood": _param(p, "mood", "humor"),
        }
        title = _param(p, "titulo", "title")
        if title:
            fields["title"] = title
        entry_date = _param(p, "date", "data")
        if entry_date:
            fields["date"] = entry_date

        entry = self._store.add_journal_entry(**fields)
        return CommandResult(
            ok=True,
            message="Journal entry created",
            result=entry.model_dump(mode="json", by_alias=True),
        )

    def _delete_journal_entry(self, p: dict[str, Any]) -> CommandResult:
        entry_id = _param(p, "id")
        if not entry_id:
            return CommandResult(ok=False, message="Journal entry id not provided")
        ok = self._store.delete_journal_entry(str(entry_id))
        return CommandResult(ok=ok, message="Journal entry deleted" if ok else "Journal entry not found")

    def _summarize_journal(self, p: dict[str, Any]) -> CommandResult:
        """
        Summarize the journal over a window ending today.

        Mood is averaged over entries that have one, to one decimal.
        """
        days = summary_window_days(_param(p, "period", "periodo"))
        to_date = self._store.today()
        from_date = to_date - timedelta(days=days - 1)

        entries = sorted(
            (e for e in self._store.get_journal_entries() if from_date <= e.date <= to_date),
            key=lambda e: e.date,
        )
        moods = [e.mood for e in entries if e.mood is not None]
        avg_mood: Optional[float] = None
        if moods:
            avg_mood = math.floor(Fraction(sum(moods) * 10, len(moods)) + Fraction(1, 2)) / 10

        positives = [e.what_went_well for e in entries if e.what_went_well][:MAX_SUMMARY_HIGHLIGHTS]
        negatives = [e.what_to_improve for e in entries if e.what_to_improve][:MAX_SUMMARY_HIGHLIGHTS]

        summary = self._summary_text(from_date, to_date, len(entries), avg_mood, positives, negatives)
        return CommandResult(
            ok=True,
            message="Summary generated",
            result={
                "count": len(entries),
                "avgMood": avg_mood,
                "positives": positives,
                "negatives": negatives,
                "summary": summary,
                "from": from_date.isoformat(),
                "to": to_date.isoformat(),
                "entries": [e.model_dump(mode="json", by_alias=True) for e in entries],
            },
        )

    @staticmethod
    def _summary_text(
        from_date: date,
        to_date: date,
        count: int,
        avg_mood: Optional[float],
        positives: list[str],
        negatives: list[str],
    ) -> str:
        text = f"Summary ({from_date.isoformat()} -> {to_date.isoformat()}): {count} entr{'y' if count == 1 else 'ies'}"
        if avg_mood is not None:
            text += f", average mood {avg_mood}/10."
        if positives:
            text += f" Went well: {' | '.join(positives)}."
        if negatives:
            text += f" To improve: {' | '.join(negatives)}."
        return text

    # -------------------------------------------------------------------------
    # Finance, courses, quiz questions
    # -------------------------------------------------------------------------

    def _create_financial_entry(self, p: dict[str, Any]) -> CommandResult:
        raw_type = str(_param(p, "type", "tipo", default="expense")).lower()
        if raw_type in ("income", "receita", "entrada"):
            entry_type = FinancialEntryType.INCOME
        elif raw_type in ("expense", "despesa", "saida", "saída"):
            entry_type = FinancialEntryType.EXPENSE
        else:
            raise CommandExecutionError(f"Unknown financial entry type: {raw_type}")

        fields: dict[str, Any] = {
            "type": entry_type,
            "category": _param(p, "category", "categoria", default=""),
            "notes": _param(p, "note", "nota", "notes"),
        }
        entry_date = _param(p, "date", "data")
        if entry_date:
            fields["date"] = entry_date

        entry = self._store.add_financial_entry(
            amount=float(_param(p, "amount", "valor", default=0)),
            **fields,
        )
        return CommandResult(
            ok=True,
            message="Financial entry created",
            result=entry.model_dump(mode="json", by_alias=True),
        )

    def _delete_financial_entry(self, p: dict[str, Any]) -> CommandResult:
        entry_id = _param(p, "id")
        if not entry_id:
            return CommandResult(ok=False, message="Financial entry id not provided")
        ok = self._store.delete_financial_entry(str(entry_id))
        return CommandResult(ok=ok, message="Financial entry deleted" if ok else "Not found")

    def _create_course(self, p: dict[str, Any]) -> CommandResult:
        course = self._store.add_course(title=_param(p, "titulo", "title", default="New course"))
        return CommandResult(
            ok=True,
            message="Course created",
            result=course.model_dump(mode="json", by_alias=True),
        )

    def _delete_course(self, p: dict[str, Any]) -> CommandResult:
        course_id = _param(p, "id")
        if not course_id:
            return CommandResult(ok=False, message="Course id not provided")
        ok = self._store.delete_course(str(course_id))
        return CommandResult(ok=ok, message="Course deleted" if ok else "Not found")

    def _create_quiz_question(self, p: dict[str, Any]) -> CommandResult:
        question = _param(p, "question", "pergunta", "text")
        if not question:
            raise CommandExecutionError("Question text not provided")
        entry = self._store.add_quiz_question(
            question=str(question),
            choices=_param(p, "choices", "opcoes", "options", default=[]),
            answer=_param(p, "answer", "resposta", "correct", default=""),
            category=_param(p, "category", "categoria", default="general"),
        )
        return CommandResult(ok=True, message="Question created", result=entry)

    def _delete_quiz_question(self, p: dict[str, Any]) -> CommandResult:
        question_id = _param(p, "id")
        if not question_id:
            return CommandResult(ok=False, message="Question id not provided")
        ok = self._store.delete_quiz_question(str(question_id))
        return CommandResult(ok=ok, message="Question deleted" if ok else "Question not found")
