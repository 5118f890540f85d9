"""Keyword search across the workspace."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from autoplan.models import CalendarEvent, FocusSession, Habit, Note, Task


@dataclass(slots=True, frozen=True)
class SearchResult:
    ref_id: str
    title: str
    subtitle: str | None
    kind: str
    relevance: float


def score_text(text: str, query: str) -> float:
    """Score ``text`` against an already lower-cased, trimmed ``query``."""
    haystack = text.lower()
    if not query or query not in haystack:
        return 0.0
    score = 2.0 if haystack == query else 1.0
    for word in haystack.split():
        if word.startswith(query):
            score += 0.5
    return score


def search_workspace(
    query: str,
    tasks: Iterable[Task],
    habits: Iterable[Habit] = (),
    notes: Iterable[Note] = (),
    focus_sessions: Iterable[FocusSession] = (),
    events: Iterable[CalendarEvent] = (),
    limit: int = 20,
) -> list[SearchResult]:
    """Rank every workspace item whose text contains ``query``.

    Focus sessions are matched on the title of their task, or on
    "Focus Session" when they are not tied to one.
    """
    normalized = query.strip().lower()
    if not normalized:
        return []

    task_list = list(tasks)
    titles = {task.task_id: task.title for task in task_list}
    results: list[SearchResult] = []

    for task in task_list:
        relevance = score_text(task.title, normalized) + score_text(task.notes or "", normalized)
        if relevance > 0:
            subtitle = f"Due {task.due:%Y-%m-%d %H:%M}" if task.due is not None else None
            results.append(SearchResult(task.task_id, task.title, subtitle, "task", relevance))

    for habit in habits:
        relevance = score_text(habit.title, normalized)
        if relevance > 0:
            results.append(SearchResult(habit.habit_id, habit.title, f"Streak: {habit.streak}", "habit", relevance))

    for note in notes:
        relevance = score_text(f"{note.title} {note.body}", normalized)
        if relevance > 0:
            results.append(SearchResult(note.note_id, note.title, "Note", "note", relevance))

    for session in focus_sessions:
        title = titles.get(session.task_id or "", "Focus Session")
        relevance = score_text(title, normalized)
        if relevance <= 0:
            continue
        if session.end is None:
            subtitle = "In progress"
        else:
            subtitle = f"{session.elapsed_minutes}m, {session.start:%Y-%m-%d %H:%M}"
        results.append(SearchResult(session.session_id, title, subtitle, "focus", relevance))

    for event in events:
        relevance = score_text(event.title, normalized)
        if relevance > 0:
            results.append(SearchResult(event.title, event.title, f"{event.start:%Y-%m-%d %H:%M}", "event", relevance))

    results.sort(key=lambda r: (-r.relevance, r.title))
    return results[: max(0, limit)]
