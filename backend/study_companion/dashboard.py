from __future__ import annotations
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence

from .progress import percent
from .schemas import Topic, topic_is_break, topic_name
from .session import StudySession
from .store import EXPLANATIONS_KEY, NOTES_KEY, QUIZ_RESULTS_KEY

NOTE_COVERAGE = 80
EXPLANATION_COVERAGE = 90


def _short(name: str, width: int) -> str:
    return name[:width] + "..." if len(name) > width else name


def topic_rows(topics: Sequence[Topic], completion: Mapping[int, bool]) -> List[Dict[str, Any]]:
    return [
        {"name": _short(topic_name(topic), 10), "progress": 100 if completion.get(i) else 0, "target": 100}
        for i, topic in enumerate(topics)
        if not topic_is_break(topic)
    ]


def quiz_score_history(results: Sequence[Mapping[str, Any]], limit: int = 5) -> List[Dict[str, Any]]:
    """One chart point per quiz attempt, grouped by topic in first-seen order."""
    attempts: Dict[str, List[Mapping[str, Any]]] = defaultdict(list)
    for result in results:
        if not result.get("totalQuestions"):
            continue
        attempts[str(result.get("topic", ""))].append(result)

    points: List[Dict[str, Any]] = []
    for topic, runs in attempts.items():
        runs = sorted(runs, key=lambda r: str(r.get("timestamp", "")))
        label = _short(topic, 10)
        for n, run in enumerate(runs, start=1):
            points.append({"name": f"{label} #{n}", "score": percent(run.get("score", 0), run["totalQuestions"])})
    return points[-limit:] if limit else points


def topic_coverage(
    topics: Sequence[Topic],
    completion: Mapping[int, bool],
    notes: Sequence[Mapping[str, Any]],
    explanations: Sequence[Mapping[str, Any]],
) -> List[Dict[str, Any]]:
    plan_points = [
        {"subject": _short(topic_name(topic), 8), "A": 100 if completion.get(i) else 0}
        for i, topic in enumerate(topics)
        if not topic_is_break(topic)
    ][:3]
    note_points = [{"subject": _short(str(n.get("topic", "")), 8), "A": NOTE_COVERAGE} for n in notes[-2:]]
    explanation_points = [
        {"subject": _short(str(e.get("topic", "")), 8), "A": EXPLANATION_COVERAGE} for e in explanations[-1:]
    ]
    return plan_points + note_points + explanation_points


def build_dashboard(session: StudySession, now: Optional[datetime] = None) -> Dict[str, Any]:
    topics = session.plan.topics if session.plan else []
    store = session.store
    return {
        "plan": session.plan.model_dump(by_alias=True) if session.plan else None,
        "countdown": session.countdown(now).model_dump(),
        "progress": session.progress().model_dump(by_alias=True),
        "topicProgress": topic_rows(topics, session.completion),
        "quizScores": quiz_score_history(store.records(QUIZ_RESULTS_KEY)),
        "coverage": topic_coverage(
            topics,
            session.completion,
            store.records(NOTES_KEY),
            store.records(EXPLANATIONS_KEY),
        ),
    }
