"""Exam countdown and plan completion metrics."""
from __future__ import annotations
import logging
import math
from datetime import datetime, timedelta
from typing import Dict, Mapping, Optional, Sequence

from .schemas import Countdown, Progress, Topic, topic_is_break

logger = logging.getLogger(__name__)

MS_PER_DAY = 86_400_000
MS_PER_HOUR = 3_600_000
MS_PER_MINUTE = 60_000
MS_PER_SECOND = 1000


def _split_time(time_part: str) -> tuple[str, Optional[str]]:
    upper = time_part.upper()
    for meridiem in ("AM", "PM"):
        if upper.endswith(meridiem):
            return time_part[: -len(meridiem)].strip(), meridiem
    return time_part, None


def _to_24_hour(hour: int, meridiem: Optional[str]) -> int:
    if meridiem == "PM" and hour < 12:
        return hour + 12
    if meridiem == "AM" and hour == 12:
        return 0
    return hour


def parse_exam_timestamp(exam_date: str, now: Optional[datetime] = None) -> datetime:
    """Parse ``DD/MM/YYYY[ HH:MM[ AM|PM]]`` into a local timestamp.

    An unreadable date never raises: it resolves to ``now`` so the countdown
    simply shows no time remaining.
    """
    fallback = now if now is not None else datetime.now()
    try:
        date_part, _, time_part = exam_date.strip().partition(" ")
        day, month, year = (int(piece) for piece in date_part.split("/"))
        time_part = time_part.strip()
        if time_part:
            hour_minute, meridiem = _split_time(time_part)
        else:
            hour_minute, meridiem = "12:00", "AM"
        hour_text, minute_text = hour_minute.split(":")
        hour = _to_24_hour(int(hour_text), meridiem)
        return datetime(year, month, day, hour, int(minute_text))
    except (AttributeError, ValueError) as exc:
        logger.warning("Could not parse exam date %r (%s); using current time", exam_date, exc)
        return fallback


def percent(part: int, whole: int) -> int:
    # halves round up; 0 when there is nothing to measure against
    return math.floor(part / whole * 100 + 0.5) if whole else 0


def compute_countdown(exam_ts: datetime, now: datetime) -> Countdown:
    delta = (exam_ts - now) // timedelta(milliseconds=1)
    if delta <= 0:
        return Countdown()
    days, rest = divmod(delta, MS_PER_DAY)
    hours, rest = divmod(rest, MS_PER_HOUR)
    minutes, rest = divmod(rest, MS_PER_MINUTE)
    return Countdown(days=days, hours=hours, minutes=minutes, seconds=rest // MS_PER_SECOND)


def compute_progress(topics: Sequence[Topic], completion: Mapping[int, bool]) -> Progress:
    study_positions = [i for i, topic in enumerate(topics) if not topic_is_break(topic)]
    total = len(study_positions)
    completed = sum(1 for i in study_positions if completion.get(i, False))
    return Progress(completedCount=completed, totalNonBreakCount=total, percentage=percent(completed, total))


def toggle_topic_completion(completion: Mapping[int, bool], index: int) -> Dict[int, bool]:
    updated = dict(completion)
    updated[index] = not completion.get(index, False)
    return updated
