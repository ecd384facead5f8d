from __future__ import annotations
import logging
from contextlib import contextmanager
from datetime import datetime
from typing import Dict, Iterator, Optional

from pydantic import ValidationError

from .progress import compute_countdown, compute_progress, parse_exam_timestamp, toggle_topic_completion
from .schemas import Countdown, Progress, StudyPlan
from .store import COMPLETED_TOPICS_KEY, STUDY_PLAN_KEY, LocalStore

logger = logging.getLogger(__name__)


class GenerationBusy(RuntimeError):
	pass


def _completion_from_blob(blob) -> Dict[int, bool]:
	completion: Dict[int, bool] = {}
	if not isinstance(blob, dict):
		return completion
	for key, done in blob.items():
		try:
			completion[int(key)] = bool(done)
		except (TypeError, ValueError):
			continue
	return completion


class StudySession:
	"""Active study plan, its completion map and the generation busy flag."""

	def __init__(self, store: LocalStore) -> None:
		self.store = store
		self.plan: Optional[StudyPlan] = None
		self.completion: Dict[int, bool] = {}
		self.busy = False
		self._loaded = False

	def load(self) -> None:
		if self._loaded:
			return
		self._loaded = True
		blob = self.store.get(STUDY_PLAN_KEY)
		if blob:
			try:
				self.plan = StudyPlan.model_validate(blob)
			except ValidationError as err:
				logger.warning("Ignoring stored study plan: %s", err)
		if self.plan is not None:
			self.completion = _completion_from_blob(self.store.get(COMPLETED_TOPICS_KEY))
		logger.info("Session loaded (plan=%s, completed=%d)", self.plan.id if self.plan else None, sum(self.completion.values()))

	def has_plan(self) -> bool:
		return self.plan is not None

	def set_plan(self, plan: StudyPlan) -> None:
		self.plan = plan
		self.completion = {}
		self.store.set(STUDY_PLAN_KEY, plan.model_dump(by_alias=True))
		self._save_completion()
		logger.info("Active study plan is now %s (%d topics)", plan.id, len(plan.topics))

	def clear_plan(self) -> None:
		self.plan = None
		self.completion = {}
		self.store.set(STUDY_PLAN_KEY, None)
		self._save_completion()

	def is_completed(self, index: int) -> bool:
		return self.completion.get(index, False)

	def toggle_topic(self, index: int) -> bool:
		if self.plan is None or not 0 <= index < len(self.plan.topics):
			raise IndexError(f"no topic at position {index}")
		self.completion = toggle_topic_completion(self.completion, index)
		self._save_completion()
		return self.completion[index]

	def progress(self) -> Progress:
		topics = self.plan.topics if self.plan else []
		return compute_progress(topics, self.completion)

	def countdown(self, now: Optional[datetime] = None) -> Countdown:
		if self.plan is None:
			return Countdown()
		now = now or datetime.now()
		return compute_countdown(parse_exam_timestamp(self.plan.exam_date, now), now)

	@contextmanager
	def generation(self) -> Iterator[None]:
		if self.busy:
			raise GenerationBusy("A generation request is already in progress")
		self.busy = True
		try:
			yield
		finally:
			self.busy = False

	def _save_completion(self) -> None:
		self.store.set(COMPLETED_TOPICS_KEY, {str(k): v for k, v in self.completion.items()})
