from __future__ import annotations
import copy
import json
import logging
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import StoredBlob

logger = logging.getLogger(__name__)

STUDY_PLAN_KEY = "studyPlan"
COMPLETED_TOPICS_KEY = "completedTopics"
QUIZ_RESULTS_KEY = "quizResults"
NOTES_KEY = "generatedNotes"
EXPLANATIONS_KEY = "realWorldExplanations"


class LocalStore:
	"""JSON blobs under fixed keys.

	Writes go through to the database and to an in-memory mirror. The first
	database failure switches the store to memory only; the session keeps
	working but nothing survives a restart.
	"""

	def __init__(self, session_factory: Optional[Callable[[], Session]]) -> None:
		self._session_factory = session_factory
		self._memory: Dict[str, Any] = {}
		self.persistent = session_factory is not None

	def _degrade(self, action: str, key: str, err: Exception) -> None:
		if self.persistent:
			logger.error("Persistence unavailable (%s %s): %s; continuing in memory only", action, key, err)
		self.persistent = False

	def get(self, key: str, default: Any = None) -> Any:
		if key in self._memory:
			return copy.deepcopy(self._memory[key])
		if not self.persistent:
			return default
		try:
			with self._session_factory() as db:
				row = db.get(StoredBlob, key)
				raw = row.value if row is not None else None
		except SQLAlchemyError as err:
			self._degrade("read", key, err)
			return default
		if raw is None:
			return default
		try:
			value = json.loads(raw)
		except ValueError:
			logger.warning("Discarding unreadable blob stored under %s", key)
			return default
		self._memory[key] = value
		return copy.deepcopy(value)

	def set(self, key: str, value: Any) -> None:
		self._memory[key] = copy.deepcopy(value)
		if not self.persistent:
			return
		try:
			with self._session_factory() as db:
				db.merge(StoredBlob(key=key, value=json.dumps(value)))
				db.commit()
		except SQLAlchemyError as err:
			self._degrade("write", key, err)

	def records(self, key: str) -> List[Any]:
		value = self.get(key, [])
		return value if isinstance(value, list) else []

	def append(self, key: str, record: Any) -> None:
		items = self.records(key)
		items.append(record)
		self.set(key, items)
