from __future__ import annotations
import asyncio
import logging
from typing import AsyncIterator, Optional

from .schemas import Countdown
from .session import StudySession

logger = logging.getLogger(__name__)


class CountdownTicker:
	"""Repeating countdown for the plan that was active when it started."""

	def __init__(self, session: StudySession, interval: float = 1.0) -> None:
		self.session = session
		self.interval = interval
		self.plan_id: Optional[str] = session.plan.id if session.plan else None
		self.stopped = False

	@property
	def active(self) -> bool:
		plan = self.session.plan
		return not self.stopped and plan is not None and plan.id == self.plan_id

	async def ticks(self) -> AsyncIterator[Countdown]:
		try:
			while self.active:
				yield self.session.countdown()
				await asyncio.sleep(self.interval)
		finally:
			self.stop()

	def stop(self) -> None:
		if self.stopped:
			return
		self.stopped = True
		logger.debug("Countdown ticker for plan %s stopped", self.plan_id)
