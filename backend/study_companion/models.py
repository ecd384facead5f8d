from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from .db import Base


class StoredBlob(Base):
	__tablename__ = "stored_blobs"
	# One JSON document per fixed key (studyPlan, completedTopics, quizResults, ...)
	key = Column(String(64), primary_key=True)
	value = Column(Text, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
