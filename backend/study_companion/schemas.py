"""Wire and storage records for plans, quizzes and generated content."""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Topics and quiz questions are kept exactly as the model produced them;
# the helpers below read their fields defensively.
Topic = Dict[str, Any]
QuizQuestion = Dict[str, Any]


def topic_name(topic: Topic) -> str:
	name = topic.get("name")
	return "" if name is None else str(name)


def topic_is_break(topic: Topic) -> bool:
	return bool(topic.get("isBreak"))


def correct_answer(question: QuizQuestion) -> Optional[str]:
	answer = question.get("correctAnswer")
	return answer if isinstance(answer, str) else None


def answer_is_valid(question: QuizQuestion) -> bool:
	options = question.get("options")
	answer = correct_answer(question)
	return answer is not None and isinstance(options, list) and answer in options


class _Record(BaseModel):
	model_config = ConfigDict(populate_by_name=True)


class StudyPlan(_Record):
	model_config = ConfigDict(populate_by_name=True, extra="allow")

	id: str
	subject: str
	exam_date: str = Field(alias="examDate")
	topics: List[Topic] = Field(default_factory=list)


class QuizResult(_Record):
	id: int
	topic: str
	difficulty: str
	score: int = Field(ge=0)
	total_questions: int = Field(alias="totalQuestions", ge=0)
	timestamp: str

	@model_validator(mode="after")
	def _score_within_total(self) -> "QuizResult":
		if self.score > self.total_questions:
			raise ValueError("score cannot exceed totalQuestions")
		return self


class GeneratedContent(_Record):
	id: str
	topic: str
	content: str
	created_at: str = Field(alias="createdAt")


class GeneratedNote(GeneratedContent):
	detail_level: str = Field(alias="detailLevel")
	format: str


class Countdown(BaseModel):
	days: int = 0
	hours: int = 0
	minutes: int = 0
	seconds: int = 0


class Progress(_Record):
	completed_count: int = Field(alias="completedCount")
	total_non_break_count: int = Field(alias="totalNonBreakCount")
	percentage: int


# ---- Request bodies ----

class StudyPlanRequest(BaseModel):
	subject: str = Field(min_length=1)
	topics: str = Field(min_length=1)
	exam_date: str = Field(alias="examDate", min_length=1)

	model_config = ConfigDict(populate_by_name=True)


class NotesRequest(BaseModel):
	topic: str = Field(min_length=1)
	detail_level: str = Field(alias="detailLevel", min_length=1)
	format: str = Field(min_length=1)

	model_config = ConfigDict(populate_by_name=True)


class ExplanationRequest(BaseModel):
	topic: str = Field(min_length=1)


class QuizRequest(BaseModel):
	topic: str = Field(min_length=1)
	difficulty: str = Field(min_length=1)
	num_questions: int = Field(alias="numQuestions", ge=1, le=15)

	model_config = ConfigDict(populate_by_name=True)


class QuizSubmission(BaseModel):
	topic: str = Field(min_length=1)
	difficulty: str = Field(min_length=1)
	questions: List[QuizQuestion] = Field(min_length=1)
	# 0-based question position -> selected option
	answers: Dict[int, str] = Field(default_factory=dict)


class MarkdownResponse(BaseModel):
	content: str
	html: str


class QuizResponse(BaseModel):
	questions: List[QuizQuestion]
