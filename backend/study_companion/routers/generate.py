from __future__ import annotations
import logging
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, HTTPException

from ..deps import get_session
from ..extraction import ExtractionError, extract_quiz, extract_study_plan, render_markdown
from ..gemini_client import GeminiClient
from ..schemas import (
	ExplanationRequest,
	GeneratedContent,
	GeneratedNote,
	MarkdownResponse,
	NotesRequest,
	QuizRequest,
	QuizResponse,
	StudyPlan,
	StudyPlanRequest,
	answer_is_valid,
)
from ..session import GenerationBusy, StudySession
from ..settings import settings
from ..store import EXPLANATIONS_KEY, NOTES_KEY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["generate"])


def _build_study_plan_prompt(subject: str, topics: str, exam_date: str) -> str:
	return (
		f"Create a detailed study plan for a student preparing for a {subject} exam on {exam_date}.\n"
		f"The exam will cover these topics: {topics}.\n\n"
		"Instructions:\n"
		"1. Create a step-by-step study plan with specific time durations for each topic\n"
		"2. Include short breaks between study sessions\n"
		"3. Break down complex topics into manageable sub-topics\n"
		"4. Format your response as a JSON object with the following structure:\n"
		"{\n"
		f'  "subject": "{subject}",\n'
		f'  "examDate": "{exam_date}",\n'
		'  "topics": [\n'
		'    {"name": "topic name", "duration": duration in minutes (number only), "isBreak": false},\n'
		'    {"name": "Break", "duration": duration in minutes (number only), "isBreak": true},\n'
		"    ... and so on\n"
		"  ]\n"
		"}\n\n"
		"Make sure the response is valid JSON."
	)


def _build_notes_prompt(topic: str, detail_level: str, fmt: str) -> str:
	return (
		f"Create comprehensive study notes about {topic} at a {detail_level} detail level.\n"
		f"Format the notes as {fmt}. Make the notes clear, concise, and easy to understand.\n"
		"Include key concepts, definitions, and examples where appropriate.\n"
		"Format your response in markdown."
	)


def _build_explanation_prompt(topic: str) -> str:
	return (
		f"Explain the concept of {topic} using real-world examples and analogies that would make it easy "
		"for a student to understand and remember.\n"
		"Be creative with your analogies but make sure they're accurate representations of the concept.\n"
		"Start with the basics and then gradually move to more complex aspects.\n"
		"Format your response in markdown with appropriate headings, bullet points, and emphasis."
	)


def _build_quiz_prompt(topic: str, difficulty: str, num_questions: int) -> str:
	return (
		f"Create a multiple-choice quiz about {topic} with {num_questions} questions at a {difficulty} difficulty level.\n\n"
		"Format your response as a JSON object with this structure:\n"
		"{\n"
		'  "questions": [\n'
		'    {"id": 1, "question": "The question text", "options": ["Option A", "Option B", "Option C", "Option D"],\n'
		'     "correctAnswer": "The correct option (exactly matching one of the options)"},\n'
		"    ... and so on\n"
		"  ]\n"
		"}\n\n"
		"Make sure each question has exactly 4 options, and the correct answer matches one of the options exactly. "
		"Make the quiz challenging yet fair. Cover different aspects of the topic.\n\n"
		"Make sure the response is valid JSON."
	)


async def _generate(prompt: str) -> str:
	client = GeminiClient()
	try:
		return await client.generate(prompt)
	finally:
		await client.aclose()


def _failure(message: str, err: Exception) -> HTTPException:
	if isinstance(err, GenerationBusy):
		return HTTPException(status_code=409, detail={"message": message, "error": str(err)})
	if isinstance(err, ExtractionError):
		logger.warning("%s: %s (%s)", message, err, err.kind)
	else:
		logger.exception(message)
	return HTTPException(status_code=500, detail={"message": message, "error": str(err)})


def _now_ms() -> int:
	return time.time_ns() // 1_000_000


def _iso_now() -> str:
	return datetime.now(timezone.utc).isoformat()


@router.post("/generate-study-plan", response_model=StudyPlan)
async def generate_study_plan(req: StudyPlanRequest, session: StudySession = Depends(get_session)):
	try:
		with session.generation():
			text = await _generate(_build_study_plan_prompt(req.subject, req.topics, req.exam_date))
			plan = extract_study_plan(text, req.subject, req.exam_date)
	except Exception as e:
		raise _failure("Failed to generate study plan", e)
	session.set_plan(plan)
	return plan


@router.post("/generate-notes", response_model=MarkdownResponse)
async def generate_notes(req: NotesRequest, session: StudySession = Depends(get_session)):
	try:
		with session.generation():
			content = await _generate(_build_notes_prompt(req.topic, req.detail_level, req.format))
	except Exception as e:
		raise _failure("Failed to generate notes", e)
	note = GeneratedNote(
		id=f"note-{_now_ms()}",
		topic=req.topic,
		detailLevel=req.detail_level,
		format=req.format,
		content=content,
		createdAt=_iso_now(),
	)
	session.store.append(NOTES_KEY, note.model_dump(by_alias=True))
	return MarkdownResponse(content=content, html=render_markdown(content))


@router.post("/generate-explanation", response_model=MarkdownResponse)
async def generate_explanation(req: ExplanationRequest, session: StudySession = Depends(get_session)):
	try:
		with session.generation():
			content = await _generate(_build_explanation_prompt(req.topic))
	except Exception as e:
		raise _failure("Failed to generate explanation", e)
	explanation = GeneratedContent(id=f"exp-{_now_ms()}", topic=req.topic, content=content, createdAt=_iso_now())
	session.store.append(EXPLANATIONS_KEY, explanation.model_dump(by_alias=True))
	return MarkdownResponse(content=content, html=render_markdown(content))


@router.post("/generate-quiz", response_model=QuizResponse)
async def generate_quiz(req: QuizRequest, session: StudySession = Depends(get_session)):
	try:
		with session.generation():
			text = await _generate(_build_quiz_prompt(req.topic, req.difficulty, req.num_questions))
			questions = extract_quiz(text)
	except Exception as e:
		raise _failure("Failed to generate quiz", e)
	if settings.quiz_strict_answers:
		valid = [q for q in questions if answer_is_valid(q)]
		if len(valid) != len(questions):
			logger.info("Dropped %d quiz question(s) whose answer is not an option", len(questions) - len(valid))
		questions = valid
	return QuizResponse(questions=questions)
