from __future__ import annotations
import logging
import time
from datetime import datetime, timezone
from typing import Dict, List

from fastapi import APIRouter, Depends

from ..dashboard import build_dashboard
from ..deps import get_session
from ..schemas import QuizQuestion, QuizResult, QuizSubmission, correct_answer
from ..session import StudySession
from ..store import EXPLANATIONS_KEY, NOTES_KEY, QUIZ_RESULTS_KEY

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["history"])


def score_quiz(questions: List[QuizQuestion], answers: Dict[int, str]) -> int:
	score = 0
	for position, question in enumerate(questions):
		selected = answers.get(position)
		if selected is not None and selected == correct_answer(question):
			score += 1
	return score


@router.post("/quiz-results", response_model=QuizResult, status_code=201)
async def submit_quiz(req: QuizSubmission, session: StudySession = Depends(get_session)):
	result = QuizResult(
		id=time.time_ns() // 1_000_000,
		topic=req.topic,
		difficulty=req.difficulty,
		score=score_quiz(req.questions, req.answers),
		totalQuestions=len(req.questions),
		timestamp=datetime.now(timezone.utc).isoformat(),
	)
	session.store.append(QUIZ_RESULTS_KEY, result.model_dump(by_alias=True))
	logger.info("Quiz on %s scored %d/%d", result.topic, result.score, result.total_questions)
	return result


@router.get("/quiz-results")
async def list_quiz_results(session: StudySession = Depends(get_session)):
	return session.store.records(QUIZ_RESULTS_KEY)


@router.get("/notes")
async def list_notes(session: StudySession = Depends(get_session)):
	return session.store.records(NOTES_KEY)


@router.get("/explanations")
async def list_explanations(session: StudySession = Depends(get_session)):
	return session.store.records(EXPLANATIONS_KEY)


@router.get("/dashboard")
async def dashboard(session: StudySession = Depends(get_session)):
	return build_dashboard(session)
