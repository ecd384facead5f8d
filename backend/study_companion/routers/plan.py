from __future__ import annotations
import json

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse

from ..deps import get_session
from ..schemas import Countdown, Progress, StudyPlan
from ..session import StudySession
from ..settings import settings
from ..ticker import CountdownTicker

router = APIRouter(prefix="/api/study-plan", tags=["study_plan"])


def _require_plan(session: StudySession) -> StudyPlan:
	if session.plan is None:
		raise HTTPException(status_code=404, detail="No active study plan")
	return session.plan


@router.get("", response_model=StudyPlan)
async def get_plan(session: StudySession = Depends(get_session)):
	return _require_plan(session)


@router.put("", response_model=StudyPlan)
async def put_plan(plan: StudyPlan, session: StudySession = Depends(get_session)):
	session.set_plan(plan)
	return plan


@router.delete("", status_code=204)
async def delete_plan(session: StudySession = Depends(get_session)):
	session.clear_plan()


@router.post("/topics/{index}/toggle")
async def toggle_topic(index: int, session: StudySession = Depends(get_session)):
	_require_plan(session)
	try:
		done = session.toggle_topic(index)
	except IndexError as e:
		raise HTTPException(status_code=404, detail=str(e))
	return {
		"index": index,
		"completed": done,
		"progress": session.progress().model_dump(by_alias=True),
	}


@router.get("/progress", response_model=Progress)
async def get_progress(session: StudySession = Depends(get_session)):
	_require_plan(session)
	return session.progress()


@router.get("/countdown", response_model=Countdown)
async def get_countdown(session: StudySession = Depends(get_session)):
	_require_plan(session)
	return session.countdown()


@router.get("/countdown/stream")
async def stream_countdown(session: StudySession = Depends(get_session)):
	_require_plan(session)
	ticker = CountdownTicker(session, interval=settings.countdown_interval_seconds)

	async def events():
		try:
			async for countdown in ticker.ticks():
				yield f"data: {json.dumps(countdown.model_dump())}\n\n"
		finally:
			ticker.stop()

	return StreamingResponse(events(), media_type="text/event-stream")
