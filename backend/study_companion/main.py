import logging
from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .db import Base, SessionLocal, engine
from .settings import settings
from .session import StudySession
from .store import LocalStore
from .routers import generate, history, plan

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s  %(name)-25s  %(levelname)-8s  %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
	bind: Engine = engine,
	session_factory: Optional[Callable[[], Session]] = SessionLocal,
) -> FastAPI:
	@asynccontextmanager
	async def lifespan(app: FastAPI):
		factory = session_factory
		try:
			Base.metadata.create_all(bind=bind)
		except SQLAlchemyError as e:
			logger.error("Database unavailable, keeping state in memory only: %s", e)
			factory = None
		study_session = StudySession(LocalStore(factory))
		study_session.load()
		app.state.study_session = study_session
		logger.info("Study Companion API started (persistent=%s)", study_session.store.persistent)
		yield
		logger.info("Study Companion API shut down")

	app = FastAPI(title="Study Companion API", lifespan=lifespan)
	app.include_router(generate.router)
	app.include_router(plan.router)
	app.include_router(history.router)

	@app.get("/info")
	def root():
		return {
			"status": "ok",
			"gemini_configured": bool(settings.gemini_api_key),
			"persistent": app.state.study_session.store.persistent,
		}

	return app


app = create_app()
