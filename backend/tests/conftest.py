"""Shared pytest fixtures for backend tests."""

import pytest
from unittest.mock import patch
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from study_companion.db import Base
from study_companion.main import create_app
from study_companion.session import StudySession
from study_companion.store import LocalStore


@pytest.fixture(scope="function")
def engine():
    """Fresh in-memory SQLite database per test."""
    test_engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture(scope="function")
def store(session_factory):
    return LocalStore(session_factory)


@pytest.fixture(scope="function")
def study_session(store):
    session = StudySession(store)
    session.load()
    return session


class FakeGemini:
    """Stands in for GeminiClient; returns the queued reply for every prompt."""

    reply = ""
    error = None
    prompts = []

    def __init__(self, *args, **kwargs):
        pass

    async def generate(self, prompt):
        FakeGemini.prompts.append(prompt)
        if FakeGemini.error is not None:
            raise FakeGemini.error
        return FakeGemini.reply

    async def aclose(self):
        pass


@pytest.fixture(scope="function")
def gemini():
    FakeGemini.reply = ""
    FakeGemini.error = None
    FakeGemini.prompts = []
    with patch("study_companion.routers.generate.GeminiClient", FakeGemini):
        yield FakeGemini


@pytest.fixture(scope="function")
def app(engine, session_factory):
    return create_app(bind=engine, session_factory=session_factory)


@pytest.fixture(scope="function")
def client(app):
    with TestClient(app) as test_client:
        yield test_client
