from fastapi import Request

from .session import StudySession


def get_session(request: Request) -> StudySession:
	return request.app.state.study_session
