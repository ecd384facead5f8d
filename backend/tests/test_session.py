import asyncio
from datetime import datetime, timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from study_companion.schemas import Countdown, StudyPlan
from study_companion.session import GenerationBusy, StudySession
from study_companion.store import COMPLETED_TOPICS_KEY, QUIZ_RESULTS_KEY, STUDY_PLAN_KEY, LocalStore
from study_companion.ticker import CountdownTicker


def _plan(plan_id="sp-1", exam_date="25/12/2099 09:00 AM"):
    return StudyPlan(
        id=plan_id,
        subject="Biology",
        examDate=exam_date,
        topics=[
            {"name": "Cells", "duration": 40},
            {"name": "Break", "duration": 10, "isBreak": True},
            {"name": "Genetics", "duration": 50},
        ],
    )


# ---- LocalStore ----

def test_store_round_trips_through_database(session_factory):
    LocalStore(session_factory).set("studyPlan", {"id": "sp-1"})
    # a second store shares nothing in memory with the first
    assert LocalStore(session_factory).get("studyPlan") == {"id": "sp-1"}


def test_store_append_keeps_order(store):
    store.append(QUIZ_RESULTS_KEY, {"n": 1})
    store.append(QUIZ_RESULTS_KEY, {"n": 2})
    assert store.records(QUIZ_RESULTS_KEY) == [{"n": 1}, {"n": 2}]


def test_store_returns_copies(store):
    store.set("k", {"a": [1]})
    value = store.get("k")
    value["a"].append(2)
    assert store.get("k") == {"a": [1]}


def test_store_falls_back_to_memory_when_database_fails():
    # tables never created, so every query fails
    broken = create_engine("sqlite:///:memory:", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    store = LocalStore(sessionmaker(bind=broken))
    store.set("studyPlan", {"id": "sp-9"})
    assert store.persistent is False
    assert store.get("studyPlan") == {"id": "sp-9"}
    store.append(QUIZ_RESULTS_KEY, {"score": 1})
    assert store.records(QUIZ_RESULTS_KEY) == [{"score": 1}]


def test_memory_only_store():
    store = LocalStore(None)
    assert store.persistent is False
    assert store.get("missing", "default") == "default"


# ---- StudySession ----

def test_set_plan_resets_completion(study_session):
    study_session.set_plan(_plan("sp-1"))
    study_session.toggle_topic(0)
    assert study_session.is_completed(0)
    study_session.set_plan(_plan("sp-2"))
    assert study_session.completion == {}
    assert study_session.store.get(COMPLETED_TOPICS_KEY) == {}


def test_plan_and_completion_survive_reload(session_factory):
    first = StudySession(LocalStore(session_factory))
    first.load()
    first.set_plan(_plan())
    first.toggle_topic(2)

    second = StudySession(LocalStore(session_factory))
    second.load()
    assert second.plan.id == "sp-1"
    assert second.plan.topics[1] == {"name": "Break", "duration": 10, "isBreak": True}
    assert second.completion == {2: True}
    assert second.store.get(COMPLETED_TOPICS_KEY) == {"2": True}


def test_load_runs_once(study_session):
    study_session.store.set(STUDY_PLAN_KEY, _plan("sp-late").model_dump(by_alias=True))
    study_session.load()
    assert study_session.plan is None


def test_toggle_out_of_range_raises(study_session):
    study_session.set_plan(_plan())
    with pytest.raises(IndexError):
        study_session.toggle_topic(3)
    with pytest.raises(IndexError):
        study_session.toggle_topic(-1)


def test_breaks_can_be_toggled_but_do_not_count(study_session):
    study_session.set_plan(_plan())
    assert study_session.toggle_topic(1) is True
    assert study_session.progress().completed_count == 0
    study_session.toggle_topic(0)
    assert study_session.progress().percentage == 50


def test_clear_plan(study_session):
    study_session.set_plan(_plan())
    study_session.clear_plan()
    assert not study_session.has_plan()
    assert study_session.countdown() == Countdown()


def test_countdown_for_active_plan(study_session):
    study_session.set_plan(_plan(exam_date="02/01/2030 12:00 AM"))
    countdown = study_session.countdown(now=datetime(2030, 1, 1, 23, 59, 30))
    assert countdown == Countdown(seconds=30)


def test_generation_gate_rejects_second_request(study_session):
    with study_session.generation():
        assert study_session.busy
        with pytest.raises(GenerationBusy):
            with study_session.generation():
                pass
    assert not study_session.busy


def test_generation_gate_released_on_error(study_session):
    with pytest.raises(RuntimeError):
        with study_session.generation():
            raise RuntimeError("model down")
    assert not study_session.busy


# ---- CountdownTicker ----

def test_ticker_stops_when_plan_replaced():
    session = StudySession(LocalStore(None))
    session.set_plan(_plan("sp-1"))
    ticker = CountdownTicker(session, interval=0)

    async def run():
        seen = []
        async for countdown in ticker.ticks():
            seen.append(countdown)
            if len(seen) == 2:
                session.set_plan(_plan("sp-2"))
        return seen

    seen = asyncio.run(run())
    assert len(seen) == 2
    assert ticker.stopped


def test_ticker_stops_when_plan_cleared():
    session = StudySession(LocalStore(None))
    session.set_plan(_plan())
    ticker = CountdownTicker(session, interval=0)

    async def run():
        count = 0
        async for _ in ticker.ticks():
            count += 1
            session.clear_plan()
        return count

    assert asyncio.run(run()) == 1


def test_ticker_without_plan_yields_nothing():
    session = StudySession(LocalStore(None))
    ticker = CountdownTicker(session, interval=0)

    async def run():
        return [c async for c in ticker.ticks()]

    assert asyncio.run(run()) == []
    assert ticker.stopped


def test_ticker_stop_is_idempotent(caplog):
    session = StudySession(LocalStore(None))
    session.set_plan(_plan())
    ticker = CountdownTicker(session, interval=0)
    with caplog.at_level("DEBUG", logger="study_companion.ticker"):
        ticker.stop()
        ticker.stop()
    assert not ticker.active
    assert len([r for r in caplog.records if "stopped" in r.getMessage()]) == 1


def test_ticker_yields_live_countdown():
    session = StudySession(LocalStore(None))
    exam = datetime.now() + timedelta(days=3, hours=2)
    session.set_plan(_plan(exam_date=exam.strftime("%d/%m/%Y %H:%M")))
    ticker = CountdownTicker(session, interval=0)

    async def first_tick():
        async for countdown in ticker.ticks():
            ticker.stop()
            return countdown

    countdown = asyncio.run(first_tick())
    assert countdown.days == 3
    assert countdown.hours in (1, 2)
