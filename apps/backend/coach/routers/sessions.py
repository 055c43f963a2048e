from fastapi import APIRouter, Depends, HTTPException
import logging

from coach.dependencies import drop_session, get_session, get_session_evaluator, register_session
from coach.lesson.catalog import get_lesson, list_lessons
from coach.lesson.evaluator import Evaluator
from coach.lesson.session import PracticeSession
from coach.schemas.lesson import Lesson, LessonInfo
from coach.schemas.messages import InputRequest, StartSessionRequest
from coach.schemas.session import IntentOutcome, SessionSnapshot

router = APIRouter(tags=["sessions"])


@router.get("/lessons", response_model=list[LessonInfo])
async def lessons():
    return list_lessons()


@router.post("/sessions", response_model=SessionSnapshot, status_code=201)
async def start_session(body: StartSessionRequest, evaluator: Evaluator = Depends(get_session_evaluator)):
    if body.lesson_id is not None:
        lesson = get_lesson(body.lesson_id)
        if lesson is None:
            raise HTTPException(status_code=404, detail=f"Lesson {body.lesson_id} not found")
    else:
        lesson = Lesson(
            lesson_id="custom",
            title=body.title or "Custom text",
            source_text=body.source_text,
            references=body.references,
        )

    session = PracticeSession(lesson, evaluator)
    register_session(session)
    logging.info(f"Started session {session.session_id} for lesson '{lesson.lesson_id}' ({len(session.sentences)} sentences)")
    return session.snapshot()


@router.get("/sessions/{session_id}", response_model=SessionSnapshot)
async def read_session(session: PracticeSession = Depends(get_session)):
    return session.snapshot()


@router.post("/sessions/{session_id}/input", response_model=IntentOutcome)
async def begin_input(body: InputRequest, session: PracticeSession = Depends(get_session)):
    return session.begin_input(body.text)


@router.post("/sessions/{session_id}/submit", response_model=IntentOutcome)
async def submit(session: PracticeSession = Depends(get_session)):
    return await session.submit()


@router.post("/sessions/{session_id}/retry", response_model=IntentOutcome)
async def retry(session: PracticeSession = Depends(get_session)):
    return session.retry()


@router.post("/sessions/{session_id}/advance", response_model=IntentOutcome)
async def advance(session: PracticeSession = Depends(get_session)):
    outcome = session.advance()
    if outcome.event == "session_complete":
        # the outcome carries the final summary; nothing reads the session afterwards
        drop_session(session.session_id)
    return outcome


@router.post("/sessions/{session_id}/hint", response_model=IntentOutcome)
async def hint(session: PracticeSession = Depends(get_session)):
    return session.hint()


@router.post("/sessions/{session_id}/quit", response_model=IntentOutcome)
async def quit_session(session: PracticeSession = Depends(get_session)):
    outcome = session.quit()
    if outcome.accepted:
        drop_session(session.session_id)
    return outcome
