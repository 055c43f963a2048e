import logging
import time
from typing import Optional

from fastapi import HTTPException
from coach.core.config import settings
from coach.lesson.evaluator import Evaluator, get_evaluator
from coach.lesson.session import PracticeSession

# In-memory, process-local session registry
SESSIONS: dict[str, PracticeSession] = {}
_LAST_SEEN: dict[str, float] = {}


def drop_session(session_id: str) -> None:
    SESSIONS.pop(session_id, None)
    _LAST_SEEN.pop(session_id, None)


def _touch(session_id: str) -> None:
    # keep SESSIONS ordered from least to most recently used
    SESSIONS[session_id] = SESSIONS.pop(session_id)
    _LAST_SEEN[session_id] = time.monotonic()


def clear_sessions() -> None:
    SESSIONS.clear()
    _LAST_SEEN.clear()


def prune_sessions(now: Optional[float] = None) -> int:
    """Drops sessions idle for longer than ``settings.session_ttl`` seconds."""
    now = time.monotonic() if now is None else now
    expired = [sid for sid, seen in _LAST_SEEN.items() if now - seen > settings.session_ttl]
    for session_id in expired:
        drop_session(session_id)
    if expired:
        logging.info(f"Expired {len(expired)} idle session(s)")
    return len(expired)


def register_session(session: PracticeSession) -> None:
    """
    Adds a session to the registry.
    When the registry is full the least recently used session is evicted.
    """
    prune_sessions()
    while SESSIONS and len(SESSIONS) >= settings.max_sessions:
        oldest = next(iter(SESSIONS))
        logging.info(f"Session registry full, evicting {oldest}")
        drop_session(oldest)
    SESSIONS[session.session_id] = session
    _touch(session.session_id)


def get_session(session_id: str) -> PracticeSession:
    """
    Looks up a live practice session by id.
    Raises HTTPException 404 if the session does not exist or has expired.
    """
    prune_sessions()
    session = SESSIONS.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
    _touch(session_id)
    return session


def get_session_evaluator() -> Evaluator:
    return get_evaluator(settings)
