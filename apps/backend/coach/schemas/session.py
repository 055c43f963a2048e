from pydantic import BaseModel, Field
from typing import Literal, Optional
from coach.schemas.evaluation import AccuracyBand, FeedbackResult


AttemptStatus = Literal["idle", "submitting", "scored", "failed"]
SessionStatus = Literal["active", "completed", "quit"]
Intent = Literal["begin_input", "submit", "retry", "advance", "hint", "quit"]


class Sentence(BaseModel):
    """One retained sentence of the source text."""
    model_config = {"frozen": True}

    index: int = Field(ge=0)
    text: str = Field(min_length=1)


class Attempt(BaseModel):
    sentence_index: int
    raw_input: str = ""
    status: AttemptStatus = "idle"


class SessionCursor(BaseModel):
    current_index: int = 0
    total: int = 0


class SummaryItem(BaseModel):
    index: int
    text: str
    attempts: int
    hints_used: int
    best_accuracy: Optional[float] = None
    last_status: AttemptStatus


class LessonSummary(BaseModel):
    items: list[SummaryItem]
    total: int
    scored_count: int
    average_accuracy: Optional[float] = None


class SessionSnapshot(BaseModel):
    """Read-only projection of a session handed to the presentation layer."""
    session_id: str
    title: str
    status: SessionStatus
    current_sentence: Optional[Sentence] = None
    cursor: SessionCursor
    attempt_status: AttemptStatus
    raw_input: str = ""
    feedback: Optional[FeedbackResult] = None
    accuracy_band: Optional[AccuracyBand] = None
    progress: float = 0.0
    hints: list[str] = Field(default_factory=list)
    attempts: int = 0
    summary: Optional[LessonSummary] = None


class IntentOutcome(BaseModel):
    intent: Intent
    accepted: bool
    reason: Optional[str] = None  # why the intent was rejected
    event: Optional[Literal["session_complete"]] = None
    snapshot: SessionSnapshot
