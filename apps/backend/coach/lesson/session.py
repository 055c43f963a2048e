"""Sentence-by-sentence translation practice session.

A ``PracticeSession`` owns the sentence cursor and the current attempt. The
presentation layer drives it with intents (``begin_input``, ``submit``,
``retry``, ``advance``, ``hint``, ``quit``) and renders the snapshot that every
intent returns. Intents never raise; a refused intent comes back with
``accepted=False`` and a reason.

Only ``submit`` suspends (the evaluator round trip). While it is in flight
every intent except ``quit`` is refused, so there is never more than one
evaluation request per session. A result that arrives after ``quit`` is
dropped.

Not thread-safe: one control flow drives a session at a time.
"""
from __future__ import annotations
import logging
import uuid
from typing import Optional

from coach.lesson.attempt_graph import classify_accuracy, create_attempt_graph
from coach.lesson.codec import build_evaluation_request
from coach.lesson.errors import ValidationError
from coach.lesson.evaluator import Evaluator
from coach.lesson.segmenter import segment
from coach.schemas.evaluation import FeedbackResult
from coach.schemas.lesson import Lesson
from coach.schemas.session import (
    Attempt,
    Intent,
    IntentOutcome,
    LessonSummary,
    Sentence,
    SessionCursor,
    SessionSnapshot,
    SessionStatus,
    SummaryItem,
)

MAX_HINTS = 2

# rejection reasons
SUBMISSION_IN_FLIGHT = "submission_in_flight"
SESSION_ENDED = "session_ended"
VALIDATION_ERROR = "validation_error"
NOTHING_TO_RETRY = "nothing_to_retry"
NO_HINT_AVAILABLE = "no_hint_available"
HINT_LIMIT_REACHED = "hint_limit_reached"


def build_hint(reference: str, level: int) -> str:
    """Reveal the first word (level 1) or the first half of the words (level 2+)."""
    words = reference.split()
    if not words:
        return ""
    if level <= 1:
        return words[0]
    return " ".join(words[: max(2, (len(words) + 1) // 2)])


class PracticeSession:
    """In-memory state machine for one learner working through one lesson."""

    def __init__(self, lesson: Lesson, evaluator: Evaluator, session_id: Optional[str] = None) -> None:
        self.session_id: str = session_id or uuid.uuid4().hex
        self.lesson = lesson
        self.sentences: tuple[Sentence, ...] = tuple(segment(lesson.source_text))
        self._graph = create_attempt_graph(evaluator)

        self.cursor = SessionCursor(current_index=0, total=len(self.sentences))
        self.attempt = Attempt(sentence_index=0)
        self.feedback: Optional[FeedbackResult] = None
        self.status: SessionStatus = "active" if self.sentences else "completed"

        # per-sentence bookkeeping for the lesson summary
        self.item_attempts: dict[int, int] = {}
        self.item_hints: dict[int, list[str]] = {}
        self.item_best_accuracy: dict[int, float] = {}
        self.item_last_status: dict[int, str] = {}

        if not self.sentences:
            logging.info(f"Session {self.session_id}: lesson '{lesson.lesson_id}' has no sentences, complete immediately")

    # -- read side ---------------------------------------------------------

    @property
    def current_sentence(self) -> Optional[Sentence]:
        if 0 <= self.cursor.current_index < len(self.sentences):
            return self.sentences[self.cursor.current_index]
        return None

    @property
    def is_last_sentence(self) -> bool:
        return self.cursor.current_index >= self.cursor.total - 1

    def progress(self) -> float:
        if not self.cursor.total:
            return 100.0
        return round((self.cursor.current_index + 1) / self.cursor.total * 100, 2)

    def build_summary(self) -> LessonSummary:
        items = []
        for index in range(min(self.cursor.current_index + 1, len(self.sentences))):
            items.append(SummaryItem(
                index=index,
                text=self.sentences[index].text,
                attempts=self.item_attempts.get(index, 0),
                hints_used=len(self.item_hints.get(index, [])),
                best_accuracy=self.item_best_accuracy.get(index),
                last_status=self.item_last_status.get(index, "idle"),
            ))
        scored = [item.best_accuracy for item in items if item.best_accuracy is not None]
        return LessonSummary(
            items=items,
            total=len(items),
            scored_count=len(scored),
            average_accuracy=round(sum(scored) / len(scored), 2) if scored else None,
        )

    def snapshot(self) -> SessionSnapshot:
        index = self.cursor.current_index
        return SessionSnapshot(
            session_id=self.session_id,
            title=self.lesson.title,
            status=self.status,
            current_sentence=self.current_sentence,
            cursor=self.cursor.model_copy(),
            attempt_status=self.attempt.status,
            raw_input=self.attempt.raw_input,
            feedback=self.feedback,
            accuracy_band=classify_accuracy(self.feedback.accuracy) if self.feedback else None,
            progress=self.progress(),
            hints=list(self.item_hints.get(index, [])),
            attempts=self.item_attempts.get(index, 0),
            summary=self.build_summary() if self.status != "active" else None,
        )

    def _outcome(self, intent: Intent, accepted: bool = True, reason: Optional[str] = None, event=None) -> IntentOutcome:
        if not accepted:
            logging.info(f"Session {self.session_id}: {intent} rejected ({reason})")
        return IntentOutcome(intent=intent, accepted=accepted, reason=reason, event=event, snapshot=self.snapshot())

    def _busy_reason(self) -> Optional[str]:
        """Reason a state-mutating intent (other than quit) must be refused right now."""
        if self.status != "active":
            return SESSION_ENDED
        if self.attempt.status == "submitting":
            return SUBMISSION_IN_FLIGHT
        return None

    # -- intents -----------------------------------------------------------

    def begin_input(self, text: str) -> IntentOutcome:
        reason = self._busy_reason()
        if reason:
            return self._outcome("begin_input", False, reason)
        self.attempt.raw_input = text or ""
        return self._outcome("begin_input")

    async def submit(self) -> IntentOutcome:
        reason = self._busy_reason()
        if reason:
            return self._outcome("submit", False, reason)

        sentence = self.current_sentence
        index = sentence.index
        reference = self.lesson.reference_for(index)
        try:
            build_evaluation_request(sentence, self.attempt.raw_input, reference=reference)
        except ValidationError as e:
            logging.info(f"Session {self.session_id}: {e}")
            return self._outcome("submit", False, VALIDATION_ERROR)

        self.attempt.status = "submitting"
        # the previous judgement belongs to the previous attempt
        self.feedback = None
        self.item_attempts[index] = self.item_attempts.get(index, 0) + 1
        attempt = self.attempt

        try:
            result = await self._graph.ainvoke({
                "session_id": self.session_id,
                "sentence": sentence,
                "raw_input": attempt.raw_input,
                "reference": reference,
            })
            feedback = result.get("feedback")
            status = result.get("attempt_status", "failed")
        except Exception as e:
            logging.error(f"Session {self.session_id}: attempt graph failed: {e}", exc_info=True)
            feedback = FeedbackResult.failure("transport_error", f"Evaluation failed: {e}")
            status = "failed"

        # late-result guard: the session may have been quit while we waited
        if self.status == "quit" or self.attempt is not attempt:
            logging.info(f"Session {self.session_id}: discarding evaluation result for sentence {index} after quit")
            return self._outcome("submit", False, SESSION_ENDED)

        if feedback is None:
            feedback = FeedbackResult.failure("transport_error", "Evaluator returned no result")
            status = "failed"

        self.feedback = feedback
        self.attempt.status = status
        self.item_last_status[index] = status
        if feedback.accuracy is not None:
            self.item_best_accuracy[index] = max(feedback.accuracy, self.item_best_accuracy.get(index, 0.0))
        return self._outcome("submit")

    def retry(self) -> IntentOutcome:
        reason = self._busy_reason()
        if reason:
            return self._outcome("retry", False, reason)
        if self.attempt.status not in ("scored", "failed"):
            return self._outcome("retry", False, NOTHING_TO_RETRY)
        # raw input stays for editing
        self.attempt.status = "idle"
        self.feedback = None
        return self._outcome("retry")

    def advance(self) -> IntentOutcome:
        reason = self._busy_reason()
        if reason:
            return self._outcome("advance", False, reason)

        if self.is_last_sentence:
            self.status = "completed"
            logging.info(f"Session {self.session_id}: lesson complete")
            return self._outcome("advance", event="session_complete")

        self.cursor = SessionCursor(current_index=self.cursor.current_index + 1, total=self.cursor.total)
        self.attempt = Attempt(sentence_index=self.cursor.current_index)
        self.feedback = None
        return self._outcome("advance")

    def hint(self) -> IntentOutcome:
        reason = self._busy_reason()
        if reason:
            return self._outcome("hint", False, reason)

        index = self.cursor.current_index
        reference = self.lesson.reference_for(index)
        if not reference:
            return self._outcome("hint", False, NO_HINT_AVAILABLE)
        hints = self.item_hints.setdefault(index, [])
        if len(hints) >= MAX_HINTS:
            return self._outcome("hint", False, HINT_LIMIT_REACHED)
        hints.append(build_hint(reference, len(hints) + 1))
        return self._outcome("hint")

    def quit(self) -> IntentOutcome:
        if self.status == "quit":
            return self._outcome("quit", False, SESSION_ENDED)
        self.status = "quit"
        if self.attempt.status == "submitting":
            # the in-flight request finishes on its own; its result is dropped
            self.attempt = self.attempt.model_copy(update={"status": "idle"})
        logging.info(f"Session {self.session_id}: quit at sentence {self.cursor.current_index}")
        return self._outcome("quit")
