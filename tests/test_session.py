import asyncio
import json

import pytest
from langchain_core.language_models.fake_chat_models import FakeListChatModel

from coach.core.config import Settings
from coach.lesson.attempt_graph import classify_accuracy
from coach.lesson.evaluator import EvaluatorClient, ReferenceEvaluator
from coach.lesson.session import MAX_HINTS, PracticeSession, build_hint
from coach.schemas.evaluation import FeedbackResult
from coach.schemas.lesson import Lesson

GREAT_JOB = FeedbackResult(accuracy=100, improvements=[], comment="Great job")
TIMEOUT = FeedbackResult.failure("transport_error", "The evaluator did not answer within 30 seconds")


def _typed(session, text):
    outcome = session.begin_input(text)
    assert outcome.accepted
    return outcome


# --- construction -------------------------------------------------------------

def test_new_session_starts_idle_on_first_sentence(garden_lesson, scripted_evaluator_cls):
    session = PracticeSession(garden_lesson, scripted_evaluator_cls())
    snap = session.snapshot()
    assert snap.status == "active"
    assert snap.current_sentence.index == 0
    assert snap.current_sentence.text == "Đầu tiên, hãy chọn một vị trí thích hợp"
    assert snap.cursor.current_index == 0 and snap.cursor.total == 3
    assert snap.attempt_status == "idle"
    assert snap.feedback is None
    assert snap.progress == pytest.approx(33.33)


@pytest.mark.parametrize("source_text", ["", "  ", "...!?"])
def test_empty_lesson_is_complete_immediately(source_text, scripted_evaluator_cls):
    evaluator = scripted_evaluator_cls()
    session = PracticeSession(Lesson(lesson_id="empty", title="Empty", source_text=source_text), evaluator)

    snap = session.snapshot()
    assert snap.status == "completed"
    assert snap.current_sentence is None
    assert snap.cursor.total == 0

    assert not session.advance().accepted
    assert not asyncio.run(session.submit()).accepted
    assert evaluator.calls == []


# --- input and submit ---------------------------------------------------------

def test_begin_input_does_not_change_state(garden_lesson, scripted_evaluator_cls):
    session = PracticeSession(garden_lesson, scripted_evaluator_cls())
    outcome = _typed(session, "First, choose")
    assert outcome.snapshot.attempt_status == "idle"
    assert outcome.snapshot.raw_input == "First, choose"


@pytest.mark.parametrize("text", ["", "   "])
def test_submit_with_empty_input_is_rejected_before_any_request(text, garden_lesson, scripted_evaluator_cls):
    evaluator = scripted_evaluator_cls()
    session = PracticeSession(garden_lesson, evaluator)
    session.begin_input(text)

    outcome = asyncio.run(session.submit())

    assert not outcome.accepted
    assert outcome.reason == "validation_error"
    assert outcome.snapshot.attempt_status == "idle"
    assert evaluator.calls == []


def test_scenario_a_exact_reference_is_scored_high(garden_lesson, scripted_evaluator_cls):
    evaluator = scripted_evaluator_cls(GREAT_JOB)
    session = PracticeSession(garden_lesson, evaluator)
    session.advance()
    assert session.current_sentence.text == "Những nơi có nắng là lý tưởng cho cây trồng"
    _typed(session, "Sunny spots are ideal for planting.")

    outcome = asyncio.run(session.submit())

    assert outcome.accepted
    snap = outcome.snapshot
    assert snap.attempt_status == "scored"
    assert snap.feedback.accuracy == 100
    assert snap.feedback.suggestion is None
    assert snap.feedback.improvements == []
    assert snap.feedback.comment == "Great job"
    assert snap.accuracy_band == "high"
    assert evaluator.calls == [(1, "Sunny spots are ideal for planting.", "Sunny spots are ideal for planting.")]


def test_scenario_a_with_reference_evaluator(garden_lesson):
    session = PracticeSession(garden_lesson, ReferenceEvaluator())
    session.advance()
    _typed(session, "Sunny spots are ideal for planting.")
    snap = asyncio.run(session.submit()).snapshot
    assert snap.attempt_status == "scored"
    assert snap.accuracy_band == "high"


def test_scenario_b_transport_timeout_fails_then_retry_resubmits(garden_lesson, scripted_evaluator_cls):
    evaluator = scripted_evaluator_cls(TIMEOUT, GREAT_JOB)
    session = PracticeSession(garden_lesson, evaluator)
    _typed(session, "First, choose a suitable location.")

    failed = asyncio.run(session.submit())
    assert failed.accepted
    assert failed.snapshot.attempt_status == "failed"
    assert failed.snapshot.feedback.error_kind == "transport_error"
    assert failed.snapshot.feedback.diagnostic
    assert failed.snapshot.accuracy_band is None

    retried = session.retry()
    assert retried.accepted
    assert retried.snapshot.attempt_status == "idle"
    assert retried.snapshot.raw_input == "First, choose a suitable location."

    scored = asyncio.run(session.submit())
    assert scored.snapshot.attempt_status == "scored"
    assert len(evaluator.calls) == 2
    assert scored.snapshot.attempts == 2


def test_scenario_b_with_real_client_and_raising_model(garden_lesson):
    class TimingOutLLM:
        async def ainvoke(self, messages, config=None):
            raise TimeoutError("read timed out")

    client = EvaluatorClient(Settings(openai_api_key="sk-test"), llm=TimingOutLLM())
    session = PracticeSession(garden_lesson, client)
    _typed(session, "First, choose a suitable location.")

    snap = asyncio.run(session.submit()).snapshot
    assert snap.attempt_status == "failed"
    assert snap.feedback.error_kind == "transport_error"
    assert session.retry().accepted


def test_scenario_c_fenced_response_is_decoded(garden_lesson):
    body = json.dumps({"accuracy": 42, "suggestion": "First, choose a suitable location.", "improvements": ["Dùng suitable."], "comment": None})
    llm = FakeListChatModel(responses=[f"```json {body} ```"])
    session = PracticeSession(garden_lesson, EvaluatorClient(Settings(openai_api_key="sk-test"), llm=llm))
    _typed(session, "First, choose a fit place.")

    snap = asyncio.run(session.submit()).snapshot

    assert snap.attempt_status == "scored"
    assert snap.feedback.accuracy == 42
    assert snap.feedback.improvements == ["Dùng suitable."]
    assert snap.feedback.comment is None
    assert snap.accuracy_band == "medium"


def test_format_error_fails_attempt_without_showing_raw_text_as_feedback(garden_lesson):
    llm = FakeListChatModel(responses=["Great translation, well done"])
    session = PracticeSession(garden_lesson, EvaluatorClient(Settings(openai_api_key="sk-test"), llm=llm))
    _typed(session, "First, choose a suitable location.")

    snap = asyncio.run(session.submit()).snapshot

    assert snap.attempt_status == "failed"
    assert snap.feedback.error_kind == "format_error"
    assert snap.feedback.comment is None
    assert snap.feedback.raw_response == "Great translation, well done"


def test_missing_configuration_fails_attempt_but_not_session(garden_lesson):
    session = PracticeSession(garden_lesson, EvaluatorClient(Settings(openai_api_key=None)))
    _typed(session, "First, choose a suitable location.")

    snap = asyncio.run(session.submit()).snapshot

    assert snap.attempt_status == "failed"
    assert snap.feedback.error_kind == "config_error"
    assert snap.status == "active"
    assert session.advance().accepted


def test_evaluator_exception_inside_graph_still_produces_snapshot(garden_lesson, scripted_evaluator_cls):
    session = PracticeSession(garden_lesson, scripted_evaluator_cls(RuntimeError("evaluator crashed")))
    _typed(session, "First, choose a suitable location.")

    outcome = asyncio.run(session.submit())

    assert outcome.snapshot.attempt_status == "failed"
    assert outcome.snapshot.feedback.error_kind == "transport_error"


def test_second_submit_while_in_flight_is_rejected(garden_lesson, scripted_evaluator_cls):
    evaluator = scripted_evaluator_cls(GREAT_JOB, block=True)
    session = PracticeSession(garden_lesson, evaluator)
    _typed(session, "First, choose a suitable location.")

    async def scenario():
        first = asyncio.create_task(session.submit())
        await evaluator.started.wait()
        assert session.snapshot().attempt_status == "submitting"

        second = await session.submit()
        blocked = [session.begin_input("edit"), session.retry(), session.advance(), session.hint()]

        evaluator.release.set()
        return await first, second, blocked

    first, second, blocked = asyncio.run(scenario())

    assert first.accepted and first.snapshot.attempt_status == "scored"
    assert not second.accepted
    assert second.reason == "submission_in_flight"
    assert all(not outcome.accepted and outcome.reason == "submission_in_flight" for outcome in blocked)
    assert len(evaluator.calls) == 1
    assert session.attempt.raw_input == "First, choose a suitable location."


def test_submit_again_from_terminal_state(garden_lesson, scripted_evaluator_cls):
    evaluator = scripted_evaluator_cls(FeedbackResult(accuracy=30), FeedbackResult(accuracy=90))
    session = PracticeSession(garden_lesson, evaluator)
    _typed(session, "First choose place")
    assert asyncio.run(session.submit()).snapshot.accuracy_band == "low"

    _typed(session, "First, choose a suitable location.")
    snap = asyncio.run(session.submit()).snapshot
    assert snap.accuracy_band == "high"
    assert len(evaluator.calls) == 2


# --- retry / advance / quit ---------------------------------------------------

def test_retry_from_idle_is_rejected(garden_lesson, scripted_evaluator_cls):
    session = PracticeSession(garden_lesson, scripted_evaluator_cls())
    outcome = session.retry()
    assert not outcome.accepted
    assert outcome.reason == "nothing_to_retry"


def test_advance_resets_attempt_and_moves_cursor(garden_lesson, scripted_evaluator_cls):
    session = PracticeSession(garden_lesson, scripted_evaluator_cls(GREAT_JOB))
    _typed(session, "First, choose a suitable location.")
    asyncio.run(session.submit())

    snap = session.advance().snapshot

    assert snap.cursor.current_index == 1
    assert snap.attempt_status == "idle"
    assert snap.raw_input == ""
    assert snap.feedback is None
    assert snap.hints == []


def test_advance_at_last_sentence_signals_completion_once(garden_lesson, scripted_evaluator_cls):
    session = PracticeSession(garden_lesson, scripted_evaluator_cls())
    session.advance()
    session.advance()
    assert session.cursor.current_index == 2

    done = session.advance()
    again = session.advance()

    assert done.accepted and done.event == "session_complete"
    assert done.snapshot.cursor.current_index == 2
    assert done.snapshot.status == "completed"
    assert done.snapshot.summary is not None
    assert not again.accepted and again.event is None
    assert session.cursor.current_index == 2


def test_cursor_never_decreases_or_wraps(garden_lesson, scripted_evaluator_cls):
    session = PracticeSession(garden_lesson, scripted_evaluator_cls())
    seen = []
    for _ in range(6):
        seen.append(session.advance().snapshot.cursor.current_index)
    assert seen == sorted(seen)
    assert 0 not in seen[1:]
    assert max(seen) == 2


def test_quit_ends_session_from_any_state(garden_lesson, scripted_evaluator_cls):
    session = PracticeSession(garden_lesson, scripted_evaluator_cls())
    outcome = session.quit()
    assert outcome.accepted
    assert outcome.snapshot.status == "quit"
    for late in (session.begin_input("x"), session.retry(), session.advance(), session.hint(), session.quit()):
        assert not late.accepted
        assert late.reason == "session_ended"


def test_quit_during_submit_discards_late_result(garden_lesson, scripted_evaluator_cls):
    evaluator = scripted_evaluator_cls(GREAT_JOB, block=True)
    session = PracticeSession(garden_lesson, evaluator)
    _typed(session, "First, choose a suitable location.")

    async def scenario():
        pending = asyncio.create_task(session.submit())
        await evaluator.started.wait()
        quit_outcome = session.quit()
        evaluator.release.set()
        return quit_outcome, await pending

    quit_outcome, late = asyncio.run(scenario())

    assert quit_outcome.accepted
    assert not late.accepted
    assert late.reason == "session_ended"
    snap = session.snapshot()
    assert snap.status == "quit"
    assert snap.feedback is None
    assert snap.attempt_status == "idle"
    assert len(evaluator.calls) == 1


def test_resubmit_hides_previous_feedback_while_in_flight(garden_lesson, scripted_evaluator_cls):
    low = FeedbackResult(accuracy=20, comment="Needs work")
    evaluator = scripted_evaluator_cls(low, GREAT_JOB, block=True)
    session = PracticeSession(garden_lesson, evaluator)
    _typed(session, "Choose place")

    async def scenario():
        evaluator.release.set()
        first = await session.submit()
        evaluator.release.clear()
        evaluator.started.clear()

        pending = asyncio.create_task(session.submit())
        await evaluator.started.wait()
        in_flight = session.snapshot()
        quit_outcome = session.quit()
        evaluator.release.set()
        return first, in_flight, quit_outcome, await pending

    first, in_flight, quit_outcome, late = asyncio.run(scenario())

    assert first.snapshot.feedback.accuracy == 20
    assert in_flight.attempt_status == "submitting"
    assert in_flight.feedback is None
    assert in_flight.accuracy_band is None
    assert quit_outcome.snapshot.feedback is None
    assert not late.accepted
    assert len(evaluator.calls) == 2


# --- hints, progress, summary -------------------------------------------------

def test_hints_reveal_reference_progressively(garden_lesson, scripted_evaluator_cls):
    session = PracticeSession(garden_lesson, scripted_evaluator_cls())
    first = session.hint()
    second = session.hint()
    third = session.hint()

    assert first.snapshot.hints == ["First,"]
    assert second.snapshot.hints == ["First,", "First, choose a"]
    assert not third.accepted and third.reason == "hint_limit_reached"
    assert len(session.snapshot().hints) == MAX_HINTS


def test_hint_without_reference_is_rejected(scripted_evaluator_cls):
    lesson = Lesson(lesson_id="x", title="x", source_text="Xin chào.")
    outcome = PracticeSession(lesson, scripted_evaluator_cls()).hint()
    assert not outcome.accepted
    assert outcome.reason == "no_hint_available"


def test_build_hint_levels():
    assert build_hint("Good soil is rich in nutrients.", 1) == "Good"
    assert build_hint("Good soil is rich in nutrients.", 2) == "Good soil is"
    assert build_hint("Next", 2) == "Next"


def test_summary_tracks_attempts_hints_and_best_accuracy(garden_lesson, scripted_evaluator_cls):
    evaluator = scripted_evaluator_cls(FeedbackResult(accuracy=50), FeedbackResult(accuracy=40), TIMEOUT)
    session = PracticeSession(garden_lesson, evaluator)
    _typed(session, "First choose place")
    asyncio.run(session.submit())
    asyncio.run(session.submit())
    session.hint()
    session.advance()
    _typed(session, "Sunny spots")
    asyncio.run(session.submit())

    summary = session.quit().snapshot.summary

    assert summary.total == 2
    assert summary.items[0].attempts == 2
    assert summary.items[0].best_accuracy == 50
    assert summary.items[0].hints_used == 1
    assert summary.items[0].last_status == "scored"
    assert summary.items[1].best_accuracy is None
    assert summary.items[1].last_status == "failed"
    assert summary.scored_count == 1
    assert summary.average_accuracy == 50


@pytest.mark.parametrize(
    "accuracy, band",
    [(100, "high"), (75, "high"), (74.99, "medium"), (40, "medium"), (39.9, "low"), (0, "low"), (None, None)],
)
def test_classify_accuracy(accuracy, band):
    assert classify_accuracy(accuracy) == band
