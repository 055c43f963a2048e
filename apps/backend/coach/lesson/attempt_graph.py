"""LangGraph pipeline for one submitted attempt: evaluate, then grade."""
from typing import Optional, TypedDict
from langgraph.graph import StateGraph, END
from coach.lesson.evaluator import Evaluator
from coach.schemas.evaluation import AccuracyBand, FeedbackResult
from coach.schemas.session import AttemptStatus, Sentence
import logging


class AttemptState(TypedDict, total=False):
    """State for the attempt graph."""
    session_id: str | None
    sentence: Sentence
    raw_input: str
    reference: str | None
    feedback: FeedbackResult | None
    attempt_status: AttemptStatus
    accuracy_band: AccuracyBand | None


def classify_accuracy(accuracy: Optional[float]) -> Optional[AccuracyBand]:
    """Display band for an accuracy percentage: high >= 75, medium >= 40, else low."""
    if accuracy is None:
        return None
    if accuracy >= 75:
        return "high"
    if accuracy >= 40:
        return "medium"
    return "low"


async def evaluate_node(state: AttemptState, evaluator: Evaluator) -> AttemptState:
    """Run the evaluator round trip for the submitted attempt."""
    sentence = state["sentence"]
    feedback = await evaluator.evaluate(
        sentence,
        state.get("raw_input", ""),
        reference=state.get("reference"),
        session_id=state.get("session_id"),
    )
    return {**state, "feedback": feedback}


def grade_node(state: AttemptState) -> AttemptState:
    """Decide the terminal attempt status from the evaluator's result."""
    feedback = state.get("feedback")
    if feedback is None or not feedback.has_judgement:
        if feedback is not None:
            logging.info(f"grade_node: attempt failed with {feedback.error_kind}: {feedback.diagnostic}")
        return {**state, "attempt_status": "failed", "accuracy_band": None}
    return {**state, "attempt_status": "scored", "accuracy_band": classify_accuracy(feedback.accuracy)}


def create_attempt_graph(evaluator: Evaluator):
    """Create the compiled attempt graph bound to an evaluator."""
    graph = StateGraph(AttemptState)

    async def evaluate(state: AttemptState) -> AttemptState:
        return await evaluate_node(state, evaluator)

    graph.add_node("evaluate", evaluate)
    graph.add_node("grade", grade_node)

    graph.add_edge("evaluate", "grade")
    graph.add_edge("grade", END)

    graph.set_entry_point("evaluate")

    return graph.compile()
