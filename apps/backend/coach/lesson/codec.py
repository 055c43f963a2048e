"""Request/response contract with the translation evaluator.

Requests are rendered from ``EvaluationRequest`` through the evaluation prompt.
Responses are raw model text that should hold a JSON object with the optional
fields ``accuracy``, ``suggestion``, ``improvements`` and ``comment``. Models
often wrap that object in a fenced code block or add a sentence around it, so
decoding strips fences and falls back to the outermost ``{...}`` before
parsing. Anything that still cannot be read becomes a ``format_error`` result
rather than an exception.

Out-of-range accuracy values are clamped into [0, 100]; values that are not
finite numbers are a ``format_error``.
"""
from __future__ import annotations
import json
import logging
import math
import re
from typing import Any, Optional

from langchain_core.messages import BaseMessage

from coach.lesson.errors import ValidationError
from coach.prompts.evaluation_prompts import evaluate_translation_prompt, reference_line
from coach.schemas.evaluation import EvaluationRequest, FeedbackResult
from coach.schemas.session import Sentence

ACCURACY_MIN = 0.0
ACCURACY_MAX = 100.0

_FENCE_OPEN = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\n?")
_FENCE_CLOSE = re.compile(r"\n?[ \t]*```$")


def build_evaluation_request(
    sentence: Sentence,
    raw_input: str,
    *,
    reference: Optional[str] = None,
    source_language: str = "Vietnamese",
    target_language: str = "English",
    feedback_language: str = "Vietnamese",
    temperature: float = 0.2,
    safety_settings: Optional[dict[str, str]] = None,
) -> EvaluationRequest:
    """Build the evaluator request for one attempt.

    Raises:
        ValidationError: the sentence text or the translation is empty.
    """
    if not sentence.text or not sentence.text.strip():
        raise ValidationError("Sentence text is empty")
    if not raw_input or not raw_input.strip():
        raise ValidationError("Translation is empty")

    return EvaluationRequest(
        sentence_index=sentence.index,
        sentence=sentence.text.strip(),
        translation=raw_input.strip(),
        reference=reference,
        source_language=source_language,
        target_language=target_language,
        feedback_language=feedback_language,
        temperature=temperature,
        safety_settings=dict(safety_settings or {}),
    )


def request_messages(request: EvaluationRequest) -> list[BaseMessage]:
    prompt_value = evaluate_translation_prompt.invoke({
        "sentence": request.sentence,
        "translation": request.translation,
        "reference_line": reference_line(request.reference),
        "source_language": request.source_language,
        "target_language": request.target_language,
        "feedback_language": request.feedback_language,
    })
    return prompt_value.to_messages()


def strip_code_fence(text: str) -> str:
    """Remove an enclosing ```/```json fence; text without one is only trimmed."""
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = _FENCE_OPEN.sub("", cleaned, count=1)
        cleaned = _FENCE_CLOSE.sub("", cleaned, count=1)
    return cleaned.strip()


def _extract_json_text(text: str) -> str:
    cleaned = strip_code_fence(text)
    # As a fallback, grab the outermost {...} block
    if "{" in cleaned and "}" in cleaned:
        start = cleaned.find("{")
        end = cleaned.rfind("}") + 1
        if start < end:
            cleaned = cleaned[start:end]
    return cleaned


def _sanitize_accuracy(value: Any) -> Optional[float]:
    if value is None:
        return None
    # bool is an int subclass; true/false is not a percentage
    if isinstance(value, bool):
        raise ValueError(f"accuracy must be a number, got {value!r}")
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        text = value.strip().rstrip("%").strip()
        if not text:
            return None
        try:
            number = float(text)
        except ValueError:
            raise ValueError(f"accuracy is not numeric: {value!r}") from None
    else:
        raise ValueError(f"accuracy must be a number, got {type(value).__name__}")

    if not math.isfinite(number):
        raise ValueError(f"accuracy is not a finite number: {value!r}")
    clamped = min(max(number, ACCURACY_MIN), ACCURACY_MAX)
    if clamped != number:
        logging.warning(f"Evaluator accuracy {number} outside [0, 100], clamped to {clamped}")
    return clamped


def _optional_text(value: Any, field: str) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, (str, int, float)):
        raise ValueError(f"{field} must be a string, got {type(value).__name__}")
    text = str(value).strip()
    return text or None


def _improvements(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value.strip()] if value.strip() else []
    if not isinstance(value, list):
        raise ValueError(f"improvements must be a list, got {type(value).__name__}")
    items: list[str] = []
    for item in value:
        text = _optional_text(item, "improvements item")
        if text:
            items.append(text)
    return items


def decode_feedback(raw_text: Optional[str]) -> FeedbackResult:
    """Turn raw evaluator text into a FeedbackResult. Never raises."""
    if raw_text is None or not raw_text.strip():
        return FeedbackResult.failure("format_error", "Evaluator returned an empty response", raw_response=raw_text or "")

    try:
        data = json.loads(_extract_json_text(raw_text))
    except json.JSONDecodeError as e:
        logging.warning(f"Failed to parse JSON from evaluator output:\n{raw_text}")
        return FeedbackResult.failure(
            "format_error", f"Evaluator response is not valid JSON: {e.msg}", raw_response=raw_text
        )

    if not isinstance(data, dict):
        return FeedbackResult.failure(
            "format_error", f"Evaluator response is a JSON {type(data).__name__}, expected an object", raw_response=raw_text
        )

    try:
        return FeedbackResult(
            accuracy=_sanitize_accuracy(data.get("accuracy")),
            suggestion=_optional_text(data.get("suggestion"), "suggestion"),
            improvements=_improvements(data.get("improvements")),
            comment=_optional_text(data.get("comment"), "comment"),
        )
    except ValueError as e:
        # pydantic's ValidationError is a ValueError too
        logging.warning(f"Evaluator response has unusable fields: {e}")
        return FeedbackResult.failure("format_error", f"Evaluator response is malformed: {e}", raw_response=raw_text)


def encode_feedback(result: FeedbackResult) -> str:
    """Serialise a judgement in the shape the evaluator is asked to answer with."""
    if not result.has_judgement:
        raise ValueError("cannot encode an errored FeedbackResult as evaluator output")
    return json.dumps(
        {
            "accuracy": result.accuracy,
            "suggestion": result.suggestion,
            "improvements": list(result.improvements),
            "comment": result.comment,
        },
        ensure_ascii=False,
    )
