from __future__ import annotations
import asyncio
import logging
from typing import Any, Optional, Protocol

import openai
from langchain_core.language_models.chat_models import BaseChatModel
from langchain_openai import ChatOpenAI

from coach.core.config import Settings, settings
from coach.lesson.codec import build_evaluation_request, decode_feedback, encode_feedback, request_messages
from coach.schemas.evaluation import FeedbackResult
from coach.schemas.session import Sentence
from coach.utils.performance import track_performance


class Evaluator(Protocol):
    async def evaluate(
        self,
        sentence: Sentence,
        raw_input: str,
        reference: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> FeedbackResult: ...


def _message_text(response: Any) -> str:
    content = response.content if hasattr(response, "content") else response
    if isinstance(content, list):
        # multi-part content: keep the text parts
        return "".join(
            part if isinstance(part, str) else str(part.get("text", ""))
            for part in content
            if isinstance(part, (str, dict))
        )
    return str(content)


class EvaluatorClient:
    """Scores one translation attempt per call with a chat model.

    This is where evaluator failures become FeedbackResult errors: a missing
    API key is a ``config_error``, anything that goes wrong on the way to or
    from the model is a ``transport_error``, and unreadable output is a
    ``format_error`` from the codec. No exception other than the codec's
    ValidationError (an empty translation, which callers must not submit)
    leaves ``evaluate``.
    """

    def __init__(self, config: Settings = settings, llm: BaseChatModel | None = None) -> None:
        self.config = config
        self._llm = llm

    def _get_llm(self) -> BaseChatModel:
        if self._llm is None:
            self._llm = ChatOpenAI(
                model=self.config.llm_model,
                api_key=self.config.openai_api_key,
                temperature=self.config.evaluator_temperature,
                timeout=self.config.evaluator_timeout,
                max_retries=0,
            )
        return self._llm

    async def evaluate(
        self,
        sentence: Sentence,
        raw_input: str,
        reference: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> FeedbackResult:
        request = build_evaluation_request(
            sentence,
            raw_input,
            reference=reference,
            source_language=self.config.source_language,
            target_language=self.config.target_language,
            feedback_language=self.config.feedback_language,
            temperature=self.config.evaluator_temperature,
            safety_settings=self.config.safety_settings(),
        )

        if self._llm is None and not self.config.openai_api_key:
            logging.warning("Evaluator not configured: OPENAI_API_KEY is missing")
            return FeedbackResult.failure("config_error", "Missing OPENAI_API_KEY; the evaluator is not configured")

        timeout = self.config.evaluator_timeout
        try:
            llm = self._get_llm()
            async with track_performance(
                operation_type="evaluation",
                operation_name="evaluate_translation",
                session_id=session_id,
                metadata={"model": self.config.llm_model, "sentence_index": sentence.index},
            ):
                response = await asyncio.wait_for(
                    llm.ainvoke(
                        request_messages(request),
                        config={"metadata": {
                            "sentence_index": request.sentence_index,
                            "temperature": request.temperature,
                            "safety_settings": request.safety_settings,
                        }},
                    ),
                    timeout=timeout,
                )
        except (openai.APITimeoutError, asyncio.TimeoutError, TimeoutError) as e:
            logging.warning(f"Evaluator timed out after {timeout}s: {e!r}")
            return FeedbackResult.failure("transport_error", f"The evaluator did not answer within {timeout:g} seconds")
        except openai.APIConnectionError as e:
            logging.warning(f"Evaluator unreachable: {e}")
            return FeedbackResult.failure("transport_error", f"Could not reach the evaluator: {e}")
        except openai.APIStatusError as e:
            logging.warning(f"Evaluator returned HTTP {e.status_code}: {e}")
            return FeedbackResult.failure("transport_error", f"The evaluator returned an error (HTTP {e.status_code})")
        except Exception as e:
            logging.error(f"Evaluator request failed: {e}", exc_info=True)
            return FeedbackResult.failure("transport_error", f"Evaluator request failed: {e}")

        return decode_feedback(_message_text(response))


REFERENCE_MISMATCH_IMPROVEMENTS = [
    "So sánh bản dịch của bạn với câu gợi ý, chú ý đến thì của động từ và cách chọn từ.",
]
REFERENCE_MISMATCH_COMMENT = (
    "Nhận xét: Câu dịch của bạn vẫn cần một số điều chỉnh để rõ nghĩa hơn. "
    "Hãy cố gắng cải thiện và chính xác hóa từ vựng nhé! 🌱"
)


class ReferenceEvaluator:
    """Offline evaluator that compares attempts with the lesson's reference translation.

    A case-insensitive exact match scores 100; anything else scores 42.86 with
    the reference as the suggestion. Output goes through the same codec as the
    model's answers.
    """

    async def evaluate(
        self,
        sentence: Sentence,
        raw_input: str,
        reference: Optional[str] = None,
        session_id: Optional[str] = None,
    ) -> FeedbackResult:
        build_evaluation_request(sentence, raw_input, reference=reference)
        if not reference:
            return FeedbackResult.failure(
                "config_error", f"No reference translation for sentence {sentence.index}; the reference evaluator cannot score it"
            )

        if raw_input.strip().lower() == reference.strip().lower():
            judgement = FeedbackResult(accuracy=100, comment="Great job!")
        else:
            judgement = FeedbackResult(
                accuracy=42.86,
                suggestion=f"Suggestion: {reference}",
                improvements=REFERENCE_MISMATCH_IMPROVEMENTS,
                comment=REFERENCE_MISMATCH_COMMENT,
            )
        return decode_feedback(encode_feedback(judgement))


def get_evaluator(config: Settings = settings) -> Evaluator:
    if config.evaluator_backend == "reference":
        return ReferenceEvaluator()
    return EvaluatorClient(config)
