from pydantic import BaseModel, Field, model_validator
from typing import Literal, Optional


ErrorKind = Literal["transport_error", "format_error", "config_error"]
AccuracyBand = Literal["high", "medium", "low"]


class EvaluationRequest(BaseModel):
    """Everything the evaluator needs to judge one translation attempt."""
    sentence_index: int
    sentence: str
    translation: str
    reference: Optional[str] = None
    source_language: str = "Vietnamese"
    target_language: str = "English"
    feedback_language: str = "Vietnamese"
    # pass-through configuration, not part of the judgement contract
    temperature: float = 0.2
    safety_settings: dict[str, str] = Field(default_factory=dict)


class FeedbackResult(BaseModel):
    """The evaluator's judgement on one attempt, or the reason there is none."""
    model_config = {"frozen": True}

    accuracy: Optional[float] = Field(default=None, ge=0, le=100)
    suggestion: Optional[str] = None
    improvements: list[str] = Field(default_factory=list)
    comment: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    diagnostic: Optional[str] = None  # human-readable reason when error_kind is set
    raw_response: Optional[str] = None  # kept for format_error diagnostics, never rendered as feedback

    @model_validator(mode="after")
    def check_judgement_or_error(self) -> "FeedbackResult":
        if self.error_kind is not None and (
            self.accuracy is not None
            or self.suggestion is not None
            or self.improvements
            or self.comment is not None
        ):
            raise ValueError("an errored FeedbackResult cannot carry judgement fields")
        return self

    @property
    def has_judgement(self) -> bool:
        return self.error_kind is None

    @classmethod
    def failure(cls, error_kind: ErrorKind, diagnostic: str, raw_response: str | None = None) -> "FeedbackResult":
        return cls(error_kind=error_kind, diagnostic=diagnostic, raw_response=raw_response)
