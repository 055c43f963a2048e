from pydantic import BaseModel, Field, model_validator
from typing import List, Optional


class StartSessionRequest(BaseModel):
    """Start a session from a bundled lesson or from ad-hoc source text."""
    lesson_id: Optional[str] = None
    source_text: Optional[str] = None
    title: Optional[str] = None
    references: List[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def check_one_source(self) -> "StartSessionRequest":
        if (self.lesson_id is None) == (self.source_text is None):
            raise ValueError("provide exactly one of lesson_id or source_text")
        return self


class InputRequest(BaseModel):
    text: str = ""
