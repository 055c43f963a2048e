from pydantic import BaseModel, Field
from typing import Optional


class Lesson(BaseModel):
    lesson_id: str
    title: str
    source_text: str
    references: list[str] = Field(default_factory=list)  # aligned by sentence index

    def reference_for(self, index: int) -> Optional[str]:
        if 0 <= index < len(self.references):
            return self.references[index].strip() or None
        return None


class LessonInfo(BaseModel):
    """Catalog listing entry."""
    lesson_id: str
    title: str
    sentence_count: int
