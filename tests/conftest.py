import asyncio
import sys
from pathlib import Path
from typing import Optional

import pytest

# Add the backend to sys.path so we can import coach without installing
BACKEND_PATH = Path(__file__).resolve().parent.parent / "apps" / "backend"
if BACKEND_PATH.as_posix() not in sys.path:
    sys.path.insert(0, BACKEND_PATH.as_posix())

from coach.schemas.evaluation import FeedbackResult  # noqa: E402
from coach.schemas.lesson import Lesson  # noqa: E402
from coach.schemas.session import Sentence  # noqa: E402


class ScriptedEvaluator:
    """Evaluator double returning queued results and recording every call.

    When ``block`` is set, each call waits for ``release`` so tests can observe
    the session while a request is in flight.
    """

    def __init__(self, *results: FeedbackResult, block: bool = False) -> None:
        self.results = list(results)
        self.calls: list[tuple[int, str, Optional[str]]] = []
        self.block = block
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def evaluate(self, sentence: Sentence, raw_input: str, reference=None, session_id=None) -> FeedbackResult:
        self.calls.append((sentence.index, raw_input, reference))
        self.started.set()
        if self.block:
            await self.release.wait()
        if not self.results:
            return FeedbackResult(accuracy=80, comment="ok")
        result = self.results.pop(0)
        if isinstance(result, Exception):
            raise result
        return result


@pytest.fixture
def garden_lesson():
    return Lesson(
        lesson_id="garden-mini",
        title="Mini garden",
        source_text=(
            "Đầu tiên, hãy chọn một vị trí thích hợp. "
            "Những nơi có nắng là lý tưởng cho cây trồng! "
            "Đất tốt rất giàu chất dinh dưỡng?"
        ),
        references=[
            "First, choose a suitable location.",
            "Sunny spots are ideal for planting.",
            "Good soil is rich in nutrients.",
        ],
    )


@pytest.fixture
def scripted_evaluator_cls():
    return ScriptedEvaluator
