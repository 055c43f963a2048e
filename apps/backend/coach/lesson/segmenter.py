import re
from coach.schemas.session import Sentence

_SENTENCE_BOUNDARY = re.compile(r"[.?!]")


def segment(text: str) -> list[Sentence]:
    """Split source text into sentences on '.', '?' and '!'.

    Delimiters are dropped, fragments trimmed, and empty fragments discarded
    before indices are assigned, so indices are dense over retained sentences.
    """
    fragments = (fragment.strip() for fragment in _SENTENCE_BOUNDARY.split(text or ""))
    return [Sentence(index=i, text=fragment) for i, fragment in enumerate(f for f in fragments if f)]
