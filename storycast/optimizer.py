"""Merge consecutive same-speaker script lines to cut down synthesis calls."""

from storycast.constants import MERGE_CHAR_LIMIT
from storycast.models import Segment


def optimize_script(script: list[Segment], max_chars: int = MERGE_CHAR_LIMIT) -> list[Segment]:
    """Merge runs of lines from the same speaker while the text stays under max_chars.

    Never reorders or drops lines and never mutates the input segments.
    """
    if not script:
        return []

    optimized = []
    current = Segment(speaker=script[0].speaker, text=script[0].text)

    for seg in script[1:]:
        if seg.speaker == current.speaker and len(current.text) + len(seg.text) < max_chars:
            current.text += " " + seg.text
        else:
            optimized.append(current)
            current = Segment(speaker=seg.speaker, text=seg.text)

    optimized.append(current)
    return optimized
