"""Keyword fallback table for next-word suggestions."""

from typing import List, Tuple

# Evaluated top to bottom; only the first matching tier contributes.
# (trigger substrings, candidate words in suggestion order)
KEYWORD_TRIGGERS: Tuple[Tuple[Tuple[str, ...], Tuple[str, ...]], ...] = (
    (("hungry", "food"), ("eat", "food", "water", "drink")),
    (("tired", "sleep"), ("sleep", "bed", "rest")),
    (("happy", "good"), ("smile", "fun", "yes")),
    (("sad", "bad"), ("cry", "help", "no")),
    (("thirsty",), ("drink", "water", "cup")),
    (("help",), ("doctor", "emergency", "please")),
    (("hello", "hi"), ("how", "are", "you")),
    (("thank",), ("welcome", "bye")),
    (("go",), ("walk", "come", "run")),
)


def fallback_candidates(text: str) -> List[str]:
    """
    Get the candidate words for the first trigger found in ``text``.

    Args:
        text: Sentence so far (any case)

    Returns:
        Ordered candidate words, or an empty list when nothing triggers
    """
    lowered = (text or "").lower()
    for triggers, candidates in KEYWORD_TRIGGERS:
        if any(trigger in lowered for trigger in triggers):
            return list(candidates)
    return []
