"""
Sentence Segmenter

Splits raw model output into candidate sentences and drops
fragments that cannot carry a claim: very short text, code
lines, and markup or symbol-heavy noise.
"""

from __future__ import annotations

import re
from typing import Optional

from shadowmapper.config import Thresholds, settings

# Sentence-final punctuation + whitespace + capital, or newline + capital
SENTENCE_BOUNDARY = re.compile(r"(?<=[.!?])\s+(?=[A-Z])|(?<=\n)(?=[A-Z])")

CODE_LIKE = re.compile(r"^[{}\[\]<>]|^(const|let|var|function|import|export|class)\s")

_ALPHA = re.compile(r"[a-zA-Z]")


def alpha_ratio(text: str) -> float:
    """Share of ASCII letters in the text. 0.0 for empty text."""
    if not text:
        return 0.0
    return len(_ALPHA.findall(text)) / len(text)


def is_substantive(fragment: str, thresholds: Optional[Thresholds] = None) -> bool:
    t = thresholds or settings.THRESHOLDS
    if len(fragment) < t.min_sentence_length:
        return False
    if CODE_LIKE.search(fragment):
        return False
    return alpha_ratio(fragment) >= t.min_alpha_ratio


def segment_sentences(text: str, thresholds: Optional[Thresholds] = None) -> list[str]:
    """
    Split text into substantive sentences, preserving order.

    Empty or whitespace-only input yields an empty list.
    """
    if not text or not text.strip():
        return []

    fragments = (f.strip() for f in SENTENCE_BOUNDARY.split(text))
    return [f for f in fragments if f and is_substantive(f, thresholds)]
