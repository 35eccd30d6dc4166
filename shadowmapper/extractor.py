"""
Shadow Extractor — Two-Pass Statement Mining

Mines every model response for discrete statements:

  segment → pass 1 (inclusion) → pass 2 (exclusion) → bucket

Stateless. Each call builds fresh result objects; the only
shared data is the frozen pattern catalog.
"""

from __future__ import annotations

import re
import time
from collections import Counter
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional, Union

from shadowmapper.config import Thresholds
from shadowmapper.frozen_core import StatementCategory
from shadowmapper.logging import get_logger
from shadowmapper.matcher import match_pass1, validate_pass2
from shadowmapper.segmenter import segment_sentences
from shadowmapper.serialize import fields_to_dict

logger = get_logger("extractor")

# "B runs after A" states the dependency right-to-left
REVERSE_DEPENDENCY_PATTERNS = (
    re.compile(r"\b(runs?|executes?)\s+after\b", re.IGNORECASE),
    re.compile(r"\bfollows?\b", re.IGNORECASE),
    re.compile(r"\bsubsequent\s+to\b", re.IGNORECASE),
    re.compile(r"\b(?:comes?|happens?)\s+after\b", re.IGNORECASE),
)


def detect_reverse_dependency(sentence: str) -> bool:
    return any(p.search(sentence) for p in REVERSE_DEPENDENCY_PATTERNS)


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class BatchResponse:
    """One model's raw output."""
    model_index: int
    content: str

    @classmethod
    def from_dict(cls, data: Mapping[str, Any], position: int = 0) -> "BatchResponse":
        index = data.get("model_index", data.get("modelIndex", position))
        return cls(model_index=int(index), content=str(data.get("content") or ""))


@dataclass(frozen=True)
class ShadowStatement:
    """A statement that survived both passes."""
    text: str
    category: StatementCategory
    secondary_categories: tuple[StatementCategory, ...]
    confidence: float
    source_index: int
    sentence_index: int
    matched_patterns: tuple[str, ...]
    soft_exclusions: tuple[str, ...]
    reverse_dependency: Optional[bool] = None  # prerequisite only

    def to_dict(self) -> dict:
        return fields_to_dict(self)


@dataclass(frozen=True)
class DisqualifiedStatement:
    text: str
    attempted_category: StatementCategory
    source_index: int
    disqualified_by: str
    reason: str

    def to_dict(self) -> dict:
        return fields_to_dict(self)


@dataclass(frozen=True)
class ShadowMap:
    """Validated statements bucketed by primary category."""
    conditional: tuple[ShadowStatement, ...] = ()
    prerequisite: tuple[ShadowStatement, ...] = ()
    conflict: tuple[ShadowStatement, ...] = ()
    prescriptive: tuple[ShadowStatement, ...] = ()
    assertive: tuple[ShadowStatement, ...] = ()

    def bucket(self, category: StatementCategory) -> tuple[ShadowStatement, ...]:
        return getattr(self, StatementCategory(category).value)

    def flatten(self) -> list[ShadowStatement]:
        """All statements, category by category in priority order."""
        out: list[ShadowStatement] = []
        for category in StatementCategory:
            out.extend(self.bucket(category))
        return out

    def counts(self) -> dict[str, int]:
        return {c.value: len(self.bucket(c)) for c in StatementCategory}

    def to_dict(self) -> dict:
        return fields_to_dict(self)


@dataclass(frozen=True)
class CategoryStats:
    pass1: int = 0
    pass2: int = 0
    disqualified: int = 0

    def to_dict(self) -> dict:
        return fields_to_dict(self)


@dataclass(frozen=True)
class ExtractionStats:
    total_sentences: int
    pass1_candidates: int
    pass2_validated: int
    pass2_disqualified: int
    survival_rate: float
    by_category: Mapping[str, CategoryStats]

    def for_category(self, category: StatementCategory) -> CategoryStats:
        return self.by_category[StatementCategory(category).value]

    def to_dict(self) -> dict:
        return fields_to_dict(self)


@dataclass(frozen=True)
class ExtractionResult:
    validated: ShadowMap
    disqualified: tuple[DisqualifiedStatement, ...]
    stats: ExtractionStats
    processing_time_ms: float

    def to_dict(self) -> dict:
        return fields_to_dict(self)


BatchItem = Union[BatchResponse, Mapping[str, Any]]


def _coerce_batch(batch: Optional[Iterable[BatchItem]]) -> list[BatchResponse]:
    return [
        item if isinstance(item, BatchResponse) else BatchResponse.from_dict(item, i)
        for i, item in enumerate(batch or ())
    ]


# ============================================================
# EXTRACTION
# ============================================================

def extract_shadow_statements(
    batch: Optional[Iterable[BatchItem]],
    *,
    thresholds: Optional[Thresholds] = None,
) -> ExtractionResult:
    """
    Run the two-pass pipeline over a batch of model responses.

    Args:
        batch: BatchResponse objects or mappings with model_index/content.
        thresholds: Optional override of the tuned constants.

    Returns:
        ExtractionResult with the ShadowMap, disqualified statements,
        statistics and wall-clock processing time.
    """
    start = time.perf_counter()
    responses = _coerce_batch(batch)

    buckets: dict[StatementCategory, list[ShadowStatement]] = {
        c: [] for c in StatementCategory
    }
    disqualified: list[DisqualifiedStatement] = []
    pass1_counts: Counter = Counter()
    pass2_counts: Counter = Counter()
    dq_counts: Counter = Counter()
    total_sentences = 0

    for response in responses:
        sentences = segment_sentences(response.content, thresholds)
        total_sentences += len(sentences)

        for i, sentence in enumerate(sentences):
            candidate = match_pass1(sentence, thresholds)
            if candidate is None:
                continue

            category = candidate.category
            pass1_counts[category] += 1

            outcome = validate_pass2(
                sentence, category, candidate.base_confidence, thresholds
            )

            if not outcome.survived:
                dq_counts[category] += 1
                disqualified.append(DisqualifiedStatement(
                    text=sentence,
                    attempted_category=category,
                    source_index=response.model_index,
                    disqualified_by=outcome.disqualified_by,
                    reason=outcome.reason,
                ))
                continue

            pass2_counts[category] += 1
            reverse = None
            if category == StatementCategory.PREREQUISITE:
                reverse = detect_reverse_dependency(sentence)

            buckets[category].append(ShadowStatement(
                text=sentence,
                category=category,
                secondary_categories=candidate.secondary_categories,
                confidence=outcome.adjusted_confidence,
                source_index=response.model_index,
                sentence_index=i,
                matched_patterns=candidate.primary.matched_patterns,
                soft_exclusions=outcome.soft_rule_ids,
                reverse_dependency=reverse,
            ))

    candidates = sum(pass1_counts.values())
    validated_count = sum(pass2_counts.values())
    stats = ExtractionStats(
        total_sentences=total_sentences,
        pass1_candidates=candidates,
        pass2_validated=validated_count,
        pass2_disqualified=len(disqualified),
        survival_rate=validated_count / candidates if candidates else 0.0,
        by_category=MappingProxyType({
            c.value: CategoryStats(
                pass1=pass1_counts[c],
                pass2=pass2_counts[c],
                disqualified=dq_counts[c],
            )
            for c in StatementCategory
        }),
    )

    duration_ms = round((time.perf_counter() - start) * 1000, 3)
    logger.debug(
        "Shadow extraction complete",
        extra={
            "model_count": len(responses),
            "sentences": total_sentences,
            "candidates": candidates,
            "validated": validated_count,
            "disqualified": len(disqualified),
            "survival_rate": round(stats.survival_rate, 3),
            "duration_ms": duration_ms,
        },
    )

    return ExtractionResult(
        validated=ShadowMap(**{c.value: tuple(buckets[c]) for c in StatementCategory}),
        disqualified=tuple(disqualified),
        stats=stats,
        processing_time_ms=duration_ms,
    )
