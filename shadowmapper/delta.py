"""
Shadow Delta — What the Shadow Saw That the Mapper Didn't

Compares validated shadow statements against the primary claim
graph. Statements with no matching claim are reported as
unindexed, ranked by confidence, relevance to the user's query,
and a per-category weight chosen from the query's intent.
"""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from shadowmapper.claims import Claim, ClaimLike, EdgeLike, coerce_claims, coerce_edges
from shadowmapper.config import Thresholds, settings
from shadowmapper.extractor import ExtractionResult, ShadowStatement
from shadowmapper.frozen_core import StatementCategory
from shadowmapper.logging import get_logger
from shadowmapper.serialize import fields_to_dict

logger = get_logger("delta")

UNINDEXED_REASON = "validated_by_shadow_not_in_primary"

_PUNCT = re.compile(r"[^\w\s]", re.ASCII)
_SPACES = re.compile(r"\s+")


# ============================================================
# TEXT MATCHING
# ============================================================

def normalize_text(text: str) -> str:
    """Lower-case, punctuation to spaces, whitespace collapsed."""
    return _SPACES.sub(" ", _PUNCT.sub(" ", text.lower())).strip()


def significant_words(text: str) -> list[str]:
    return [w for w in normalize_text(text).split() if len(w) > 2]


def word_overlap(a: str, b: str) -> float:
    """Jaccard similarity over words longer than two characters."""
    words_a = set(significant_words(a))
    words_b = set(significant_words(b))
    if not words_a or not words_b:
        return 0.0
    return len(words_a & words_b) / len(words_a | words_b)


def match_threshold(word_count: int, base: float) -> float:
    """Longer sentences get a lower bar; Jaccard shrinks with length."""
    if word_count > 20:
        return base * 0.75
    if word_count > 15:
        return base * 0.85
    return base


def find_matching_claim(
    shadow_text: str,
    claims: Iterable[Claim],
    thresholds: Optional[Thresholds] = None,
) -> Optional[Claim]:
    """Best-overlapping claim at or above the length-adjusted threshold."""
    t = thresholds or settings.THRESHOLDS
    threshold = match_threshold(len(significant_words(shadow_text)), t.match_threshold)

    best: Optional[Claim] = None
    best_score = 0.0
    for claim in claims:
        score = word_overlap(shadow_text, claim.text)
        if score > best_score and score >= threshold:
            best, best_score = claim, score
    return best


# ============================================================
# QUERY INTENT
# ============================================================

class QueryIntent(str, Enum):
    DECISION = "decision"
    FEASIBILITY = "feasibility"
    MECHANISM = "mechanism"
    EXPLORATION = "exploration"


_C = StatementCategory

INTENT_WEIGHTS: Mapping[QueryIntent, Mapping[StatementCategory, float]] = MappingProxyType({
    QueryIntent.DECISION: MappingProxyType({
        _C.CONDITIONAL: 1.5, _C.CONFLICT: 1.4, _C.PREREQUISITE: 1.2,
        _C.PRESCRIPTIVE: 1.0, _C.ASSERTIVE: 0.5,
    }),
    QueryIntent.FEASIBILITY: MappingProxyType({
        _C.CONDITIONAL: 1.5, _C.PREREQUISITE: 1.4, _C.ASSERTIVE: 1.2,
        _C.CONFLICT: 0.7, _C.PRESCRIPTIVE: 0.6,
    }),
    QueryIntent.MECHANISM: MappingProxyType({
        _C.PREREQUISITE: 1.5, _C.CONDITIONAL: 1.4, _C.ASSERTIVE: 1.0,
        _C.CONFLICT: 0.6, _C.PRESCRIPTIVE: 0.5,
    }),
    QueryIntent.EXPLORATION: MappingProxyType({c: 1.0 for c in StatementCategory}),
})

_DECISION = (
    re.compile(r"\bshould\s+(i|we)\b"),
    re.compile(r"\bwhich\s+(is|should|would)\b"),
)
_FEASIBILITY = re.compile(r"\b(does|can|is\s+it)\b.*\b(work|possible|feasible|viable)\b")
_MECHANISM = re.compile(r"\bhow\s+(does|do|can|to|would)\b")


def detect_query_intent(query: str) -> QueryIntent:
    lower = (query or "").lower()
    if any(p.search(lower) for p in _DECISION):
        return QueryIntent.DECISION
    if _FEASIBILITY.search(lower):
        return QueryIntent.FEASIBILITY
    if _MECHANISM.search(lower):
        return QueryIntent.MECHANISM
    return QueryIntent.EXPLORATION


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class UnindexedStatement:
    text: str
    category: StatementCategory
    secondary_categories: tuple[StatementCategory, ...]
    confidence: float  # mean across duplicate sightings
    query_relevance: float
    adjusted_score: float
    source_models: tuple[int, ...]
    reason: str = UNINDEXED_REASON

    def to_dict(self) -> dict:
        return fields_to_dict(self)


@dataclass(frozen=True)
class TypeSurvival:
    before_pass2: int
    after_pass2: int
    survival_rate: float


@dataclass(frozen=True)
class PrimaryCounts:
    claims: int
    conflict_edges: int
    prerequisite_edges: int
    support_edges: int
    tradeoff_edges: int


@dataclass(frozen=True)
class Gaps:
    conflicts: int
    prerequisites: int
    prescriptive: int


@dataclass(frozen=True)
class ShadowAudit:
    extraction: Mapping[str, float]
    shadow_counts: Mapping[str, int]
    primary_counts: PrimaryCounts
    gaps: Gaps
    type_survival: Mapping[str, TypeSurvival]

    def to_dict(self) -> dict:
        return fields_to_dict(self)


@dataclass(frozen=True)
class DeltaResult:
    audit: ShadowAudit
    unindexed: tuple[UnindexedStatement, ...]
    intent: QueryIntent
    processing_time_ms: float

    def to_dict(self) -> dict:
        return fields_to_dict(self)


# ============================================================
# DELTA
# ============================================================

def _build_audit(shadow: ExtractionResult, claims: list[Claim], edges) -> ShadowAudit:
    edge_types = [e.type for e in edges]
    primary = PrimaryCounts(
        claims=len(claims),
        conflict_edges=edge_types.count("conflicts"),
        prerequisite_edges=edge_types.count("prerequisite"),
        support_edges=edge_types.count("supports"),
        tradeoff_edges=edge_types.count("tradeoff"),
    )
    shadow_counts = shadow.validated.counts()
    gaps = Gaps(
        conflicts=max(0, shadow_counts["conflict"] - primary.conflict_edges),
        prerequisites=max(0, shadow_counts["prerequisite"] - primary.prerequisite_edges),
        prescriptive=shadow_counts["prescriptive"],
    )

    survival = {}
    for category in StatementCategory:
        per = shadow.stats.for_category(category)
        survival[category.value] = TypeSurvival(
            before_pass2=per.pass1,
            after_pass2=per.pass2,
            survival_rate=per.pass2 / per.pass1 if per.pass1 else 0.0,
        )

    stats = shadow.stats
    return ShadowAudit(
        extraction=MappingProxyType({
            "total_sentences": stats.total_sentences,
            "pass1_candidates": stats.pass1_candidates,
            "pass2_validated": stats.pass2_validated,
            "pass2_disqualified": stats.pass2_disqualified,
            "survival_rate": stats.survival_rate,
        }),
        shadow_counts=MappingProxyType(shadow_counts),
        primary_counts=primary,
        gaps=gaps,
        type_survival=MappingProxyType(survival),
    )


def compute_shadow_delta(
    shadow_result: ExtractionResult,
    primary_claims: Optional[Iterable[ClaimLike]],
    primary_edges: Optional[Iterable[EdgeLike]],
    user_query: str,
    *,
    thresholds: Optional[Thresholds] = None,
) -> DeltaResult:
    """
    Audit shadow extraction against the primary claim graph.

    Validated statements are grouped by normalised text so the same
    sentence from several models is checked once. Groups with no
    matching claim become UnindexedStatements, highest score first.
    """
    start = time.perf_counter()
    claims = coerce_claims(primary_claims)
    edges = coerce_edges(primary_edges)

    audit = _build_audit(shadow_result, claims, edges)
    intent = detect_query_intent(user_query)
    weights = INTENT_WEIGHTS[intent]

    groups: dict[str, list[ShadowStatement]] = {}
    for stmt in shadow_result.validated.flatten():
        groups.setdefault(normalize_text(stmt.text), []).append(stmt)

    unindexed: list[UnindexedStatement] = []
    for statements in groups.values():
        representative = statements[0]
        if find_matching_claim(representative.text, claims, thresholds) is not None:
            continue

        relevance = word_overlap(representative.text, user_query or "")
        avg_confidence = sum(s.confidence for s in statements) / len(statements)
        unindexed.append(UnindexedStatement(
            text=representative.text,
            category=representative.category,
            secondary_categories=representative.secondary_categories,
            confidence=avg_confidence,
            query_relevance=relevance,
            adjusted_score=avg_confidence * relevance * weights[representative.category],
            source_models=tuple(dict.fromkeys(s.source_index for s in statements)),
        ))

    unindexed.sort(key=lambda u: u.adjusted_score, reverse=True)

    duration_ms = round((time.perf_counter() - start) * 1000, 3)
    logger.debug(
        "Shadow delta complete",
        extra={
            "claims": len(claims),
            "edges": len(edges),
            "unindexed": len(unindexed),
            "intent": intent.value,
            "duration_ms": duration_ms,
        },
    )

    return DeltaResult(
        audit=audit,
        unindexed=tuple(unindexed),
        intent=intent,
        processing_time_ms=duration_ms,
    )
