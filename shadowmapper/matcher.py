"""
Two-Pass Matcher

Pass 1 is a permissive net: every inclusion pattern of every
category is tested and the highest-priority category wins.
Pass 2 is the strict filter: only the exclusion rules registered
for the winning category run, in table order.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, Optional, Union

from shadowmapper.config import Thresholds, settings
from shadowmapper.frozen_core import (
    HARD,
    ExclusionRule,
    PatternCatalog,
    StatementCategory,
    pattern_catalog,
)

SOFT_PENALTY_ACCUMULATION = "soft_penalty_accumulation"


# ============================================================
# PASS 1
# ============================================================

@dataclass(frozen=True)
class CategoryMatch:
    """One category that fired in pass 1, with the patterns that fired."""
    category: StatementCategory
    priority: int
    matched_patterns: tuple[str, ...]


@dataclass(frozen=True)
class CandidateStatement:
    """A sentence that matched at least one category in pass 1."""
    text: str
    matches: tuple[CategoryMatch, ...]  # descending priority
    base_confidence: float

    @property
    def primary(self) -> CategoryMatch:
        return self.matches[0]

    @property
    def category(self) -> StatementCategory:
        return self.matches[0].category

    @property
    def priority(self) -> int:
        return self.matches[0].priority

    @property
    def secondary_categories(self) -> tuple[StatementCategory, ...]:
        return tuple(m.category for m in self.matches[1:])


def base_confidence(matched_count: int, thresholds: Optional[Thresholds] = None) -> float:
    t = thresholds or settings.THRESHOLDS
    return min(t.base_confidence + t.pattern_bonus * matched_count, t.max_base_confidence)


def match_pass1(
    sentence: str,
    thresholds: Optional[Thresholds] = None,
    catalog: PatternCatalog = pattern_catalog,
) -> Optional[CandidateStatement]:
    """
    Run every inclusion pattern against the sentence.

    Returns None when no category fires; such sentences are
    neither candidates nor disqualified.
    """
    matches: list[CategoryMatch] = []
    for pattern_set in catalog.inclusion_sets:
        fired = tuple(p.pattern for p in pattern_set.patterns if p.search(sentence))
        if fired:
            matches.append(CategoryMatch(
                category=pattern_set.category,
                priority=pattern_set.priority,
                matched_patterns=fired,
            ))

    if not matches:
        return None

    matches.sort(key=lambda m: m.priority, reverse=True)
    return CandidateStatement(
        text=sentence,
        matches=tuple(matches),
        base_confidence=base_confidence(len(matches[0].matched_patterns), thresholds),
    )


# ============================================================
# PASS 2
# ============================================================

@dataclass(frozen=True)
class Survived:
    adjusted_confidence: float
    soft_rule_ids: tuple[str, ...] = ()

    survived: ClassVar[bool] = True
    hard_disqualifier: ClassVar[Optional[str]] = None


@dataclass(frozen=True)
class DisqualifiedHard:
    rule: ExclusionRule

    survived: ClassVar[bool] = False
    adjusted_confidence: ClassVar[float] = 0.0
    soft_rule_ids: ClassVar[tuple[str, ...]] = ()

    @property
    def hard_disqualifier(self) -> str:
        return self.rule.id

    @property
    def disqualified_by(self) -> str:
        return self.rule.id

    @property
    def reason(self) -> str:
        return self.rule.reason


@dataclass(frozen=True)
class DisqualifiedSoft:
    adjusted_confidence: float
    soft_rule_ids: tuple[str, ...]

    survived: ClassVar[bool] = False
    hard_disqualifier: ClassVar[Optional[str]] = None
    disqualified_by: ClassVar[str] = SOFT_PENALTY_ACCUMULATION

    @property
    def reason(self) -> str:
        return f"Too many soft penalties: {', '.join(self.soft_rule_ids)}"


Pass2Result = Union[Survived, DisqualifiedHard, DisqualifiedSoft]


def validate_pass2(
    text: str,
    category: StatementCategory,
    confidence: float,
    thresholds: Optional[Thresholds] = None,
    catalog: PatternCatalog = pattern_catalog,
) -> Pass2Result:
    """
    Apply the category's exclusion rules to a pass-1 candidate.

    The first hard match disqualifies immediately. Each soft match
    multiplies confidence by the decay factor; the statement is
    disqualified only if the decayed confidence ends below the floor.
    """
    t = thresholds or settings.THRESHOLDS
    soft_hits: list[str] = []

    for rule in catalog.rules_for(category):
        if not rule.matches(text):
            continue
        if rule.severity == HARD:
            return DisqualifiedHard(rule=rule)
        soft_hits.append(rule.id)
        confidence *= t.soft_decay

    if confidence < t.confidence_floor:
        return DisqualifiedSoft(adjusted_confidence=confidence, soft_rule_ids=tuple(soft_hits))
    return Survived(adjusted_confidence=confidence, soft_rule_ids=tuple(soft_hits))
