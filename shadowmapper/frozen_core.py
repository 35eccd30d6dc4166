"""
Frozen Core — Immutable Pattern Catalog

The frozen core defines:
  1. The statement category taxonomy and its priority order
  2. Inclusion patterns (pass 1: what a category looks like)
  3. Exclusion rules (pass 2: what merely resembles a category)

This module is FROZEN. Tables are built once at import, validated,
and exposed only through tuples, frozen dataclasses and read-only
mappings. There is no registration or mutation API. A broken table
raises PatternCatalogError at import time rather than producing
silently wrong extractions later.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Mapping


class PatternCatalogError(RuntimeError):
    """A frozen table violates one of its structural invariants."""


# ============================================================
# DATA STRUCTURES
# ============================================================

class StatementCategory(str, Enum):
    """Statement categories, in descending priority order."""

    CONDITIONAL = "conditional"
    PREREQUISITE = "prerequisite"
    CONFLICT = "conflict"
    PRESCRIPTIVE = "prescriptive"
    ASSERTIVE = "assertive"


ALL_CATEGORIES: tuple[StatementCategory, ...] = tuple(StatementCategory)

HARD = "hard"
SOFT = "soft"


@dataclass(frozen=True)
class InclusionPatternSet:
    """Pass-1 patterns for one category plus its tie-break priority."""
    category: StatementCategory
    priority: int
    patterns: tuple[re.Pattern, ...]


@dataclass(frozen=True)
class ExclusionRule:
    """
    A pass-2 false-positive filter.

    Hard rules disqualify outright. Soft rules decay confidence
    and only disqualify in aggregate.
    """
    id: str
    applies_to: frozenset[StatementCategory]
    pattern: re.Pattern
    reason: str
    severity: str  # "hard" | "soft"

    def matches(self, text: str) -> bool:
        return self.pattern.search(text) is not None


def _compile(*sources: str) -> tuple[re.Pattern, ...]:
    return tuple(re.compile(s, re.IGNORECASE) for s in sources)


def _rule(
    rule_id: str,
    applies_to: tuple[StatementCategory, ...],
    pattern: str,
    reason: str,
    severity: str,
) -> ExclusionRule:
    return ExclusionRule(
        id=rule_id,
        applies_to=frozenset(applies_to),
        pattern=re.compile(pattern, re.IGNORECASE),
        reason=reason,
        severity=severity,
    )


# ============================================================
# INCLUSION PATTERNS (Pass 1)
# ============================================================

_C = StatementCategory

INCLUSION_PATTERNS: tuple[InclusionPatternSet, ...] = (
    InclusionPatternSet(
        category=_C.CONDITIONAL,
        priority=5,
        patterns=_compile(
            # Explicit conditionals
            r"\bif\b", r"\bwhen\b", r"\bunless\b",
            r"\bprovided\s+that\b", r"\bgiven\s+that\b", r"\bassuming\b",
            r"\bin\s+case\b",
            # Dependency on circumstances
            r"\bdepends?\s+on\b", r"\bdepending\s+on\b",
            r"\bcontingent\s+on\b", r"\bsubject\s+to\b",
            # Causal
            r"\bbecause\b", r"\bsince\b", r"\bdue\s+to\b",
            r"\bas\s+a\s+result\b", r"\btherefore\b", r"\bthus\b", r"\bhence\b",
            # Scope limits
            r"\bonly\s+if\b", r"\bonly\s+when\b", r"\bexcept\s+when\b",
            r"\bin\s+(some|certain|specific)\s+cases\b",
            r"\bin\s+the\s+context\s+of\b",
            r"\bfor\s+(this|that|these|those)\s+(use\s+)?case\b",
        ),
    ),
    InclusionPatternSet(
        category=_C.PREREQUISITE,
        priority=4,
        patterns=_compile(
            # Ordering
            r"\bbefore\b", r"\bfirst\b", r"\bprior\s+to\b", r"\bprecede\b",
            r"\binitially\b",
            # Requirement
            r"\brequires?\b", r"\bneeds?\b", r"\bdepends?\s+on\s+having\b",
            r"\bprerequisite\b", r"\bprecondition\b",
            # Enablement
            r"\benables?\b", r"\bunblocks?\b", r"\bunlocks?\b",
            r"\ballows?\s+for\b",
            # Execution order
            r"\bruns?\s+before\b", r"\bexecutes?\s+before\b",
            r"\bmust\s+(come|happen|occur)\s+before\b",
            # Foundations
            r"\bfoundation\s+for\b", r"\bbuilds?\s+on\b", r"\bbased\s+on\b",
            r"\bgroundwork\b",
            # Reverse direction
            r"\bafter\b", r"\bruns?\s+after\b", r"\bexecutes?\s+after\b",
            r"\bfollows?\b", r"\bsubsequent\s+to\b",
        ),
    ),
    InclusionPatternSet(
        category=_C.CONFLICT,
        priority=3,
        patterns=_compile(
            # Adversatives
            r"\bhowever\b", r"\bbut\b", r"\balthough\b", r"\bthough\b",
            r"\bdespite\b", r"\bnevertheless\b", r"\bnonetheless\b", r"\byet\b",
            # Direct opposition
            r"\bcontradicts?\b", r"\bconflicts?\s+with\b", r"\bopposes?\b",
            r"\bopposed\s+to\b", r"\bagainst\b", r"\bcounters?\b",
            r"\brebuts?\b", r"\brefutes?\b",
            # Contrast framing
            r"\bon\s+the\s+other\s+hand\b", r"\bin\s+contrast\b",
            r"\bconversely\b", r"\brather\s+than\b", r"\binstead\s+of\b",
            r"\bas\s+opposed\s+to\b",
            # Challenge
            r"\bchallenges?\s+(the|this|that)\b", r"\bdisagrees?\s+with\b",
            r"\bquestions?\s+(whether|the|this)\b", r"\bundermine\b",
            r"\bwhile\s+(true|valid|correct|this)\b",
        ),
    ),
    InclusionPatternSet(
        category=_C.PRESCRIPTIVE,
        priority=2,
        patterns=_compile(
            # Obligation
            r"\bshould\b", r"\bmust\b", r"\bcannot\b", r"\bcan'?t\b",
            r"\bought\s+to\b", r"\bneed\s+to\b", r"\bhave\s+to\b", r"\bhas\s+to\b",
            # Prohibition
            r"\bdon'?t\b", r"\bdo\s+not\b", r"\bnever\b", r"\bavoid\b",
            # Imperatives
            r"\balways\b", r"\bensure\b", r"\bmake\s+sure\b",
            # Necessity
            r"\brequired\b", r"\bmandatory\b", r"\bessential\b",
            r"\bcritical\s+to\b", r"\bimperative\b",
            # Emphasis
            r"\bsurely\b", r"\bcertainly\s+should\b",
            r"\bdefinitely\s+(should|must|need)\b",
        ),
    ),
    InclusionPatternSet(
        category=_C.ASSERTIVE,
        priority=1,
        patterns=_compile(
            r"\bis\b", r"\bare\b", r"\bwas\b", r"\bwere\b",
            r"\bdoes\b", r"\bdo\b", r"\bhas\b", r"\bhave\b",
            r"\bworks?\b", r"\bperforms?\b", r"\bprovides?\b", r"\boffers?\b",
            r"\bsupports?\b", r"\bincludes?\b", r"\bcontains?\b",
            r"\bexists?\b", r"\boccurs?\b", r"\bhappens?\b",
        ),
    ),
)


# ============================================================
# EXCLUSION RULES (Pass 2)
# ============================================================

EXCLUSION_RULES: tuple[ExclusionRule, ...] = (
    # --- Universal ---
    _rule("question_mark", ALL_CATEGORIES, r"\?$",
          "Question, not statement", HARD),
    _rule("too_short", ALL_CATEGORIES, r"^.{0,15}$",
          "Too short to be substantive claim", HARD),
    _rule("meta_let_me", ALL_CATEGORIES,
          r"^(let me|let's|i('ll| will| would)|allow me to)\b",
          "Meta-framing, not claim", HARD),
    _rule("meta_note", ALL_CATEGORIES,
          r"^(note that|it'?s worth (noting|mentioning)|keep in mind|remember that)\b",
          "Meta-commentary, not claim", HARD),
    _rule("quoted_material", ALL_CATEGORIES,
          "^([\"“”])[^\"“”]{10,}\\1$",
          "Quoted material, not original claim", HARD),

    # --- Prescriptive ---
    _rule("prescriptive_epistemic_should", (_C.PRESCRIPTIVE,),
          r"\bshould\s+(be|have\s+been)\s+(clear|obvious|noted|apparent|evident|unsurprising)\b",
          'Epistemic "should" (expectation), not prescriptive', HARD),
    _rule("prescriptive_conditional_should", (_C.PRESCRIPTIVE,),
          r"\bif\s+.{5,40}\s+should\b",
          'Conditional "should", belongs to conditional', SOFT),
    _rule("prescriptive_hypothetical", (_C.PRESCRIPTIVE,),
          r"\b(you|one)\s+could\s+(also|potentially|possibly)\b",
          "Suggestion, not prescription", SOFT),
    _rule("prescriptive_question_form", (_C.PRESCRIPTIVE,),
          r"\bshould\s+(you|we|i|they)\s+.{0,30}\?",
          "Prescriptive in question form", HARD),
    _rule("prescriptive_rhetorical", (_C.PRESCRIPTIVE,),
          r"\b(surely|certainly)\s+(you|we|one)\s+(can|would|could)\s+agree\b",
          "Rhetorical appeal, not prescription", HARD),
    _rule("prescriptive_past_tense", (_C.PRESCRIPTIVE,),
          r"\bshould\s+have\s+(been|done|had|made|used)\b",
          "Past counterfactual, not active prescription", SOFT),
    _rule("prescriptive_attributed", (_C.PRESCRIPTIVE,),
          r"\b(they|he|she|the\s+\w+)\s+(say|says|said|suggest|argues?)\s+.{0,20}should\b",
          "Attributed prescription, not asserted", SOFT),

    # --- Conflict ---
    _rule("conflict_additive_but", (_C.CONFLICT,),
          r"\b(not\s+only\s+.{5,30}\s+but\s+(also)?|but\s+also|but\s+additionally|but\s+furthermore)\b",
          'Additive "but", not adversative', HARD),
    _rule("conflict_nothing_but", (_C.CONFLICT,),
          r"\b(nothing\s+but|anything\s+but|everything\s+but|all\s+but)\b",
          '"But" as "except", not conflict', HARD),
    _rule("conflict_however_additionally", (_C.CONFLICT,),
          r"\bhowever[,;]?\s*(additionally|also|furthermore|moreover)\b",
          'Transitional "however", not adversative', HARD),
    _rule("conflict_against_physical", (_C.CONFLICT,),
          r"\bagainst\s+(the\s+)?(wall|floor|door|window|backdrop|background|grain)\b",
          'Physical "against", not opposition', HARD),
    _rule("conflict_yet_temporal", (_C.CONFLICT,),
          r"\b(not\s+yet|as\s+yet|has\s+yet\s+to)\b",
          'Temporal "yet", not adversative', HARD),
    _rule("conflict_though_concessive", (_C.CONFLICT,),
          r"\b(as\s+though|even\s+though)\b",
          "Concessive, not direct conflict", SOFT),
    _rule("conflict_narrative_although", (_C.CONFLICT,),
          r"^although\s+(he|she|they|it|the)\s+(was|were|had|did)\b",
          "Narrative framing, not substantive conflict", SOFT),

    # --- Prerequisite ---
    _rule("prereq_temporal_before", (_C.PREREQUISITE,),
          r"\b(long\s+before|just\s+before|shortly\s+before|right\s+before|the\s+day\s+before)\b",
          "Temporal narration, not dependency", HARD),
    _rule("prereq_before_meeting", (_C.PREREQUISITE,),
          r"\bbefore\s+(the\s+)?(meeting|call|event|conference|session|interview)\b",
          "Temporal reference, not technical prerequisite", SOFT),
    _rule("prereq_first_ordinal", (_C.PREREQUISITE,),
          r"^first[,;]?\s+(let\s+me|i\s+want\s+to|i('ll| will)|we\s+should\s+note)\b",
          "Ordinal framing, not prerequisite", HARD),
    _rule("prereq_first_enumeration", (_C.PREREQUISITE,),
          r"\b(first|second|third)[,;]\s+(the|we|you|there)\b",
          "List enumeration, not dependency", SOFT),
    _rule("prereq_after_temporal", (_C.PREREQUISITE,),
          r"\b(shortly\s+after|right\s+after|just\s+after|the\s+day\s+after|years?\s+after)\b",
          "Temporal narration, not dependency", HARD),
    _rule("prereq_requires_consideration", (_C.PREREQUISITE,),
          r"\brequires?\s+(careful\s+)?(consideration|thought|analysis|attention)\b",
          "Subjective requirement, not technical dependency", SOFT),
    _rule("prereq_needs_improvement", (_C.PREREQUISITE,),
          r"\bneeds?\s+(improvement|work|attention|more|further)\b",
          "Assessment, not dependency", HARD),

    # --- Conditional ---
    _rule("conditional_if_any", (_C.CONDITIONAL,),
          r"\bif\s+(any|at\s+all)\b",
          "Minimizing phrase, not conditional logic", HARD),
    _rule("conditional_if_you_will", (_C.CONDITIONAL,),
          r"\bif\s+you\s+will\b",
          "Parenthetical phrase, not conditional", HARD),
    _rule("conditional_even_if", (_C.CONDITIONAL,),
          r"\beven\s+if\b",
          "Concessive, not conditional dependency", SOFT),
    _rule("conditional_as_if", (_C.CONDITIONAL,),
          r"\bas\s+if\b",
          "Comparative, not conditional", HARD),
    _rule("conditional_when_definition", (_C.CONDITIONAL,),
          r"\b\w+\s+is\s+when\b",
          "Definition format, not conditional claim", HARD),
    _rule("conditional_because_history", (_C.CONDITIONAL,),
          r"\bbecause\s+(of\s+)?(the\s+)?(history|past|tradition|legacy)\b",
          "Historical explanation, not causal dependency", SOFT),
    _rule("conditional_since_temporal", (_C.CONDITIONAL,),
          r"\bsince\s+(19|20)\d{2}\b",
          'Temporal "since", not causal', HARD),
    _rule("conditional_when_temporal", (_C.CONDITIONAL,),
          r"\bwhen\s+(he|she|they|i|we)\s+(was|were|arrived|came|left|started)\b",
          'Temporal "when", not conditional', HARD),

    # --- Assertive ---
    _rule("assertive_definition", (_C.ASSERTIVE,),
          r"^[A-Z][a-z]+\s+(is|are)\s+(defined\s+as|a\s+type\s+of|a\s+kind\s+of|the\s+process\s+of)\b",
          "Definition format, not claim", HARD),
    _rule("assertive_example", (_C.ASSERTIVE,),
          r"\b(for\s+example|for\s+instance|e\.g\.|such\s+as|like\s+when)\b",
          "Example, not claim", SOFT),
    _rule("assertive_hypothetical", (_C.ASSERTIVE,),
          r"\b(imagine|suppose|say\s+you|let'?s\s+say|hypothetically|in\s+theory)\b",
          "Hypothetical, not assertion", HARD),
    _rule("assertive_list_fragment", (_C.ASSERTIVE,),
          r"^[-•*]\s*.{0,25}$",
          "List fragment, not complete claim", HARD),
    _rule("assertive_citation", (_C.ASSERTIVE,),
          r"\b(according\s+to|as\s+\w+\s+(says?|notes?|argues?|claims?)|.+\s+(wrote|stated|mentioned))\b",
          "Citation, not original assertion", SOFT),
    _rule("assertive_heavy_hedge", (_C.ASSERTIVE,),
          r"\b(might|could|possibly|perhaps|maybe|arguably|conceivably)\b",
          "Heavily hedged, not assertion", SOFT),
    _rule("assertive_some_believe", (_C.ASSERTIVE,),
          r"\b(some\s+(people|experts?|argue|believe|say)|many\s+(believe|think|argue)|it\s+is\s+(often\s+)?said)\b",
          "Attributed to others, not asserted", SOFT),
    _rule("assertive_rhetorical_question", (_C.ASSERTIVE,),
          r"^(what\s+if|why\s+would|how\s+can|isn'?t\s+it|wouldn'?t\s+you|don'?t\s+you\s+think)\b",
          "Rhetorical question form", HARD),
    _rule("assertive_this_means", (_C.ASSERTIVE,),
          r"^(this\s+means|in\s+other\s+words|that\s+is|i\.e\.|put\s+differently)\b",
          "Explanation or restatement, not new assertion", SOFT),
    _rule("assertive_reported_finding", (_C.ASSERTIVE,),
          r"\b(studies?|research|reports?|findings?|surveys?|data)\s+(show|indicate|suggest|reveal|demonstrate|confirm)\b",
          "Reported finding from external source, not direct assertion", SOFT),
    _rule("assertive_statistical", (_C.ASSERTIVE,),
          r"\baccording\s+to\s+(the\s+)?(data|statistics|numbers|metrics)\b",
          "Statistical reference, not asserted claim", SOFT),
)


# ============================================================
# CATALOG
# ============================================================

class PatternCatalog:
    """
    Validated, read-only view over the inclusion and exclusion tables.

    Instantiated once as a singleton. Rules are pre-bucketed per
    category at construction so pass 2 never filters the full table.
    """

    def __init__(
        self,
        inclusion: tuple[InclusionPatternSet, ...] = INCLUSION_PATTERNS,
        exclusion: tuple[ExclusionRule, ...] = EXCLUSION_RULES,
    ):
        self._validate(inclusion, exclusion)
        self._inclusion = tuple(
            sorted(inclusion, key=lambda s: s.priority, reverse=True)
        )
        self._by_category: Mapping[StatementCategory, InclusionPatternSet] = (
            MappingProxyType({s.category: s for s in inclusion})
        )
        self._exclusion = tuple(exclusion)
        self._rules_by_category: Mapping[StatementCategory, tuple[ExclusionRule, ...]] = (
            MappingProxyType({
                category: tuple(r for r in exclusion if category in r.applies_to)
                for category in StatementCategory
            })
        )

    @staticmethod
    def _validate(
        inclusion: tuple[InclusionPatternSet, ...],
        exclusion: tuple[ExclusionRule, ...],
    ) -> None:
        seen_categories = [s.category for s in inclusion]
        for category in StatementCategory:
            if category not in seen_categories:
                raise PatternCatalogError(
                    f"No inclusion patterns for category '{category.value}'"
                )
            if not any(
                s.patterns for s in inclusion if s.category == category
            ):
                raise PatternCatalogError(
                    f"Empty inclusion pattern set for '{category.value}'"
                )
        if len(set(seen_categories)) != len(seen_categories):
            raise PatternCatalogError("Duplicate inclusion set for a category")

        priorities = [s.priority for s in inclusion]
        if len(set(priorities)) != len(priorities):
            raise PatternCatalogError(
                f"Category priorities must be unique, got {priorities}"
            )

        rule_ids: set[str] = set()
        for rule in exclusion:
            if rule.severity not in (HARD, SOFT):
                raise PatternCatalogError(
                    f"Rule '{rule.id}' has invalid severity '{rule.severity}'"
                )
            if rule.id in rule_ids:
                raise PatternCatalogError(f"Duplicate exclusion rule id '{rule.id}'")
            rule_ids.add(rule.id)
            if not rule.applies_to:
                raise PatternCatalogError(f"Rule '{rule.id}' applies to no category")
            for category in rule.applies_to:
                if not isinstance(category, StatementCategory):
                    raise PatternCatalogError(
                        f"Rule '{rule.id}' references unknown category {category!r}"
                    )

        for category in StatementCategory:
            if not any(category in r.applies_to for r in exclusion):
                raise PatternCatalogError(
                    f"No exclusion rules registered for '{category.value}'"
                )

    # --- Accessors ---

    @property
    def inclusion_sets(self) -> tuple[InclusionPatternSet, ...]:
        """Inclusion sets in descending priority order."""
        return self._inclusion

    @property
    def exclusion_rules(self) -> tuple[ExclusionRule, ...]:
        return self._exclusion

    def patterns_for(self, category: StatementCategory) -> InclusionPatternSet:
        return self._by_category[StatementCategory(category)]

    def priority_of(self, category: StatementCategory) -> int:
        return self._by_category[StatementCategory(category)].priority

    def rules_for(self, category: StatementCategory) -> tuple[ExclusionRule, ...]:
        """Exclusion rules that apply to a category, in table order."""
        return self._rules_by_category[StatementCategory(category)]

    def describe(self) -> dict:
        """Plain listing of both tables, for the patterns endpoint."""
        return {
            "categories": [
                {
                    "category": s.category.value,
                    "priority": s.priority,
                    "patterns": [p.pattern for p in s.patterns],
                }
                for s in self._inclusion
            ],
            "exclusion_rules": [
                {
                    "id": r.id,
                    "applies_to": sorted(c.value for c in r.applies_to),
                    "pattern": r.pattern.pattern,
                    "reason": r.reason,
                    "severity": r.severity,
                }
                for r in self._exclusion
            ],
        }


# ============================================================
# SINGLETON: instantiated once, never mutated
# ============================================================

pattern_catalog = PatternCatalog()
