"""
Problem Shape Classifier

Reduces a StructuralAnalysis to a coarse topology label:

  convergent   peaks agree or there is a single peak
  forked       peaks conflict
  constrained  peaks trade off against each other
  parallel     peaks sit in separate components
  sparse       no peak, or nothing to read

A "peak" is a corroborated claim (two or more supporters) held by
at least half of the models. Secondary patterns are tagged on top
of the primary shape in a fixed order. Everything here is a pure
decision table over metrics the analyzer already computed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from shadowmapper.logging import get_logger
from shadowmapper.serialize import fields_to_dict
from shadowmapper.shape_data import (
    build_constrained_data,
    build_convergent_data,
    build_forked_data,
    build_keystone_data,
    build_parallel_data,
    build_sparse_data,
)
from shadowmapper.structural import (
    ClaimWithLeverage,
    StructuralAnalysis,
)

logger = get_logger("shape")

PEAK_MIN_SUPPORT_RATIO = 0.5
MIN_CHAIN_LENGTH = 3
DECISIVE_BASE_CONFIDENCE = 0.85
SPARSE_BASE_CONFIDENCE = 0.5
MIN_CONFIDENCE = 0.1


class PrimaryShape(str, Enum):
    CONVERGENT = "convergent"
    FORKED = "forked"
    CONSTRAINED = "constrained"
    PARALLEL = "parallel"
    SPARSE = "sparse"


class PatternType(str, Enum):
    DISSENT = "dissent"
    KEYSTONE = "keystone"
    CHAIN = "chain"
    FRAGILE = "fragile"
    CHALLENGED = "challenged"
    CONDITIONAL = "conditional"
    ORPHANED = "orphaned"


@dataclass(frozen=True)
class PeakRef:
    id: str
    label: str
    support_ratio: float


@dataclass(frozen=True)
class SecondaryPattern:
    type: PatternType
    severity: str  # high | medium | low
    data: Mapping[str, Any]

    def to_dict(self) -> dict:
        return fields_to_dict(self)


@dataclass(frozen=True)
class ProblemStructure:
    primary: PrimaryShape
    confidence: float
    patterns: tuple[SecondaryPattern, ...]
    peaks: tuple[PeakRef, ...]
    peak_relationship: str  # conflicting | trading-off | supporting | independent | none
    evidence: tuple[str, ...]
    signal_strength: float
    data: Mapping[str, Any] = field(default_factory=lambda: MappingProxyType({}))
    floor_assumptions: tuple[str, ...] = ()
    central_conflict: Optional[str] = None
    tradeoffs: tuple[str, ...] = ()

    def has_pattern(self, pattern_type: PatternType, severity: Optional[str] = None) -> bool:
        return any(
            p.type == pattern_type and (severity is None or p.severity == severity)
            for p in self.patterns
        )

    def pattern(self, pattern_type: PatternType) -> Optional[SecondaryPattern]:
        for p in self.patterns:
            if p.type == pattern_type:
                return p
        return None

    def to_dict(self) -> dict:
        return fields_to_dict(self)


def _frozen(**data: Any) -> Mapping[str, Any]:
    return MappingProxyType(data)


def _pct(n: float) -> str:
    return f"{round(n * 100)}%"


# ============================================================
# PEAKS
# ============================================================

def find_peaks(analysis: StructuralAnalysis) -> list[ClaimWithLeverage]:
    peaks = [
        c for c in analysis.claims_with_leverage
        if c.is_consensus and c.support_ratio >= PEAK_MIN_SUPPORT_RATIO
    ]
    return sorted(peaks, key=lambda c: c.support_ratio, reverse=True)


def peak_relationship(analysis: StructuralAnalysis, peak_ids: set[str]) -> str:
    if len(peak_ids) < 2:
        return "none"
    between = [
        e for e in analysis.edges if e.source in peak_ids and e.target in peak_ids
    ]
    kinds = {e.type for e in between}
    if "conflicts" in kinds:
        return "conflicting"
    if "tradeoff" in kinds:
        return "trading-off"
    if kinds & {"supports", "prerequisite"}:
        return "supporting"
    return "independent"


def _decide_primary(analysis: StructuralAnalysis, peaks: list[ClaimWithLeverage], relationship: str) -> PrimaryShape:
    if not peaks:
        return PrimaryShape.SPARSE
    if relationship == "conflicting":
        return PrimaryShape.FORKED
    if relationship == "trading-off":
        return PrimaryShape.CONSTRAINED
    if relationship == "independent":
        peak_ids = {p.id for p in peaks}
        holding = [c for c in analysis.graph.components if peak_ids & set(c)]
        if len(holding) >= 2:
            return PrimaryShape.PARALLEL
    return PrimaryShape.CONVERGENT


# ============================================================
# SECONDARY PATTERNS
# ============================================================

def _dissent(analysis: StructuralAnalysis, peak_ids: set[str]) -> Optional[SecondaryPattern]:
    voices = []
    voice_types = []
    for c in analysis.claims_with_leverage:
        if c.is_consensus:
            continue
        if c.is_leverage_inversion:
            insight = "leverage_inversion"
        elif c.role == "challenger":
            insight = "explicit_challenger"
        else:
            continue
        targets = tuple(
            e.target for e in analysis.edges
            if e.source == c.id and e.type in ("conflicts", "prerequisite")
        )
        voice_types.append(c.claim.type)
        voices.append({
            "id": c.id,
            "label": c.label,
            "text": c.claim.text,
            "support_ratio": c.support_ratio,
            "insight_type": insight,
            "targets": targets,
            "insight_score": round(c.leverage * (1 - c.support_ratio), 4),
        })

    if not voices:
        return None

    strongest = max(voices, key=lambda v: v["insight_score"])
    hits_peak = any(t in peak_ids for t in strongest["targets"])
    peak_types = {
        c.claim.type for c in analysis.claims_with_leverage if c.id in peak_ids
    }
    suppressed = tuple(dict.fromkeys(
        t for t in voice_types if t and t not in peak_types
    ))

    if hits_peak:
        severity = "high"
    elif any(v["insight_type"] == "leverage_inversion" for v in voices):
        severity = "medium"
    else:
        severity = "low"

    why = (
        "Bears directly on the majority position"
        if hits_peak else
        "Structurally important but held by a single model"
    )
    return SecondaryPattern(
        type=PatternType.DISSENT,
        severity=severity,
        data=_frozen(
            voices=tuple(voices),
            strongest_voice={**strongest, "why_it_matters": why},
            suppressed_dimensions=suppressed,
        ),
    )


def _keystone(analysis: StructuralAnalysis) -> Optional[SecondaryPattern]:
    hub_id = analysis.graph.hub_claim
    if hub_id is None:
        return None
    hub = analysis.claim(hub_id)
    cascade = analysis.cascade_for(hub_id)
    if cascade is not None:
        dependents = cascade.dependent_ids
    else:
        dependents = tuple(dict.fromkeys(
            e.target for e in analysis.edges
            if e.source == hub_id and e.type in ("supports", "prerequisite")
        ))

    if not hub.is_consensus:
        severity = "high"
    elif len(dependents) >= 3:
        severity = "medium"
    else:
        severity = "low"

    return SecondaryPattern(
        type=PatternType.KEYSTONE,
        severity=severity,
        data=_frozen(**{
            **build_keystone_data(analysis),
            "dependents": dependents,
            "cascade_size": len(dependents),
        }),
    )


def _chain(analysis: StructuralAnalysis) -> Optional[SecondaryPattern]:
    chain = analysis.graph.longest_chain
    if len(chain) < MIN_CHAIN_LENGTH:
        return None
    weak = tuple(cid for cid in chain if not analysis.claim(cid).is_consensus)
    severity = "high" if len(weak) >= 2 else "medium" if weak else "low"
    return SecondaryPattern(
        type=PatternType.CHAIN,
        severity=severity,
        data=_frozen(chain=chain, length=len(chain), weak_links=weak),
    )


def _fragile(analysis: StructuralAnalysis, peak_ids: set[str]) -> Optional[SecondaryPattern]:
    fragilities = []
    for e in analysis.edges:
        if e.type != "prerequisite" or e.target not in peak_ids:
            continue
        foundation = analysis.claim(e.source)
        if foundation is None or foundation.is_consensus:
            continue
        peak = analysis.claim(e.target)
        fragilities.append({
            "peak": {"id": peak.id, "label": peak.label},
            "weak_foundation": {
                "id": foundation.id,
                "label": foundation.label,
                "support_ratio": foundation.support_ratio,
            },
        })
    if not fragilities:
        return None
    return SecondaryPattern(
        type=PatternType.FRAGILE,
        severity="high" if len(fragilities) > 1 else "medium",
        data=_frozen(fragilities=tuple(fragilities)),
    )


def _challenged(analysis: StructuralAnalysis, peak_ids: set[str]) -> Optional[SecondaryPattern]:
    challenges = []
    inverted = False
    for e in analysis.edges:
        if e.type not in ("conflicts", "prerequisite") or e.target not in peak_ids:
            continue
        challenger = analysis.claim(e.source)
        if challenger is None or challenger.role != "challenger":
            continue
        target = analysis.claim(e.target)
        inverted = inverted or challenger.is_leverage_inversion
        challenges.append({
            "challenger": {
                "id": challenger.id,
                "label": challenger.label,
                "support_ratio": challenger.support_ratio,
            },
            "target": {
                "id": target.id,
                "label": target.label,
                "support_ratio": target.support_ratio,
            },
        })
    if not challenges:
        return None
    return SecondaryPattern(
        type=PatternType.CHALLENGED,
        severity="high" if inverted else "medium",
        data=_frozen(challenges=tuple(challenges)),
    )


def _conditional(analysis: StructuralAnalysis) -> Optional[SecondaryPattern]:
    conditions = []
    for c in analysis.claims_with_leverage:
        if c.claim.type != "conditional":
            continue
        branches = tuple(dict.fromkeys(e.target for e in analysis.edges if e.source == c.id))
        conditions.append({"id": c.id, "label": c.label, "branches": branches})
    if not conditions:
        return None
    forks = any(len(cond["branches"]) >= 2 for cond in conditions)
    return SecondaryPattern(
        type=PatternType.CONDITIONAL,
        severity="medium" if forks else "low",
        data=_frozen(conditions=tuple(conditions)),
    )


def _orphaned(analysis: StructuralAnalysis, peak_ids: set[str]) -> Optional[SecondaryPattern]:
    orphans = []
    for cid in analysis.isolated_claims:
        c = analysis.claim(cid)
        if not c.is_consensus:
            continue
        orphans.append({
            "id": c.id,
            "label": c.label,
            "support_ratio": c.support_ratio,
            "reason": "corroborated claim with no relationships",
        })
    if not orphans:
        return None
    return SecondaryPattern(
        type=PatternType.ORPHANED,
        severity="medium" if any(o["id"] in peak_ids for o in orphans) else "low",
        data=_frozen(orphans=tuple(orphans)),
    )


def detect_secondary_patterns(analysis: StructuralAnalysis, peak_ids: set[str]) -> list[SecondaryPattern]:
    candidates = (
        _dissent(analysis, peak_ids),
        _keystone(analysis),
        _chain(analysis),
        _fragile(analysis, peak_ids),
        _challenged(analysis, peak_ids),
        _conditional(analysis),
        _orphaned(analysis, peak_ids),
    )
    return [p for p in candidates if p is not None]


# ============================================================
# SHAPE DATA
# ============================================================

def build_shape_data(analysis: StructuralAnalysis, primary: PrimaryShape) -> Mapping[str, Any]:
    """Payload for the primary shape, falling back when its inputs are missing."""
    if primary == PrimaryShape.CONVERGENT:
        return build_convergent_data(analysis)
    if primary == PrimaryShape.FORKED:
        if not analysis.enriched_conflicts:
            return build_convergent_data(analysis)
        return build_forked_data(analysis)
    if primary == PrimaryShape.CONSTRAINED:
        if analysis.tradeoffs:
            return build_constrained_data(analysis)
        if analysis.enriched_conflicts:
            return build_forked_data(analysis)
        return build_sparse_data(analysis)
    if primary == PrimaryShape.PARALLEL:
        if analysis.graph.component_count < 2:
            return build_convergent_data(analysis)
        return build_parallel_data(analysis)
    return build_sparse_data(analysis)


def _summaries(data: Mapping[str, Any]) -> tuple[tuple[str, ...], Optional[str], tuple[str, ...]]:
    floor_assumptions = tuple(data.get("floor_assumptions", ()))
    central = data.get("central_conflict")
    tradeoffs = tuple(
        t["governing_factor"] or f"{t['option_a']['label']} vs {t['option_b']['label']}"
        for t in data.get("tradeoffs", ())
    )
    return floor_assumptions, central["axis"] if central else None, tradeoffs


# ============================================================
# CLASSIFIER
# ============================================================

def _evidence(
    analysis: StructuralAnalysis,
    primary: PrimaryShape,
    peaks: list[ClaimWithLeverage],
    warnings: list[str],
) -> list[str]:
    ratios = analysis.ratios
    lines = [f"{len(peaks)} peak(s) across {analysis.landscape.claim_count} claims"]
    if primary == PrimaryShape.CONVERGENT:
        lines.append(f"Concentration: {_pct(ratios.concentration)}")
        lines.append(f"Convergence ratio: {_pct(analysis.landscape.convergence_ratio)}")
    elif primary == PrimaryShape.FORKED:
        both = sum(1 for c in analysis.conflicts if c.is_both_consensus)
        lines.append(f"{both} conflict(s) between corroborated claims")
        lines.append(f"Tension: {_pct(ratios.tension)}")
    elif primary == PrimaryShape.CONSTRAINED:
        lines.append(f"{len(analysis.tradeoffs)} tradeoff(s)")
        lines.append(f"Tension: {_pct(ratios.tension)}")
    elif primary == PrimaryShape.PARALLEL:
        lines.append(f"{analysis.graph.component_count} disconnected cluster(s)")
        lines.append(f"Fragmentation: {_pct(ratios.fragmentation)}")
    else:
        lines.append(f"{len(analysis.edges)} edge(s), no corroborated majority claim")
    lines.extend(warnings)
    lines.append(f"Signal strength: {_pct(analysis.signal_strength)}")
    return lines


def classify_problem_shape(analysis: StructuralAnalysis) -> ProblemStructure:
    """
    Classify the structural analysis into a primary shape.

    Deterministic: identical analyses always yield identical shape,
    confidence and pattern list.
    """
    peaks = find_peaks(analysis)
    peak_ids = {p.id for p in peaks}
    relationship = peak_relationship(analysis, peak_ids)
    primary = _decide_primary(analysis, peaks, relationship)
    patterns = detect_secondary_patterns(analysis, peak_ids) if analysis.claims_with_leverage else []

    if not analysis.claims_with_leverage:
        base = MIN_CONFIDENCE
    elif primary == PrimaryShape.SPARSE:
        base = SPARSE_BASE_CONFIDENCE
    else:
        base = DECISIVE_BASE_CONFIDENCE

    penalty = (1 - analysis.signal_strength) * 0.3
    warnings = []
    fragile_bridges = [
        cid for cid in analysis.graph.articulation_points
        if not analysis.claim(cid).is_consensus
    ]
    if fragile_bridges:
        penalty += 0.2
        warnings.append(f"{len(fragile_bridges)} fragile bridge(s)")

    confidence = max(MIN_CONFIDENCE, min(1.0, base - penalty))

    data = build_shape_data(analysis, primary)
    floor_assumptions, central_conflict, tradeoffs = _summaries(data)

    structure = ProblemStructure(
        primary=primary,
        confidence=round(confidence, 4),
        patterns=tuple(patterns),
        peaks=tuple(PeakRef(p.id, p.label, p.support_ratio) for p in peaks),
        peak_relationship=relationship,
        evidence=tuple(_evidence(analysis, primary, peaks, warnings)),
        signal_strength=analysis.signal_strength,
        data=data,
        floor_assumptions=floor_assumptions,
        central_conflict=central_conflict,
        tradeoffs=tradeoffs,
    )
    logger.debug(
        "Shape classified",
        extra={"shape": primary.value, "confidence": structure.confidence},
    )
    return structure


# ============================================================
# STANCE SELECTION
# ============================================================

class Stance(str, Enum):
    DEFAULT = "default"
    DECIDE = "decide"
    EXPLORE = "explore"
    CHALLENGE = "challenge"


@dataclass(frozen=True)
class StanceSelection:
    stance: Stance
    reason: str  # query_signal | shape_default
    confidence: float

    def to_dict(self) -> dict:
        return fields_to_dict(self)


_STANCE_SIGNALS: tuple[tuple[Stance, float, tuple[re.Pattern, ...]], ...] = (
    (Stance.DECIDE, 0.9, tuple(re.compile(p) for p in (
        r"\bshould i\b",
        r"\bjust tell me\b",
        r"\bwhat do i do\b",
        r"\bmake (the |a )?decision\b",
        r"\bpick (one|the best)\b",
    ))),
    (Stance.DECIDE, 0.7, tuple(re.compile(p) for p in (
        r"\bwhich (one|should)\b",
        r"\bchoose\b",
        r"\bbest\b",
        r"\brecommend\b",
    ))),
    (Stance.CHALLENGE, 0.85, tuple(re.compile(p) for p in (
        r"\bwhat('s| is) wrong\b",
        r"\bchallenge\b",
        r"\bdevil'?s advocate\b",
        r"\bpoke holes\b",
        r"\bstress test\b",
        r"\bwhat am i missing\b",
        r"\bblind spot",
        r"\bweak(ness|point)",
        r"\bcritique\b",
        r"\bpush back\b",
        r"\battack\b",
    ))),
    (Stance.EXPLORE, 0.75, tuple(re.compile(p) for p in (
        r"\bwhat are (the |my )?options\b",
        r"\bexplore\b",
        r"\bmap out\b",
        r"\bpossibilities\b",
        r"\balternatives\b",
        r"\bwhat else\b",
        r"\btrade-?offs?\b",
        r"\bpros and cons\b",
        r"\bcompare\b",
        r"\bbreak(down| it down)\b",
        r"\bwalk me through\b",
    ))),
)


def _shape_default(shape: ProblemStructure) -> tuple[Stance, float]:
    if shape.primary == PrimaryShape.SPARSE:
        return Stance.EXPLORE, 0.7
    if shape.primary == PrimaryShape.CONSTRAINED:
        return Stance.EXPLORE, 0.75
    if shape.primary == PrimaryShape.PARALLEL:
        return Stance.EXPLORE, 0.65
    if shape.primary == PrimaryShape.FORKED:
        return Stance.DEFAULT, 0.6
    if shape.has_pattern(PatternType.DISSENT, "high"):
        return Stance.CHALLENGE, 0.7
    if shape.has_pattern(PatternType.FRAGILE) or shape.has_pattern(PatternType.KEYSTONE):
        return Stance.CHALLENGE, 0.6
    return Stance.DEFAULT, 0.75


def select_stance(user_message: str, shape: ProblemStructure) -> StanceSelection:
    """Explicit wording in the message wins; otherwise the shape decides."""
    lower = (user_message or "").lower()
    for stance, confidence, patterns in _STANCE_SIGNALS:
        if any(p.search(lower) for p in patterns):
            return StanceSelection(stance, "query_signal", confidence)

    stance, confidence = _shape_default(shape)
    return StanceSelection(stance, "shape_default", confidence)
