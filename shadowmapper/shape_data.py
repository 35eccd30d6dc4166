"""
Shape Data Builders

Each primary shape carries a payload for the synthesis prompt:

  convergent   settled floor, challengers, strongest outlier
  forked       central conflict, secondary conflicts, residual floor
  constrained  tradeoffs, dominated options, floor outside them
  parallel     one dimension per disconnected component
  sparse       strongest signals, loose clusters, sparsity reasons

Builders read only the StructuralAnalysis. Shapes whose payload
would be empty fall back to a neighbouring builder (a forked shape
with no conflicts reads as convergent, and so on), so a payload is
always produced.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import Any, Mapping, Optional

from shadowmapper.structural import (
    ClaimWithLeverage,
    ConflictCluster,
    EnrichedConflict,
    StructuralAnalysis,
)

SINGLE_POINT_OF_FAILURE = "Single point of failure"
MAX_STRONGEST_SIGNALS = 3


def _frozen(**data: Any) -> Mapping[str, Any]:
    return MappingProxyType(data)


def _floor_claim(c: ClaimWithLeverage) -> dict:
    return {
        "id": c.id,
        "label": c.label,
        "text": c.claim.text,
        "support_count": c.supporter_count,
    }


def _side(c: ClaimWithLeverage) -> dict:
    return {
        "id": c.id,
        "label": c.label,
        "text": c.claim.text,
        "support_count": c.supporter_count,
        "support_ratio": c.support_ratio,
        "role": c.role,
        "is_consensus": c.is_consensus,
        "challenges": c.claim.challenges,
    }


def _density(size: int, edge_count: int) -> float:
    return edge_count / (size * (size - 1)) if size > 1 else 0.0


# ============================================================
# CONVERGENT
# ============================================================

def _strongest_outlier(analysis: StructuralAnalysis) -> Optional[dict]:
    singular = [c for c in analysis.claims_with_leverage if not c.is_consensus]
    for reason, picked in (
        ("leverage_inversion", [c for c in singular if c.is_leverage_inversion]),
        ("explicit_challenger", [c for c in singular if c.role == "challenger"]),
        ("minority_voice", singular),
    ):
        if picked:
            top = max(picked, key=lambda c: c.leverage)
            return {
                "claim": _floor_claim(top),
                "reason": reason,
                "structural_role": top.role or "unassigned",
            }
    return None


def build_convergent_data(analysis: StructuralAnalysis) -> Mapping[str, Any]:
    floor = [c for c in analysis.claims_with_leverage if c.is_consensus]
    if len(floor) > 2:
        strength = "strong"
    elif len(floor) == 2:
        strength = "moderate"
    else:
        strength = "weak"

    challengers = []
    for c in analysis.claims_with_leverage:
        if c.role != "challenger":
            continue
        targets = tuple(dict.fromkeys(
            e.target for e in analysis.edges
            if e.source == c.id and e.type in ("conflicts", "prerequisite")
        ))
        challengers.append({"id": c.id, "label": c.label, "targets": targets})

    return _frozen(
        pattern="settled",
        floor=tuple(_floor_claim(c) for c in floor),
        floor_strength=strength,
        floor_assumptions=tuple(c.label for c in floor),
        challengers=tuple(challengers),
        blind_spot_count=analysis.ghost_analysis.count,
        strongest_outlier=_strongest_outlier(analysis),
    )


# ============================================================
# FORKED
# ============================================================

def _central_conflict(
    analysis: StructuralAnalysis,
    conflicts: tuple[EnrichedConflict, ...],
    clusters: tuple[ConflictCluster, ...],
) -> tuple[dict, set[str]]:
    if clusters:
        # Largest cluster; first one wins a tie
        top = max(clusters, key=lambda cl: len(cl.challenger_ids))
        target = analysis.claim(top.target_id)
        opponents = [analysis.claim(cid) for cid in dict.fromkeys(top.challenger_ids)]
        central = {
            "type": "cluster",
            "axis": top.axis,
            "target": _side(target),
            "challengers": tuple(_side(c) for c in opponents if c is not None),
            "common_theme": top.theme,
            "dynamics": "one_vs_many",
            "stakes": {
                "accepting_target": f"Accepting {target.label}",
                "accepting_challengers": "Breaking consensus",
            },
        }
        return central, {top.target_id, *top.challenger_ids}

    top = max(conflicts, key=lambda c: c.significance)
    central = {
        "type": "individual",
        "axis": top.axis,
        "position_a": _side(analysis.claim(top.claim_a.id)),
        "position_b": _side(analysis.claim(top.claim_b.id)),
        "dynamics": top.dynamics,
        "stakes": {"choosing_a": top.stakes[0], "choosing_b": top.stakes[1]},
    }
    return central, {top.claim_a.id, top.claim_b.id}


def build_forked_data(analysis: StructuralAnalysis) -> Mapping[str, Any]:
    conflicts = analysis.enriched_conflicts
    central, used = _central_conflict(analysis, conflicts, analysis.conflict_clusters)

    secondary = tuple(
        c for c in conflicts if c.claim_a.id not in used and c.claim_b.id not in used
    )
    floor = [
        c for c in analysis.claims_with_leverage if c.is_consensus and c.id not in used
    ]
    if len(floor) > 2:
        strength = "strong"
    elif floor:
        strength = "weak"
    else:
        strength = "absent"

    return _frozen(
        pattern="contested",
        central_conflict=central,
        secondary_conflicts=secondary,
        floor={
            "exists": bool(floor),
            "claims": tuple(_floor_claim(c) for c in floor),
            "strength": strength,
        },
        fragilities={
            "leverage_inversions": tuple(i.claim_id for i in analysis.leverage_inversions),
            "articulation_points": analysis.graph.articulation_points,
        },
    )


# ============================================================
# CONSTRAINED
# ============================================================

def build_constrained_data(analysis: StructuralAnalysis) -> Mapping[str, Any]:
    tradeoffs = []
    dominated = []
    in_tradeoff: set[str] = set()
    for pair in analysis.tradeoffs:
        a, b = analysis.claim(pair.claim_a.id), analysis.claim(pair.claim_b.id)
        in_tradeoff.update((a.id, b.id))
        tradeoffs.append({
            "id": f"{a.id}_{b.id}",
            "option_a": _side(a),
            "option_b": _side(b),
            "symmetry": pair.symmetry,
            "governing_factor": None,
        })
        if pair.symmetry == "asymmetric":
            strong, weak = (a, b) if a.is_consensus else (b, a)
            dominated.append({
                "dominated": weak.id,
                "dominated_by": strong.id,
                "reason": "Held by fewer models",
            })

    floor = [
        c for c in analysis.claims_with_leverage
        if c.is_consensus and c.id not in in_tradeoff
    ]
    return _frozen(
        pattern="tradeoff",
        tradeoffs=tuple(tradeoffs),
        dominated_options=tuple(dominated),
        floor=tuple(_floor_claim(c) for c in floor),
    )


# ============================================================
# PARALLEL
# ============================================================

def _dimension(index: int, component: tuple[str, ...], analysis: StructuralAnalysis) -> dict:
    members = [analysis.claim(cid) for cid in component]
    members = [c for c in members if c is not None]
    ids = set(component)
    internal = sum(1 for e in analysis.edges if e.source in ids and e.target in ids)
    lead = max(members, key=lambda c: c.supporter_count)
    return {
        "id": f"dim_{index}",
        "theme": lead.label,
        "claims": tuple(_floor_claim(c) for c in members),
        "cohesion": _density(len(component), internal),
        "avg_support": sum(c.support_ratio for c in members) / len(members),
    }


def build_parallel_data(analysis: StructuralAnalysis) -> Mapping[str, Any]:
    dimensions = [
        _dimension(i, comp, analysis)
        for i, comp in enumerate(analysis.graph.components)
    ]
    ranked = sorted(dimensions, key=lambda d: d["avg_support"], reverse=True)
    dominant = ranked[0]
    hidden = ranked[-1] if len(ranked) > 1 else None
    return _frozen(
        pattern="dimensional",
        dimensions=tuple(dimensions),
        dominant_dimension=dominant["id"],
        hidden_dimension=hidden["id"] if hidden else None,
        gap_count=analysis.ghost_analysis.count,
    )


# ============================================================
# SPARSE
# ============================================================

def build_sparse_data(analysis: StructuralAnalysis) -> Mapping[str, Any]:
    claims = analysis.claims_with_leverage
    ranked = sorted(claims, key=lambda c: c.supporter_count, reverse=True)
    signals = tuple(
        {**_floor_claim(c), "reason": "corroborated" if c.is_consensus else "highest support"}
        for c in ranked[:MAX_STRONGEST_SIGNALS]
    )
    clusters = tuple(
        _dimension(i, comp, analysis)
        for i, comp in enumerate(analysis.graph.components)
        if len(comp) > 1
    )
    isolated = tuple(
        {"id": c.id, "label": c.label, "text": c.claim.text}
        for c in claims if c.is_isolated
    )

    reasons = []
    if not claims:
        reasons.append("No claims to read")
    if claims and len(analysis.edges) < len(claims):
        reasons.append("Fewer relationships than claims")
    if claims and not any(c.is_consensus for c in claims):
        reasons.append("No claim is held by more than one model")
    if isolated:
        reasons.append(f"{len(isolated)} claim(s) with no relationships")

    outer = None
    if isolated:
        lowest = min(
            (c for c in claims if c.is_isolated), key=lambda c: c.supporter_count
        )
        outer = {
            **_floor_claim(lowest),
            "distance_reason": "No relationships to other claims",
        }

    return _frozen(
        pattern="exploratory",
        strongest_signals=signals,
        loose_clusters=clusters,
        isolated_claims=isolated,
        signal_strength=analysis.signal_strength,
        outer_boundary=outer,
        sparsity_reasons=tuple(reasons),
    )


# ============================================================
# KEYSTONE
# ============================================================

def build_keystone_data(analysis: StructuralAnalysis) -> Optional[Mapping[str, Any]]:
    """Payload for the hub claim, or None when the graph has no hub."""
    hub = analysis.claim(analysis.graph.hub_claim) if analysis.graph.hub_claim else None
    if hub is None:
        return None

    dependencies = tuple(dict.fromkeys(
        (e.target, e.type) for e in analysis.edges
        if e.source == hub.id and e.type in ("supports", "prerequisite")
    ))
    cascade = analysis.cascade_for(hub.id)
    transitive = cascade.dependent_ids if cascade is not None else ()
    direct = {target for target, _ in dependencies}
    affected = direct | set(transitive)

    return _frozen(
        keystone={**_side(hub), "dominance": analysis.graph.hub_dominance},
        dependencies=tuple(
            {"id": target, "label": _label(analysis, target), "relationship": kind}
            for target, kind in dependencies
        ),
        cascade_size=len(transitive),
        cascade_consequences={
            "directly_affected": len(direct),
            "transitively_affected": len(set(transitive) - direct),
            "survives": sum(
                1 for c in analysis.claims_with_leverage
                if c.id != hub.id and c.id not in affected
            ),
        },
        risk=SINGLE_POINT_OF_FAILURE,
    )


def _label(analysis: StructuralAnalysis, claim_id: str) -> str:
    c = analysis.claim(claim_id)
    return c.label if c is not None else claim_id
