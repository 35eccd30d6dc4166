"""
Full Analysis — Structure, Shape, Stance and Shadow in One Call

Runs the claim-graph analysis and the shadow pipeline side by side
and bundles the results for the synthesis prompt builder.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

from shadowmapper.claims import ClaimLike, EdgeLike, coerce_claims, coerce_edges
from shadowmapper.config import Thresholds, settings
from shadowmapper.delta import ShadowAudit, UnindexedStatement, compute_shadow_delta
from shadowmapper.extractor import BatchItem, extract_shadow_statements
from shadowmapper.logging import get_logger
from shadowmapper.serialize import fields_to_dict
from shadowmapper.shape import ProblemStructure, StanceSelection, classify_problem_shape, select_stance
from shadowmapper.structural import StructuralAnalysis, compute_structural_analysis

logger = get_logger("engine")


@dataclass(frozen=True)
class ShadowSummary:
    audit: ShadowAudit
    unindexed: tuple[UnindexedStatement, ...]
    top_unindexed: tuple[UnindexedStatement, ...]
    processing_time_ms: float


@dataclass(frozen=True)
class FullAnalysis:
    structure: StructuralAnalysis
    shape: ProblemStructure
    stance: StanceSelection
    shadow: ShadowSummary

    def to_dict(self) -> dict:
        return fields_to_dict(self)


def compute_full_analysis(
    batch: Optional[Iterable[BatchItem]],
    claims: Optional[Iterable[ClaimLike]],
    edges: Optional[Iterable[EdgeLike]],
    user_query: str,
    ghost_count: int = 0,
    *,
    model_count: Optional[int] = None,
    thresholds: Optional[Thresholds] = None,
) -> FullAnalysis:
    claim_list = coerce_claims(claims)
    edge_list = coerce_edges(edges)

    structure = compute_structural_analysis(
        claim_list, edge_list, ghost_count, model_count=model_count
    )
    shape = classify_problem_shape(structure)
    stance = select_stance(user_query, shape)

    extraction = extract_shadow_statements(batch, thresholds=thresholds)
    delta = compute_shadow_delta(
        extraction, claim_list, edge_list, user_query, thresholds=thresholds
    )

    logger.info(
        "Full analysis complete",
        extra={
            "claims": len(claim_list),
            "edges": len(edge_list),
            "shape": shape.primary.value,
            "confidence": shape.confidence,
            "stance": stance.stance.value,
            "unindexed": len(delta.unindexed),
        },
    )

    return FullAnalysis(
        structure=structure,
        shape=shape,
        stance=stance,
        shadow=ShadowSummary(
            audit=delta.audit,
            unindexed=delta.unindexed,
            top_unindexed=delta.unindexed[:settings.MAX_TOP_UNINDEXED],
            processing_time_ms=round(
                extraction.processing_time_ms + delta.processing_time_ms, 3
            ),
        ),
    )
