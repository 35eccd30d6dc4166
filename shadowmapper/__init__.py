"""
Shadow Mapper — Statement Extraction and Claim-Graph Analysis

Deterministic text-to-signal pipeline for multi-model synthesis.

Public API:
  - pattern_catalog:             Frozen inclusion/exclusion tables
  - extract_shadow_statements:   Two-pass statement mining over model outputs
  - compute_shadow_delta:        Shadow statements missing from the claim graph
  - compute_structural_analysis: Leverage, risk and topology of a claim graph
  - classify_problem_shape:      Primary shape plus secondary patterns
  - select_stance:               Response stance from query wording and shape
  - compute_full_analysis:       All of the above in one call

Usage:
    from shadowmapper import extract_shadow_statements, compute_structural_analysis
    from shadowmapper import classify_problem_shape
"""

__version__ = "1.0.0"

from shadowmapper.frozen_core import (
    pattern_catalog,
    PatternCatalog,
    PatternCatalogError,
    StatementCategory,
    ExclusionRule,
    InclusionPatternSet,
)
from shadowmapper.claims import Claim, Edge
from shadowmapper.extractor import (
    extract_shadow_statements,
    BatchResponse,
    ShadowStatement,
    DisqualifiedStatement,
    ShadowMap,
    ExtractionResult,
)
from shadowmapper.delta import compute_shadow_delta, detect_query_intent, QueryIntent
from shadowmapper.structural import compute_structural_analysis, StructuralAnalysis
from shadowmapper.shape import (
    classify_problem_shape,
    select_stance,
    ProblemStructure,
    PrimaryShape,
    Stance,
)
from shadowmapper.engine import compute_full_analysis

__all__ = [
    "pattern_catalog",
    "PatternCatalog",
    "PatternCatalogError",
    "StatementCategory",
    "ExclusionRule",
    "InclusionPatternSet",
    "Claim",
    "Edge",
    "extract_shadow_statements",
    "BatchResponse",
    "ShadowStatement",
    "DisqualifiedStatement",
    "ShadowMap",
    "ExtractionResult",
    "compute_shadow_delta",
    "detect_query_intent",
    "QueryIntent",
    "compute_structural_analysis",
    "StructuralAnalysis",
    "classify_problem_shape",
    "select_stance",
    "ProblemStructure",
    "PrimaryShape",
    "Stance",
    "compute_full_analysis",
]
