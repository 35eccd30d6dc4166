"""
Tests for the problem shape classifier, its secondary patterns,
stance selection, and the one-call full analysis.
"""

import pytest

from shadowmapper.engine import compute_full_analysis
from shadowmapper.shape import (
    PatternType,
    PrimaryShape,
    Stance,
    classify_problem_shape,
    select_stance,
)
from shadowmapper.structural import compute_structural_analysis


def claim(cid, supporters=(0,), role="branch", type_="factual"):
    return {
        "id": cid,
        "label": cid.upper(),
        "text": f"Claim {cid}",
        "type": type_,
        "role": role,
        "supporters": list(supporters),
    }


def edge(src, dst, kind):
    return {"from": src, "to": dst, "type": kind}


def shape_of(claims, edges, model_count=3, ghost_count=0):
    analysis = compute_structural_analysis(
        claims, edges, ghost_count, model_count=model_count
    )
    return classify_problem_shape(analysis)


TWO_PEAKS = [claim("x", supporters=[0, 1]), claim("y", supporters=[1, 2])]


class TestPrimaryShape:

    def test_forked(self):
        shape = shape_of(TWO_PEAKS, [edge("x", "y", "conflicts")])
        assert shape.primary == PrimaryShape.FORKED
        assert shape.peak_relationship == "conflicting"
        assert [p.id for p in shape.peaks] == ["x", "y"]

    def test_constrained(self):
        shape = shape_of(TWO_PEAKS, [edge("x", "y", "tradeoff")])
        assert shape.primary == PrimaryShape.CONSTRAINED
        assert shape.peak_relationship == "trading-off"

    def test_convergent_supporting_peaks(self):
        shape = shape_of(TWO_PEAKS, [edge("x", "y", "supports")])
        assert shape.primary == PrimaryShape.CONVERGENT
        assert shape.peak_relationship == "supporting"

    def test_convergent_single_peak(self):
        shape = shape_of([claim("x", supporters=[0, 1, 2]), claim("y")], [edge("y", "x", "supports")])
        assert shape.primary == PrimaryShape.CONVERGENT
        assert shape.peak_relationship == "none"

    def test_parallel(self):
        shape = shape_of(TWO_PEAKS, [])
        assert shape.primary == PrimaryShape.PARALLEL
        assert shape.peak_relationship == "independent"

    def test_sparse_without_consensus(self):
        shape = shape_of([claim("a"), claim("b", supporters=[1])], [edge("a", "b", "supports")])
        assert shape.primary == PrimaryShape.SPARSE
        assert shape.peaks == ()

    def test_consensus_below_half_is_not_a_peak(self):
        shape = shape_of([claim("a", supporters=[0, 1])], [], model_count=5)
        assert shape.primary == PrimaryShape.SPARSE

    def test_empty_graph(self):
        shape = classify_problem_shape(compute_structural_analysis([], []))
        assert shape.primary == PrimaryShape.SPARSE
        assert shape.confidence == pytest.approx(0.1)
        assert shape.patterns == ()


class TestConfidence:

    def test_decisive_shape(self):
        shape = shape_of(TWO_PEAKS, [edge("x", "y", "conflicts")])
        # signal = edges 1/3 * 0.4 + coverage 1.0 * 0.3
        signal = (1 / 3) * 0.4 + 0.3
        assert shape.signal_strength == pytest.approx(signal)
        assert shape.confidence == pytest.approx(0.85 - (1 - signal) * 0.3, abs=1e-4)

    def test_fragile_bridge_penalty(self):
        claims = [claim("a", supporters=[0, 1]), claim("b"), claim("c", supporters=[1, 2])]
        edges = [edge("a", "b", "supports"), edge("b", "c", "supports")]
        shape = shape_of(claims, edges)
        assert any("fragile bridge" in line for line in shape.evidence)
        assert shape.confidence < 0.85 - (1 - shape.signal_strength) * 0.3

    def test_confidence_bounded(self):
        shape = shape_of([claim("a")], [])
        assert 0.1 <= shape.confidence <= 1.0

    def test_evidence_ends_with_signal(self):
        shape = shape_of(TWO_PEAKS, [edge("x", "y", "tradeoff")])
        assert shape.evidence[0] == "2 peak(s) across 2 claims"
        assert shape.evidence[-1].startswith("Signal strength: ")


class TestSecondaryPatterns:

    def test_dissent_high_when_challenging_a_peak(self):
        claims = [claim("p", supporters=[0, 1, 2]), claim("c", role="challenger")]
        shape = shape_of(claims, [edge("c", "p", "conflicts")])
        dissent = shape.pattern(PatternType.DISSENT)
        assert dissent.severity == "high"
        assert dissent.data["strongest_voice"]["id"] == "c"
        assert dissent.data["strongest_voice"]["insight_type"] == "explicit_challenger"
        assert shape.has_pattern(PatternType.CHALLENGED, "medium")

    def test_fragile_foundation(self):
        claims = [claim("p", supporters=[0, 1, 2]), claim("f")]
        shape = shape_of(claims, [edge("f", "p", "prerequisite")])
        fragile = shape.pattern(PatternType.FRAGILE)
        assert fragile.severity == "medium"
        assert fragile.data["fragilities"][0]["weak_foundation"]["id"] == "f"
        dissent = shape.pattern(PatternType.DISSENT)
        assert dissent.data["strongest_voice"]["insight_type"] == "leverage_inversion"

    def test_keystone(self):
        claims = [claim("h"), claim("x"), claim("y"), claim("z")]
        edges = [edge("h", t, "supports") for t in ("x", "y", "z")]
        keystone = shape_of(claims, edges).pattern(PatternType.KEYSTONE)
        assert keystone.severity == "high"
        assert keystone.data["dependents"] == ("x", "y", "z")
        assert keystone.data["cascade_size"] == 3
        assert keystone.data["risk"] == "Single point of failure"
        assert keystone.data["keystone"]["id"] == "h"
        assert keystone.data["keystone"]["dominance"] == 10.0
        assert [d["relationship"] for d in keystone.data["dependencies"]] == ["supports"] * 3
        assert keystone.data["cascade_consequences"] == {
            "directly_affected": 3,
            "transitively_affected": 0,
            "survives": 0,
        }

    def test_chain(self):
        claims = [claim("a"), claim("b"), claim("c")]
        edges = [edge("a", "b", "prerequisite"), edge("b", "c", "prerequisite")]
        chain = shape_of(claims, edges).pattern(PatternType.CHAIN)
        assert chain.data["chain"] == ("a", "b", "c")
        assert chain.data["length"] == 3
        assert chain.severity == "high"

    def test_short_chain_ignored(self):
        claims = [claim("a"), claim("b")]
        shape = shape_of(claims, [edge("a", "b", "prerequisite")])
        assert not shape.has_pattern(PatternType.CHAIN)

    def test_conditional(self):
        claims = [claim("k", type_="conditional"), claim("x"), claim("y")]
        edges = [edge("k", "x", "supports"), edge("k", "y", "supports")]
        conditional = shape_of(claims, edges).pattern(PatternType.CONDITIONAL)
        assert conditional.severity == "medium"
        assert conditional.data["conditions"][0]["branches"] == ("x", "y")

    def test_orphaned_peaks(self):
        orphaned = shape_of(TWO_PEAKS, []).pattern(PatternType.ORPHANED)
        assert orphaned.severity == "medium"
        assert [o["id"] for o in orphaned.data["orphans"]] == ["x", "y"]

    def test_pattern_order_fixed(self):
        claims = [
            claim("p", supporters=[0, 1, 2]),
            claim("f"),
            claim("g"),
            claim("k", type_="conditional"),
        ]
        edges = [
            edge("k", "f", "prerequisite"),
            edge("f", "g", "prerequisite"),
            edge("g", "p", "prerequisite"),
        ]
        types = [p.type for p in shape_of(claims, edges).patterns]
        order = list(PatternType)
        assert types == sorted(types, key=order.index)

    def test_no_patterns_for_clean_fork(self):
        shape = shape_of(TWO_PEAKS, [edge("x", "y", "conflicts")])
        assert shape.patterns == ()


class TestShapeData:

    def test_convergent_floor(self):
        claims = [
            claim("x", supporters=[0, 1, 2]),
            claim("y", supporters=[0, 1]),
            claim("z", supporters=[1, 2]),
        ]
        edges = [edge("x", "y", "supports"), edge("y", "z", "supports")]
        shape = shape_of(claims, edges, ghost_count=2)
        assert shape.data["pattern"] == "settled"
        assert shape.data["floor_strength"] == "strong"
        assert [c["id"] for c in shape.data["floor"]] == ["x", "y", "z"]
        assert shape.data["blind_spot_count"] == 2
        assert shape.data["strongest_outlier"] is None
        assert shape.floor_assumptions == ("X", "Y", "Z")
        assert shape.central_conflict is None
        assert shape.tradeoffs == ()

    def test_convergent_outlier(self):
        claims = TWO_PEAKS + [claim("c", role="challenger")]
        edges = [edge("x", "y", "supports"), edge("c", "x", "conflicts")]
        shape = shape_of(claims, edges)
        assert shape.primary == PrimaryShape.CONVERGENT
        assert shape.data["floor_strength"] == "moderate"
        outlier = shape.data["strongest_outlier"]
        assert outlier["claim"]["id"] == "c"
        assert outlier["reason"] == "explicit_challenger"
        assert shape.data["challengers"] == ({"id": "c", "label": "C", "targets": ("x",)},)

    def test_forked_individual(self):
        claims = TWO_PEAKS + [claim("r"), claim("s", supporters=[1])]
        edges = [edge("x", "y", "conflicts"), edge("r", "s", "conflicts")]
        shape = shape_of(claims, edges)
        central = shape.data["central_conflict"]
        assert shape.data["pattern"] == "contested"
        assert central["type"] == "individual"
        assert (central["position_a"]["id"], central["position_b"]["id"]) == ("x", "y")
        assert central["stakes"] == {"choosing_a": "Accepting X", "choosing_b": "Accepting Y"}
        assert [c.id for c in shape.data["secondary_conflicts"]] == ["r_s"]
        assert shape.data["floor"]["strength"] == "absent"
        assert shape.central_conflict == "X vs Y"

    def test_forked_cluster(self):
        claims = [
            claim("t", supporters=[0, 1, 2]),
            claim("u", supporters=[0, 1]),
            claim("p", supporters=[2], role="challenger"),
        ]
        edges = [edge("t", "u", "conflicts"), edge("p", "t", "conflicts")]
        shape = shape_of(claims, edges)
        central = shape.data["central_conflict"]
        assert shape.primary == PrimaryShape.FORKED
        assert central["type"] == "cluster"
        assert central["target"]["id"] == "t"
        assert [c["id"] for c in central["challengers"]] == ["u", "p"]
        assert central["dynamics"] == "one_vs_many"
        assert shape.data["secondary_conflicts"] == ()
        assert shape.central_conflict == "Contestation of T"

    def test_constrained_tradeoffs(self):
        claims = TWO_PEAKS + [claim("d", supporters=[2])]
        edges = [edge("x", "y", "tradeoff"), edge("x", "d", "tradeoff")]
        shape = shape_of(claims, edges)
        assert shape.data["pattern"] == "tradeoff"
        assert shape.tradeoffs == ("X vs Y", "X vs D")
        assert shape.data["tradeoffs"][0]["symmetry"] == "both_consensus"
        assert shape.data["dominated_options"] == (
            {"dominated": "d", "dominated_by": "x", "reason": "Held by fewer models"},
        )
        assert shape.data["floor"] == ()

    def test_parallel_dimensions(self):
        shape = shape_of(TWO_PEAKS, [])
        assert shape.data["pattern"] == "dimensional"
        assert [d["theme"] for d in shape.data["dimensions"]] == ["X", "Y"]
        assert shape.data["dominant_dimension"] == "dim_0"
        assert shape.data["hidden_dimension"] == "dim_1"

    def test_sparse_signals(self):
        claims = [claim("a"), claim("b", supporters=[1]), claim("c", supporters=[2])]
        shape = shape_of(claims, [edge("a", "b", "supports")])
        data = shape.data
        assert data["pattern"] == "exploratory"
        assert data["strongest_signals"][0]["reason"] == "highest support"
        assert [len(c["claims"]) for c in data["loose_clusters"]] == [2]
        assert [c["id"] for c in data["isolated_claims"]] == ["c"]
        assert data["outer_boundary"]["id"] == "c"
        assert data["sparsity_reasons"] == (
            "Fewer relationships than claims",
            "No claim is held by more than one model",
            "1 claim(s) with no relationships",
        )

    def test_empty_graph_payload(self):
        shape = classify_problem_shape(compute_structural_analysis([], []))
        assert shape.data["sparsity_reasons"] == ("No claims to read",)
        assert shape.data["strongest_signals"] == ()
        assert shape.data["outer_boundary"] is None

    def test_payload_serialized(self):
        claims = TWO_PEAKS + [claim("r"), claim("s", supporters=[1])]
        edges = [edge("x", "y", "conflicts"), edge("r", "s", "conflicts")]
        out = shape_of(claims, edges).to_dict()
        assert out["central_conflict"] == "X vs Y"
        assert out["data"]["secondary_conflicts"][0]["claim_a"]["id"] == "r"
        assert out["data"]["fragilities"]["articulation_points"] == []


class TestDeterminism:

    def test_same_input_same_output(self):
        claims = [claim("p", supporters=[0, 1, 2]), claim("c", role="challenger")]
        edges = [edge("c", "p", "conflicts")]
        analysis = compute_structural_analysis(claims, edges, model_count=3)
        assert classify_problem_shape(analysis).to_dict() == classify_problem_shape(analysis).to_dict()

    def test_to_dict_plain(self):
        out = shape_of(TWO_PEAKS, []).to_dict()
        assert out["primary"] == "parallel"
        assert out["patterns"][0]["type"] == "orphaned"
        assert isinstance(out["patterns"][0]["data"], dict)


class TestStance:

    @pytest.fixture
    def forked(self):
        return shape_of(TWO_PEAKS, [edge("x", "y", "conflicts")])

    @pytest.mark.parametrize("message,stance,confidence", [
        ("Should I migrate now?", Stance.DECIDE, 0.9),
        ("Which one is best here", Stance.DECIDE, 0.7),
        ("What am I missing?", Stance.CHALLENGE, 0.85),
        ("What are my options?", Stance.EXPLORE, 0.75),
        ("Walk me through the pros and cons", Stance.EXPLORE, 0.75),
    ])
    def test_query_signal_wins(self, forked, message, stance, confidence):
        selection = select_stance(message, forked)
        assert selection.stance == stance
        assert selection.reason == "query_signal"
        assert selection.confidence == confidence

    def test_forked_default(self, forked):
        selection = select_stance("", forked)
        assert (selection.stance, selection.reason) == (Stance.DEFAULT, "shape_default")

    def test_sparse_explores(self):
        assert select_stance("", shape_of([claim("a")], [])).stance == Stance.EXPLORE

    def test_constrained_explores(self):
        shape = shape_of(TWO_PEAKS, [edge("x", "y", "tradeoff")])
        assert select_stance("tell me more", shape).stance == Stance.EXPLORE

    def test_high_dissent_challenges(self):
        claims = [claim("p", supporters=[0, 1, 2]), claim("c", role="challenger")]
        shape = shape_of(claims, [edge("c", "p", "conflicts")])
        selection = select_stance("", shape)
        assert selection.stance == Stance.CHALLENGE
        assert selection.confidence == 0.7

    def test_clean_convergence_default(self):
        shape = shape_of(TWO_PEAKS, [edge("x", "y", "supports")])
        assert select_stance("", shape).stance == Stance.DEFAULT


class TestFullAnalysis:

    def test_bundles_everything(self):
        batch = [
            {"model_index": 0, "content": "If the cache is cold, the first request will be slow."},
            {"model_index": 1, "content": "However, the deadline must be met."},
        ]
        result = compute_full_analysis(
            batch, TWO_PEAKS, [edge("x", "y", "conflicts")], "Should I warm the cache first?"
        )
        assert result.shape.primary == PrimaryShape.FORKED
        assert result.stance.stance == Stance.DECIDE
        assert len(result.shadow.unindexed) == 2
        assert result.shadow.top_unindexed == result.shadow.unindexed
        assert result.shadow.audit.gaps.conflicts == 0

    def test_top_unindexed_capped(self):
        sentences = [
            f"Service number {name} is faster than the old gateway."
            for name in ("one", "two", "three", "four", "five", "six", "seven")
        ]
        batch = [{"model_index": 0, "content": " ".join(sentences)}]
        result = compute_full_analysis(batch, [], [], "")
        assert len(result.shadow.unindexed) == 7
        assert len(result.shadow.top_unindexed) == 5

    def test_to_dict_keys(self):
        out = compute_full_analysis([], [], [], "").to_dict()
        assert set(out) == {"structure", "shape", "stance", "shadow"}
        assert out["shape"]["primary"] == "sparse"
