"""
Structural Analyzer — Leverage, Risk and Topology of a Claim Graph

Consumes the claim/edge graph built upstream and computes:
  1. Per-claim leverage (four additive factors) and leverage inversions
  2. Cascade risks along prerequisite chains
  3. Conflict and tradeoff pairs with consensus tags
  4. Convergence points and isolated claims
  5. Ghost summary (uncovered areas vs. existing challengers)
  6. Enriched conflicts and conflict clusters
  7. Graph topology, core ratios, landscape and signal strength

Pure function of its inputs. Edges that reference unknown claim
ids are ignored by the topology passes. All graph walks are
iterative, so chain length is bounded by memory, not the stack.
"""

from __future__ import annotations

import math
from collections import Counter, defaultdict, deque
from dataclasses import dataclass, replace
from functools import cached_property
from types import MappingProxyType
from typing import Iterable, Mapping, Optional

from shadowmapper.claims import Claim, ClaimLike, Edge, EdgeLike, coerce_claims, coerce_edges
from shadowmapper.logging import get_logger
from shadowmapper.serialize import fields_to_dict

logger = get_logger("structural")

# A second model's agreement is what makes a claim corroborated
CONSENSUS_MIN_SUPPORTERS = 2
INVERSION_MIN_LEVERAGE = 4.0
INVERSION_MIN_CONNECTIVITY = 2.0
SYMMETRIC_SUPPORT_DIFF = 0.15
TOP_SUPPORT_SHARE = 0.3

# Simple-path expansions allowed when a prerequisite cycle forces
# an exhaustive search for the longest chain
CHAIN_SEARCH_BUDGET = 50_000

# Conflict significance bonuses
BOTH_CONSENSUS_BONUS = 2
KEYSTONE_BONUS = 3

ROLE_WEIGHTS = MappingProxyType({
    "challenger": 4.0,
    "anchor": 2.0,
    "branch": 1.0,
    "supplement": 0.5,
})
DEFAULT_ROLE_WEIGHT = 1.0

# Inversion reasons, in classification priority
CHALLENGER_PREREQUISITE_TO_CONSENSUS = "challenger_prerequisite_to_consensus"
SINGULAR_FOUNDATION = "singular_foundation"
HIGH_CONNECTIVITY_LOW_SUPPORT = "high_connectivity_low_support"


def is_consensus(supporter_count: int) -> bool:
    return supporter_count >= CONSENSUS_MIN_SUPPORTERS


def top_n_count(total: int, share: float = TOP_SUPPORT_SHARE) -> int:
    """Size of the "top share" slice; never less than one."""
    return max(1, math.ceil(round(total * share, 9)))


def _clamp01(n: float) -> float:
    return max(0.0, min(1.0, n))


# ============================================================
# DATA STRUCTURES
# ============================================================

@dataclass(frozen=True)
class ClaimRef:
    id: str
    label: str
    supporter_count: int


@dataclass(frozen=True)
class LeverageFactors:
    support_weight: float
    role_weight: float
    connectivity_weight: float
    position_weight: float

    @property
    def total(self) -> float:
        return (
            self.support_weight + self.role_weight
            + self.connectivity_weight + self.position_weight
        )


@dataclass(frozen=True)
class ClaimWithLeverage:
    claim: Claim
    support_ratio: float
    leverage: float
    factors: LeverageFactors
    in_degree: int
    out_degree: int
    is_chain_root: bool
    is_chain_terminal: bool
    is_isolated: bool
    is_leverage_inversion: bool
    keystone_score: float = 0.0
    support_skew: float = 0.0
    evidence_gap_score: float = 0.0

    @property
    def id(self) -> str:
        return self.claim.id

    @property
    def label(self) -> str:
        return self.claim.label

    @property
    def role(self) -> str:
        return self.claim.role

    @property
    def supporter_count(self) -> int:
        return self.claim.support_count

    @property
    def is_consensus(self) -> bool:
        return is_consensus(self.claim.support_count)

    def ref(self) -> ClaimRef:
        return ClaimRef(self.id, self.label, self.supporter_count)

    def to_dict(self) -> dict:
        out = self.claim.to_dict()
        out.update(fields_to_dict(self))
        del out["claim"]
        return out


@dataclass(frozen=True)
class LeverageInversion:
    claim_id: str
    claim_label: str
    supporter_count: int
    reason: str
    affected_claims: tuple[str, ...]


@dataclass(frozen=True)
class CascadeRisk:
    source_id: str
    source_label: str
    dependent_ids: tuple[str, ...]
    dependent_labels: tuple[str, ...]
    depth: int


@dataclass(frozen=True)
class ConflictPair:
    claim_a: ClaimRef
    claim_b: ClaimRef
    consensus: str  # both_consensus | both_singular | mixed
    dynamics: str   # symmetric | asymmetric

    @property
    def is_both_consensus(self) -> bool:
        return self.consensus == "both_consensus"


@dataclass(frozen=True)
class EnrichedConflict:
    """
    A conflict edge with its stakes and significance spelled out.

    Sides are ordered by claim id so the same pair always reads the
    same way regardless of edge direction. ``cluster_id`` is set when
    the conflict belongs to a ConflictCluster.
    """
    id: str
    claim_a: ClaimRef
    claim_b: ClaimRef
    axis: str
    explicit_axis: Optional[str]
    combined_support: int
    support_delta: int
    dynamics: str  # symmetric | asymmetric
    is_both_consensus: bool
    is_consensus_vs_singular: bool
    involves_challenger: bool
    involves_anchor: bool
    involves_keystone: bool
    stakes: tuple[str, str]
    significance: int
    cluster_id: Optional[str] = None

    def involves(self, claim_id: str) -> bool:
        return claim_id in (self.claim_a.id, self.claim_b.id)

    def opponent_of(self, claim_id: str) -> str:
        return self.claim_b.id if self.claim_a.id == claim_id else self.claim_a.id


@dataclass(frozen=True)
class ConflictCluster:
    id: str
    axis: str
    target_id: str
    challenger_ids: tuple[str, ...]
    theme: str


@dataclass(frozen=True)
class TradeoffPair:
    claim_a: ClaimRef
    claim_b: ClaimRef
    symmetry: str  # both_consensus | both_singular | asymmetric


@dataclass(frozen=True)
class ConvergencePoint:
    target_id: str
    target_label: str
    source_ids: tuple[str, ...]
    source_labels: tuple[str, ...]
    edge_type: str


@dataclass(frozen=True)
class GhostAnalysis:
    count: int
    may_extend_challenger: bool
    challenger_ids: tuple[str, ...]


@dataclass(frozen=True)
class GraphAnalysis:
    component_count: int
    components: tuple[tuple[str, ...], ...]
    longest_chain: tuple[str, ...]
    chain_count: int
    hub_claim: Optional[str]
    hub_dominance: float
    articulation_points: tuple[str, ...]
    cluster_cohesion: float = 1.0
    local_coherence: float = 0.0


@dataclass(frozen=True)
class CoreRatios:
    concentration: float
    alignment: float
    tension: float
    fragmentation: float
    depth: float


@dataclass(frozen=True)
class LandscapeMetrics:
    claim_count: int
    model_count: int
    type_distribution: Mapping[str, int]
    role_distribution: Mapping[str, int]
    dominant_type: Optional[str]
    dominant_role: Optional[str]
    convergence_ratio: float


@dataclass(frozen=True)
class StructuralAnalysis:
    edges: tuple[Edge, ...]
    claims_with_leverage: tuple[ClaimWithLeverage, ...]
    leverage_inversions: tuple[LeverageInversion, ...]
    cascade_risks: tuple[CascadeRisk, ...]
    conflicts: tuple[ConflictPair, ...]
    tradeoffs: tuple[TradeoffPair, ...]
    convergence_points: tuple[ConvergencePoint, ...]
    isolated_claims: tuple[str, ...]
    ghost_analysis: GhostAnalysis
    graph: GraphAnalysis
    ratios: CoreRatios
    landscape: LandscapeMetrics
    signal_strength: float
    enriched_conflicts: tuple[EnrichedConflict, ...] = ()
    conflict_clusters: tuple[ConflictCluster, ...] = ()

    @cached_property
    def _claims_by_id(self) -> dict[str, ClaimWithLeverage]:
        return {c.id: c for c in self.claims_with_leverage}

    @cached_property
    def _cascades_by_source(self) -> dict[str, CascadeRisk]:
        return {r.source_id: r for r in self.cascade_risks}

    def claim(self, claim_id: str) -> Optional[ClaimWithLeverage]:
        return self._claims_by_id.get(claim_id)

    def cascade_for(self, claim_id: str) -> Optional[CascadeRisk]:
        return self._cascades_by_source.get(claim_id)

    def to_dict(self) -> dict:
        return fields_to_dict(self)


# ============================================================
# LEVERAGE
# ============================================================

def compute_leverage_factors(claim: Claim, edges: list[Edge], model_count: int) -> LeverageFactors:
    outgoing = [e for e in edges if e.source == claim.id]
    incoming = [e for e in edges if e.target == claim.id]

    prereq_out = sum(1 for e in outgoing if e.type == "prerequisite")
    prereq_in = sum(1 for e in incoming if e.type == "prerequisite")
    conflict_edges = sum(1 for e in outgoing + incoming if e.type == "conflicts")
    other_edges = sum(
        1 for e in outgoing + incoming if e.type not in ("prerequisite", "conflicts")
    )

    return LeverageFactors(
        support_weight=claim.support_count / max(model_count, 1) * 2,
        role_weight=ROLE_WEIGHTS.get(claim.role, DEFAULT_ROLE_WEIGHT),
        connectivity_weight=2 * prereq_out + prereq_in + 1.5 * conflict_edges + 0.25 * other_edges,
        position_weight=2.0 if prereq_out and not prereq_in else 0.0,
    )


def classify_inversion(
    claim: Claim,
    factors: LeverageFactors,
    edges: list[Edge],
    support_by_id: Mapping[str, int],
) -> Optional[tuple[str, tuple[str, ...]]]:
    """Reason and affected ids for a low-support, high-leverage claim, or None."""
    prereq_targets = tuple(
        e.target for e in edges if e.type == "prerequisite" and e.source == claim.id
    )
    consensus_targets = tuple(
        t for t in prereq_targets if is_consensus(support_by_id.get(t, 0))
    )

    if claim.role == "challenger" and consensus_targets:
        return CHALLENGER_PREREQUISITE_TO_CONSENSUS, consensus_targets
    if prereq_targets:
        return SINGULAR_FOUNDATION, prereq_targets
    if factors.connectivity_weight > INVERSION_MIN_CONNECTIVITY:
        return HIGH_CONNECTIVITY_LOW_SUPPORT, ()
    return None


def support_skew(supporters: tuple[int, ...]) -> float:
    """Share of a claim's support entries that come from its most frequent model."""
    if not supporters:
        return 0.0
    return max(Counter(supporters).values()) / len(supporters)


def evidence_gap_score(supporter_count: int, cascade: Optional[CascadeRisk]) -> float:
    """Dependents resting on each supporter; zero without a cascade."""
    if cascade is None or supporter_count == 0:
        return 0.0
    return len(cascade.dependent_ids) / supporter_count


# ============================================================
# PATTERN DETECTION
# ============================================================

def _cascade_depth(source_id: str, children: Mapping[str, list[str]]) -> int:
    visited: set[str] = set()
    max_depth = 0
    stack = [(source_id, 0)]
    while stack:
        node, depth = stack.pop()
        if node in visited:
            continue
        visited.add(node)
        max_depth = max(max_depth, depth)
        for child in reversed(children.get(node, [])):
            stack.append((child, depth + 1))
    return max_depth


def detect_cascade_risks(edges: list[Edge], labels: Mapping[str, str]) -> list[CascadeRisk]:
    children: dict[str, list[str]] = defaultdict(list)
    for e in edges:
        if e.type == "prerequisite":
            children[e.source].append(e.target)

    risks = []
    for source_id, direct in children.items():
        dependents: dict[str, None] = {}
        queue = deque(direct)
        while queue:
            current = queue.popleft()
            if current in dependents:
                continue
            dependents[current] = None
            queue.extend(children.get(current, ()))

        risks.append(CascadeRisk(
            source_id=source_id,
            source_label=labels.get(source_id, source_id),
            dependent_ids=tuple(dependents),
            dependent_labels=tuple(labels[d] for d in dependents if d in labels),
            depth=_cascade_depth(source_id, children),
        ))
    return risks


def _pair_consensus(a: ClaimWithLeverage, b: ClaimWithLeverage, mixed: str) -> str:
    if a.is_consensus and b.is_consensus:
        return "both_consensus"
    if not a.is_consensus and not b.is_consensus:
        return "both_singular"
    return mixed


def detect_conflicts(
    edges: list[Edge], by_id: Mapping[str, ClaimWithLeverage]
) -> list[ConflictPair]:
    out = []
    for e in edges:
        if e.type != "conflicts" or e.source not in by_id or e.target not in by_id:
            continue
        a, b = by_id[e.source], by_id[e.target]
        diff = abs(a.support_ratio - b.support_ratio)
        out.append(ConflictPair(
            claim_a=a.ref(),
            claim_b=b.ref(),
            consensus=_pair_consensus(a, b, "mixed"),
            dynamics="symmetric" if diff < SYMMETRIC_SUPPORT_DIFF else "asymmetric",
        ))
    return out


def detect_tradeoffs(
    edges: list[Edge], by_id: Mapping[str, ClaimWithLeverage]
) -> list[TradeoffPair]:
    out = []
    for e in edges:
        if e.type != "tradeoff" or e.source not in by_id or e.target not in by_id:
            continue
        a, b = by_id[e.source], by_id[e.target]
        out.append(TradeoffPair(
            claim_a=a.ref(),
            claim_b=b.ref(),
            symmetry=_pair_consensus(a, b, "asymmetric"),
        ))
    return out


def detect_convergence_points(edges: list[Edge], labels: Mapping[str, str]) -> list[ConvergencePoint]:
    groups: dict[tuple[str, str], dict[str, None]] = {}
    for e in edges:
        if e.type in ("prerequisite", "supports"):
            groups.setdefault((e.target, e.type), {})[e.source] = None

    points = []
    for (target, edge_type), sources in groups.items():
        if len(sources) < 2:
            continue
        points.append(ConvergencePoint(
            target_id=target,
            target_label=labels.get(target, target),
            source_ids=tuple(sources),
            source_labels=tuple(labels[s] for s in sources if s in labels),
            edge_type=edge_type,
        ))
    return points


def analyze_ghosts(ghost_count: int, claims: Iterable[ClaimWithLeverage]) -> GhostAnalysis:
    challengers = tuple(c.id for c in claims if c.role == "challenger")
    return GhostAnalysis(
        count=ghost_count,
        may_extend_challenger=ghost_count > 0 and bool(challengers),
        challenger_ids=challengers,
    )


def _explicit_challenge(claim: ClaimWithLeverage, other_id: str) -> Optional[str]:
    text = claim.claim.challenges
    if isinstance(text, str) and other_id in text:
        return text
    return None


def detect_enriched_conflicts(
    edges: list[Edge],
    by_id: Mapping[str, ClaimWithLeverage],
    model_count: int,
    keystone_id: Optional[str] = None,
) -> list[EnrichedConflict]:
    out = []
    for e in edges:
        if e.type != "conflicts" or e.source not in by_id or e.target not in by_id:
            continue
        a, b = by_id[e.source], by_id[e.target]
        c1, c2 = (a, b) if a.id < b.id else (b, a)

        combined = c1.supporter_count + c2.supporter_count
        delta = abs(c1.supporter_count - c2.supporter_count)
        both = c1.is_consensus and c2.is_consensus
        keystone = keystone_id is not None and keystone_id in (c1.id, c2.id)

        explicit = _explicit_challenge(c1, c2.id) or _explicit_challenge(c2, c1.id)

        out.append(EnrichedConflict(
            id=f"{c1.id}_{c2.id}",
            claim_a=c1.ref(),
            claim_b=c2.ref(),
            axis=explicit or f"{c1.label} vs {c2.label}",
            explicit_axis=explicit,
            combined_support=combined,
            support_delta=delta,
            dynamics="symmetric" if delta < model_count * SYMMETRIC_SUPPORT_DIFF else "asymmetric",
            is_both_consensus=both,
            is_consensus_vs_singular=c1.is_consensus != c2.is_consensus,
            involves_challenger="challenger" in (c1.role, c2.role),
            involves_anchor="anchor" in (c1.role, c2.role),
            involves_keystone=keystone,
            stakes=(f"Accepting {c1.label}", f"Accepting {c2.label}"),
            significance=(
                combined
                + (BOTH_CONSENSUS_BONUS if both else 0)
                + (KEYSTONE_BONUS if keystone else 0)
            ),
        ))
    return out


def detect_conflict_clusters(
    conflicts: list[EnrichedConflict], by_id: Mapping[str, ClaimWithLeverage]
) -> list[ConflictCluster]:
    """
    Group conflicts around a claim contested from several sides.

    A claim in two or more conflicts becomes a cluster target when
    it is corroborated or when any opponent is an explicit challenger.
    """
    occurrence: dict[str, list[EnrichedConflict]] = {}
    for c in conflicts:
        occurrence.setdefault(c.claim_a.id, []).append(c)
        occurrence.setdefault(c.claim_b.id, []).append(c)

    clusters = []
    for target_id, involved in occurrence.items():
        if len(involved) < 2:
            continue
        target = by_id.get(target_id)
        if target is None:
            continue
        opponents = tuple(c.opponent_of(target_id) for c in involved)
        targeted = any(
            by_id[o].role == "challenger" for o in opponents if o in by_id
        )
        if not (targeted or target.is_consensus):
            continue
        clusters.append(ConflictCluster(
            id=f"cluster_{target_id}",
            axis=f"Contestation of {target.label}",
            target_id=target_id,
            challenger_ids=opponents,
            theme="Shared disagreement",
        ))
    return clusters


def assign_conflict_clusters(
    conflicts: list[EnrichedConflict], clusters: list[ConflictCluster]
) -> list[EnrichedConflict]:
    """Stamp each conflict with its cluster id; a later cluster wins a shared conflict."""
    cluster_of: dict[str, str] = {}
    for cluster in clusters:
        for c in conflicts:
            if c.involves(cluster.target_id):
                cluster_of[c.id] = cluster.id
    return [
        replace(c, cluster_id=cluster_of[c.id]) if c.id in cluster_of else c
        for c in conflicts
    ]


# ============================================================
# GRAPH TOPOLOGY
# ============================================================

def _undirected(claim_ids: list[str], edges: list[Edge]) -> dict[str, list[str]]:
    adj: dict[str, list[str]] = {cid: [] for cid in claim_ids}
    for e in edges:
        if e.source in adj and e.target in adj:
            adj[e.source].append(e.target)
            adj[e.target].append(e.source)
    return adj


def connected_components(claim_ids: list[str], edges: list[Edge]) -> list[tuple[str, ...]]:
    adj = _undirected(claim_ids, edges)
    visited: set[str] = set()
    components = []
    for start in claim_ids:
        if start in visited:
            continue
        component = []
        stack = [start]
        while stack:
            node = stack.pop()
            if node in visited:
                continue
            visited.add(node)
            component.append(node)
            stack.extend(reversed(adj[node]))
        components.append(tuple(component))
    return components


def _settle_acyclic_chains(
    claim_ids: list[str],
    children: Mapping[str, list[str]],
    parents: Mapping[str, list[str]],
) -> dict[str, tuple[str, ...]]:
    """
    Longest chain starting at every claim that cannot reach a cycle.

    Claims are settled sinks first (Kahn's order on the reversed
    graph); each takes the first child, in edge order, whose chain
    is strictly longest. Claims left out can reach a cycle.
    """
    best: dict[str, tuple[str, ...]] = {}
    pending = {cid: len(children[cid]) for cid in claim_ids}
    ready = deque(cid for cid in claim_ids if not pending[cid])
    while ready:
        node = ready.popleft()
        tail: tuple[str, ...] = ()
        for child in children[node]:
            if len(best[child]) > len(tail):
                tail = best[child]
        best[node] = (node,) + tail
        for parent in parents[node]:
            pending[parent] -= 1
            if not pending[parent]:
                ready.append(parent)
    return best


def _search_cyclic_chain(
    start: str,
    children: Mapping[str, list[str]],
    settled: Mapping[str, tuple[str, ...]],
    budget: int,
) -> tuple[tuple[str, ...], int]:
    """
    Depth-first search over simple paths from a claim that reaches a cycle.

    Settled claims are joined through their precomputed chain. Stops
    after ``budget`` expansions; returns the longest chain found and
    the expansions used.
    """
    longest = (start,)
    on_path = {start}
    stack = [((start,), iter(children[start]))]
    steps = 0
    while stack:
        path, remaining = stack[-1]
        child = next(remaining, None)
        if child is None:
            stack.pop()
            on_path.discard(path[-1])
            continue
        if child in on_path:
            continue
        if child in settled:
            candidate = path + settled[child]
            if len(candidate) > len(longest):
                longest = candidate
            continue
        if steps >= budget:
            break
        steps += 1
        extended = path + (child,)
        if len(extended) > len(longest):
            longest = extended
        on_path.add(child)
        stack.append((extended, iter(children[child])))
    return longest, steps


def longest_prerequisite_chain(
    claim_ids: list[str],
    edges: list[Edge],
    search_budget: int = CHAIN_SEARCH_BUDGET,
) -> tuple[str, ...]:
    """
    Longest simple path along prerequisite edges, from a chain root.

    Linear in the graph on acyclic input. Claims that can reach a
    cycle fall back to a bounded simple-path search, so the result
    there is the longest chain found within ``search_budget``.
    """
    known = set(claim_ids)
    children: dict[str, list[str]] = {cid: [] for cid in claim_ids}
    parents: dict[str, list[str]] = {cid: [] for cid in claim_ids}
    has_incoming: set[str] = set()
    for e in edges:
        if e.type == "prerequisite" and e.source in known and e.target in known:
            children[e.source].append(e.target)
            parents[e.target].append(e.source)
            has_incoming.add(e.target)

    settled = _settle_acyclic_chains(claim_ids, children, parents)

    longest: tuple[str, ...] = ()
    budget = search_budget
    roots = [cid for cid in claim_ids if cid not in has_incoming]
    # Pure cycles have no roots
    for start in roots or claim_ids:
        if start in settled:
            chain = settled[start]
        else:
            chain, used = _search_cyclic_chain(start, children, settled, budget)
            budget -= used
        if len(chain) > len(longest):
            longest = chain
        if len(longest) == len(claim_ids):
            break
    return longest


def articulation_points(claim_ids: list[str], edges: list[Edge]) -> tuple[str, ...]:
    """Cut vertices of the undirected claim graph (iterative Tarjan)."""
    adj = _undirected(claim_ids, edges)
    discovery: dict[str, int] = {}
    low: dict[str, int] = {}
    points: dict[str, None] = {}
    clock = 0

    for root in claim_ids:
        if root in discovery:
            continue
        clock += 1
        discovery[root] = low[root] = clock
        root_children = 0
        stack: list[tuple[str, Optional[str], Iterable[str]]] = [(root, None, iter(adj[root]))]

        while stack:
            u, parent, neighbours = stack[-1]
            descended = False
            for v in neighbours:
                if v not in discovery:
                    clock += 1
                    discovery[v] = low[v] = clock
                    stack.append((v, u, iter(adj[v])))
                    descended = True
                    break
                if v != parent:
                    low[u] = min(low[u], discovery[v])
            if descended:
                continue

            # u is finished; fold its low-link into the parent
            stack.pop()
            if parent is None:
                continue
            low[parent] = min(low[parent], low[u])
            if parent == root:
                root_children += 1
            elif low[u] >= discovery[parent]:
                points[parent] = None

        if root_children > 1:
            points[root] = None
    return tuple(points)


def cluster_cohesion(edges: list[Edge], by_id: Mapping[str, ClaimWithLeverage]) -> float:
    """Reinforcing edges among corroborated claims over all ordered pairs; 1.0 below two."""
    consensus = {cid for cid, c in by_id.items() if c.is_consensus}
    n = len(consensus)
    if n < 2:
        return 1.0
    reinforcing = sum(
        1 for e in edges
        if e.type in ("supports", "prerequisite")
        and e.source in consensus and e.target in consensus
    )
    return reinforcing / (n * (n - 1))


def local_coherence(
    components: list[tuple[str, ...]],
    edges: list[Edge],
    by_id: Mapping[str, ClaimWithLeverage],
) -> float:
    """Edge density of each multi-claim component, weighted by its mean support and size."""
    component_of = {cid: i for i, comp in enumerate(components) for cid in comp}
    internal: Counter = Counter()
    for e in edges:
        i = component_of.get(e.source)
        if i is not None and i == component_of.get(e.target):
            internal[i] += 1

    total = 0.0
    weight = 0
    for i, comp in enumerate(components):
        size = len(comp)
        if size < 2:
            continue
        density = internal[i] / (size * (size - 1))
        mean_support = sum(by_id[cid].support_ratio for cid in comp if cid in by_id) / size
        total += density * mean_support * size
        weight += size
    return total / weight if weight else 0.0


def analyze_graph(
    claim_ids: list[str],
    edges: list[Edge],
    by_id: Optional[Mapping[str, ClaimWithLeverage]] = None,
) -> GraphAnalysis:
    by_id = by_id or {}
    components = connected_components(claim_ids, edges)

    known = set(claim_ids)
    prereq_sources = {e.source for e in edges if e.type == "prerequisite"}
    prereq_targets = {e.target for e in edges if e.type == "prerequisite"}
    chain_count = sum(
        1 for cid in claim_ids if cid in prereq_sources and cid not in prereq_targets
    )

    out_degree = {cid: 0 for cid in claim_ids}
    for e in edges:
        if e.type in ("supports", "prerequisite") and e.source in known:
            out_degree[e.source] += 1

    ranked = sorted(out_degree.items(), key=lambda kv: kv[1], reverse=True)
    top_id, top_out = ranked[0] if ranked else (None, 0)
    second_out = ranked[1][1] if len(ranked) > 1 else 0
    if second_out > 0:
        dominance = top_out / second_out
    else:
        dominance = 10.0 if top_out > 0 else 0.0

    return GraphAnalysis(
        component_count=len(components),
        components=tuple(components),
        longest_chain=longest_prerequisite_chain(claim_ids, edges),
        chain_count=chain_count,
        hub_claim=top_id if dominance >= 1.5 and top_out >= 2 else None,
        hub_dominance=dominance,
        articulation_points=articulation_points(claim_ids, edges),
        cluster_cohesion=cluster_cohesion(edges, by_id),
        local_coherence=local_coherence(components, edges, by_id),
    )


# ============================================================
# RATIOS, LANDSCAPE, SIGNAL
# ============================================================

def _top_support_ids(claims: list[Claim]) -> set[str]:
    ranked = sorted(claims, key=lambda c: c.support_count, reverse=True)
    return {c.id for c in ranked[:top_n_count(len(claims))]}


def compute_core_ratios(
    claims: list[Claim], edges: list[Edge], graph: GraphAnalysis, model_count: int
) -> CoreRatios:
    claim_count = len(claims)
    edge_count = len(edges)

    max_support = max((c.support_count for c in claims), default=0)
    top_ids = _top_support_ids(claims) if claims else set()
    top_edges = [e for e in edges if e.source in top_ids and e.target in top_ids]
    reinforcing = sum(1 for e in top_edges if e.type in ("supports", "prerequisite"))
    tension_edges = sum(1 for e in edges if e.type in ("conflicts", "tradeoff"))

    return CoreRatios(
        concentration=max_support / model_count if model_count > 0 else 0.0,
        alignment=reinforcing / len(top_edges) if top_edges else 0.5,
        tension=tension_edges / edge_count if edge_count else 0.0,
        fragmentation=(
            (graph.component_count - 1) / (claim_count - 1) if claim_count > 1 else 0.0
        ),
        depth=len(graph.longest_chain) / claim_count if claim_count else 0.0,
    )


def resolve_model_count(claims: list[Claim], model_count: Optional[int]) -> int:
    """Explicit count if positive, else distinct supporters, else one."""
    if model_count is not None and model_count > 0:
        return model_count
    distinct = {s for c in claims for s in c.supporters}
    return len(distinct) or 1


def compute_landscape(claims: list[Claim], model_count: int) -> LandscapeMetrics:
    types: dict[str, int] = {}
    roles: dict[str, int] = {}
    for c in claims:
        types[c.type] = types.get(c.type, 0) + 1
        roles[c.role] = roles.get(c.role, 0) + 1

    convergence_ratio = 0.0
    if claims:
        ranked = sorted(claims, key=lambda c: c.support_count, reverse=True)
        level = ranked[top_n_count(len(claims)) - 1].support_count or 1
        convergence_ratio = sum(1 for c in claims if c.support_count >= level) / len(claims)

    return LandscapeMetrics(
        claim_count=len(claims),
        model_count=model_count,
        type_distribution=MappingProxyType(types),
        role_distribution=MappingProxyType(roles),
        dominant_type=max(types, key=types.get) if types else None,
        dominant_role=max(roles, key=roles.get) if roles else None,
        convergence_ratio=convergence_ratio,
    )


def compute_signal_strength(claims: list[Claim], edge_count: int, model_count: int) -> float:
    """
    How much structure there is to read, in [0, 1].

    Blends edge density against a minimum needed to see a pattern,
    spread of support across claims, and model coverage.
    """
    if not claims:
        return 0.0

    min_edges = max(3.0, len(claims) * 0.15)
    edge_signal = _clamp01(edge_count / min_edges)

    counts = [c.support_count for c in claims]
    peak = max(max(counts), 1)
    normalized = [n / peak for n in counts]
    mean = sum(normalized) / len(normalized)
    variance = sum((v - mean) ** 2 for v in normalized) / len(normalized)
    support_signal = _clamp01(variance * 5)

    covered = len({s for c in claims for s in c.supporters})
    coverage_signal = _clamp01(covered / max(model_count, 1))

    return edge_signal * 0.4 + support_signal * 0.3 + coverage_signal * 0.3


# ============================================================
# ENTRY POINT
# ============================================================

def compute_structural_analysis(
    claims: Optional[Iterable[ClaimLike]],
    edges: Optional[Iterable[EdgeLike]],
    ghost_count: int = 0,
    *,
    model_count: Optional[int] = None,
) -> StructuralAnalysis:
    """
    Full structural pass over a claim graph.

    Args:
        claims: Claim objects or mappings.
        edges: Edge objects or mappings (``from``/``to``/``type``).
        ghost_count: Number of uncovered topic areas reported upstream.
        model_count: Models in the batch. Inferred from supporters if omitted.
    """
    claim_list = coerce_claims(claims)
    edge_list = coerce_edges(edges)
    models = resolve_model_count(claim_list, model_count)

    claim_ids = [c.id for c in claim_list]
    labels = {c.id: c.label for c in claim_list}
    support_by_id = {c.id: c.support_count for c in claim_list}
    incident: dict[str, list[Edge]] = defaultdict(list)
    for e in edge_list:
        incident[e.source].append(e)
        if e.target != e.source:
            incident[e.target].append(e)

    cascade_risks = detect_cascade_risks(edge_list, labels)
    cascade_by_source = {r.source_id: r for r in cascade_risks}

    enriched: list[ClaimWithLeverage] = []
    inversions: list[LeverageInversion] = []
    for claim in claim_list:
        touching = incident.get(claim.id, [])
        factors = compute_leverage_factors(claim, touching, models)
        leverage = factors.total

        classified = None
        if claim.support_count < CONSENSUS_MIN_SUPPORTERS and leverage > INVERSION_MIN_LEVERAGE:
            classified = classify_inversion(claim, factors, touching, support_by_id)
        if classified is not None:
            reason, affected = classified
            inversions.append(LeverageInversion(
                claim_id=claim.id,
                claim_label=claim.label,
                supporter_count=claim.support_count,
                reason=reason,
                affected_claims=affected,
            ))

        outgoing = [e for e in touching if e.source == claim.id]
        incoming = [e for e in touching if e.target == claim.id]
        prereq_in = any(e.type == "prerequisite" for e in incoming)
        prereq_out = any(e.type == "prerequisite" for e in outgoing)
        enriched.append(ClaimWithLeverage(
            claim=claim,
            support_ratio=claim.support_count / models,
            leverage=leverage,
            factors=factors,
            in_degree=len(incoming),
            out_degree=len(outgoing),
            is_chain_root=prereq_out and not prereq_in,
            is_chain_terminal=prereq_in and not prereq_out,
            is_isolated=not touching,
            is_leverage_inversion=classified is not None,
            keystone_score=float(len(outgoing) * claim.support_count),
            support_skew=support_skew(claim.supporters),
            evidence_gap_score=evidence_gap_score(
                claim.support_count, cascade_by_source.get(claim.id)
            ),
        ))

    by_id = {c.id: c for c in enriched}
    graph = analyze_graph(claim_ids, edge_list, by_id)

    enriched_conflicts = detect_enriched_conflicts(edge_list, by_id, models, graph.hub_claim)
    clusters = detect_conflict_clusters(enriched_conflicts, by_id)

    analysis = StructuralAnalysis(
        edges=tuple(edge_list),
        claims_with_leverage=tuple(enriched),
        leverage_inversions=tuple(inversions),
        cascade_risks=tuple(cascade_risks),
        conflicts=tuple(detect_conflicts(edge_list, by_id)),
        tradeoffs=tuple(detect_tradeoffs(edge_list, by_id)),
        convergence_points=tuple(detect_convergence_points(edge_list, labels)),
        isolated_claims=tuple(c.id for c in enriched if c.is_isolated),
        ghost_analysis=analyze_ghosts(ghost_count, enriched),
        graph=graph,
        ratios=compute_core_ratios(claim_list, edge_list, graph, models),
        landscape=compute_landscape(claim_list, models),
        signal_strength=compute_signal_strength(claim_list, len(edge_list), models),
        enriched_conflicts=tuple(assign_conflict_clusters(enriched_conflicts, clusters)),
        conflict_clusters=tuple(clusters),
    )

    logger.debug(
        "Structural analysis complete",
        extra={"claims": len(claim_list), "edges": len(edge_list), "model_count": models},
    )
    return analysis
