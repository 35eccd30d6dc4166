"""
API Integration Tests — Endpoint Verification

Tests every public API endpoint using FastAPI's TestClient.

These tests catch:
  - Schema mismatches (request models vs the analysis layer)
  - Route registration issues
  - Middleware bugs
  - Response format regressions
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient


# --- Fixtures ---

@pytest.fixture(scope="module")
def client():
    """Create a test client for the Shadow Mapper API."""
    from api.main import app
    with TestClient(app) as c:
        yield c


GRAPH = {
    "claims": [
        {"id": "a", "label": "A", "text": "Validate input first", "role": "challenger", "supporters": [0]},
        {"id": "b", "label": "B", "text": "Ship the parser", "role": "anchor", "supporters": [0, 1, 2]},
    ],
    "edges": [{"from": "a", "to": "b", "type": "prerequisite"}],
    "model_count": 3,
}

RESPONSES = [
    {"model_index": 0, "content": "You should always validate input before processing."},
    {"modelIndex": 1, "content": "However, the deadline must be met. Is this going to scale?"},
]


# ============================================================
# HEALTH & META
# ============================================================

class TestHealth:

    def test_health_returns_200(self, client):
        r = client.get("/health")
        assert r.status_code == 200

    def test_health_fields(self, client):
        data = client.get("/health").json()
        assert data["status"] == "operational"
        assert data["core_version"]
        assert data["api_version"] == "1"
        assert data["inclusion_categories"] == 5
        assert data["exclusion_rules"] > 0

    def test_version_headers(self, client):
        r = client.get("/health")
        assert r.headers["X-ShadowMapper-Version"]
        assert r.headers["X-Core-Version"]
        assert r.headers["X-Content-Type-Options"] == "nosniff"


class TestPatterns:

    def test_patterns_listing(self, client):
        data = client.get("/patterns").json()
        assert data["total_categories"] == 5
        assert data["total_exclusion_rules"] == len(data["exclusion_rules"])
        assert data["categories"][0]["category"] == "conditional"

    def test_rule_fields(self, client):
        rule = client.get("/patterns").json()["exclusion_rules"][0]
        for key in ("id", "applies_to", "pattern", "reason", "severity"):
            assert key in rule


# ============================================================
# EXTRACTION
# ============================================================

class TestExtract:

    def test_extract_buckets(self, client):
        r = client.post("/extract", json={"responses": RESPONSES})
        assert r.status_code == 200
        data = r.json()
        assert len(data["validated"]["prerequisite"]) == 1
        assert len(data["validated"]["conflict"]) == 1
        assert data["validated"]["conflict"][0]["source_index"] == 1
        assert data["disqualified"][0]["disqualified_by"] == "question_mark"
        assert data["stats"]["pass2_validated"] == 2

    def test_missing_responses_rejected(self, client):
        r = client.post("/extract", json={})
        assert r.status_code == 422

    def test_negative_model_index_rejected(self, client):
        r = client.post("/extract", json={"responses": [{"model_index": -1, "content": "x"}]})
        assert r.status_code == 422


# ============================================================
# CLAIM GRAPH
# ============================================================

class TestStructure:

    def test_structure(self, client):
        r = client.post("/structure", json=GRAPH)
        assert r.status_code == 200
        data = r.json()
        assert data["leverage_inversions"][0]["claim_id"] == "a"
        assert data["cascade_risks"][0]["dependent_ids"] == ["b"]
        assert data["edges"][0] == {"from": "a", "to": "b", "type": "prerequisite"}

    def test_invalid_edge_type_rejected(self, client):
        body = dict(GRAPH, edges=[{"from": "a", "to": "b", "type": "likes"}])
        r = client.post("/structure", json=body)
        assert r.status_code == 422

    def test_empty_graph(self, client):
        r = client.post("/structure", json={})
        assert r.status_code == 200
        assert r.json()["claims_with_leverage"] == []


class TestShape:

    def test_shape_and_stance(self, client):
        r = client.post("/shape", json=GRAPH)
        assert r.status_code == 200
        data = r.json()
        assert data["shape"]["primary"] == "convergent"
        assert data["stance"]["reason"] == "shape_default"


# ============================================================
# DELTA & FULL ANALYSIS
# ============================================================

class TestDelta:

    def test_delta(self, client):
        r = client.post("/delta", json={
            "responses": RESPONSES,
            "claims": [{"id": "c1", "text": "Always validate input before processing"}],
            "edges": [],
            "user_query": "when is the deadline",
        })
        assert r.status_code == 200
        data = r.json()
        assert [u["category"] for u in data["unindexed"]] == ["conflict"]
        assert data["audit"]["gaps"]["conflicts"] == 1


class TestAnalyze:

    def test_analyze(self, client):
        r = client.post("/analyze", json={**GRAPH, "responses": RESPONSES, "user_query": "Should I ship?"})
        assert r.status_code == 200
        data = r.json()
        assert set(data) == {"structure", "shape", "stance", "shadow"}
        assert data["stance"]["stance"] == "decide"
        assert len(data["shadow"]["top_unindexed"]) <= 5


# ============================================================
# MIDDLEWARE
# ============================================================

class TestBodyLimit:

    def test_oversized_body_rejected(self, client):
        r = client.post(
            "/extract",
            content=b"x" * (4_194_304 + 1),
            headers={"Content-Type": "application/json"},
        )
        assert r.status_code == 413
