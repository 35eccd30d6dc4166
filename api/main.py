"""
Shadow Mapper API — Main Application

POST /extract    — Two-pass statement extraction over model outputs
POST /structure  — Structural analysis of a claim graph
POST /shape      — Problem shape + stance for a claim graph
POST /delta      — Shadow statements missing from the claim graph
POST /analyze    — Everything above in one call
GET  /patterns   — Frozen inclusion/exclusion tables
GET  /health     — Health check
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.requests import Request

from shadowmapper import __version__
from shadowmapper.config import settings
from shadowmapper.delta import compute_shadow_delta
from shadowmapper.engine import compute_full_analysis
from shadowmapper.extractor import extract_shadow_statements
from shadowmapper.frozen_core import pattern_catalog
from shadowmapper.logging import setup_logging, get_logger
from shadowmapper.shape import classify_problem_shape, select_stance
from shadowmapper.structural import compute_structural_analysis
from shadowmapper.schemas.analysis import (
    AnalyzeRequest,
    DeltaRequest,
    ExtractRequest,
    GraphRequest,
    HealthResponse,
    ShapeResponse,
)

logger = get_logger("api")


# ============================================================
# STARTUP / SHUTDOWN
# ============================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info("Shadow Mapper API starting")
    yield
    logger.info("Shadow Mapper API shutting down")


app = FastAPI(
    title="Shadow Mapper API",
    description="Statement extraction and claim-graph analysis for multi-model synthesis",
    version=f"{__version__} (core {settings.CORE_VERSION})",
    lifespan=lifespan,
)

# CORS: the browser extension calls this service directly
app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["Content-Type"],
    allow_credentials=False,
)


# ============================================================
# GLOBAL ERROR HANDLER
# ============================================================

@app.exception_handler(Exception)
async def global_error_handler(request: Request, exc: Exception):
    """Catch unhandled exceptions — return structured error, don't leak internals."""
    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra={
            "error": str(exc),
            "error_type": type(exc).__name__,
            "path": request.url.path,
            "method": request.method,
        },
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error. The analysis could not be completed."},
    )


def _batch(items) -> list[dict]:
    return [item.model_dump() for item in items]


def _graph(claims, edges) -> tuple[list[dict], list[dict]]:
    return (
        [c.model_dump() for c in claims],
        [e.model_dump(by_alias=True) for e in edges],
    )


# ============================================================
# ROUTES
# ============================================================

@app.post("/extract")
async def extract(request: ExtractRequest):
    """Run pass 1 and pass 2 over every response in the batch."""
    result = extract_shadow_statements(_batch(request.responses))
    return result.to_dict()


@app.post("/structure")
async def structure(request: GraphRequest):
    claims, edges = _graph(request.claims, request.edges)
    analysis = compute_structural_analysis(
        claims, edges, request.ghost_count, model_count=request.model_count
    )
    return analysis.to_dict()


@app.post("/shape", response_model=ShapeResponse)
async def shape(request: GraphRequest):
    """Classify the claim graph. Stance here reflects shape alone."""
    claims, edges = _graph(request.claims, request.edges)
    analysis = compute_structural_analysis(
        claims, edges, request.ghost_count, model_count=request.model_count
    )
    problem = classify_problem_shape(analysis)
    return {
        "shape": problem.to_dict(),
        "stance": select_stance("", problem).to_dict(),
    }


@app.post("/delta")
async def delta(request: DeltaRequest):
    claims, edges = _graph(request.claims, request.edges)
    extraction = extract_shadow_statements(_batch(request.responses))
    result = compute_shadow_delta(extraction, claims, edges, request.user_query)
    return result.to_dict()


@app.post("/analyze")
async def analyze(request: AnalyzeRequest):
    claims, edges = _graph(request.claims, request.edges)
    result = compute_full_analysis(
        _batch(request.responses),
        claims,
        edges,
        request.user_query,
        request.ghost_count,
        model_count=request.model_count,
    )
    return result.to_dict()


@app.get("/patterns")
async def get_patterns():
    """List the frozen inclusion patterns and exclusion rules."""
    listing = pattern_catalog.describe()
    return {
        "core_version": settings.CORE_VERSION,
        "total_categories": len(listing["categories"]),
        "total_exclusion_rules": len(listing["exclusion_rules"]),
        **listing,
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    return {
        "status": "operational",
        "core_version": settings.CORE_VERSION,
        "api_version": settings.API_VERSION,
        "inclusion_categories": len(pattern_catalog.inclusion_sets),
        "exclusion_rules": len(pattern_catalog.exclusion_rules),
    }


# ============================================================
# MIDDLEWARE
# ============================================================

# --- Version Headers Middleware ---
@app.middleware("http")
async def add_version_headers(request: Request, call_next):
    response = await call_next(request)
    response.headers["X-ShadowMapper-Version"] = __version__
    response.headers["X-Core-Version"] = settings.CORE_VERSION
    response.headers["X-Content-Type-Options"] = "nosniff"
    return response


# --- Body Size Limit Middleware ---
_MAX_BODY_BYTES = 4_194_304  # 4 MB; a batch carries several full model responses


@app.middleware("http")
async def enforce_body_size_limit(request: Request, call_next):
    """Reject oversized requests on Content-Length and on the actual body."""
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > _MAX_BODY_BYTES:
        return JSONResponse(status_code=413, content={"detail": "Request body too large."})

    if request.method in ("POST", "PUT", "PATCH"):
        body = await request.body()
        if len(body) > _MAX_BODY_BYTES:
            return JSONResponse(status_code=413, content={"detail": "Request body too large."})

    return await call_next(request)


# --- Request Logging Middleware ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log every API request with method, path, status, duration."""
    path = request.url.path
    if path == "/health":
        return await call_next(request)

    start = time.time()
    response = await call_next(request)
    duration_ms = round((time.time() - start) * 1000, 1)

    logger.info(
        f"{request.method} {path} → {response.status_code} ({duration_ms}ms)",
        extra={
            "method": request.method,
            "path": path,
            "status_code": response.status_code,
            "duration_ms": duration_ms,
        },
    )
    return response


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.main:app", host=settings.HOST, port=settings.PORT)
