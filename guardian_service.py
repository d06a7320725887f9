#!/usr/bin/env python3
"""
Guardian Council Service v1.0
=============================
HTTP host for guardian councils. Each council protects one authority
(a payout address or an admin role holder) and can rotate it through
threshold recovery.

  - Councils persisted in SQLite, one row per council
  - Every operation runs load -> apply -> store in a single transaction,
    serialised by a process-wide lock
  - Rate limiting (slowapi)
  - Structured logging (structlog)
  - Prometheus /metrics endpoint
"""

import os
import json
import time
import sqlite3
import threading
from datetime import datetime, timezone, timedelta
from typing import Optional, List
from contextlib import contextmanager

import structlog
from fastapi import FastAPI, Header, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field, field_validator
from slowapi import Limiter, _rate_limit_exceeded_handler
from slowapi.util import get_remote_address
from slowapi.errors import RateLimitExceeded
from prometheus_client import Counter, Histogram, Gauge, generate_latest, CONTENT_TYPE_LATEST

from guardian_council import (
    MAX_GUARDIANS,
    CouncilError,
    CouncilNotFound,
    DuplicateCouncil,
    GuardianCouncil,
)
from authority_binding import AdminRole, PayoutAddress, RecoveryHost, make_authority

# ============================================
# Configuration
# ============================================
DB_PATH = os.environ.get("GUARDIAN_DB", "guardian_councils.db")
API_VERSION = "1.0.0"
APPROVAL_WINDOW_HOURS = float(os.environ.get("GUARDIAN_APPROVAL_WINDOW_HOURS", "72"))
LAST_HONEST_WINDOW_HOURS = float(os.environ.get("GUARDIAN_LAST_HONEST_WINDOW_HOURS", "36"))
RATE_LIMIT_ENABLED = os.environ.get("GUARDIAN_RATE_LIMIT_ENABLED", "1") != "0"
MAX_EVENTS = int(os.environ.get("GUARDIAN_MAX_EVENTS", "256"))

_CORS_RAW = os.environ.get("GUARDIAN_CORS_ORIGINS", "http://localhost:3000,http://localhost:8000")
ALLOWED_ORIGINS: List[str] = (
    ["*"] if _CORS_RAW == "*"
    else [o.strip() for o in _CORS_RAW.split(",") if o.strip()]
)

# ============================================
# Logging
# ============================================
structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.stdlib.add_log_level,
        structlog.processors.JSONRenderer(),
    ]
)
log = structlog.get_logger()

# ============================================
# Prometheus Metrics
# ============================================
REQUEST_COUNT = Counter("guardian_requests_total", "Total HTTP requests", ["method", "endpoint", "status"])
REQUEST_LATENCY = Histogram("guardian_request_duration_seconds", "Request latency", ["endpoint"])
RECOVERY_OPS = Counter("guardian_recovery_operations_total", "Council operations", ["operation", "outcome"])
COUNCIL_COUNT_GAUGE = Gauge("guardian_councils_total", "Total councils hosted")
LOCKED_COUNCILS_GAUGE = Gauge("guardian_councils_locked", "Councils currently compromise-locked")

# ============================================
# Database
# ============================================
_write_lock = threading.Lock()


def get_db() -> sqlite3.Connection:
    conn = sqlite3.connect(DB_PATH, check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def init_db():
    conn = get_db()
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS councils (
            id          TEXT PRIMARY KEY,
            kind        TEXT NOT NULL,
            state       TEXT NOT NULL,
            locked      INTEGER DEFAULT 0,
            created_at  TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_councils_locked ON councils(locked);
    """)
    conn.commit()
    conn.close()
    log.info("database_initialized", path=DB_PATH)


def _load_host(conn: sqlite3.Connection, council_id: str) -> RecoveryHost:
    row = conn.execute("SELECT state FROM councils WHERE id = ?", (council_id,)).fetchone()
    if not row:
        raise CouncilNotFound(f"Council '{council_id}' does not exist.")
    return RecoveryHost.from_dict(json.loads(row["state"]))


def _store_host(conn: sqlite3.Connection, council_id: str, host: RecoveryHost):
    now = datetime.now(timezone.utc).isoformat()
    conn.execute(
        "UPDATE councils SET state = ?, locked = ?, updated_at = ? WHERE id = ?",
        (json.dumps(host.to_dict()), int(host.council.locked), now, council_id),
    )


def _refresh_locked_gauge(conn: sqlite3.Connection):
    LOCKED_COUNCILS_GAUGE.set(
        conn.execute("SELECT COUNT(*) FROM councils WHERE locked = 1").fetchone()[0]
    )


@contextmanager
def council_transaction(council_id: str, operation: str):
    """
    Load a council, hand it to the caller, and persist it only if the block
    finishes cleanly. A CouncilError leaves the stored row untouched.
    """
    with _write_lock:
        conn = get_db()
        try:
            host = _load_host(conn, council_id)
            yield host
            _store_host(conn, council_id, host)
            conn.commit()
            _refresh_locked_gauge(conn)
            RECOVERY_OPS.labels(operation, "ok").inc()
        except CouncilError as e:
            conn.rollback()
            RECOVERY_OPS.labels(operation, e.code).inc()
            raise
        finally:
            conn.close()


def read_council(council_id: str) -> RecoveryHost:
    conn = get_db()
    try:
        return _load_host(conn, council_id)
    finally:
        conn.close()

# ============================================
# Rate Limiter
# ============================================
limiter = Limiter(key_func=get_remote_address, enabled=RATE_LIMIT_ENABLED)

# ============================================
# Models
# ============================================
AUTHORITY_KINDS = {PayoutAddress.kind, AdminRole.kind}


class CouncilCreate(BaseModel):
    council_id: str = Field(..., min_length=1, max_length=100)
    guardians: List[str] = Field(..., min_length=1, max_length=MAX_GUARDIANS)
    threshold: int = Field(..., ge=1)
    authority_kind: str = Field(PayoutAddress.kind)
    authority: str = Field(..., min_length=1, max_length=200)
    approval_window_hours: Optional[float] = Field(None, gt=0)
    last_honest_window_hours: Optional[float] = Field(None, gt=0)
    remove_old_authority: bool = False

    @field_validator("council_id")
    @classmethod
    def clean_id(cls, v):
        return v.strip()

    @field_validator("authority_kind")
    @classmethod
    def validate_kind(cls, v):
        if v not in AUTHORITY_KINDS:
            raise ValueError(f"authority_kind must be one of: {', '.join(sorted(AUTHORITY_KINDS))}")
        return v


class ProposeRequest(BaseModel):
    target: str = Field(..., min_length=1, max_length=200)


class ResetRequest(BaseModel):
    guardians: List[str] = Field(..., min_length=1, max_length=MAX_GUARDIANS)
    threshold: int = Field(..., ge=1)


class GuardianAdd(BaseModel):
    guardian: str = Field(..., min_length=1, max_length=200)


class GuardianReplace(BaseModel):
    new_guardian: str = Field(..., min_length=1, max_length=200)


class ThresholdUpdate(BaseModel):
    threshold: int = Field(..., ge=1)

# ============================================
# App
# ============================================
app = FastAPI(
    title="Guardian Council Service",
    description="""
# Guardian Council Service v1

**Threshold recovery for a protected payout address or admin role.**

## Flow
1. `POST /councils` → create a council guarding an authority
2. `POST /councils/{id}/proposals` → a guardian proposes a new authority
3. `POST /councils/{id}/approvals` → guardians approve
4. `POST /councils/{id}/execute` → anyone executes once the threshold is met

Unanimous approval locks the council; only the current authority can unlock
it via `POST /councils/{id}/reset/owner`. When all but one guardian have
approved, that guardian may re-key the council via
`POST /councils/{id}/reset/last-honest` within its window.

Callers identify themselves with the `X-Caller-Id` header.
""",
    version=API_VERSION,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["X-Caller-Id", "Content-Type"],
)


@app.exception_handler(CouncilError)
async def council_error_handler(request: Request, exc: CouncilError):
    return JSONResponse(status_code=exc.http_status, content=exc.as_dict())

# ============================================
# Middleware: metrics + logging
# ============================================
@app.middleware("http")
async def instrument(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    latency = time.perf_counter() - start
    # label by route template; raw paths carry council ids
    route = request.scope.get("route")
    endpoint = route.path if route is not None else "unmatched"
    REQUEST_COUNT.labels(request.method, endpoint, response.status_code).inc()
    REQUEST_LATENCY.labels(endpoint).observe(latency)
    log.info("request", method=request.method, path=request.url.path,
             status=response.status_code, latency_ms=round(latency * 1000, 1))
    return response

# ============================================
# Startup
# ============================================
@app.on_event("startup")
async def startup():
    init_db()
    conn = get_db()
    COUNCIL_COUNT_GAUGE.set(conn.execute("SELECT COUNT(*) FROM councils").fetchone()[0])
    _refresh_locked_gauge(conn)
    conn.close()

# ============================================
# Routes
# ============================================

@app.get("/")
@limiter.limit("60/minute")
async def root(request: Request):
    conn = get_db()
    council_count = conn.execute("SELECT COUNT(*) as c FROM councils").fetchone()["c"]
    locked_count = conn.execute("SELECT COUNT(*) as c FROM councils WHERE locked = 1").fetchone()["c"]
    conn.close()
    return {
        "service": "Guardian Council Service",
        "version": API_VERSION,
        "status": "operational",
        "councils": council_count,
        "locked_councils": locked_count,
        "docs": "/docs",
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    """Prometheus metrics endpoint."""
    return PlainTextResponse(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
async def health():
    conn = get_db()
    council_count = conn.execute("SELECT COUNT(*) as c FROM councils").fetchone()["c"]
    conn.close()
    return {"status": "healthy", "version": API_VERSION, "councils": council_count}

# --- Council creation ---
@app.post("/councils", status_code=201)
@limiter.limit("10/minute")
async def create_council(data: CouncilCreate, request: Request):
    """Create a council guarding a payout address or admin role holder."""
    approval_hours = data.approval_window_hours or APPROVAL_WINDOW_HOURS
    honest_hours = data.last_honest_window_hours or LAST_HONEST_WINDOW_HOURS
    host = RecoveryHost(
        make_authority(data.authority_kind, data.authority),
        data.guardians,
        data.threshold,
        approval_window=timedelta(hours=approval_hours),
        last_honest_window=timedelta(hours=honest_hours),
        remove_old_authority=data.remove_old_authority,
        council_id=data.council_id,
        max_events=MAX_EVENTS,
    )

    now = datetime.now(timezone.utc).isoformat()
    with _write_lock:
        conn = get_db()
        try:
            existing = conn.execute("SELECT id FROM councils WHERE id = ?", (data.council_id,)).fetchone()
            if existing:
                raise DuplicateCouncil(f"Council '{data.council_id}' already exists.")
            conn.execute(
                "INSERT INTO councils (id, kind, state, locked, created_at, updated_at) VALUES (?, ?, ?, 0, ?, ?)",
                (data.council_id, data.authority_kind, json.dumps(host.to_dict()), now, now),
            )
            conn.commit()
        finally:
            conn.close()

    COUNCIL_COUNT_GAUGE.inc()
    return {"success": True, "council": host.snapshot()}

# --- Read views ---
@app.get("/councils/{council_id}")
@limiter.limit("120/minute")
async def get_council(council_id: str, request: Request):
    host = read_council(council_id)
    return {"success": True, "council": host.snapshot()}


@app.get("/councils/{council_id}/guardians/{guardian_id}")
@limiter.limit("120/minute")
async def is_guardian(council_id: str, guardian_id: str, request: Request):
    host = read_council(council_id)
    return {"success": True, "guardian": guardian_id, "is_guardian": host.is_guardian(guardian_id)}


@app.get("/councils/{council_id}/events")
@limiter.limit("60/minute")
async def council_events(council_id: str, request: Request):
    host = read_council(council_id)
    return {"success": True, "events": host.events}

# --- Recovery lifecycle ---
@app.post("/councils/{council_id}/proposals", status_code=201)
@limiter.limit("30/minute")
async def propose_recovery(council_id: str, data: ProposeRequest, request: Request,
                           x_caller_id: str = Header(...)):
    with council_transaction(council_id, "propose") as host:
        proposal = host.propose_recovery(x_caller_id, data.target)
    return {"success": True, "proposal": proposal.to_dict()}


@app.post("/councils/{council_id}/approvals")
@limiter.limit("60/minute")
async def approve_recovery(council_id: str, request: Request, x_caller_id: str = Header(...)):
    with council_transaction(council_id, "approve") as host:
        approvals = host.approve_recovery(x_caller_id)
        council: GuardianCouncil = host.council
        body = {
            "success": True,
            "approvals": approvals,
            "threshold": council.threshold,
            "locked": council.locked,
            "last_honest_guardian": council.last_honest_guardian,
        }
    if body["locked"]:
        log.warning("council_locked", council_id=council_id)
    return body


@app.post("/councils/{council_id}/execute")
@limiter.limit("30/minute")
async def execute_recovery(council_id: str, request: Request,
                           x_caller_id: Optional[str] = Header(None)):
    with council_transaction(council_id, "execute") as host:
        target = host.execute_recovery(x_caller_id)
        authority = host.authority.to_dict()
    return {"success": True, "new_authority": target, "authority": authority}

# --- Resets ---
@app.post("/councils/{council_id}/reset/owner")
@limiter.limit("10/minute")
async def owner_reset(council_id: str, data: ResetRequest, request: Request,
                      x_caller_id: str = Header(...)):
    with council_transaction(council_id, "owner_reset") as host:
        host.owner_reset(x_caller_id, data.guardians, data.threshold)
        snapshot = host.snapshot()
    return {"success": True, "council": snapshot}


@app.post("/councils/{council_id}/reset/last-honest")
@limiter.limit("10/minute")
async def last_honest_reset(council_id: str, data: ResetRequest, request: Request,
                            x_caller_id: str = Header(...)):
    with council_transaction(council_id, "last_honest_reset") as host:
        host.last_honest_reset(x_caller_id, data.guardians, data.threshold)
        snapshot = host.snapshot()
    return {"success": True, "council": snapshot}

# --- Membership (authority only) ---
@app.post("/councils/{council_id}/guardians", status_code=201)
@limiter.limit("20/minute")
async def add_guardian(council_id: str, data: GuardianAdd, request: Request,
                       x_caller_id: str = Header(...)):
    with council_transaction(council_id, "add_guardian") as host:
        host.council.add_guardian(x_caller_id, data.guardian)
        snapshot = host.snapshot()
    return {"success": True, "council": snapshot}


@app.put("/councils/{council_id}/guardians/{guardian_id}")
@limiter.limit("20/minute")
async def replace_guardian(council_id: str, guardian_id: str, data: GuardianReplace,
                           request: Request, x_caller_id: str = Header(...)):
    with council_transaction(council_id, "set_guardian") as host:
        host.council.set_guardian(x_caller_id, guardian_id, data.new_guardian)
        snapshot = host.snapshot()
    return {"success": True, "council": snapshot}


@app.delete("/councils/{council_id}/guardians/{guardian_id}")
@limiter.limit("20/minute")
async def remove_guardian(council_id: str, guardian_id: str, request: Request,
                          x_caller_id: str = Header(...)):
    with council_transaction(council_id, "remove_guardian") as host:
        clamped = host.council.remove_guardian(x_caller_id, guardian_id)
        snapshot = host.snapshot()
    return {"success": True, "threshold_clamped": clamped, "council": snapshot}


@app.put("/councils/{council_id}/threshold")
@limiter.limit("20/minute")
async def update_threshold(council_id: str, data: ThresholdUpdate, request: Request,
                           x_caller_id: str = Header(...)):
    with council_transaction(council_id, "set_threshold") as host:
        host.council.set_threshold(x_caller_id, data.threshold)
        snapshot = host.snapshot()
    return {"success": True, "council": snapshot}


if __name__ == "__main__":
    import uvicorn
    port = int(os.environ.get("PORT", 8000))
    print(f"""
Guardian Council Service v{API_VERSION}

Docs:     http://localhost:{port}/docs
Health:   http://localhost:{port}/health
Metrics:  http://localhost:{port}/metrics
""")
    uvicorn.run(app, host="0.0.0.0", port=port)
