from __future__ import annotations

import logging
import os
import threading
from contextlib import asynccontextmanager
from dataclasses import asdict
from typing import List, Optional

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .advisory import AnalysisResult
from .errors import DuplicateCaseError
from .monitor import FraudMonitor, MonitorConfig, restore_or_create
from .schemas import ForcedType, TransactionStatus

logger = logging.getLogger(__name__)


class GenerateRequest(BaseModel):
    forced_type: Optional[ForcedType] = Field(
        default=None, description="Inject a BEHAVIORAL or SIGNATURE anomaly instead of a regular draw"
    )
    count: int = Field(default=1, ge=1, le=50, description="Number of transactions to generate")


class StatusUpdate(BaseModel):
    status: TransactionStatus = Field(..., description="New analyst status")
    changed_by: str = Field(default="analyst", description="Analyst recorded in the audit log")


class FeedbackRequest(BaseModel):
    notes: str = Field(default="", description="Analyst notes for the confirmed case")


class ComplianceRequest(BaseModel):
    user_id: str = Field(..., description="Customer user id")
    amount: float = Field(..., ge=0, description="Transaction amount")
    country: str = Field(..., min_length=1, description="Destination country code")


class MonitorService:
    """Single-writer wrapper; sync endpoints run in a thread pool, so access is locked."""

    def __init__(self, monitor: FraudMonitor, state_path: str | None = None) -> None:
        self.monitor = monitor
        self.state_path = state_path
        self.lock = threading.Lock()

    def checkpoint(self) -> None:
        if self.state_path:
            with self.lock:
                self.monitor.save(self.state_path)


@asynccontextmanager
async def lifespan(app: FastAPI):
    seed = os.getenv("FRAUDWATCH_SEED")
    state_path = os.getenv("FRAUDWATCH_STATE_PATH") or None
    monitor, resumed = restore_or_create(state_path, config=MonitorConfig(seed=int(seed) if seed else None))
    logger.info("Monitor ready (%s)", "resumed" if resumed else "fresh")
    app.state.service = MonitorService(monitor, state_path)
    yield
    app.state.service.checkpoint()


app = FastAPI(title="fraudwatch API", version="1.0.0", lifespan=lifespan)

cors_setting = os.getenv("FRAUDWATCH_CORS_ORIGINS", "*")
allowed_origins = [origin.strip() for origin in cors_setting.split(",") if origin.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins or ["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def _service() -> MonitorService:
    service: MonitorService | None = getattr(app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=500, detail="Monitor service is not initialized")
    return service


def _not_found(kind: str, key: str) -> HTTPException:
    return HTTPException(status_code=404, detail=f"{kind} {key} not found")


@app.get("/health")
def health() -> dict:
    service = _service()
    with service.lock:
        monitor = service.monitor
        return {
            "status": "ok",
            "transactions": len(monitor.transactions),
            "knowledge_base_size": len(monitor.knowledge_base),
            "profile_window": len(monitor.profile.history),
        }


@app.post("/transactions/generate")
def generate(payload: GenerateRequest) -> List[dict]:
    service = _service()
    with service.lock:
        if payload.forced_type is not None:
            produced = [service.monitor.inject_fraud(payload.forced_type) for _ in range(payload.count)]
        else:
            produced = [service.monitor.tick() for _ in range(payload.count)]
        return [t.to_dict() for t in produced]


@app.get("/transactions")
def list_transactions() -> List[dict]:
    service = _service()
    with service.lock:
        return [t.to_dict() for t in service.monitor.transactions]


@app.get("/transactions/{transaction_id}")
def get_transaction(transaction_id: str) -> dict:
    service = _service()
    with service.lock:
        transaction = service.monitor.get_transaction(transaction_id)
        if transaction is None:
            raise _not_found("Transaction", transaction_id)
        return transaction.to_dict()


@app.post("/transactions/{transaction_id}/status")
def update_status(transaction_id: str, payload: StatusUpdate) -> dict:
    service = _service()
    with service.lock:
        transaction = service.monitor.update_status(transaction_id, payload.status, payload.changed_by)
        if transaction is None:
            raise _not_found("Transaction", transaction_id)
        return transaction.to_dict()


@app.post("/transactions/{transaction_id}/analyze", response_model=AnalysisResult)
def analyze(transaction_id: str) -> AnalysisResult:
    service = _service()
    with service.lock:
        pending = service.monitor.begin_analysis(transaction_id)
    if pending is None:
        raise _not_found("Transaction", transaction_id)
    # The advisory round trip runs unlocked so other requests see ANALYZING.
    try:
        return pending.run()
    finally:
        with service.lock:
            service.monitor.finish_analysis(pending)


@app.post("/transactions/{transaction_id}/feedback")
def feedback(transaction_id: str, payload: FeedbackRequest) -> dict:
    service = _service()
    with service.lock:
        try:
            case = service.monitor.add_feedback(transaction_id, payload.notes)
        except DuplicateCaseError as exc:
            raise HTTPException(status_code=409, detail=str(exc)) from exc
        if case is None:
            raise _not_found("Transaction", transaction_id)
        return asdict(case)


@app.get("/metrics")
def metrics() -> dict:
    service = _service()
    with service.lock:
        return service.monitor.dashboard().to_dict()


@app.get("/alerts")
def alerts() -> List[dict]:
    service = _service()
    with service.lock:
        return [alert.to_dict() for alert in service.monitor.alerts()]


@app.get("/metrics/hourly")
def hourly_trend() -> List[dict]:
    service = _service()
    with service.lock:
        trend = service.monitor.hourly_trend()
    return [
        {"hour": int(row.hour), "fraud_count": int(row.fraud_count), "total_count": int(row.total_count)}
        for row in trend.itertuples(index=False)
    ]


@app.get("/knowledge_base")
def knowledge_base() -> List[dict]:
    service = _service()
    with service.lock:
        return [asdict(case) for case in service.monitor.knowledge_base]


@app.get("/reference/policies/{policy_id}")
def aml_policy(policy_id: str) -> dict:
    policy = _service().monitor.documents.get_aml_policy(policy_id)
    if policy is None:
        raise _not_found("Policy", policy_id)
    return asdict(policy)


@app.get("/reference/sanctions")
def sanction_status(name: str = Query(..., min_length=1)) -> dict:
    hit = _service().monitor.documents.check_sanction_status(name)
    return {"query": name, "sanctioned": hit is not None, "entity": asdict(hit) if hit else None}


@app.get("/reference/merchants")
def merchant_risk(name: str = Query(..., min_length=1)) -> dict:
    merchant = _service().monitor.documents.get_merchant_risk(name)
    if merchant is None:
        raise _not_found("Merchant", name)
    return asdict(merchant)


@app.get("/reference/customers/{user_id}")
def customer_policy(user_id: str) -> dict:
    policy = _service().monitor.documents.get_customer_policy(user_id)
    if policy is None:
        raise _not_found("Customer policy for", user_id)
    return asdict(policy)


@app.post("/compliance/check")
def compliance_check(payload: ComplianceRequest) -> dict:
    result = _service().monitor.documents.check_policy_compliance(payload.user_id, payload.amount, payload.country)
    return asdict(result)


@app.get("/audit_logs")
def audit_logs(limit: int = Query(10, ge=1, le=500)) -> List[dict]:
    service = _service()
    with service.lock:
        return [entry.to_dict() for entry in service.monitor.documents.get_audit_logs(limit)]


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "fraudwatch.api:app",
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        reload=bool(os.getenv("FRAUDWATCH_API_RELOAD", "")),
    )
