"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from app.config import settings
from app.database import Base, engine

# Import routers
from app.routers import approvals, records, policy

# Import all models so Base.metadata knows about them
from app.models.department import Department          # noqa: F401
from app.models.operational import (                  # noqa: F401
    CriticalIssue,
    MaintenanceRoutine,
    KtaTta,
    SafetyIncident,
    EnergyTarget,
    EnergyConsumption,
)
from app.models.approval_request import ApprovalRequest  # noqa: F401
from app.models.data_mutation import DataMutation        # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="Operational Dashboard",
    description="Operational reporting backend with role-based approval of data changes",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(approvals.router, prefix="/api/approvals", tags=["Approvals"])
app.include_router(records.router, prefix="/api/records", tags=["Records"])
app.include_router(policy.router, prefix="/api", tags=["Policy"])


@app.on_event("startup")
def on_startup():
    """Create database tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
