"""
Pharmacy Dashboard Backend: multi-tenant sales and inventory API.

ARCHITECTURE:
- Web dashboard (admin + staff UIs): renders what this API returns
- FastAPI backend: tenancy, sale transaction core, alerts, debts
- SQL database (SQLite by default): source of truth for all state

SALE MODEL:
- A sale reserves stock, then saves the receipt; any failure in between
  releases the stock again (see app.services.sale_coordinator)
- Request tokens make checkout retries safe
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import analytics, debts, medicines, notifications, pharmacies, sales
from app.core.config import settings
from app.db.init_db import init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create database tables and the first admin account.
    """
    logger.info("Initializing database...")
    init_db()
    logger.info("Database initialized")
    yield


app = FastAPI(
    title="Pharmacy Dashboard API",
    description="Pharmacies, medicines, sales, debts and stock alerts.",
    version="0.1.0",
    lifespan=lifespan,
)

# Restrict CORS to specific methods and headers (not wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=[
        "Content-Type",
        "Accept",
        "Origin",
        "X-Staff-Id",
    ],
    max_age=600,  # Cache preflight for 10 minutes
)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"  # Prevent MIME sniffing
    response.headers["X-Frame-Options"] = "DENY"  # Prevent clickjacking
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response

app.include_router(pharmacies.router, prefix="/pharmacies", tags=["pharmacies"])
app.include_router(medicines.router, prefix="/medicines", tags=["medicines"])
app.include_router(sales.router, tags=["sales"])
app.include_router(debts.router, prefix="/debts", tags=["debts"])
app.include_router(notifications.router, prefix="/notifications", tags=["notifications"])
app.include_router(analytics.router, prefix="/analytics", tags=["analytics"])


@app.get("/health")
def health():
    return {"status": "ok"}
