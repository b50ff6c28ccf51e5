"""Application configuration.

Environment variables override all defaults. A local `backend/.env` is loaded
for development without overriding the real environment.
"""

import os
from pathlib import Path
from typing import List

from dotenv import load_dotenv

_BACKEND_DIR = Path(__file__).resolve().parents[2]
load_dotenv(dotenv_path=_BACKEND_DIR / ".env", override=False)


class Settings:
    # Database Configuration
    DATABASE_URL: str = os.getenv("DATABASE_URL", "sqlite:///./pharmacy.db")

    # CORS (specific origins only, no wildcards)
    CORS_ORIGINS: List[str] = [
        origin.strip()
        for origin in os.getenv(
            "CORS_ORIGINS",
            "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000,http://127.0.0.1:3000",
        ).split(",")
        if origin.strip()
    ]

    # Sale transaction: extra attempts on a transient persistence failure
    # before the reservations are compensated and the sale is aborted.
    SALE_PERSIST_RETRIES: int = int(os.getenv("SALE_PERSIST_RETRIES", "1"))
    # In-flight attempts untouched this long are swept for reconciliation
    SALE_STALE_MINUTES: int = int(os.getenv("SALE_STALE_MINUTES", "15"))
    # Finished request tokens are kept this long for replays
    SALE_REQUEST_RETENTION_DAYS: int = int(os.getenv("SALE_REQUEST_RETENTION_DAYS", "90"))

    # Alerts
    EXPIRY_ALERT_DAYS: int = int(os.getenv("EXPIRY_ALERT_DAYS", "20"))
    DEFAULT_LOW_STOCK_THRESHOLD: int = int(os.getenv("DEFAULT_LOW_STOCK_THRESHOLD", "10"))

    # Listings
    RECEIPT_PAGE_LIMIT: int = int(os.getenv("RECEIPT_PAGE_LIMIT", "200"))

    # Server
    HOST: str = os.getenv("HOST", "127.0.0.1")
    PORT: int = int(os.getenv("PORT", "8000"))
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO").upper()

    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    DEBUG: bool = os.getenv("DEBUG", str(ENVIRONMENT == "development")).lower() in ("1", "true", "yes")


settings = Settings()
