"""Start the dashboard API under uvicorn, with app and audit logs on stdout."""
import logging

import uvicorn

from app.core.config import settings


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    # Audit lines are JSON already
    audit = logging.getLogger("audit")
    audit.propagate = False
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(message)s"))
    audit.addHandler(handler)
    audit.setLevel(logging.INFO)


if __name__ == "__main__":
    configure_logging()
    print(f"Pharmacy Dashboard Backend on http://{settings.HOST}:{settings.PORT}")
    print(f"  environment: {settings.ENVIRONMENT}  database: {settings.DATABASE_URL.split('://')[0]}")
    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level=settings.LOG_LEVEL.lower(),
    )
