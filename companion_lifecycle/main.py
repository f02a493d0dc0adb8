# companion_lifecycle/main.py

from fastapi import FastAPI

from companion_lifecycle.config import get_settings
from companion_lifecycle.logging_config import configure_logging
from companion_lifecycle.routers import admin_lifecycle_router

settings = get_settings()
configure_logging(json_format=settings.LOG_JSON, level=settings.LOG_LEVEL)

app = FastAPI(title="Companion Lifecycle")

app.include_router(admin_lifecycle_router)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

@app.get("/health")
def health() -> dict:
    return {"status": "ok", "service": "companion-lifecycle", "environment": settings.ENVIRONMENT}
