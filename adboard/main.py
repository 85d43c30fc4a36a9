from __future__ import annotations

from fastapi import FastAPI, HTTPException

from adboard.api.routers import access, resources
from adboard.infra.db import check_db_ready
from adboard.infra.logging import configure_logging

configure_logging()

app = FastAPI(
    title="adboard-access",
    description="Authorization and data-ownership core for the advertising dashboard.",
    version="0.1.0",
)

app.include_router(access.router, prefix="/api/access", tags=["access"])
app.include_router(resources.router, prefix="/api/resources", tags=["resources"])


@app.get("/healthz")
def healthz() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/readyz")
def readyz() -> dict[str, object]:
    db_ok = check_db_ready()
    checks = {"db": "ok" if db_ok else "fail"}
    if not db_ok:
        raise HTTPException(
            status_code=503,
            detail={"status": "not_ready", "checks": checks},
        )
    return {"status": "ready", "checks": checks}
