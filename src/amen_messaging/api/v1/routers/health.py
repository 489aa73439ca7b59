from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from amen_messaging.infrastructure.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])

CHECK_TIMEOUT_SECONDS = 2.0


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


async def _check_postgres() -> None:
    async with AsyncSessionLocal() as session:
        await session.execute(text("SELECT 1"))


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    checks = {
        "postgres": _check_postgres(),
        "redis": request.app.state.redis.ping(),
    }
    errors: list[str] = []
    for name, check in checks.items():
        try:
            await asyncio.wait_for(check, CHECK_TIMEOUT_SECONDS)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Readiness check %s failed: %s", name, exc)
            errors.append(f"{name}: {exc}")

    if errors:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": errors},
        )
    synchronizer = getattr(request.app.state, "synchronizer", None)
    return JSONResponse(
        content={
            "status": "ready",
            "live_views": synchronizer.channel_count if synchronizer else 0,
        },
    )
