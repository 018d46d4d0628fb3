"""Service endpoints: health, plugin search, scheduler status."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, Depends, Query
from starlette.requests import Request
from starlette.responses import JSONResponse

from corebridge_licensing import __version__
from corebridge_licensing.api.dependencies import get_context
from corebridge_licensing.context import LicensingContext

router = APIRouter()


@router.get("/health")
async def health(ctx: LicensingContext = Depends(get_context)):
    """Liveness plus a database round trip."""
    timestamp = datetime.now(UTC).isoformat()
    if await ctx.database.ping():
        return {
            "status": "healthy",
            "service": "CoreBridge License Manager",
            "version": __version__,
            "database": "connected",
            "timestamp": timestamp,
        }
    return JSONResponse(
        {"status": "unhealthy", "database": "unreachable", "timestamp": timestamp},
        status_code=503,
    )


@router.get("/api/plugins")
async def search_plugins(
    q: str = "",
    limit: int = Query(default=20, ge=1, le=100),
    ctx: LicensingContext = Depends(get_context),
):
    """Autocomplete over the mirrored plugin catalog."""
    plugins = await ctx.catalog.search(q, limit=limit)
    return {"plugins": [p.to_dict() for p in plugins]}


@router.get("/api/scheduler")
async def scheduler_status(request: Request):
    scheduler = getattr(request.app.state, "scheduler", None)
    if scheduler is None:
        return {"running": False, "tasks": []}
    return {"running": scheduler.is_running, "tasks": scheduler.get_status()}
