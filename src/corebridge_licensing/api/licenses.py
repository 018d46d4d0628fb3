"""License endpoints: generate, validate, list, inspect, revoke, suspend."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel

from corebridge_licensing.api.dependencies import get_context
from corebridge_licensing.context import LicensingContext

router = APIRouter(prefix="/licenses", tags=["licenses"])


class GenerateRequest(BaseModel):
    plugin_id: str = ""
    customer_name: str = ""
    customer_email: str = ""
    license_type: str = ""
    max_activations: int | None = None


class ValidateRequest(BaseModel):
    license_key: str = ""
    plugin_id: str = ""
    machine_id: str | None = None


class StatusChangeRequest(BaseModel):
    reason: str = ""
    actor: str = "admin"


@router.post("/generate")
async def generate_license(
    body: GenerateRequest,
    ctx: LicensingContext = Depends(get_context),
):
    """Issue a new license and return its key."""
    license = await ctx.issuer.issue(
        plugin_id=body.plugin_id,
        customer_name=body.customer_name,
        customer_email=body.customer_email,
        license_type=body.license_type,
        max_activations=body.max_activations,
    )
    return {"success": True, **license.to_dict()}


@router.post("/validate")
async def validate_license(
    body: ValidateRequest,
    request: Request,
    ctx: LicensingContext = Depends(get_context),
):
    """Validate a key for a plugin; a machine id also records an activation.

    Negative verdicts are returned with status 200 and ``valid: false``.
    """
    verdict = await ctx.engine.validate(
        body.license_key,
        body.plugin_id,
        body.machine_id,
        ip_address=request.client.host if request.client else "",
        user_agent=request.headers.get("user-agent", ""),
    )
    return verdict.to_dict()


@router.get("")
async def list_licenses(
    status: str | None = None,
    plugin_id: str | None = None,
    page: int = 1,
    limit: int = 50,
    ctx: LicensingContext = Depends(get_context),
):
    result = await ctx.administrator.list_licenses(
        status=status, plugin_id=plugin_id, page=page, limit=limit
    )
    return {
        "licenses": [lic.to_dict() for lic in result.items],
        "pagination": {
            "page": result.page,
            "limit": result.limit,
            "total": result.total,
            "pages": result.pages,
        },
    }


@router.get("/expiring")
async def expiring_licenses(
    days: int = Query(default=30, ge=0),
    ctx: LicensingContext = Depends(get_context),
):
    """Active licenses expiring within the next *days* days."""
    licenses = await ctx.scanner.expiring_within(days)
    return {"licenses": [lic.to_dict() for lic in licenses], "count": len(licenses)}


@router.get("/{license_id}")
async def get_license(license_id: str, ctx: LicensingContext = Depends(get_context)):
    license, activations = await ctx.administrator.get_license(license_id)
    return {**license.to_dict(), "activations": [a.to_dict() for a in activations]}


@router.post("/{license_id}/revoke")
async def revoke_license(
    license_id: str,
    body: StatusChangeRequest,
    ctx: LicensingContext = Depends(get_context),
):
    result = await ctx.administrator.revoke(license_id, reason=body.reason, actor=body.actor)
    return {
        "success": True,
        "message": "License revoked successfully",
        "license_id": result.license_id,
        "revoked_activations": result.revoked_activations,
        "revoked_at": result.revoked_at.isoformat(),
    }


@router.post("/{license_id}/suspend")
async def suspend_license(
    license_id: str,
    body: StatusChangeRequest,
    ctx: LicensingContext = Depends(get_context),
):
    license = await ctx.administrator.suspend(license_id, reason=body.reason, actor=body.actor)
    return {"success": True, "license_id": license.id, "status": license.status}
