"""FastAPI dependencies."""

from __future__ import annotations

from starlette.requests import Request

from corebridge_licensing.context import LicensingContext


def get_context(request: Request) -> LicensingContext:
    """The context the app was created with."""
    return request.app.state.context
