"""Gate API — the proxy reports connections and applies enforcement.

- POST /gate/login — admission decision (+ login notice)
- POST /gate/logout — forget a connection
- GET /gate/outbox — drain queued disconnects and messages
- POST /gate/listing — rewrite a server-list response
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request

from calmaint.api.auth import require_api_key
from calmaint.api.dependencies import get_registry, get_service
from calmaint.api.schemas import (
    ListingPayload,
    LoginResponse,
    LogoutRequest,
    LogoutResponse,
    OutboxItemResponse,
    PrincipalRequest,
)
from calmaint.enforcement.enforcer import ConnectionRegistry
from calmaint.maintenance.service import MaintenanceService

router = APIRouter(prefix="/gate")


@router.post("/login", response_model=LoginResponse)
async def login(
    request: Request,
    body: PrincipalRequest,
    _api_key: str = Depends(require_api_key),
    service: MaintenanceService = Depends(get_service),
    registry: ConnectionRegistry = Depends(get_registry),
) -> LoginResponse:
    """Admit or refuse a connecting principal.

    Admitted principals are registered so later enforcement reaches them.
    """
    principal = body.to_principal()
    decision = service.admit(principal)
    if not decision.allowed:
        return LoginResponse(allowed=False, message=decision.message)

    registry.register(principal)
    notice = await service.send_login_notice(principal)
    return LoginResponse(allowed=True, notice=notice)


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    request: Request,
    body: LogoutRequest,
    _api_key: str = Depends(require_api_key),
    registry: ConnectionRegistry = Depends(get_registry),
) -> LogoutResponse:
    return LogoutResponse(removed=registry.unregister(body.id) is not None)


@router.get("/outbox", response_model=list[OutboxItemResponse])
async def drain_outbox(
    request: Request,
    _api_key: str = Depends(require_api_key),
    registry: ConnectionRegistry = Depends(get_registry),
) -> list[OutboxItemResponse]:
    """Hand queued actions to the proxy. Each item is returned once."""
    return [OutboxItemResponse.from_item(item) for item in registry.drain_outbox()]


@router.post("/listing", response_model=ListingPayload)
async def rewrite_listing(
    request: Request,
    body: ListingPayload,
    _api_key: str = Depends(require_api_key),
    service: MaintenanceService = Depends(get_service),
) -> ListingPayload:
    """Return the listing to show: unchanged in Normal, rewritten in Maintenance."""
    return ListingPayload.from_listing(service.server_listing(body.to_listing()))
