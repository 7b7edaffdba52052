"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from assist_signaling.containers import AppContainer

router = APIRouter(prefix="/admin", tags=["admin"])


def _get_admin_token(request: Request) -> str | None:
    container: AppContainer = request.app.state.container
    return container.settings.admin_token


async def require_admin(
    x_admin_token: str | None = Header(default=None),
    admin_token: str | None = Depends(_get_admin_token),
) -> None:
    """Ensure requests include a valid admin token."""
    if not admin_token or not x_admin_token or x_admin_token != admin_token:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED)


@router.get("/sessions", dependencies=[Depends(require_admin)])
async def list_sessions(request: Request) -> dict[str, object]:
    """Return pending and active call sessions."""
    container: AppContainer = request.app.state.container
    return {"sessions": await container.broker.list_sessions()}


@router.get("/queue", dependencies=[Depends(require_admin)])
async def list_queue(request: Request) -> dict[str, object]:
    """Return users waiting for a professional, in order."""
    container: AppContainer = request.app.state.container
    return {"waiting": await container.broker.list_waiting()}
