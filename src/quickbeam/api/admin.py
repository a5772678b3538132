"""Admin API endpoints with simple token auth."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import APIRouter, Depends, Header, HTTPException, Request, status

if TYPE_CHECKING:
    from quickbeam.containers import AppContainer

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


@router.get("/health", dependencies=[Depends(require_admin)])
async def admin_health() -> dict[str, str]:
    """Admin health check endpoint."""
    return {"status": "ok"}


@router.get("/sessions", dependencies=[Depends(require_admin)])
async def list_sessions(request: Request) -> dict[str, object]:
    """Return summaries of live sessions."""
    container: AppContainer = request.app.state.container
    summaries = container.session_service.summaries()
    return {
        "sessions": [
            {
                "id": summary.id,
                "status": summary.status.value,
                "createdAt": summary.created_at.isoformat(),
                "remainingMs": summary.remaining_ms,
                "imageCount": summary.image_count,
                "pendingCount": summary.pending_count,
            }
            for summary in summaries
        ]
    }


@router.get("/events", dependencies=[Depends(require_admin)])
async def list_events(
    request: Request, page: int = 1, limit: int = 50
) -> dict[str, object]:
    """Return recorded relay events, newest first."""
    if page < 1 or limit < 1:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid page or limit parameter.",
        )
    container: AppContainer = request.app.state.container
    result = container.event_service.page(page=page, limit=limit)
    return {
        "events": [
            {
                "timestamp": event.timestamp.isoformat(),
                "action": event.action.value,
                "sessionId": event.session_id,
                "ip": event.ip,
                "details": event.details,
            }
            for event in result.events
        ],
        "currentPage": result.page,
        "totalPages": result.total_pages,
        "totalEvents": result.total,
        "photoCount": container.event_service.photo_count(),
    }
