"""
Notification endpoints
======================

GET  /api/v1/notifications/{recipient_id}                         -- newest first, at most 20
POST /api/v1/notifications/{recipient_id}/{notification_id}/read  -- mark as read
"""

from fastapi import APIRouter, Depends, HTTPException, Request

from carpool.api.dependencies import get_services
from carpool.api.middleware import limiter
from carpool.api.schemas import NotificationResponse
from carpool.container import Services

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get(
    "/{recipient_id}",
    response_model=list[NotificationResponse],
    summary="Recent notifications for a user",
)
@limiter.limit("100/minute")
async def list_notifications(
    request: Request,
    recipient_id: str,
    services: Services = Depends(get_services),
):
    return [
        NotificationResponse.model_validate(n)
        for n in await services.dispatcher.inbox.list(recipient_id)
    ]


@router.post(
    "/{recipient_id}/{notification_id}/read",
    status_code=204,
    summary="Mark a notification as read",
)
@limiter.limit("100/minute")
async def mark_notification_read(
    request: Request,
    recipient_id: str,
    notification_id: str,
    services: Services = Depends(get_services),
):
    if not await services.dispatcher.inbox.mark_read(recipient_id, notification_id):
        raise HTTPException(status_code=404, detail="Notification not found")
