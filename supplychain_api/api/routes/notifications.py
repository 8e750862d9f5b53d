from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from supplychain_api.core.deps import get_current_active_user, get_notification_emitter, rate_limit, require_roles
from supplychain_api.core.errors import ApiError, ErrorCode, bad_request, not_found
from supplychain_api.db.models.notifications import NotificationType
from supplychain_api.db.models.security import User
from supplychain_api.db.session import get_async_session
from supplychain_api.repositories.notifications import NotificationRepository
from supplychain_api.repositories.security import UserRepository
from supplychain_api.schemas.common import SuccessResponse
from supplychain_api.schemas.notifications import (
    MANUAL_NOTIFICATION_TYPES,
    BulkCreateResponse,
    BulkNotificationCreate,
    NotificationCreate,
    NotificationList,
    NotificationRead,
    ReadAllResponse,
    SystemNotificationCreate,
    SystemNotificationResponse,
    UnreadCount,
    parse_payload,
)
from supplychain_api.services.notifications import NotificationEmitter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications", tags=["Notifications"])


def _parse_notification_id(value: str) -> UUID:
    """Reject malformed ids before any database access."""
    try:
        return UUID(value)
    except ValueError:
        raise bad_request(ErrorCode.INVALID_ID, "Invalid notification ID")


def _check_manual_payload(notification_type: NotificationType, data: Dict[str, Any]) -> None:
    if notification_type not in MANUAL_NOTIFICATION_TYPES:
        allowed = sorted(t.value for t in MANUAL_NOTIFICATION_TYPES)
        raise bad_request(
            ErrorCode.INVALID_TYPE,
            f"Notification type {notification_type.value} cannot be created manually",
            details={"allowed": allowed},
        )
    try:
        parse_payload(notification_type, data)
    except ValidationError as exc:
        raise bad_request(
            ErrorCode.VALIDATION_ERROR,
            f"Invalid data for {notification_type.value} notification",
            details=exc.errors(include_url=False, include_context=False),
        )


# PUBLIC_INTERFACE
@router.get(
    "",
    response_model=NotificationList,
    summary="List notifications",
    description="List the caller's notifications, newest first, with optional filters.",
    dependencies=[Depends(rate_limit("notifications:list"))],
)
async def list_notifications(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
    type: Optional[NotificationType] = Query(None, description="Filter by notification type"),
    read: Optional[bool] = Query(None, description="Filter by read state"),
    before: Optional[datetime] = Query(None, description="Only notifications created before this instant"),
    limit: int = Query(20, ge=1, le=100, description="Max records"),
) -> NotificationList:
    """
    Return a page of the caller's notifications plus their unread count.

    Pages are cursor based: pass the created_at of the last item as `before`.
    """
    repo = NotificationRepository(session)
    rows = await repo.list_for_user(user.id, type=type, read=read, before=before, limit=limit + 1)
    unread = await repo.count_unread(user.id)
    return NotificationList(
        notifications=[NotificationRead.model_validate(r) for r in rows[:limit]],
        unread_count=unread,
        has_more=len(rows) > limit,
    )


# PUBLIC_INTERFACE
@router.get(
    "/unread",
    response_model=UnreadCount,
    summary="Unread notification count",
)
async def unread_count(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> UnreadCount:
    """Count the caller's unread notifications."""
    count = await NotificationRepository(session).count_unread(user.id)
    return UnreadCount(count=count)


# PUBLIC_INTERFACE
@router.put(
    "/read-all",
    response_model=ReadAllResponse,
    summary="Mark all notifications as read",
)
async def mark_all_read(
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> ReadAllResponse:
    count = await NotificationRepository(session).mark_all_read(user.id)
    logger.info("Marked %d notifications as read", count)
    return ReadAllResponse(count=count)


# PUBLIC_INTERFACE
@router.post(
    "",
    response_model=NotificationRead,
    status_code=status.HTTP_201_CREATED,
    summary="Create a notification (admin)",
    description="Create a notification for one recipient. Only manual notification types are accepted.",
)
async def create_notification(
    body: NotificationCreate,
    admin: User = Depends(require_roles("admin")),
    session: AsyncSession = Depends(get_async_session),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
) -> NotificationRead:
    """
    Create a notification on behalf of an administrator.

    Raises:
        400 INVALID_TYPE: type is not one of the manual types.
        400 VALIDATION_ERROR: data does not match the type's payload shape.
        404 USER_NOT_FOUND: recipient does not exist.
    """
    _check_manual_payload(body.type, body.data)
    if await UserRepository(session).get_user_by_id(body.recipient_id) is None:
        raise not_found("Recipient not found", code=ErrorCode.USER_NOT_FOUND)

    result = await emitter.emit(
        body.recipient_id, body.type, body.title, body.message, body.data, created_by=admin.id
    )
    if not result.success:
        raise ApiError(status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorCode.SERVER_ERROR, result.error or "Failed to create notification")
    return NotificationRead.model_validate(result.notification)


# PUBLIC_INTERFACE
@router.post(
    "/bulk",
    response_model=BulkCreateResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create notifications in bulk (admin)",
)
async def create_bulk_notifications(
    body: BulkNotificationCreate,
    admin: User = Depends(require_roles("admin")),
    session: AsyncSession = Depends(get_async_session),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
) -> BulkCreateResponse:
    """Create every listed notification in one transaction, or none of them."""
    for item in body.notifications:
        _check_manual_payload(item.type, item.data)

    users = UserRepository(session)
    for recipient_id in {item.user_id for item in body.notifications}:
        if await users.get_user_by_id(recipient_id) is None:
            raise not_found(f"Recipient {recipient_id} not found", code=ErrorCode.USER_NOT_FOUND)

    created = await emitter.emit_many(
        [item.model_dump() for item in body.notifications], created_by=admin.id
    )
    return BulkCreateResponse(
        count=len(created),
        notifications=[NotificationRead.model_validate(n) for n in created],
    )


# PUBLIC_INTERFACE
@router.post(
    "/system",
    response_model=SystemNotificationResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Send a system notification (admin)",
    description="Notify every active user, or only users with target_role.",
)
async def send_system_notification(
    body: SystemNotificationCreate,
    admin: User = Depends(require_roles("admin")),
    session: AsyncSession = Depends(get_async_session),
    emitter: NotificationEmitter = Depends(get_notification_emitter),
) -> SystemNotificationResponse:
    _check_manual_payload(body.type, body.data)
    recipients = await UserRepository(session).list_user_ids(role=body.target_role)
    if not recipients:
        raise not_found("No users found to notify", code=ErrorCode.NO_RECIPIENTS)

    rows = [
        {"user_id": uid, "type": body.type, "title": body.title, "message": body.message, "data": body.data}
        for uid in recipients
    ]
    created = await emitter.emit_many(rows, created_by=admin.id)
    logger.info("System notification sent to %d users (role=%s)", len(created), body.target_role)
    return SystemNotificationResponse(count=len(created), recipient_count=len(recipients))


# PUBLIC_INTERFACE
@router.get(
    "/{notification_id}",
    response_model=NotificationRead,
    summary="Get a notification",
)
async def get_notification(
    notification_id: str,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> NotificationRead:
    """Return one of the caller's notifications. Other users' ids behave as missing."""
    nid = _parse_notification_id(notification_id)
    notification = await NotificationRepository(session).get_for_user(nid, user.id)
    if notification is None:
        raise not_found("Notification not found")
    return NotificationRead.model_validate(notification)


# PUBLIC_INTERFACE
@router.put(
    "/{notification_id}/read",
    response_model=NotificationRead,
    summary="Mark a notification as read",
)
async def mark_notification_read(
    notification_id: str,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> NotificationRead:
    """
    Set read=true on the caller's notification. Repeating the call is harmless.

    Raises:
        400 INVALID_ID: notification_id is not a UUID.
        404 NOT_FOUND: no such notification for this user.
    """
    nid = _parse_notification_id(notification_id)
    notification = await NotificationRepository(session).mark_read(nid, user.id)
    if notification is None:
        raise not_found("Notification not found")
    return NotificationRead.model_validate(notification)


# PUBLIC_INTERFACE
@router.delete(
    "/{notification_id}",
    response_model=SuccessResponse,
    summary="Delete a notification",
)
async def delete_notification(
    notification_id: str,
    user: User = Depends(get_current_active_user),
    session: AsyncSession = Depends(get_async_session),
) -> SuccessResponse:
    nid = _parse_notification_id(notification_id)
    deleted = await NotificationRepository(session).delete_for_user(nid, user.id)
    if not deleted:
        raise not_found("Notification not found")
    return SuccessResponse(message="Notification deleted successfully")
