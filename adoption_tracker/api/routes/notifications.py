"""Notification subscriber management, test sends, and delivery logs."""

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from adoption_tracker.api.auth import verify_api_key
from adoption_tracker.api.dependencies import get_dispatcher, get_notification_repository
from adoption_tracker.api.models import (
    CreateNotificationRequest,
    ErrorResponse,
    NotificationConfigItem,
    NotificationConfigsResponse,
    NotificationLogItem,
    NotificationLogsResponse,
    NotificationTestResponse,
    UpdateNotificationRequest,
)
from adoption_tracker.notifications.channels import DeliveryError, ProviderConfigError
from adoption_tracker.notifications.config import NotificationsConfig
from adoption_tracker.notifications.dispatcher import NotificationDispatcher
from adoption_tracker.notifications.repository import NotificationRepository
from adoption_tracker.notifications.schemas import NotificationConfig

logger = structlog.get_logger(__name__)
router = APIRouter()


def _to_item(config: NotificationConfig) -> NotificationConfigItem:
    return NotificationConfigItem(**config.to_dict())


async def _get_or_404(repo: NotificationRepository, config_id: int) -> NotificationConfig:
    config = await repo.get(config_id)
    if config is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification config {config_id} not found",
        )
    return config


@router.get(
    "/api/notifications",
    response_model=NotificationConfigsResponse,
    responses={401: {"model": ErrorResponse}},
    summary="List notification subscribers",
)
async def list_notifications(
    api_key: str = Depends(verify_api_key),
    repo: NotificationRepository = Depends(get_notification_repository),
) -> NotificationConfigsResponse:
    configs = await repo.list_all()
    return NotificationConfigsResponse(
        configs=[_to_item(c) for c in configs],
        total=len(configs),
    )


@router.post(
    "/api/notifications",
    response_model=NotificationConfigItem,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid channel payload"},
        401: {"model": ErrorResponse},
    },
    summary="Create a notification subscriber",
)
async def create_notification(
    body: CreateNotificationRequest,
    api_key: str = Depends(verify_api_key),
    repo: NotificationRepository = Depends(get_notification_repository),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> NotificationConfigItem:
    try:
        dispatcher.validate_config(body.type, body.config)
    except ProviderConfigError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    created = await repo.create(
        NotificationConfig(
            name=body.name,
            type=body.type,
            config=body.config,
            enabled=body.enabled,
        )
    )
    logger.info("Notification config created", config_id=created.id, type=created.type)
    return _to_item(created)


@router.get(
    "/api/notifications/{config_id}",
    response_model=NotificationConfigItem,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Get a notification subscriber",
)
async def get_notification(
    config_id: int,
    api_key: str = Depends(verify_api_key),
    repo: NotificationRepository = Depends(get_notification_repository),
) -> NotificationConfigItem:
    return _to_item(await _get_or_404(repo, config_id))


@router.put(
    "/api/notifications/{config_id}",
    response_model=NotificationConfigItem,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid channel payload"},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
    },
    summary="Update a notification subscriber",
)
async def update_notification(
    config_id: int,
    body: UpdateNotificationRequest,
    api_key: str = Depends(verify_api_key),
    repo: NotificationRepository = Depends(get_notification_repository),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> NotificationConfigItem:
    existing = await _get_or_404(repo, config_id)

    # Validate the subscriber as it will look after the update
    if body.type is not None or body.config is not None:
        try:
            dispatcher.validate_config(
                body.type or existing.type,
                body.config if body.config is not None else existing.config,
            )
        except ProviderConfigError as e:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    updated = await repo.update(
        config_id,
        name=body.name,
        type=body.type,
        enabled=body.enabled,
        config=body.config,
    )
    if updated is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification config {config_id} not found",
        )
    return _to_item(updated)


@router.delete(
    "/api/notifications/{config_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Delete a notification subscriber and its log",
)
async def delete_notification(
    config_id: int,
    api_key: str = Depends(verify_api_key),
    repo: NotificationRepository = Depends(get_notification_repository),
) -> Response:
    if not await repo.delete(config_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Notification config {config_id} not found",
        )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post(
    "/api/notifications/{config_id}/test",
    response_model=NotificationTestResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Invalid channel payload"},
        401: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        502: {"model": ErrorResponse, "description": "Delivery failed"},
    },
    summary="Send a test notification",
)
async def send_test_notification(
    config_id: int,
    api_key: str = Depends(verify_api_key),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> NotificationTestResponse:
    try:
        await dispatcher.send_test(config_id)
    except LookupError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ProviderConfigError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except DeliveryError as e:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(e))

    return NotificationTestResponse(success=True, message="Test notification sent")


@router.get(
    "/api/notifications/{config_id}/logs",
    response_model=NotificationLogsResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    summary="Recent delivery attempts for a subscriber",
)
async def notification_logs(
    config_id: int,
    limit: int = Query(default=NotificationsConfig().log_default_limit, ge=1, le=500),
    api_key: str = Depends(verify_api_key),
    repo: NotificationRepository = Depends(get_notification_repository),
) -> NotificationLogsResponse:
    await _get_or_404(repo, config_id)
    logs = await repo.get_logs(config_id, limit)
    return NotificationLogsResponse(
        logs=[NotificationLogItem(**log.to_dict()) for log in logs],
        total=len(logs),
    )
