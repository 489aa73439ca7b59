from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Request, status

from amen_messaging.api.deps import CurrentPrincipal, StorageDep, UoWDep
from amen_messaging.api.v1.schemas.misc import AttachmentUploadResponse
from amen_messaging.services import attachment_service

router = APIRouter(prefix="/api/v1/messaging/conversations", tags=["attachments"])


@router.post(
    "/{conversation_id}/attachments",
    response_model=AttachmentUploadResponse,
    status_code=status.HTTP_201_CREATED,
)
async def upload_attachment(
    conversation_id: UUID,
    request: Request,
    principal: CurrentPrincipal,
    uow: UoWDep,
    storage: StorageDep,
) -> AttachmentUploadResponse:
    """Upload the raw request body; the Content-Type header decides the attachment type."""
    content_type = request.headers.get("content-type", "application/octet-stream")
    data = await request.body()
    attachment = await attachment_service.upload_attachment(
        conversation_id, principal, data, content_type, uow, storage,
    )
    return AttachmentUploadResponse.from_entity(attachment)
