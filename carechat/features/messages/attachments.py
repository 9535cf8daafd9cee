# Messages Feature - Attachment codec
#
# Uploaded parts become embedded Attachment records; every JSON path goes
# through message_to_response() so binary payloads never leave except via
# the single-attachment endpoint.

import io
from typing import List
from fastapi import UploadFile
from PIL import Image, UnidentifiedImageError
from carechat.config import settings
from carechat.features.messages.models import Attachment, Message
from carechat.features.messages.schemas import AttachmentResponse, MessageResponse
from carechat.shared.exceptions import BadRequestException


PDF_MAGIC = b"%PDF-"


def _check_payload(filename: str, content_type: str, data: bytes) -> None:
    """Reject payloads that do not match their declared type."""
    if content_type == "application/pdf":
        if not data.startswith(PDF_MAGIC):
            raise BadRequestException(f"File '{filename}' is not a valid PDF document.")
        return

    try:
        with Image.open(io.BytesIO(data)) as image:
            image.verify()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError):
        raise BadRequestException(f"File '{filename}' is not a valid image.")


async def read_attachments(files: List[UploadFile]) -> List[Attachment]:
    """
    Read uploaded files into attachment records.

    All parts are read and validated before anything is stored, so a bad
    part rejects the whole message.

    Raises:
        BadRequestException: too many parts, unsupported type, oversized
            part or message, or a payload that does not match its type
    """
    files = [f for f in files or [] if f is not None and f.filename]

    if len(files) > settings.CHAT_MAX_ATTACHMENTS:
        raise BadRequestException(
            f"Too many files. At most {settings.CHAT_MAX_ATTACHMENTS} attachments are allowed per message."
        )

    allowed_types = settings.chat_allowed_content_types
    attachments: List[Attachment] = []
    total_size = 0

    for upload in files:
        content_type = (upload.content_type or "").lower()
        if content_type not in allowed_types:
            raise BadRequestException("Invalid file type. Only JPEG, PNG, WEBP and PDF are allowed.")

        data = await upload.read()
        size = len(data)
        if size > settings.CHAT_MAX_ATTACHMENT_BYTES:
            limit_mb = settings.CHAT_MAX_ATTACHMENT_BYTES // (1024 * 1024)
            raise BadRequestException(f"File '{upload.filename}' exceeds the {limit_mb}MB limit.")

        total_size += size
        if total_size > settings.CHAT_MAX_MESSAGE_BYTES:
            limit_mb = settings.CHAT_MAX_MESSAGE_BYTES // (1024 * 1024)
            raise BadRequestException(f"Attachments exceed the {limit_mb}MB total per message.")

        _check_payload(upload.filename, content_type, data)

        attachments.append(Attachment(
            filename=upload.filename,
            content_type=content_type,
            size=size,
            data=data,
        ))

    return attachments


def attachment_meta(attachment: Attachment) -> AttachmentResponse:
    """Attachment without its binary payload."""
    return AttachmentResponse(
        id=attachment.id,
        filename=attachment.filename,
        content_type=attachment.content_type,
        size=attachment.size,
    )


def message_to_response(message: Message) -> MessageResponse:
    """Serializable view of a message with every attachment's data stripped."""
    return MessageResponse(
        id=str(message.id),
        conversation=message.conversation,
        sender=message.sender,
        sender_id=message.sender_id,
        content=message.content,
        attachments=[attachment_meta(a) for a in message.attachments],
        status=message.status,
        created_at=message.created_at,
        updated_at=message.updated_at,
    )


def inline_disposition(filename: str) -> str:
    """Content-Disposition value for rendering an attachment inline."""
    safe = "".join(ch for ch in filename if ch.isprintable() and ch not in '"\\')
    # Header values must be latin-1 encodable
    safe = safe.encode("latin-1", "replace").decode("latin-1")
    return f'inline; filename="{safe or "attachment"}"'
