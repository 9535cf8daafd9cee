# Internal Feature - Dependencies

import secrets
from typing import Optional
from fastapi import Header
from carechat.config import settings
from carechat.core.logging import logger
from carechat.shared.exceptions import CredentialsException


async def verify_internal_key(x_internal_key: Optional[str] = Header(None)) -> None:
    """
    Guard for collaborator-to-chat calls.

    Raises:
        CredentialsException: key missing, wrong, or INTERNAL_API_KEY unset
    """
    if not settings.INTERNAL_API_KEY:
        logger.warning("Internal call refused: INTERNAL_API_KEY is not configured")
        raise CredentialsException("Invalid internal key")

    if not x_internal_key or not secrets.compare_digest(x_internal_key, settings.INTERNAL_API_KEY):
        raise CredentialsException("Invalid internal key")
