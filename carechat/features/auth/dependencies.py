from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
from carechat.features.auth.schemas import CurrentIdentity, ChatIdentity
from carechat.features.messages.models import ChatRole
from carechat.core.security import decode_token
from carechat.core.logging import logger
from carechat.shared.exceptions import CredentialsException, ForbiddenException


# HTTP Bearer security scheme; a missing header is reported as 401 below
security = HTTPBearer(auto_error=False)


def identity_from_token(token: Optional[str]) -> Optional[CurrentIdentity]:
    """
    Resolve an access token to the identity it asserts.

    Returns:
        CurrentIdentity, or None when the token is missing, invalid,
        expired or lacks the `sub` / `user_type` claims
    """
    if not token:
        return None

    payload = decode_token(token)
    if payload is None:
        return None

    user_id = payload.get("sub")
    user_type = payload.get("user_type")
    if not user_id or not user_type:
        logger.warning(f"Token missing identity claims: {sorted(payload.keys())}")
        return None

    return CurrentIdentity(id=str(user_id), user_type=str(user_type))


def to_chat_identity(identity: CurrentIdentity) -> ChatIdentity:
    """Narrow an identity to a chat role; other account types cannot chat."""
    try:
        role = ChatRole(identity.user_type)
    except ValueError:
        raise ForbiddenException("Invalid conversation participants")
    return ChatIdentity(id=identity.id, role=role)


async def get_current_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> CurrentIdentity:
    """
    Dependency to get the current authenticated identity.

    Raises:
        CredentialsException: If credentials are missing or invalid
    """
    if credentials is None:
        raise CredentialsException("Access denied. No token provided.")

    identity = identity_from_token(credentials.credentials)
    if identity is None:
        raise CredentialsException("Invalid or expired token.")

    return identity


async def get_chat_identity(
    identity: CurrentIdentity = Depends(get_current_identity)
) -> ChatIdentity:
    """Dependency for chat endpoints: authenticated patient, lab or phlebotomist."""
    return to_chat_identity(identity)
