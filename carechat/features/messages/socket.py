# Messages Feature - Socket.IO Server

import socketio
from typing import Optional, Dict, Any, Union
from fastapi import HTTPException
from carechat.config import settings
from carechat.core.security import bearer_token_from_header
from carechat.core.logging import logger
from carechat.features.auth.dependencies import identity_from_token
from carechat.features.auth.schemas import ChatIdentity
from carechat.features.messages.models import ChatRole
from carechat.features.messages.service import ConversationService


# Create Socket.IO server with ASGI support
sio = socketio.AsyncServer(
    async_mode="asgi",
    cors_allowed_origins=settings.cors_origins,
    logger=False,
    engineio_logger=False,
)

# Store connected users: {sid: {user_type, user_id}}
connected_users: Dict[str, Dict[str, Any]] = {}

# Store which conversations each socket is in: {sid: set of conversation_ids}
socket_conversations: Dict[str, set] = {}


def room_for(conversation_id: str) -> str:
    return f"conversation_{conversation_id}"


async def authenticate_socket(auth_data: Optional[Dict], environ: Optional[Dict] = None) -> Optional[Dict]:
    """
    Authenticate a socket connection using JWT token.

    The token comes from the handshake auth payload, or failing that from
    the `Authorization: Bearer` header of the upgrade request.

    Args:
        auth_data: Authentication data containing token
        environ: WSGI-style environ of the handshake request

    Returns:
        User info dict or None if authentication fails
    """
    token = None
    if isinstance(auth_data, dict):
        token = auth_data.get("token")
    if not token and environ:
        token = bearer_token_from_header(environ.get("HTTP_AUTHORIZATION"))

    if not token:
        logger.warning("Socket connection attempted without token")
        return None

    identity = identity_from_token(token)
    if identity is None:
        logger.warning("Socket connection with invalid token")
        return None

    return {
        "user_type": identity.user_type,
        "user_id": identity.id,
    }


def _conversation_id_from(data: Union[str, Dict, None]) -> Optional[str]:
    """Join/leave payloads are either the bare id or an object carrying it."""
    if isinstance(data, str):
        return data or None
    if isinstance(data, dict):
        return data.get("conversationId") or data.get("conversation_id")
    return None


async def _emit_error(sid: str, message: str, code: int) -> None:
    await sio.emit("error", {"message": message, "code": code}, room=sid)


@sio.event
async def connect(sid, environ, auth=None):
    """Handle client connection."""
    try:
        user_info = await authenticate_socket(auth, environ)
    except Exception as e:
        logger.error(f"Socket authentication error: {e}")
        return False

    if not user_info:
        logger.warning(f"Socket authentication failed: {sid}")
        return False  # Reject connection

    connected_users[sid] = user_info
    socket_conversations[sid] = set()

    logger.info(f"Socket connected: {sid} ({user_info['user_type']}: {user_info['user_id']})")
    return True


@sio.event
async def disconnect(sid, *args):
    """Handle client disconnection."""
    user_info = connected_users.pop(sid, None)
    conversations = socket_conversations.pop(sid, set())

    if user_info:
        logger.info(
            f"Socket disconnected: {sid} ({user_info['user_type']}: {user_info['user_id']}), "
            f"left {len(conversations)} rooms"
        )
    else:
        logger.info(f"Socket disconnected: {sid}")


@sio.event
async def join_conversation(sid, data):
    """
    Join a conversation room.

    Only conversing participants may join; anyone else gets an `error`
    event instead of `joined`.

    Args:
        data: "<conversationId>" or {"conversationId": "..."}
    """
    user_info = connected_users.get(sid)
    if not user_info:
        await _emit_error(sid, "Not authenticated", 401)
        return

    conversation_id = _conversation_id_from(data)
    if not conversation_id:
        await _emit_error(sid, "conversationId required", 400)
        return

    try:
        identity = ChatIdentity(id=user_info["user_id"], role=ChatRole(user_info["user_type"]))
        await ConversationService.get_for_participant(conversation_id, identity)
    except ValueError:
        await _emit_error(sid, "Invalid conversation participants", 403)
        return
    except HTTPException as e:
        logger.warning(f"Socket {sid} refused conversation {conversation_id}: {e.detail}")
        await _emit_error(sid, e.detail, e.status_code)
        return

    await sio.enter_room(sid, room_for(conversation_id))
    socket_conversations.setdefault(sid, set()).add(conversation_id)

    logger.info(f"{user_info['user_type']} {user_info['user_id']} joined conversation {conversation_id}")

    await sio.emit("joined", {"conversationId": conversation_id}, room=sid)


@sio.event
async def leave_conversation(sid, data):
    """
    Leave a conversation room.

    Args:
        data: "<conversationId>" or {"conversationId": "..."}
    """
    user_info = connected_users.get(sid)
    if not user_info:
        return

    conversation_id = _conversation_id_from(data)
    if not conversation_id:
        return

    await sio.leave_room(sid, room_for(conversation_id))
    socket_conversations.get(sid, set()).discard(conversation_id)

    logger.info(f"{user_info['user_type']} {user_info['user_id']} left conversation {conversation_id}")

    await sio.emit("left", {"conversationId": conversation_id}, room=sid)


class RoomBroadcaster:
    """Emits events to everyone in a conversation room, the sender included."""

    def __init__(self, server: socketio.AsyncServer):
        self.server = server

    async def broadcast(self, conversation_id: str, event: str, payload: Dict[str, Any]) -> None:
        await self.server.emit(event, payload, room=room_for(conversation_id))
