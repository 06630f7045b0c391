"""Shared WebSocket plumbing: authenticated connect, personal group, message routing."""

import logging
from typing import Any, Dict

from channels.generic.websocket import AsyncJsonWebsocketConsumer

logger = logging.getLogger(__name__)


def personal_group(user_id) -> str:
    """Group every socket of one user listens on; notifications.dispatch sends here."""
    return f"user_{user_id}"


class BaseConsumer(AsyncJsonWebsocketConsumer):
    """
    Accepts only authenticated users and subscribes the socket to the user's
    personal group. Incoming JSON is dispatched on its "type" key to
    handle_message(), which subclasses extend.
    """

    group_name = None

    async def connect(self):
        user = self.scope.get("user")
        if user is None or user.is_anonymous:
            await self.close()
            return

        self.user_id = user.id
        self.group_name = personal_group(self.user_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()
        await self.send_json({"type": "connection_established", "user_id": self.user_id})

    async def disconnect(self, close_code):
        if not self.group_name:
            return
        try:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
        except Exception:
            logger.exception("Could not leave %s on close (%s)", self.group_name, close_code)

    async def receive_json(self, content: Dict[str, Any], **kwargs):
        msg_type = content.get("type")
        if not msg_type:
            await self.send_error("Message type is required")
            return

        try:
            await self.handle_message(msg_type, content)
        except Exception:
            logger.exception("Socket message %s from user %s failed", msg_type, self.user_id)
            await self.send_error(f"Error processing {msg_type}")

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        await self.send_error(f"Unknown message type: {msg_type}")

    async def send_error(self, message: str):
        await self.send_json({"type": "error", "message": message})
