"""Per-user notification stream for riders and drivers."""

import logging
from typing import Any, Dict

from .base import BaseConsumer

logger = logging.getLogger(__name__)


class NotificationConsumer(BaseConsumer):
    """
    Pushes booking lifecycle events to the connected user.

    Client -> server:
        {"type": "ping"}

    Server -> client:
        {"type": "booking_event", "event": "<notification type>", "booking_id": ..., ...}
    """

    async def handle_message(self, msg_type: str, data: Dict[str, Any]):
        if msg_type == "ping":
            await self.send_json({"type": "pong"})
            return
        await super().handle_message(msg_type, data)

    # ---------------------- Group Event Handlers ----------------------

    async def booking_event(self, event):
        """Sent by notifications.dispatch.push_user_event()."""
        payload = {key: value for key, value in event.items() if key != "type"}
        logger.debug("Delivering %s to user %s", payload.get("event"), self.user_id)
        await self.send_json({"type": "booking_event", **payload})
