from types import SimpleNamespace

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from channels.testing import WebsocketCommunicator
from django.contrib.auth.models import AnonymousUser
from django.test import SimpleTestCase

from .consumers import NotificationConsumer


class NotificationConsumerTests(SimpleTestCase):
	def test_booking_events_reach_user(self):
		async_to_sync(self._booking_events_reach_user)()

	async def _booking_events_reach_user(self):
		communicator = WebsocketCommunicator(NotificationConsumer.as_asgi(), "/ws/notifications/")
		communicator.scope["user"] = SimpleNamespace(id=7, is_anonymous=False)

		connected, _ = await communicator.connect()
		self.assertTrue(connected)
		greeting = await communicator.receive_json_from()
		self.assertEqual(greeting, {"type": "connection_established", "user_id": 7})

		await get_channel_layer().group_send(
			"user_7",
			{"type": "booking_event", "event": "trip_started", "booking_id": 3},
		)
		message = await communicator.receive_json_from()
		self.assertEqual(message, {"type": "booking_event", "event": "trip_started", "booking_id": 3})

		await communicator.send_json_to({"type": "ping"})
		self.assertEqual(await communicator.receive_json_from(), {"type": "pong"})

		await communicator.disconnect()

	def test_anonymous_connection_refused(self):
		async_to_sync(self._anonymous_connection_refused)()

	async def _anonymous_connection_refused(self):
		communicator = WebsocketCommunicator(NotificationConsumer.as_asgi(), "/ws/notifications/")
		communicator.scope["user"] = AnonymousUser()

		connected, _ = await communicator.connect()
		self.assertFalse(connected)
