from datetime import timedelta
from io import StringIO
from unittest.mock import patch

from django.core import mail
from django.core.management import call_command
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from services.tests.helpers import make_booking, make_ride, make_user
from .backends import LocmemSmsBackend
from .dispatch import deliver_notification, notify, notify_parties, push_user_event
from .models import Notification
from .templates import redact_pii, render

TEMPLATE_DATA = {
	'rider_name': 'Riley',
	'driver_name': 'Dana',
	'recipient_name': 'Riley',
	'origin_text': 'North Campus',
	'dest_text': 'Metro Airport',
	'depart_at': '2026-11-20T08:30:00+00:00',
	'seats': 1,
	'estimated_cost_cents': 1250,
	'final_share_cents': 1175,
}


class DeliverNotificationTests(TestCase):
	def setUp(self):
		LocmemSmsBackend.outbox.clear()
		self.rider = make_user('rider', first_name='Riley')

	def _queue(self, channel=Notification.CHANNEL_EMAIL, notification_type='trip_completed', recipient=None):
		return Notification.objects.create(
			notification_type=notification_type,
			channel=channel,
			recipient=recipient or self.rider,
			template_data=TEMPLATE_DATA,
			max_attempts=3,
		)

	def test_email_sent(self):
		notification = self._queue()

		self.assertIsNone(deliver_notification(notification.id))

		notification.refresh_from_db()
		self.assertEqual(notification.status, Notification.STATUS_SENT)
		self.assertEqual(notification.attempts, 1)
		self.assertIsNotNone(notification.sent_at)
		self.assertEqual(len(mail.outbox), 1)
		self.assertEqual(mail.outbox[0].to, ['rider@campus.edu'])
		self.assertIn('$11.75', mail.outbox[0].body)

	def test_sms_sent_through_backend(self):
		notification = self._queue(channel=Notification.CHANNEL_SMS, notification_type='trip_started')

		deliver_notification(notification.id)

		self.assertEqual(len(LocmemSmsBackend.outbox), 1)
		phone_number, message = LocmemSmsBackend.outbox[0]
		self.assertEqual(phone_number, '5550001111')
		self.assertIn('Trip started', message)

	def test_retries_with_backoff_then_fails(self):
		notification = self._queue(channel=Notification.CHANNEL_SMS, recipient=make_user('nophone', phone_number=''))

		self.assertEqual(deliver_notification(notification.id), 60)
		notification.refresh_from_db()
		self.assertEqual(notification.status, Notification.STATUS_RETRYING)

		self.assertEqual(deliver_notification(notification.id), 300)
		self.assertIsNone(deliver_notification(notification.id))

		notification.refresh_from_db()
		self.assertEqual(notification.status, Notification.STATUS_FAILED)
		self.assertEqual(notification.attempts, 3)
		self.assertIn('no phone number', notification.error_message)
		self.assertIsNotNone(notification.failed_at)

	def test_sent_notification_not_redelivered(self):
		notification = self._queue()
		deliver_notification(notification.id)

		self.assertIsNone(deliver_notification(notification.id))
		self.assertEqual(len(mail.outbox), 1)

	def test_missing_notification(self):
		self.assertIsNone(deliver_notification(123456))


class NotifyTests(TestCase):
	def setUp(self):
		self.driver = make_user('driver', is_verified_student=True)
		self.rider = make_user('rider')
		self.booking = make_booking(make_ride(self.driver), self.rider)

	@patch('notifications.dispatch.push_user_event')
	@patch('notifications.tasks.deliver_notification_task.delay')
	def test_records_queues_and_pushes(self, mock_delay, mock_push):
		notification = notify(self.rider, Notification.CHANNEL_EMAIL, 'booking_authorized', TEMPLATE_DATA,
							  booking=self.booking)

		self.assertEqual(notification.status, Notification.STATUS_PENDING)
		self.assertEqual(notification.booking, self.booking)
		mock_delay.assert_called_once_with(notification.id)
		mock_push.assert_called_once_with(
			self.rider.id, 'booking_authorized', extra={'booking_id': self.booking.id}
		)

	@patch('notifications.dispatch.push_user_event', side_effect=RuntimeError('channel layer down'))
	@patch('notifications.tasks.deliver_notification_task.delay', side_effect=ConnectionError('broker down'))
	def test_never_raises(self, mock_delay, mock_push):
		notification = notify(self.rider, Notification.CHANNEL_EMAIL, 'booking_authorized', TEMPLATE_DATA)

		self.assertIsNotNone(notification)
		self.assertEqual(Notification.objects.get().status, Notification.STATUS_PENDING)

	def test_eager_delivery_end_to_end(self):
		notify(self.rider, Notification.CHANNEL_EMAIL, 'trip_completed', TEMPLATE_DATA, booking=self.booking)

		self.assertEqual(Notification.objects.get().status, Notification.STATUS_SENT)
		self.assertEqual(len(mail.outbox), 1)

	@patch('notifications.dispatch.notify')
	def test_notify_parties_skips_actor(self, mock_notify):
		sent = notify_parties(self.booking, 'booking_cancelled', TEMPLATE_DATA, exclude_user_id=self.rider.id)

		self.assertEqual(sent, 1)
		recipient = mock_notify.call_args[0][0]
		data = mock_notify.call_args[0][3]
		self.assertEqual(recipient, self.driver)
		self.assertEqual(data['recipient_name'], 'driver')

	def test_push_without_user(self):
		self.assertFalse(push_user_event(None, 'trip_started'))


class TemplateTests(SimpleTestCase):
	def test_every_type_renders(self):
		for notification_type, _ in Notification.TYPE_CHOICES:
			subject, body = render(notification_type, TEMPLATE_DATA)
			self.assertTrue(subject)
			self.assertIn('North Campus', subject + body)

	def test_unknown_type(self):
		with self.assertRaises(ValueError):
			render('ride_offer', TEMPLATE_DATA)

	def test_late_cancellation_line(self):
		_, body = render('booking_cancelled', {**TEMPLATE_DATA, 'late_cancellation': True})
		self.assertIn('late cancellation', body)

	def test_redact_pii(self):
		redacted = redact_pii('Call 555-000-1111 or mail riley@campus.edu, code 123456')
		self.assertEqual(redacted, 'Call [PHONE_REDACTED] or mail [EMAIL_REDACTED], code [CODE_REDACTED]')


class CleanupCommandTests(TestCase):
	def setUp(self):
		rider = make_user('rider')
		self.old = Notification.objects.create(
			notification_type='trip_completed', channel=Notification.CHANNEL_EMAIL,
			recipient=rider, template_data=TEMPLATE_DATA, status=Notification.STATUS_SENT,
		)
		Notification.objects.filter(id=self.old.id).update(created_at=timezone.now() - timedelta(days=45))
		self.recent = Notification.objects.create(
			notification_type='trip_completed', channel=Notification.CHANNEL_EMAIL,
			recipient=rider, template_data=TEMPLATE_DATA, status=Notification.STATUS_SENT,
		)
		self.pending = Notification.objects.create(
			notification_type='trip_started', channel=Notification.CHANNEL_SMS,
			recipient=rider, template_data=TEMPLATE_DATA,
		)

	def test_dry_run_changes_nothing(self):
		out = StringIO()
		call_command('cleanup_notifications', days=30, dry_run=True, stdout=out)

		self.assertIn('DRY RUN', out.getvalue())
		self.assertEqual(Notification.objects.count(), 3)

	@patch('notifications.management.commands.cleanup_notifications.deliver_notification_task.delay')
	def test_deletes_old_sent_and_requeues_pending(self, mock_delay):
		call_command('cleanup_notifications', days=30, requeue=True, stdout=StringIO())

		self.assertFalse(Notification.objects.filter(id=self.old.id).exists())
		self.assertTrue(Notification.objects.filter(id=self.recent.id).exists())
		mock_delay.assert_called_once_with(self.pending.id)
