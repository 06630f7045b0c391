from datetime import timedelta
from unittest.mock import patch

from django.db import IntegrityError, transaction
from django.test import TestCase

from bookings.models import Booking, Dispute
from services.booking_lifecycle import cancel_booking, list_disputes, open_dispute, resolve_dispute
from services.exceptions import INVALID_ARGUMENT, NOT_FOUND
from .helpers import make_booking, make_ride, make_user

REASON = 'Driver took a much longer route than agreed'
RESOLUTION = 'Refund of the detour portion arranged with driver'


class OpenDisputeTests(TestCase):
	def setUp(self):
		self.driver = make_user('driver', is_verified_student=True)
		self.rider = make_user('rider')
		self.ride = make_ride(self.driver)
		self.booking = make_booking(self.ride, self.rider, status=Booking.STATUS_COMPLETED, final_share_cents=2000)

	def test_rider_opens_dispute_on_completed_booking(self):
		result = open_dispute(self.rider, self.booking.id, REASON)

		self.assertTrue(result.success)
		dispute = Dispute.objects.get(id=result.extra['dispute_id'])
		self.assertEqual(dispute.status, Dispute.STATUS_OPEN)
		self.assertEqual(dispute.opened_by, self.rider)
		self.assertEqual(dispute.booking_status_at_open, Booking.STATUS_COMPLETED)

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, Booking.STATUS_DISPUTED)

	def test_short_reason_is_field_error(self):
		result = open_dispute(self.rider, self.booking.id, 'too short')

		self.assertEqual(result.error_kind, INVALID_ARGUMENT)
		self.assertEqual(result.errors, {'reason': 'Dispute reason must be at least 10 characters'})

	def test_authorized_booking_cannot_be_disputed(self):
		pending = make_booking(self.ride, make_user('pending_rider'))

		result = open_dispute(pending.rider, pending.id, REASON)

		self.assertFalse(result.success)
		self.assertEqual(result.message, 'This booking cannot be disputed in its current state')

	def test_late_cancellation_fee_can_be_disputed(self):
		soon = make_ride(self.driver, depart_in=timedelta(hours=2), seats_available=3)
		booking = make_booking(soon, make_user('late_rider'))
		cancelled = cancel_booking(booking.rider, booking.id)
		self.assertTrue(cancelled.extra['late_cancellation'])

		result = open_dispute(booking.rider, booking.id, 'Driver moved the pickup time without notice')

		self.assertTrue(result.success)
		dispute = Dispute.objects.get(id=result.extra['dispute_id'])
		self.assertEqual(dispute.booking_status_at_open, Booking.STATUS_CANCELLED)

		resolve_dispute(make_user('admin', is_staff=True), dispute.id, 'resolved', RESOLUTION)
		booking.refresh_from_db()
		self.assertEqual(booking.status, Booking.STATUS_CANCELLED)
		self.assertTrue(booking.etiquette_payment_due)

	def test_second_open_dispute_rejected(self):
		open_dispute(self.rider, self.booking.id, REASON)
		result = open_dispute(self.driver, self.booking.id, 'Rider was 30 minutes late to pickup')

		self.assertFalse(result.success)
		self.assertEqual(result.message, 'A dispute is already open for this booking')
		self.assertEqual(Dispute.objects.filter(booking=self.booking).count(), 1)

	def test_database_allows_one_open_dispute_per_booking(self):
		Dispute.objects.create(booking=self.booking, opened_by=self.rider, reason=REASON,
							   booking_status_at_open=Booking.STATUS_COMPLETED)
		with self.assertRaises(IntegrityError):
			with transaction.atomic():
				Dispute.objects.create(booking=self.booking, opened_by=self.driver, reason=REASON,
									   booking_status_at_open=Booking.STATUS_COMPLETED)

	def test_stranger_cannot_dispute(self):
		result = open_dispute(make_user('stranger'), self.booking.id, REASON)
		self.assertIn('auth', result.errors)

	@patch('services.booking_lifecycle.disputes.notify_parties')
	def test_other_party_notified(self, mock_notify_parties):
		with self.captureOnCommitCallbacks(execute=True):
			open_dispute(self.rider, self.booking.id, REASON)

		mock_notify_parties.assert_called_once()
		self.assertEqual(mock_notify_parties.call_args[0][1], 'booking_disputed')
		self.assertEqual(mock_notify_parties.call_args[1]['exclude_user_id'], self.rider.id)


class ResolveDisputeTests(TestCase):
	def setUp(self):
		self.admin = make_user('admin', is_staff=True)
		self.driver = make_user('driver', is_verified_student=True)
		self.rider = make_user('rider')
		ride = make_ride(self.driver)
		self.booking = make_booking(ride, self.rider, status=Booking.STATUS_COMPLETED, final_share_cents=2000)
		self.dispute = Dispute.objects.get(id=open_dispute(self.rider, self.booking.id, REASON).extra['dispute_id'])

	def test_resolved_dispute_restores_booking(self):
		result = resolve_dispute(self.admin, self.dispute.id, 'resolved', RESOLUTION)

		self.assertTrue(result.success)
		self.assertEqual(result.message, 'Dispute resolved successfully')
		self.dispute.refresh_from_db()
		self.booking.refresh_from_db()
		self.assertEqual(self.dispute.status, Dispute.STATUS_RESOLVED)
		self.assertEqual(self.dispute.resolution, RESOLUTION)
		self.assertEqual(self.dispute.resolved_by, self.admin)
		self.assertEqual(self.booking.status, Booking.STATUS_COMPLETED)

	def test_rejected_dispute_leaves_booking_disputed(self):
		result = resolve_dispute(self.admin, self.dispute.id, 'rejected', RESOLUTION)

		self.assertTrue(result.success)
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, Booking.STATUS_DISPUTED)

	def test_cannot_resolve_twice(self):
		resolve_dispute(self.admin, self.dispute.id, 'resolved', RESOLUTION)
		result = resolve_dispute(self.admin, self.dispute.id, 'rejected', RESOLUTION)

		self.assertFalse(result.success)
		self.assertEqual(result.message, 'Dispute is already resolved')

	def test_new_dispute_allowed_after_resolution(self):
		resolve_dispute(self.admin, self.dispute.id, 'resolved', RESOLUTION)
		result = open_dispute(self.driver, self.booking.id, 'Rider never sent the payment')
		self.assertTrue(result.success)

	def test_admin_only(self):
		result = resolve_dispute(self.rider, self.dispute.id, 'resolved', RESOLUTION)

		self.assertFalse(result.success)
		self.assertEqual(result.message, 'Only administrators can resolve disputes')

	def test_input_validation(self):
		result = resolve_dispute(self.admin, self.dispute.id, 'maybe', 'short')

		self.assertEqual(result.error_kind, INVALID_ARGUMENT)
		self.assertIn('status', result.errors)
		self.assertIn('resolution', result.errors)

	def test_missing_dispute(self):
		self.assertEqual(resolve_dispute(self.admin, 9999, 'resolved', RESOLUTION).error_kind, NOT_FOUND)

	def test_list_filters_by_status(self):
		self.assertEqual(list(list_disputes('open')), [self.dispute])
		self.assertEqual(list(list_disputes('resolved')), [])
