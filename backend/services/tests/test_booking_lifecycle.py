from datetime import timedelta
from unittest.mock import patch

from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from bookings.models import Booking
from notifications.models import Notification
from rides.models import Ride
from services.booking_lifecycle import (
	cancel_booking,
	create_booking,
	record_payment,
	start_trip,
	trip_code_expiry,
)
from services.exceptions import INVALID_ARGUMENT, NOT_FOUND, PRECONDITION_FAILED, TRANSIENT
from .helpers import make_booking, make_ride, make_user


class CreateBookingTests(TestCase):
	def setUp(self):
		self.driver = make_user('driver', is_verified_student=True)
		self.rider = make_user('rider')
		self.other_rider = make_user('other_rider')
		self.ride = make_ride(self.driver, seats_total=3, total_cost_cents=2000)

	def test_booking_is_authorized_with_estimate(self):
		now = timezone.now()
		result = create_booking(self.rider, self.ride.id, 1, now=now)

		self.assertTrue(result.success)
		self.assertEqual(result.kind, 'ok')
		booking = Booking.objects.get(id=result.booking.id)
		self.assertEqual(booking.status, Booking.STATUS_AUTHORIZED)
		self.assertEqual(booking.auth_estimate_cents, 2000)
		self.assertIsNone(booking.final_share_cents)
		self.assertRegex(booking.trip_start_code, r'^[0-9]{6}$')
		self.assertEqual(booking.code_expires_at, now + timedelta(hours=6))
		self.assertEqual(result.extra['auth_estimate_cents'], 2000)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.seats_available, 2)
		self.assertEqual(self.ride.status, Ride.STATUS_OPEN)

	def test_estimate_uses_seats_already_occupied(self):
		create_booking(self.other_rider, self.ride.id, 1)
		result = create_booking(self.rider, self.ride.id, 2)

		self.assertTrue(result.success)
		# ceil(2000 / 3) per seat, two seats held
		self.assertEqual(result.booking.auth_estimate_cents, 667 * 2)

	def test_code_expiry_capped_at_departure(self):
		now = timezone.now()
		depart_at = now + timedelta(hours=2)
		self.assertEqual(trip_code_expiry(depart_at, now), depart_at)

	def test_cannot_book_own_ride(self):
		result = create_booking(self.driver, self.ride.id, 1)

		self.assertFalse(result.success)
		self.assertEqual(result.error_kind, PRECONDITION_FAILED)
		self.assertEqual(result.message, 'You cannot book your own ride')
		self.assertFalse(Booking.objects.exists())

	def test_insufficient_seats_reports_availability(self):
		create_booking(self.other_rider, self.ride.id, 2)
		result = create_booking(self.rider, self.ride.id, 2)

		self.assertFalse(result.success)
		self.assertEqual(result.message, 'Only 1 seats available, but you requested 2')
		self.assertEqual(result.errors, {'seats': 'Not enough seats available'})
		self.ride.refresh_from_db()
		self.assertEqual(self.ride.seats_available, 1)
		self.assertEqual(Booking.objects.filter(rider=self.rider).count(), 0)

	def test_last_seat_fills_ride(self):
		result = create_booking(self.rider, self.ride.id, 3)
		self.assertTrue(result.success)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.seats_available, 0)
		self.assertEqual(self.ride.status, Ride.STATUS_FULL)

		result = create_booking(self.other_rider, self.ride.id, 1)
		self.assertFalse(result.success)
		self.assertEqual(result.message, 'This ride is no longer available for booking')

	def test_failed_insert_leaves_seats_untouched(self):
		with patch.object(Booking.objects, 'create', side_effect=DatabaseError('disk full')):
			result = create_booking(self.rider, self.ride.id, 2)

		self.assertFalse(result.success)
		self.assertEqual(result.error_kind, TRANSIENT)
		self.assertEqual(result.message, 'Failed to book ride')
		self.ride.refresh_from_db()
		self.assertEqual(self.ride.seats_available, 3)
		self.assertEqual(self.ride.status, Ride.STATUS_OPEN)
		self.assertFalse(Booking.objects.exists())

	def test_seats_taken_between_check_and_decrement(self):
		original_filter = Ride.objects.filter
		ride_id = self.ride.id

		def raced_filter(*args, **kwargs):
			if 'seats_available__gte' in kwargs:
				# another rider takes two seats after the availability check
				original_filter(id=ride_id).update(seats_available=1)
			return original_filter(*args, **kwargs)

		with patch.object(Ride.objects, 'filter', side_effect=raced_filter):
			result = create_booking(self.rider, self.ride.id, 2)

		self.assertFalse(result.success)
		self.assertEqual(result.error_kind, PRECONDITION_FAILED)
		self.assertEqual(result.message, 'Only 1 seats available, but you requested 2')
		self.assertEqual(result.errors, {'seats': 'Not enough seats available'})
		self.assertFalse(Booking.objects.exists())

	def test_duplicate_active_booking_rejected(self):
		create_booking(self.rider, self.ride.id, 1)
		result = create_booking(self.rider, self.ride.id, 1)

		self.assertFalse(result.success)
		self.assertEqual(result.message, 'You already have an active booking for this ride')

	def test_missing_ride(self):
		result = create_booking(self.rider, 999999, 1)
		self.assertEqual(result.error_kind, NOT_FOUND)

	def test_invalid_seat_count(self):
		result = create_booking(self.rider, self.ride.id, 0)
		self.assertEqual(result.error_kind, INVALID_ARGUMENT)
		self.assertIn('seats', result.errors)

	@patch('services.booking_lifecycle.bookings.notify')
	def test_rider_is_emailed_after_commit(self, mock_notify):
		with self.captureOnCommitCallbacks(execute=True):
			result = create_booking(self.rider, self.ride.id, 1)

		mock_notify.assert_called_once()
		recipient, channel, notification_type, data = mock_notify.call_args[0]
		self.assertEqual(recipient, self.rider)
		self.assertEqual(channel, Notification.CHANNEL_EMAIL)
		self.assertEqual(notification_type, 'booking_authorized')
		self.assertEqual(data['otp_code'], result.booking.trip_start_code)


class StartTripTests(TestCase):
	def setUp(self):
		self.driver = make_user('driver', is_verified_student=True)
		self.rider = make_user('rider')
		self.stranger = make_user('stranger')
		self.ride = make_ride(self.driver)
		self.booking = make_booking(self.ride, self.rider)

	def test_valid_code_starts_trip(self):
		now = timezone.now()
		result = start_trip(self.driver, self.booking.id, '123456', now=now)

		self.assertTrue(result.success)
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, Booking.STATUS_IN_PROGRESS)
		self.assertEqual(self.booking.trip_started_at, now)
		self.assertIsNone(self.booking.trip_start_code)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, Ride.STATUS_IN_PROGRESS)

	def test_rider_can_start_trip(self):
		result = start_trip(self.rider, self.booking.id, ' 123456 ')
		self.assertTrue(result.success)

	def test_wrong_code_differs_from_expired_code(self):
		wrong = start_trip(self.driver, self.booking.id, '654321')

		self.booking.code_expires_at = timezone.now() - timedelta(minutes=1)
		self.booking.save(update_fields=['code_expires_at'])
		expired = start_trip(self.driver, self.booking.id, '123456')

		self.assertFalse(wrong.success)
		self.assertFalse(expired.success)
		self.assertEqual(wrong.message, 'Invalid trip start code')
		self.assertEqual(expired.message, 'Trip start code has expired')
		self.assertEqual(wrong.errors, {'otp': 'Invalid code'})
		self.assertEqual(expired.errors, {'otp': 'Code expired'})

		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, Booking.STATUS_AUTHORIZED)

	def test_code_cannot_be_replayed(self):
		start_trip(self.driver, self.booking.id, '123456')
		result = start_trip(self.driver, self.booking.id, '123456')

		self.assertFalse(result.success)
		self.assertEqual(result.message, 'This trip has already started')

	def test_malformed_code(self):
		result = start_trip(self.driver, self.booking.id, '12ab')
		self.assertEqual(result.error_kind, INVALID_ARGUMENT)
		self.assertEqual(result.errors, {'otp': 'Trip start code must be 6 digits'})

	def test_stranger_cannot_start(self):
		result = start_trip(self.stranger, self.booking.id, '123456')
		self.assertFalse(result.success)
		self.assertIn('auth', result.errors)

	def test_cancelled_booking_cannot_start(self):
		self.booking.status = Booking.STATUS_CANCELLED
		self.booking.save(update_fields=['status'])

		result = start_trip(self.driver, self.booking.id, '123456')
		self.assertFalse(result.success)
		self.assertEqual(result.errors, {'status': 'Invalid state transition'})

	def test_ride_that_already_ended_cannot_start(self):
		for ride_status in (Ride.STATUS_COMPLETED, Ride.STATUS_CANCELLED):
			self.ride.status = ride_status
			self.ride.save(update_fields=['status'])

			result = start_trip(self.rider, self.booking.id, '123456')

			self.assertEqual(result.error_kind, PRECONDITION_FAILED)
			self.assertEqual(result.message, 'This ride has already ended')
		self.booking.refresh_from_db()
		self.assertEqual(self.booking.status, Booking.STATUS_AUTHORIZED)

	@patch('services.booking_lifecycle.bookings.notify_parties')
	def test_both_parties_notified_by_sms(self, mock_notify_parties):
		with self.captureOnCommitCallbacks(execute=True):
			start_trip(self.driver, self.booking.id, '123456')

		mock_notify_parties.assert_called_once()
		self.assertEqual(mock_notify_parties.call_args[0][1], 'trip_started')
		self.assertEqual(mock_notify_parties.call_args[1]['channel'], Notification.CHANNEL_SMS)


class CancelBookingTests(TestCase):
	def setUp(self):
		self.driver = make_user('driver', is_verified_student=True)
		self.rider = make_user('rider')
		self.stranger = make_user('stranger')

	def _book(self, ride, seats=1):
		result = create_booking(self.rider, ride.id, seats)
		self.assertTrue(result.success)
		return result.booking

	def test_early_cancel_restores_seats_without_fee(self):
		ride = make_ride(self.driver, seats_total=3, depart_in=timedelta(days=2))
		booking = self._book(ride, seats=2)

		result = cancel_booking(self.rider, booking.id)

		self.assertTrue(result.success)
		self.assertEqual(result.message, 'Booking cancelled successfully')
		self.assertFalse(result.extra['late_cancellation'])

		booking.refresh_from_db()
		self.assertEqual(booking.status, Booking.STATUS_CANCELLED)
		self.assertEqual(booking.cancelled_by, self.rider)
		self.assertIsNotNone(booking.cancelled_at)
		self.assertFalse(booking.is_late_cancellation)
		self.assertIsNone(booking.trip_start_code)

		ride.refresh_from_db()
		self.assertEqual(ride.seats_available, 3)

	def test_late_rider_cancel_flags_fee(self):
		ride = make_ride(self.driver, depart_in=timedelta(hours=6))
		booking = self._book(ride)

		result = cancel_booking(self.rider, booking.id)

		self.assertTrue(result.success)
		self.assertIn('Late cancellation fee may apply', result.message)
		self.assertTrue(result.extra['late_cancellation'])
		booking.refresh_from_db()
		self.assertTrue(booking.is_late_cancellation)
		self.assertTrue(booking.etiquette_payment_due)

	def test_late_driver_cancel_is_not_flagged(self):
		ride = make_ride(self.driver, depart_in=timedelta(hours=6))
		booking = self._book(ride)

		result = cancel_booking(self.driver, booking.id)

		self.assertTrue(result.success)
		self.assertFalse(result.extra['late_cancellation'])

	def test_cancel_reopens_full_ride(self):
		ride = make_ride(self.driver, seats_total=1)
		booking = self._book(ride)
		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_FULL)

		cancel_booking(self.rider, booking.id)

		ride.refresh_from_db()
		self.assertEqual(ride.status, Ride.STATUS_OPEN)
		self.assertEqual(ride.seats_available, 1)

	def test_completed_booking_cannot_be_cancelled(self):
		ride = make_ride(self.driver)
		booking = make_booking(ride, self.rider, status=Booking.STATUS_COMPLETED, final_share_cents=2000)

		result = cancel_booking(self.rider, booking.id)

		self.assertFalse(result.success)
		self.assertEqual(result.message, 'This booking cannot be cancelled in its current state')

	def test_stranger_cannot_cancel(self):
		ride = make_ride(self.driver)
		booking = self._book(ride)

		result = cancel_booking(self.stranger, booking.id)
		self.assertFalse(result.success)
		self.assertIn('auth', result.errors)

	@patch('services.booking_lifecycle.bookings.notify_parties')
	def test_other_party_notified(self, mock_notify_parties):
		ride = make_ride(self.driver)
		booking = self._book(ride)

		with self.captureOnCommitCallbacks(execute=True):
			cancel_booking(self.rider, booking.id)

		mock_notify_parties.assert_called_once()
		self.assertEqual(mock_notify_parties.call_args[1]['exclude_user_id'], self.rider.id)


class RecordPaymentTests(TestCase):
	def setUp(self):
		self.driver = make_user('driver', is_verified_student=True)
		self.rider = make_user('rider')
		self.ride = make_ride(self.driver)
		self.booking = make_booking(self.ride, self.rider, status=Booking.STATUS_COMPLETED, final_share_cents=2000)

	def test_rider_marks_paid_and_driver_confirms(self):
		self.assertTrue(record_payment(self.rider, self.booking.id, paid_by_rider=True).success)
		self.assertTrue(record_payment(self.driver, self.booking.id, confirmed_by_driver=True).success)

		self.booking.refresh_from_db()
		self.assertTrue(self.booking.paid_by_rider)
		self.assertTrue(self.booking.confirmed_by_driver)

	def test_driver_cannot_mark_rider_paid(self):
		result = record_payment(self.driver, self.booking.id, paid_by_rider=True)
		self.assertFalse(result.success)
		self.assertEqual(result.message, 'Only the rider can mark the booking as paid')

	def test_only_completed_bookings(self):
		self.booking.status = Booking.STATUS_IN_PROGRESS
		self.booking.save(update_fields=['status'])

		result = record_payment(self.rider, self.booking.id, paid_by_rider=True)
		self.assertFalse(result.success)
		self.assertEqual(result.message, 'Payment can only be recorded for completed bookings')
