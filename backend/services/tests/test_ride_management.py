from datetime import timedelta
from decimal import Decimal
from unittest.mock import patch

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone

from bookings.models import Booking
from rides.models import Ride
from services.booking_lifecycle import start_trip
from services.exceptions import INVALID_ARGUMENT, NOT_FOUND, PRECONDITION_FAILED, RideNotFoundError
from services.ride_management import complete_trip, get_ride_bookings, post_ride
from .helpers import make_booking, make_ride, make_user

User = get_user_model()


class PostRideTests(TestCase):
	def setUp(self):
		self.driver = make_user('driver', is_verified_student=True)

	def _post(self, driver=None, **overrides):
		fields = {
			'origin_text': 'North Campus',
			'origin_lat': Decimal('42.280800'),
			'origin_lng': Decimal('-83.738100'),
			'dest_text': 'Downtown Detroit',
			'dest_lat': Decimal('42.331400'),
			'dest_lng': Decimal('-83.045800'),
			'depart_at': timezone.now() + timedelta(days=1),
			'seats_total': 3,
			'total_cost_cents': 4500,
		}
		fields.update(overrides)
		return post_ride(driver or self.driver, **fields)

	def test_verified_driver_posts_open_ride(self):
		result = self._post(notes='Two bags max')

		self.assertTrue(result.success)
		self.assertEqual(result.message, 'Ride created successfully!')
		ride = Ride.objects.get(id=result.ride.id)
		self.assertEqual(ride.status, Ride.STATUS_OPEN)
		self.assertEqual(ride.seats_available, 3)
		self.assertEqual(ride.driver, self.driver)

	def test_unverified_driver_rejected(self):
		result = self._post(driver=make_user('newbie'))

		self.assertFalse(result.success)
		self.assertIn('auth', result.errors)
		self.assertFalse(Ride.objects.exists())

	def test_pricing_rules_enforced(self):
		result = self._post(total_cost_cents=50)

		self.assertEqual(result.error_kind, INVALID_ARGUMENT)
		self.assertEqual(result.errors['total_cost_cents'], 'Minimum cost is $1.00')

	def test_seat_and_departure_validation(self):
		result = self._post(seats_total=9, depart_at=timezone.now() - timedelta(hours=1))

		self.assertEqual(result.error_kind, INVALID_ARGUMENT)
		self.assertIn('seats_total', result.errors)
		self.assertIn('depart_at', result.errors)


class CompleteTripTests(TestCase):
	def setUp(self):
		self.driver = make_user('driver', is_verified_student=True)
		self.rider_a = make_user('rider_a')
		self.rider_b = make_user('rider_b')
		self.rider_c = make_user('rider_c')
		self.ride = make_ride(self.driver, seats_total=5, seats_available=1, total_cost_cents=1500,
							  status=Ride.STATUS_IN_PROGRESS)
		self.booking_a = make_booking(self.ride, self.rider_a, seats=1, status=Booking.STATUS_IN_PROGRESS)
		self.booking_b = make_booking(self.ride, self.rider_b, seats=2, status=Booking.STATUS_IN_PROGRESS)
		self.booking_c = make_booking(self.ride, self.rider_c, seats=1, status=Booking.STATUS_IN_PROGRESS)

	def test_final_shares_sum_to_ride_total(self):
		now = timezone.now()
		result = complete_trip(self.driver, self.ride.id, now=now)

		self.assertTrue(result.success)
		self.assertEqual(result.message, 'Trip completed successfully! 3 bookings have been finalized.')
		self.assertEqual(result.extra['completed_bookings'], 3)
		self.assertEqual(result.extra['failed_bookings'], [])

		shares = []
		for booking in (self.booking_a, self.booking_b, self.booking_c):
			booking.refresh_from_db()
			self.assertEqual(booking.status, Booking.STATUS_COMPLETED)
			self.assertEqual(booking.trip_completed_at, now)
			shares.append(booking.final_share_cents)
		self.assertEqual(shares, [375, 750, 375])
		self.assertEqual(sum(shares), self.ride.total_cost_cents)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, Ride.STATUS_COMPLETED)
		self.assertEqual(self.ride.completed_at, now)

		self.driver.refresh_from_db()
		self.rider_b.refresh_from_db()
		self.assertEqual(self.driver.completed_rides, 1)
		self.assertEqual(self.rider_b.completed_rides, 1)

	def test_unstarted_bookings_cancelled_at_drop_off(self):
		waiting = make_booking(self.ride, make_user('late_rider'))

		result = complete_trip(self.driver, self.ride.id)

		self.assertTrue(result.success)
		self.assertEqual(result.extra['cancelled_bookings'], [waiting.id])
		self.assertEqual(result.extra['completed_bookings'], 3)
		waiting.refresh_from_db()
		self.assertEqual(waiting.status, Booking.STATUS_CANCELLED)
		self.assertEqual(waiting.cancelled_by, self.driver)
		self.assertFalse(waiting.etiquette_payment_due)
		self.assertIsNone(waiting.final_share_cents)
		self.assertIsNone(waiting.trip_start_code)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.seats_available, 2)
		self.assertEqual(self.ride.status, Ride.STATUS_COMPLETED)

	def test_completed_ride_cannot_be_restarted_or_recharged(self):
		waiting = make_booking(self.ride, make_user('late_rider'))
		complete_trip(self.driver, self.ride.id)

		started = start_trip(waiting.rider, waiting.id, '123456')
		again = complete_trip(self.driver, self.ride.id)

		self.assertFalse(started.success)
		self.assertEqual(started.message, 'This ride has already ended')
		self.assertFalse(again.success)
		self.assertEqual(again.error_kind, PRECONDITION_FAILED)
		self.assertEqual(again.message, 'This trip has already been completed')

		charged = Booking.objects.filter(ride=self.ride).exclude(final_share_cents=None)
		self.assertEqual(sum(charged.values_list('final_share_cents', flat=True)), 1500)

	def test_only_driver_can_complete(self):
		result = complete_trip(self.rider_a, self.ride.id)

		self.assertFalse(result.success)
		self.assertEqual(result.message, 'Only the driver can complete this trip')
		self.assertIn('auth', result.errors)

	def test_no_active_bookings(self):
		Booking.objects.update(status=Booking.STATUS_AUTHORIZED)

		result = complete_trip(self.driver, self.ride.id)

		self.assertFalse(result.success)
		self.assertEqual(result.message, 'No active bookings to complete')

	def test_missing_ride(self):
		self.assertEqual(complete_trip(self.driver, 424242).error_kind, NOT_FOUND)

	def test_one_failed_booking_does_not_block_others(self):
		original_filter = User.objects.filter
		failing_rider_id = self.rider_b.id

		def flaky_filter(*args, **kwargs):
			if kwargs.get('id') == failing_rider_id:
				raise DatabaseError('could not serialize access')
			return original_filter(*args, **kwargs)

		with patch.object(User.objects, 'filter', side_effect=flaky_filter):
			result = complete_trip(self.driver, self.ride.id)

		self.assertTrue(result.success)
		self.assertEqual(result.extra['completed_bookings'], 2)
		self.assertEqual([f['booking_id'] for f in result.extra['failed_bookings']], [self.booking_b.id])

		self.booking_a.refresh_from_db()
		self.booking_b.refresh_from_db()
		self.booking_c.refresh_from_db()
		self.assertEqual(self.booking_a.final_share_cents, 375)
		self.assertEqual(self.booking_c.final_share_cents, 375)
		self.assertEqual(self.booking_b.status, Booking.STATUS_IN_PROGRESS)
		self.assertIsNone(self.booking_b.final_share_cents)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, Ride.STATUS_IN_PROGRESS)

	def test_retry_after_partial_failure_keeps_original_split(self):
		original_filter = User.objects.filter
		failing_rider_id = self.rider_b.id

		def flaky_filter(*args, **kwargs):
			if kwargs.get('id') == failing_rider_id:
				raise DatabaseError('could not serialize access')
			return original_filter(*args, **kwargs)

		with patch.object(User.objects, 'filter', side_effect=flaky_filter):
			complete_trip(self.driver, self.ride.id)

		retry = complete_trip(self.driver, self.ride.id)

		self.assertTrue(retry.success)
		self.assertEqual(retry.extra['completed_bookings'], 1)
		self.assertEqual(retry.extra['final_shares'], {self.booking_b.id: 750})

		shares = [
			booking.final_share_cents
			for booking in Booking.objects.filter(ride=self.ride).order_by('created_at', 'id')
		]
		self.assertEqual(shares, [375, 750, 375])
		self.assertEqual(sum(shares), 1500)

		self.ride.refresh_from_db()
		self.assertEqual(self.ride.status, Ride.STATUS_COMPLETED)

	@patch('services.ride_management.ride_lifecycle.notify')
	def test_each_rider_notified_with_final_share(self, mock_notify):
		with self.captureOnCommitCallbacks(execute=True):
			complete_trip(self.driver, self.ride.id)

		self.assertEqual(mock_notify.call_count, 3)
		for call in mock_notify.call_args_list:
			self.assertEqual(call[0][2], 'trip_completed')
		shares = sorted(call[0][3]['final_share_cents'] for call in mock_notify.call_args_list)
		self.assertEqual(shares, [375, 375, 750])


class RideBookingsTests(TestCase):
	def test_driver_sees_bookings_in_order(self):
		driver = make_user('driver', is_verified_student=True)
		ride = make_ride(driver)
		first = make_booking(ride, make_user('first'))
		second = make_booking(ride, make_user('second'))

		self.assertEqual(list(get_ride_bookings(driver, ride.id)), [first, second])

		with self.assertRaises(RideNotFoundError):
			get_ride_bookings(make_user('other'), ride.id)
