from datetime import timedelta

from django.core.cache.backends.locmem import LocMemCache
from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from common.rate_limit import CacheRateLimiter
from services.tests.helpers import make_booking, make_ride, make_user
from .models import Booking, Dispute
from .views import (
	AdminDisputeListView,
	AdminDisputeResolveView,
	BookingCancelView,
	BookingDetailView,
	BookingDisputeView,
	BookingListCreateView,
	BookingPaymentView,
	TripStartView,
)


class BookingFlowViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver = make_user('driver', is_verified_student=True)
		self.rider = make_user('rider')
		self.ride = make_ride(self.driver, seats_total=3, total_cost_cents=3000)

		self.cache = LocMemCache('trip-start-tests', {})
		self.cache.clear()
		self.limiter = CacheRateLimiter(max_attempts=2, window_seconds=60, block_seconds=60, cache=self.cache)

	def _book(self, user, payload):
		request = self.factory.post('/api/bookings/', payload, format='json')
		force_authenticate(request, user=user)
		return BookingListCreateView.as_view()(request)

	def _start(self, user, booking_id, code):
		request = self.factory.post('/api/bookings/%d/start/' % booking_id, {'code': code}, format='json')
		force_authenticate(request, user=user)
		return TripStartView.as_view(rate_limiter=self.limiter)(request, booking_id=booking_id)

	def test_book_seats(self):
		response = self._book(self.rider, {'ride_id': self.ride.id, 'seats': 2})

		self.assertEqual(response.status_code, 201)
		self.assertTrue(response.data['success'])
		# ceil(3000 / 2) per seat, two seats held
		self.assertEqual(response.data['auth_estimate_cents'], 3000)
		self.assertEqual(response.data['booking']['status'], Booking.STATUS_AUTHORIZED)
		# Rider sees the code they hand to the driver
		self.assertRegex(response.data['booking']['trip_start_code'], r'^[0-9]{6}$')

	def test_book_own_ride(self):
		response = self._book(self.driver, {'ride_id': self.ride.id})

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['message'], 'You cannot book your own ride')

	def test_book_missing_ride(self):
		response = self._book(self.rider, {'ride_id': 987654})
		self.assertEqual(response.status_code, 404)

	def test_start_trip_with_code(self):
		booking = make_booking(self.ride, self.rider)

		response = self._start(self.driver, booking.id, '123456')

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['booking']['status'], Booking.STATUS_IN_PROGRESS)

	def test_wrong_codes_are_throttled(self):
		booking = make_booking(self.ride, self.rider)

		self.assertEqual(self._start(self.driver, booking.id, '000000').status_code, 400)
		self.assertEqual(self._start(self.driver, booking.id, '000001').status_code, 400)

		response = self._start(self.driver, booking.id, '123456')
		self.assertEqual(response.status_code, 429)
		self.assertGreater(response.data['retry_after'], 0)

		booking.refresh_from_db()
		self.assertEqual(booking.status, Booking.STATUS_AUTHORIZED)

	def test_expired_code_message(self):
		booking = make_booking(self.ride, self.rider, code_expires_at=timezone.now() - timedelta(minutes=5))

		response = self._start(self.rider, booking.id, '123456')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['message'], 'Trip start code has expired')

	def test_cancel_booking(self):
		booked = self._book(self.rider, {'ride_id': self.ride.id})
		booking_id = booked.data['booking_id']

		request = self.factory.post('/api/bookings/%d/cancel/' % booking_id)
		force_authenticate(request, user=self.rider)
		response = BookingCancelView.as_view()(request, booking_id=booking_id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['booking']['status'], Booking.STATUS_CANCELLED)
		self.ride.refresh_from_db()
		self.assertEqual(self.ride.seats_available, 3)

	def test_cancel_completed_booking(self):
		booking = make_booking(self.ride, self.rider, status=Booking.STATUS_COMPLETED, final_share_cents=3000)

		request = self.factory.post('/api/bookings/%d/cancel/' % booking.id)
		force_authenticate(request, user=self.rider)
		response = BookingCancelView.as_view()(request, booking_id=booking.id)

		self.assertEqual(response.status_code, 400)

	def test_payment_update(self):
		booking = make_booking(self.ride, self.rider, status=Booking.STATUS_COMPLETED, final_share_cents=3000)

		request = self.factory.put('/api/bookings/%d/payment/' % booking.id, {'paid_by_rider': True}, format='json')
		force_authenticate(request, user=self.rider)
		response = BookingPaymentView.as_view()(request, booking_id=booking.id)

		self.assertEqual(response.status_code, 200)
		self.assertTrue(response.data['booking']['paid_by_rider'])

	def test_detail_hidden_from_strangers(self):
		booking = make_booking(self.ride, self.rider)

		request = self.factory.get('/api/bookings/%d/' % booking.id)
		force_authenticate(request, user=make_user('stranger'))
		response = BookingDetailView.as_view()(request, booking_id=booking.id)

		self.assertEqual(response.status_code, 404)


class DisputeViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.admin = make_user('admin', is_staff=True)
		self.driver = make_user('driver', is_verified_student=True)
		self.rider = make_user('rider')
		ride = make_ride(self.driver)
		self.booking = make_booking(ride, self.rider, status=Booking.STATUS_COMPLETED, final_share_cents=2000)

	def _dispute(self, user, reason):
		request = self.factory.post('/api/bookings/%d/dispute/' % self.booking.id, {'reason': reason}, format='json')
		force_authenticate(request, user=user)
		return BookingDisputeView.as_view()(request, booking_id=self.booking.id)

	def _resolve(self, user, dispute_id, outcome):
		request = self.factory.post(
			'/api/admin/disputes/%d/resolve/' % dispute_id,
			{'outcome': outcome, 'resolution': 'Partial refund agreed by both parties'},
			format='json',
		)
		force_authenticate(request, user=user)
		return AdminDisputeResolveView.as_view()(request, dispute_id=dispute_id)

	def test_open_dispute(self):
		response = self._dispute(self.rider, 'Charged for a detour I did not ask for')

		self.assertEqual(response.status_code, 201)
		self.assertEqual(response.data['dispute']['status'], Dispute.STATUS_OPEN)
		self.assertEqual(response.data['dispute']['booking_status_at_open'], Booking.STATUS_COMPLETED)

	def test_short_reason(self):
		response = self._dispute(self.rider, 'bad')

		self.assertEqual(response.status_code, 400)
		self.assertIn('reason', response.data['errors'])

	def test_duplicate_dispute(self):
		self._dispute(self.rider, 'Charged for a detour I did not ask for')
		response = self._dispute(self.driver, 'Rider left trash in the back seat')

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['message'], 'A dispute is already open for this booking')

	def test_admin_lists_and_resolves(self):
		dispute_id = self._dispute(self.rider, 'Charged for a detour I did not ask for').data['dispute_id']

		request = self.factory.get('/api/admin/disputes/', {'status': 'open'})
		force_authenticate(request, user=self.admin)
		response = AdminDisputeListView.as_view()(request)
		self.assertEqual(response.status_code, 200)
		self.assertEqual([d['id'] for d in response.data['disputes']], [dispute_id])

		response = self._resolve(self.admin, dispute_id, 'resolved')
		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['message'], 'Dispute resolved successfully')

		response = self._resolve(self.admin, dispute_id, 'resolved')
		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['message'], 'Dispute is already resolved')

	def test_non_admin_blocked(self):
		dispute_id = self._dispute(self.rider, 'Charged for a detour I did not ask for').data['dispute_id']

		request = self.factory.get('/api/admin/disputes/')
		force_authenticate(request, user=self.rider)
		self.assertEqual(AdminDisputeListView.as_view()(request).status_code, 403)

		self.assertEqual(self._resolve(self.rider, dispute_id, 'resolved').status_code, 403)

	def test_invalid_status_filter(self):
		request = self.factory.get('/api/admin/disputes/', {'status': 'pending'})
		force_authenticate(request, user=self.admin)
		self.assertEqual(AdminDisputeListView.as_view()(request).status_code, 400)
