from datetime import timedelta

from django.test import TestCase
from django.utils import timezone
from rest_framework.test import APIRequestFactory, force_authenticate

from bookings.models import Booking
from services.tests.helpers import make_booking, make_ride, make_user
from .models import Ride
from .views import RideBookingsView, RideCompleteView, RideDetailView, RideListCreateView


class RidePostingViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver = make_user('driver', is_verified_student=True)
		self.payload = {
			'origin_text': 'North Campus',
			'origin_lat': '42.280800',
			'origin_lng': '-83.738100',
			'dest_text': 'Metro Airport',
			'dest_lat': '42.216200',
			'dest_lng': '-83.355400',
			'depart_at': (timezone.now() + timedelta(days=1)).isoformat(),
			'seats_total': 3,
			'total_cost_cents': 4500,
		}

	def _post(self, user, payload):
		request = self.factory.post('/api/rides/', payload, format='json')
		force_authenticate(request, user=user)
		return RideListCreateView.as_view()(request)

	def test_post_ride(self):
		response = self._post(self.driver, self.payload)

		self.assertEqual(response.status_code, 201)
		self.assertTrue(response.data['success'])
		self.assertEqual(response.data['ride']['status'], Ride.STATUS_OPEN)
		self.assertEqual(response.data['ride']['seats_available'], 3)
		self.assertEqual(response.data['ride']['total_cost_display'], '$45.00')

	def test_unverified_driver_forbidden(self):
		response = self._post(make_user('newbie'), self.payload)

		self.assertEqual(response.status_code, 403)
		self.assertFalse(response.data['success'])

	def test_invalid_pricing(self):
		response = self._post(self.driver, {**self.payload, 'total_cost_cents': 60000})

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['error_kind'], 'invalid_argument')
		self.assertEqual(response.data['errors']['total_cost_cents'], 'Maximum cost is $500.00')

	def test_missing_fields(self):
		response = self._post(self.driver, {'origin_text': 'North Campus'})

		self.assertEqual(response.status_code, 400)
		self.assertIn('depart_at', response.data)

	def test_list_hides_full_rides(self):
		open_ride = make_ride(self.driver)
		make_ride(self.driver, seats_available=0, status=Ride.STATUS_FULL)

		request = self.factory.get('/api/rides/')
		force_authenticate(request, user=make_user('rider'))
		response = RideListCreateView.as_view()(request)

		self.assertEqual(response.status_code, 200)
		self.assertEqual([ride['id'] for ride in response.data], [open_ride.id])


class RideDetailViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver = make_user('driver', is_verified_student=True)
		self.rider = make_user('rider')
		self.ride = make_ride(self.driver, seats_total=4, total_cost_cents=1000)

	def test_detail_includes_estimate(self):
		make_booking(self.ride, make_user('early_rider'), seats=1)
		self.ride.seats_available = 3
		self.ride.save(update_fields=['seats_available'])

		request = self.factory.get('/api/rides/%d/' % self.ride.id)
		force_authenticate(request, user=self.rider)
		response = RideDetailView.as_view()(request, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['seats_occupied'], 1)
		self.assertEqual(response.data['estimated_share_cents'], 500)

	def test_missing_ride(self):
		request = self.factory.get('/api/rides/999/')
		force_authenticate(request, user=self.rider)
		response = RideDetailView.as_view()(request, ride_id=999)

		self.assertEqual(response.status_code, 404)

	def test_bookings_visible_to_driver_only(self):
		make_booking(self.ride, self.rider)

		request = self.factory.get('/api/rides/%d/bookings/' % self.ride.id)
		force_authenticate(request, user=self.driver)
		response = RideBookingsView.as_view()(request, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(len(response.data['bookings']), 1)
		# The pickup code belongs to the rider
		self.assertIsNone(response.data['bookings'][0]['trip_start_code'])

		request = self.factory.get('/api/rides/%d/bookings/' % self.ride.id)
		force_authenticate(request, user=self.rider)
		response = RideBookingsView.as_view()(request, ride_id=self.ride.id)

		self.assertEqual(response.status_code, 404)


class RideCompleteViewTests(TestCase):
	def setUp(self):
		self.factory = APIRequestFactory()
		self.driver = make_user('driver', is_verified_student=True)
		self.rider = make_user('rider')
		self.ride = make_ride(self.driver, total_cost_cents=1001, status=Ride.STATUS_IN_PROGRESS)

	def _complete(self, user):
		request = self.factory.post('/api/rides/%d/complete/' % self.ride.id)
		force_authenticate(request, user=user)
		return RideCompleteView.as_view()(request, ride_id=self.ride.id)

	def test_driver_completes_trip(self):
		booking = make_booking(self.ride, self.rider, seats=2, status=Booking.STATUS_IN_PROGRESS)

		response = self._complete(self.driver)

		self.assertEqual(response.status_code, 200)
		self.assertEqual(response.data['completed_bookings'], 1)
		self.assertEqual(response.data['ride']['status'], Ride.STATUS_COMPLETED)
		booking.refresh_from_db()
		self.assertEqual(booking.final_share_cents, 1001)

	def test_rider_cannot_complete(self):
		make_booking(self.ride, self.rider, status=Booking.STATUS_IN_PROGRESS)

		response = self._complete(self.rider)

		self.assertEqual(response.status_code, 403)

	def test_nothing_to_complete(self):
		response = self._complete(self.driver)

		self.assertEqual(response.status_code, 400)
		self.assertEqual(response.data['message'], 'No active bookings to complete')
