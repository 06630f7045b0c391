from datetime import timedelta
from decimal import Decimal

from django.contrib.auth import get_user_model
from django.utils import timezone

from bookings.models import Booking
from rides.models import Ride

User = get_user_model()


def make_user(username, **extra):
	extra.setdefault('email', f'{username}@campus.edu')
	extra.setdefault('phone_number', '5550001111')
	return User.objects.create_user(username=username, password='pass1234', **extra)


def make_ride(driver, seats_total=4, total_cost_cents=2000, depart_in=timedelta(days=2), **extra):
	extra.setdefault('seats_available', seats_total)
	extra.setdefault('status', Ride.STATUS_OPEN)
	return Ride.objects.create(
		driver=driver,
		origin_text='North Campus',
		origin_lat=Decimal('42.280800'),
		origin_lng=Decimal('-83.738100'),
		dest_text='Metro Airport',
		dest_lat=Decimal('42.216200'),
		dest_lng=Decimal('-83.355400'),
		depart_at=timezone.now() + depart_in,
		seats_total=seats_total,
		total_cost_cents=total_cost_cents,
		**extra
	)


def make_booking(ride, rider, seats=1, status=Booking.STATUS_AUTHORIZED, **extra):
	"""Insert a booking directly, bypassing seat accounting."""
	extra.setdefault('auth_estimate_cents', 0)
	if status == Booking.STATUS_AUTHORIZED:
		extra.setdefault('trip_start_code', '123456')
		extra.setdefault('code_expires_at', timezone.now() + timedelta(hours=1))
	return Booking.objects.create(ride=ride, rider=rider, seats=seats, status=status, **extra)
