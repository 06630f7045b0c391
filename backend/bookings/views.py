import logging

from rest_framework import status
from rest_framework.permissions import IsAdminUser, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.rate_limit import CacheRateLimiter, RateLimitExceeded
from common.responses import result_response
from services import booking_lifecycle
from .models import Booking, Dispute
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    DisputeCreateSerializer,
    DisputeResolveSerializer,
    DisputeSerializer,
    PaymentUpdateSerializer,
    TripStartSerializer,
)

logger = logging.getLogger(__name__)


def _booking_payload(request, result):
    if not result.success:
        return None
    return {'booking': BookingSerializer(result.booking, context={'request': request}).data}


# ==================== Rider / Driver Booking APIs ====================

class BookingListCreateView(APIView):
    """
    GET: The caller's bookings, newest first.
    POST: Rider books seats on a ride (booking is authorized immediately).
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        bookings = (
            Booking.objects.filter(rider=request.user)
            .select_related('ride', 'rider')
            .order_by('-created_at')
        )
        serializer = BookingSerializer(bookings, many=True, context={'request': request})
        return Response(serializer.data)

    def post(self, request):
        serializer = BookingCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        result = booking_lifecycle.create_booking(
            request.user,
            serializer.validated_data['ride_id'],
            serializer.validated_data['seats'],
        )
        return result_response(result, _booking_payload(request, result), success_status=status.HTTP_201_CREATED)


class BookingDetailView(APIView):
    """GET: One booking, visible to its rider and the ride's driver."""
    permission_classes = [IsAuthenticated]

    def get(self, request, booking_id: int):
        booking = Booking.objects.select_related('ride', 'rider').filter(id=booking_id).first()
        if not booking or not booking.is_participant(request.user):
            return Response({'error': 'Booking not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(BookingSerializer(booking, context={'request': request}).data)


class TripStartView(APIView):
    """
    POST: Start the trip with the rider's pickup code.

    Failed code attempts are throttled per (user, booking) by `rate_limiter`.
    """
    permission_classes = [IsAuthenticated]
    rate_limiter = None

    def get_rate_limiter(self):
        return self.rate_limiter or CacheRateLimiter.for_trip_codes()

    def post(self, request, booking_id: int):
        serializer = TripStartSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        limiter = self.get_rate_limiter()
        key = f"{request.user.id}:{booking_id}"
        try:
            limiter.check(key)
        except RateLimitExceeded as e:
            logger.warning("Trip start attempts blocked for user %s on booking %s", request.user.id, booking_id)
            return Response(
                {'success': False, 'message': str(e), 'retry_after': e.retry_after},
                status=status.HTTP_429_TOO_MANY_REQUESTS,
            )

        result = booking_lifecycle.start_trip(request.user, booking_id, serializer.validated_data['code'])
        if result.success:
            limiter.reset(key)
        elif 'otp' in result.errors:
            limiter.hit(key)
        return result_response(result, _booking_payload(request, result))


class BookingCancelView(APIView):
    """POST: Rider or driver cancels a booking before the trip starts."""
    permission_classes = [IsAuthenticated]

    def post(self, request, booking_id: int):
        result = booking_lifecycle.cancel_booking(request.user, booking_id)
        return result_response(result, _booking_payload(request, result))


class BookingPaymentView(APIView):
    """PUT: Rider marks paid / driver confirms receipt (off-platform payment)."""
    permission_classes = [IsAuthenticated]

    def put(self, request, booking_id: int):
        serializer = PaymentUpdateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        result = booking_lifecycle.record_payment(
            request.user,
            booking_id,
            paid_by_rider=serializer.validated_data.get('paid_by_rider'),
            confirmed_by_driver=serializer.validated_data.get('confirmed_by_driver'),
        )
        return result_response(result, _booking_payload(request, result))


class BookingDisputeView(APIView):
    """POST: Rider or driver disputes a completed booking."""
    permission_classes = [IsAuthenticated]

    def post(self, request, booking_id: int):
        serializer = DisputeCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        result = booking_lifecycle.open_dispute(request.user, booking_id, serializer.validated_data['reason'])
        data = {'dispute': DisputeSerializer(result.dispute).data} if result.success else None
        return result_response(result, data, success_status=status.HTTP_201_CREATED)


# ==================== Admin Dispute APIs ====================

class AdminDisputeListView(APIView):
    """GET: Disputes for review, optionally filtered with ?status=open|resolved|rejected"""
    permission_classes = [IsAuthenticated, IsAdminUser]

    def get(self, request):
        status_filter = request.query_params.get('status')
        valid = {choice for choice, _ in Dispute.STATUS_CHOICES}
        if status_filter and status_filter not in valid:
            return Response(
                {'error': f"Invalid status filter '{status_filter}'"},
                status=status.HTTP_400_BAD_REQUEST,
            )
        disputes = booking_lifecycle.list_disputes(status_filter)
        return Response({'disputes': DisputeSerializer(disputes, many=True).data})


class AdminDisputeResolveView(APIView):
    """POST: Administrator resolves or rejects an open dispute."""
    permission_classes = [IsAuthenticated]

    def post(self, request, dispute_id: int):
        serializer = DisputeResolveSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        result = booking_lifecycle.resolve_dispute(
            request.user,
            dispute_id,
            serializer.validated_data['outcome'],
            serializer.validated_data['resolution'],
        )
        data = {'dispute': DisputeSerializer(result.dispute).data} if result.success else None
        return result_response(result, data)
