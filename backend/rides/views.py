from django.utils import timezone
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from bookings.serializers import BookingSerializer
from common.responses import result_response
from services import ride_management
from services.exceptions import RideNotFoundError
from .models import Ride
from .serializers import RideCreateSerializer, RideSerializer


# ==================== Ride APIs ====================

class RideListCreateView(APIView):
    """
    GET: Upcoming rides that still have seats.
    POST: Driver posts a new ride.
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        rides = (
            Ride.objects.filter(status=Ride.STATUS_OPEN, depart_at__gt=timezone.now(), seats_available__gt=0)
            .select_related('driver')
        )
        return Response(RideSerializer(rides, many=True).data)

    def post(self, request):
        serializer = RideCreateSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

        result = ride_management.post_ride(request.user, **serializer.validated_data)
        data = {'ride': RideSerializer(result.ride).data} if result.success else None
        return result_response(result, data, success_status=status.HTTP_201_CREATED)


class RideDetailView(APIView):
    """GET: A single ride."""
    permission_classes = [IsAuthenticated]

    def get(self, request, ride_id: int):
        ride = Ride.objects.select_related('driver').filter(id=ride_id).first()
        if not ride:
            return Response({'error': 'Ride not found'}, status=status.HTTP_404_NOT_FOUND)
        return Response(RideSerializer(ride).data)


class RideBookingsView(APIView):
    """GET: Bookings on a ride, visible to its driver only."""
    permission_classes = [IsAuthenticated]

    def get(self, request, ride_id: int):
        try:
            bookings = ride_management.get_ride_bookings(request.user, ride_id)
        except RideNotFoundError as e:
            return Response({'error': e.message}, status=status.HTTP_404_NOT_FOUND)
        serializer = BookingSerializer(bookings, many=True, context={'request': request})
        return Response({'ride_id': ride_id, 'bookings': serializer.data})


class RideCompleteView(APIView):
    """
    POST: Driver completes the trip at drop-off.

    Every in-progress booking is finalized with its exact share of the ride cost.
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, ride_id: int):
        result = ride_management.complete_trip(request.user, ride_id)
        data = {'ride': RideSerializer(result.ride).data} if result.success else None
        return result_response(result, data)
