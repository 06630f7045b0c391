from rest_framework import serializers

from accounts.serializers import UserBasicSerializer
from services.fare_splitting import MAX_RIDERS
from .models import Booking, Dispute


class BookingSerializer(serializers.ModelSerializer):
    """
    Serializer for Bookings.

    The trip-start code is only ever shown to the booking's rider, who hands it
    to the driver at pickup.
    """
    rider = UserBasicSerializer(read_only=True)
    ride_id = serializers.IntegerField(read_only=True)
    trip_start_code = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = ['id', 'ride_id', 'rider', 'seats', 'status',
                  'auth_estimate_cents', 'final_share_cents',
                  'trip_start_code', 'code_expires_at',
                  'is_late_cancellation', 'etiquette_payment_due',
                  'paid_by_rider', 'confirmed_by_driver',
                  'created_at', 'trip_started_at', 'trip_completed_at', 'cancelled_at']
        read_only_fields = fields

    def get_trip_start_code(self, obj):
        request = self.context.get('request')
        if request is None or request.user.id != obj.rider_id:
            return None
        return obj.trip_start_code


class DisputeSerializer(serializers.ModelSerializer):
    """Serializer for Disputes"""
    opened_by = UserBasicSerializer(read_only=True)
    resolved_by = UserBasicSerializer(read_only=True)
    booking_id = serializers.IntegerField(read_only=True)
    ride_id = serializers.IntegerField(source='booking.ride_id', read_only=True)

    class Meta:
        model = Dispute
        fields = ['id', 'booking_id', 'ride_id', 'opened_by', 'reason', 'status',
                  'resolution', 'booking_status_at_open', 'resolved_by',
                  'created_at', 'updated_at']
        read_only_fields = fields


class BookingCreateSerializer(serializers.Serializer):
    """Serializer for booking seats on a ride"""
    ride_id = serializers.IntegerField()
    seats = serializers.IntegerField(default=1, min_value=1, max_value=MAX_RIDERS)


class TripStartSerializer(serializers.Serializer):
    """Serializer for the pickup code exchange"""
    code = serializers.CharField(max_length=16, trim_whitespace=True)


class PaymentUpdateSerializer(serializers.Serializer):
    """Serializer for payment acknowledgements. Omitted fields are left unchanged."""
    paid_by_rider = serializers.BooleanField(required=False)
    confirmed_by_driver = serializers.BooleanField(required=False)


class DisputeCreateSerializer(serializers.Serializer):
    """Serializer for opening a dispute. Minimum length is enforced by the service."""
    reason = serializers.CharField(trim_whitespace=False)


class DisputeResolveSerializer(serializers.Serializer):
    """Serializer for an administrator's decision (resolved or rejected)"""
    outcome = serializers.CharField()
    resolution = serializers.CharField(trim_whitespace=False)
