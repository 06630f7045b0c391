from rest_framework import serializers

from accounts.serializers import UserBasicSerializer
from services.fare_splitting import MAX_RIDERS, estimate_share, format_currency
from .models import Ride


class RideSerializer(serializers.ModelSerializer):
    """Serializer for Rides, with the per-seat estimate a new rider would be held to."""
    driver = UserBasicSerializer(read_only=True)
    seats_occupied = serializers.IntegerField(read_only=True)
    total_cost_display = serializers.SerializerMethodField()
    estimated_share_cents = serializers.SerializerMethodField()

    class Meta:
        model = Ride
        fields = ['id', 'driver', 'origin_text', 'origin_lat', 'origin_lng',
                  'dest_text', 'dest_lat', 'dest_lng', 'depart_at',
                  'seats_total', 'seats_available', 'seats_occupied',
                  'total_cost_cents', 'total_cost_display', 'estimated_share_cents',
                  'status', 'notes', 'created_at', 'completed_at']
        read_only_fields = fields

    def get_total_cost_display(self, obj):
        return format_currency(obj.total_cost_cents)

    def get_estimated_share_cents(self, obj):
        if obj.status != Ride.STATUS_OPEN or obj.seats_available < 1:
            return None
        return estimate_share(obj.total_cost_cents, obj.seats_occupied, 1)


class RideCreateSerializer(serializers.Serializer):
    """Input shape for posting a ride. Business rules are checked by the service layer."""
    origin_text = serializers.CharField(max_length=255)
    origin_lat = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90)
    origin_lng = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180)
    dest_text = serializers.CharField(max_length=255)
    dest_lat = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90)
    dest_lng = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180)
    depart_at = serializers.DateTimeField()
    seats_total = serializers.IntegerField(min_value=1, max_value=MAX_RIDERS)
    total_cost_cents = serializers.IntegerField(min_value=0)
    notes = serializers.CharField(required=False, allow_blank=True, default='')
