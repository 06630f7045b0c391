"""Tells what to show in the Django admin interface for bookings app"""

from django.contrib import admin
from .models import Booking, Dispute


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Booking admin"""
    list_display = ['id', 'ride', 'rider', 'seats', 'status', 'auth_estimate_cents',
                    'final_share_cents', 'is_late_cancellation', 'created_at']
    list_filter = ['status', 'is_late_cancellation', 'created_at']
    search_fields = ['rider__username', 'ride__driver__username', 'ride__origin_text', 'ride__dest_text']
    readonly_fields = ['created_at', 'trip_started_at', 'trip_completed_at', 'cancelled_at', 'final_share_cents']
    exclude = ['trip_start_code']


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "opened_by", "status", "resolved_by", "created_at")
    list_filter = ("status",)
    search_fields = ("booking__id", "opened_by__username", "reason")
