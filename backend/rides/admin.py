"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import Ride


@admin.register(Ride)
class RideAdmin(admin.ModelAdmin):
    """Ride admin"""
    list_display = ['id', 'driver', 'origin_text', 'dest_text', 'depart_at', 'seats_available',
                    'seats_total', 'total_cost_cents', 'status']
    list_filter = ['status', 'depart_at']
    search_fields = ['driver__username', 'origin_text', 'dest_text']
    readonly_fields = ['created_at', 'completed_at']
    date_hierarchy = 'depart_at'
