from django.contrib import admin
from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("id", "notification_type", "channel", "recipient", "status", "attempts", "created_at", "sent_at")
    list_filter = ("status", "channel", "notification_type")
    search_fields = ("recipient__username", "booking__id")
    readonly_fields = ("created_at", "sent_at", "failed_at")
