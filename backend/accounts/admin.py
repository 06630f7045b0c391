from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin

from accounts.models import User

STUDENT_FIELDS = ("phone_number", "university", "is_verified_student", "completed_rides")


@admin.register(User)
class StudentUserAdmin(BaseUserAdmin):
    """Users with their campus verification and ride history."""

    list_display = ("username", "email", "university", "is_verified_student", "completed_rides", "is_staff")
    list_filter = ("is_verified_student", "university", "is_staff", "is_active")
    list_editable = ("is_verified_student",)
    search_fields = ("username", "email", "phone_number", "university")
    readonly_fields = ("completed_rides",)
    ordering = ("-date_joined",)

    fieldsets = BaseUserAdmin.fieldsets + (("Student", {"fields": STUDENT_FIELDS}),)
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        ("Student", {"fields": ("email", "phone_number", "university")}),
    )

    @admin.action(description="Mark selected users as verified students")
    def verify_students(self, request, queryset):
        updated = queryset.update(is_verified_student=True)
        self.message_user(request, f"{updated} student(s) verified.")

    actions = ["verify_students"]
