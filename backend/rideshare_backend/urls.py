from django.contrib import admin
from django.urls import path, include

from .views import health_check

urlpatterns = [
    path('admin/', admin.site.urls),
    path("health/", health_check), # Health check endpoint

    # Ride offers (post, detail, driver roster, completion)
    path('api/rides/', include('rides.urls')),

    # Rider bookings (book, trip start, cancel, payment, dispute)
    path('api/bookings/', include('bookings.urls')),

    # Admin dispute review
    path('api/admin/disputes/', include('bookings.admin_urls')),
]
