from django.urls import path

from . import views

app_name = 'rides'

urlpatterns = [
    path('', views.RideListCreateView.as_view(), name='list-create'),
    path('<int:ride_id>/', views.RideDetailView.as_view(), name='detail'),
    path('<int:ride_id>/bookings/', views.RideBookingsView.as_view(), name='bookings'),
    path('<int:ride_id>/complete/', views.RideCompleteView.as_view(), name='complete'),
]
