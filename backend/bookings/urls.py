from django.urls import path

from . import views

app_name = 'bookings'

urlpatterns = [
    path('', views.BookingListCreateView.as_view(), name='list-create'),
    path('<int:booking_id>/', views.BookingDetailView.as_view(), name='detail'),
    path('<int:booking_id>/start/', views.TripStartView.as_view(), name='start-trip'),
    path('<int:booking_id>/cancel/', views.BookingCancelView.as_view(), name='cancel'),
    path('<int:booking_id>/payment/', views.BookingPaymentView.as_view(), name='payment'),
    path('<int:booking_id>/dispute/', views.BookingDisputeView.as_view(), name='dispute'),
]
