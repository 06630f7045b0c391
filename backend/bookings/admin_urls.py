from django.urls import path

from . import views

app_name = 'admin-disputes'

urlpatterns = [
    path('', views.AdminDisputeListView.as_view(), name='list'),
    path('<int:dispute_id>/resolve/', views.AdminDisputeResolveView.as_view(), name='resolve'),
]
