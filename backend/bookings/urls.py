from django.urls import path

from .views import BookingDetailView, BookingListCreateView, TrackingView

urlpatterns = [
    path('bookings', BookingListCreateView.as_view(), name='booking-list-create'),
    path('bookings/<int:consignment_number>', BookingDetailView.as_view(), name='booking-detail'),
    path('track/<int:consignment_number>', TrackingView.as_view(), name='booking-track'),
]
