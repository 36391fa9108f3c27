from django.urls import path

from .views import ConsignmentCheckView, ConsignmentNextView, ConsignmentUsageView

urlpatterns = [
    path('check', ConsignmentCheckView.as_view(), name='consignment-check'),
    path('next', ConsignmentNextView.as_view(), name='consignment-next'),
    path('usage', ConsignmentUsageView.as_view(), name='consignment-usage'),
]
