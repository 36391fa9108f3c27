from django.urls import path

from .views import ActiveTariffView, PriceCalculateView

urlpatterns = [
    path('calculate', PriceCalculateView.as_view(), name='pricing-calculate'),
    path('tariff', ActiveTariffView.as_view(), name='pricing-tariff'),
]
