from django.contrib import admin
from django.urls import include, path

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include('bookings.urls')),
    path('api/consignment/', include('consignments.urls')),
    path('api/pricing/', include('pricing.urls')),
]
