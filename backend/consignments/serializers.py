from rest_framework import serializers

from .models import ConsignmentUsage


class UsageSerializer(serializers.ModelSerializer):
    consignmentNumber = serializers.IntegerField(source='consignment_number')
    bookingReference = serializers.CharField(source='booking_reference')
    rangeDisplay = serializers.CharField(source='range_assignment.range_display')
    totalAmount = serializers.DecimalField(source='total_amount', max_digits=18, decimal_places=6)
    paymentType = serializers.CharField(source='payment_type')
    paymentStatus = serializers.CharField(source='payment_status')
    createdAt = serializers.DateTimeField(source='created_at')

    class Meta:
        model = ConsignmentUsage
        fields = [
            "id", "consignmentNumber", "bookingReference", "rangeDisplay", "totalAmount",
            "paymentType", "status", "paymentStatus", "createdAt",
        ]
