from __future__ import annotations

from rest_framework import status, views
from rest_framework.response import Response

from consignments.models import ConsignmentUsage
from consignments.services.ledger import UsageLedger
from core.entities import Entity
from core.views import EntityAPIView, serializer_error_response
from pricing.serializers import error_kind

from .serializers import BookingRequestSerializer, BookingSerializer, TrackingSerializer
from .services.orchestrator import BookingOrchestrator, booking_response


def not_found(message: str) -> Response:
    return Response({"detail": message, "error": "NotFound"}, status=status.HTTP_404_NOT_FOUND)


class BookingListCreateView(EntityAPIView):
    def post(self, request):
        ser = BookingRequestSerializer(data=request.data)
        if not ser.is_valid():
            return serializer_error_response(ser.errors, kind=error_kind(ser.errors))
        entity = Entity.from_mapping(ser.validated_data["entity"])

        # Sections are stored as sent; the serializer only vets them
        usage = BookingOrchestrator().create_booking(entity, request.data)
        return Response(booking_response(usage), status=status.HTTP_201_CREATED)

    def get(self, request):
        entity = self.entity_from_query(request)
        qs = UsageLedger().list(entity).exclude(status=ConsignmentUsage.STATUS_RESERVED)
        return self.paginate(request, qs, lambda u: BookingSerializer(u).data)


class BookingDetailView(EntityAPIView):
    def get(self, request, consignment_number: int):
        entity = self.entity_from_query(request)
        usage = UsageLedger().get(entity, consignment_number)
        if usage is None or usage.is_reserved:
            return not_found(f"Consignment {consignment_number} not found for {entity}.")
        return Response(BookingSerializer(usage).data)


class TrackingView(views.APIView):
    def get(self, request, consignment_number: int):
        usage = (ConsignmentUsage.objects
                 .filter(consignment_number=consignment_number)
                 .exclude(status=ConsignmentUsage.STATUS_RESERVED)
                 .order_by('-created_at')
                 .first())
        if usage is None:
            return not_found(f"Consignment {consignment_number} not found.")
        return Response(TrackingSerializer(usage).data)
