from rest_framework import status
from rest_framework.response import Response

from core.exceptions import RangeExhausted
from core.views import EntityAPIView, error_response

from .models import ConsignmentUsage
from .services.allocation import AllocationService
from .services.ledger import UsageLedger
from .serializers import UsageSerializer


class ConsignmentCheckView(EntityAPIView):
    """Advisory summary of an entity's assigned and used numbers."""

    def get(self, request):
        entity = self.entity_from_query(request)
        return Response(AllocationService().summary(entity).as_dict())


class ConsignmentNextView(EntityAPIView):
    def get(self, request):
        entity = self.entity_from_query(request)
        try:
            number = AllocationService().peek_next(entity)
        except RangeExhausted as exc:
            return error_response(exc, status.HTTP_409_CONFLICT)
        return Response({"consignmentNumber": number, "advisory": True})


class ConsignmentUsageView(EntityAPIView):
    def get(self, request):
        entity = self.entity_from_query(request)
        qs = UsageLedger().list(entity).exclude(status=ConsignmentUsage.STATUS_RESERVED)
        return self.paginate(request, qs, lambda u: UsageSerializer(u).data)
