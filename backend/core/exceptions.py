"""
Error taxonomy shared by the allocation, pricing and booking layers.

Every error carries a stable ``kind`` (surfaced to API clients) and the HTTP
status the REST layer answers with.
"""
from rest_framework import status


class BookingCoreError(Exception):
    """Base exception for booking core failures"""
    kind = "BookingCoreError"
    http_status = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = "", **context):
        super().__init__(message or self.kind)
        self.message = message or self.kind
        self.context = context

    def as_response_body(self) -> dict:
        body = {"detail": self.message, "error": self.kind}
        if self.context:
            body["context"] = self.context
        return body


class BookingValidationError(BookingCoreError):
    """Raised when a request is rejected before any allocation or pricing"""
    kind = "ValidationError"


class RangeExhausted(BookingCoreError):
    """No free number remains in any active range of the entity"""
    kind = "RangeExhausted"


class AllocationConflict(BookingCoreError):
    """Concurrent allocations kept colliding after the bounded retries"""
    kind = "AllocationConflict"
    http_status = status.HTTP_409_CONFLICT


class UnsupportedReverseRoute(BookingCoreError):
    """Reverse pricing requested for a destination outside Assam/North-East"""
    kind = "UnsupportedReverseRoute"


class InvalidServiceType(BookingCoreError):
    kind = "InvalidServiceType"


class TariffConfigurationMissing(BookingCoreError):
    """A resolved zone/slab/mode has no tariff entry. Never priced as zero."""
    kind = "TariffConfigurationMissing"


class PersistenceFailure(BookingCoreError):
    """Writing the booking failed; the reserved number was rolled back"""
    kind = "PersistenceFailure"
