from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

from .exceptions import BookingValidationError

CORPORATE = "corporate"
OFFICE = "office"

ENTITY_TYPE_CHOICES = [(CORPORATE, "Corporate client"), (OFFICE, "Office user")]
ENTITY_TYPES = tuple(code for code, _ in ENTITY_TYPE_CHOICES)


@dataclass(frozen=True)
class Entity:
    """The corporate client or office user a booking is made for."""
    entity_type: str
    entity_id: str

    def __post_init__(self):
        if self.entity_type not in ENTITY_TYPES:
            raise BookingValidationError(
                f"Invalid entityType '{self.entity_type}'. Allowed: {', '.join(ENTITY_TYPES)}."
            )
        if not str(self.entity_id or "").strip():
            raise BookingValidationError("entityId is required.")

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "Entity":
        """Build from ``{"entityType": ..., "entityId": ...}`` (query params or JSON)."""
        entity_type = str(data.get("entityType") or data.get("entity_type") or "").strip().lower()
        entity_id = str(data.get("entityId") or data.get("entity_id") or "").strip()
        return cls(entity_type=entity_type, entity_id=entity_id)

    def filter_kwargs(self) -> dict:
        return {"entity_type": self.entity_type, "entity_id": self.entity_id}

    def as_dict(self) -> dict:
        return {"entityType": self.entity_type, "entityId": self.entity_id}

    def __str__(self):
        return f"{self.entity_type}:{self.entity_id}"
