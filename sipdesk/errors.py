"""
Domain error taxonomy

Every error here is a recoverable, typed result for the caller. The API layer
turns them into JSON responses; nothing in the core treats them as fatal.
"""

from datetime import date, datetime
from typing import Any, Optional


class FulfillmentError(Exception):
    """Base class for all domain errors"""

    status_code = 400
    code = "fulfillment_error"

    def __init__(self, detail: str, **extra: Any):
        super().__init__(detail)
        self.detail = detail
        self.extra = extra

    def to_dict(self) -> dict:
        payload = {"error": self.code, "detail": self.detail}
        for key, value in self.extra.items():
            if isinstance(value, (date, datetime)):
                value = value.isoformat()
            payload[key] = value
        return payload


class InvalidStateTransition(FulfillmentError):
    status_code = 409
    code = "invalid_state_transition"


class ScheduleLocked(FulfillmentError):
    status_code = 423
    code = "schedule_locked"

    def __init__(self, detail: str, reason: str, locked_at: Optional[datetime] = None):
        super().__init__(detail, reason=reason, lockedAt=locked_at)
        self.reason = reason
        self.locked_at = locked_at


class StartDateConflict(FulfillmentError):
    status_code = 409
    code = "start_date_conflict"

    def __init__(self, detail: str, earliest_start_date: date):
        super().__init__(detail, earliestStartDate=earliest_start_date)
        self.earliest_start_date = earliest_start_date


class InvalidDuration(FulfillmentError):
    status_code = 422
    code = "invalid_duration"


class OutOfServiceRange(FulfillmentError):
    status_code = 422
    code = "out_of_service_range"

    def __init__(self, detail: str, distance_km: float, max_range_km: Optional[float] = None):
        super().__init__(detail, distanceKm=distance_km, maxRangeKm=max_range_km)
        self.distance_km = distance_km
        self.max_range_km = max_range_km


class InsufficientBalance(FulfillmentError):
    status_code = 422
    code = "insufficient_balance"


class NotFound(FulfillmentError):
    status_code = 404
    code = "not_found"


class PermissionDenied(FulfillmentError):
    status_code = 403
    code = "permission_denied"


class InvalidRequest(FulfillmentError):
    status_code = 400
    code = "invalid_request"


class ConcurrentUpdate(FulfillmentError):
    status_code = 409
    code = "concurrent_update"
