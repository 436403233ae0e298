"""
Kitchen and courier state machines

Kitchen:  pending → received → done
Courier:  not-yet-picked → picked → delivered | not-delivered

The two machines are independent except that a unit can only be picked once
the kitchen is done. Cancellation sits beside both and freezes the unit.

Every function returns True when it changed the unit and False for an
idempotent repeat of the current state. Timestamps are always the server
``now``; whatever the device reported goes to ``client_timestamps`` only.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from ...errors import InvalidRequest, InvalidStateTransition, PermissionDenied
from .units import FulfillmentUnit, units_of


class KitchenStatus(str, Enum):
    PENDING = "pending"
    RECEIVED = "received"
    DONE = "done"


class CourierStatus(str, Enum):
    NOT_YET_PICKED = "not-yet-picked"
    PICKED = "picked"
    DELIVERED = "delivered"
    NOT_DELIVERED = "not-delivered"


KITCHEN_PREDECESSOR = {
    KitchenStatus.RECEIVED: KitchenStatus.PENDING,
    KitchenStatus.DONE: KitchenStatus.RECEIVED,
}

TERMINAL_COURIER = {CourierStatus.DELIVERED.value, CourierStatus.NOT_DELIVERED.value}

CANCELLER_ROLES = ("chef", "admin")


def is_cancelled(record) -> bool:
    return record.cancelled_at is not None


def _record_client_time(record, event: str, client_time: Optional[datetime]) -> None:
    if client_time is None:
        return
    stamps = dict(record.client_timestamps or {})
    stamps[event] = client_time.isoformat()
    record.client_timestamps = stamps


def _ensure_not_cancelled(unit: FulfillmentUnit) -> None:
    if is_cancelled(unit.record):
        raise InvalidStateTransition(f"Unit {unit.key} was cancelled")


def advance_kitchen(
    unit: FulfillmentUnit,
    target: KitchenStatus,
    chef_id: int,
    now: datetime,
    client_time: Optional[datetime] = None,
) -> bool:
    """Move the kitchen machine one step forward"""
    target = KitchenStatus(target)
    if target not in KITCHEN_PREDECESSOR:
        raise InvalidStateTransition(f"Kitchen status cannot be set to {target.value}")

    record = unit.record
    _ensure_not_cancelled(unit)

    if record.kitchen_status == target.value:
        return False

    expected = KITCHEN_PREDECESSOR[target]
    if record.kitchen_status != expected.value:
        raise InvalidStateTransition(
            f"Cannot mark {unit.key} {target.value} while it is {record.kitchen_status}"
        )

    record.kitchen_status = target.value
    record.chef_id = chef_id
    if target is KitchenStatus.RECEIVED:
        record.received_time = now
    else:
        record.done_time = now
    _record_client_time(record, target.value, client_time)
    return True


def advance_courier(
    unit: FulfillmentUnit,
    target: CourierStatus,
    courier_id: int,
    now: datetime,
    reason: Optional[str] = None,
    client_time: Optional[datetime] = None,
    enforce_owner: bool = True,
) -> bool:
    """
    Move the courier machine forward.

    ``enforce_owner`` limits delivered/not-delivered to the courier that
    picked the unit; admins bypass it.
    """
    target = CourierStatus(target)
    record = unit.record
    _ensure_not_cancelled(unit)

    if record.courier_status in TERMINAL_COURIER:
        raise InvalidStateTransition(f"Unit {unit.key} is already {record.courier_status}")

    if target is CourierStatus.PICKED:
        if record.courier_status == CourierStatus.PICKED.value:
            return False
        if record.kitchen_status != KitchenStatus.DONE.value:
            raise InvalidStateTransition(
                f"Unit {unit.key} cannot be picked while the kitchen status is {record.kitchen_status}"
            )
        record.courier_status = target.value
        record.courier_id = courier_id
        record.picked_time = now
        _record_client_time(record, target.value, client_time)
        return True

    if target is CourierStatus.NOT_YET_PICKED:
        raise InvalidStateTransition("Courier status cannot move backwards")

    if record.courier_status != CourierStatus.PICKED.value or record.picked_time is None:
        raise InvalidStateTransition(f"Unit {unit.key} must be picked before it is {target.value}")
    if enforce_owner and record.courier_id != courier_id:
        raise PermissionDenied("Only the courier who picked this order can close it")

    if target is CourierStatus.DELIVERED:
        record.delivered_time = now
    else:
        if not reason or not reason.strip():
            raise InvalidRequest("A reason is required when an order is not delivered")
        record.not_delivered_time = now
        record.not_delivered_reason = reason.strip()

    record.courier_status = target.value
    _record_client_time(record, target.value, client_time)
    return True


def cancel_unit(
    unit: FulfillmentUnit,
    actor_id: int,
    role: str,
    reason: str,
    now: datetime,
    force: bool = False,
) -> bool:
    """
    Cancel a unit while the kitchen has not started it.

    ``force`` is the admin path for units already received or done; it is
    never allowed once delivery reached a terminal state.
    """
    if role not in CANCELLER_ROLES:
        raise PermissionDenied("Only chefs and admins can cancel orders")
    if not reason or not reason.strip():
        raise InvalidRequest("A cancellation reason is required")

    record = unit.record
    if is_cancelled(record):
        return False
    if record.courier_status in TERMINAL_COURIER:
        raise InvalidStateTransition(f"Unit {unit.key} is already {record.courier_status}")

    if record.kitchen_status != KitchenStatus.PENDING.value:
        if not force:
            raise InvalidStateTransition(
                f"Unit {unit.key} is already {record.kitchen_status}; only an admin can force cancellation"
            )
        if role != "admin":
            raise PermissionDenied("Only admins can cancel an order the kitchen has started")

    record.cancelled_at = now
    record.cancelled_by_id = actor_id
    record.cancelled_by_role = role
    record.cancellation_reason = reason.strip()
    return True


def unit_status(record) -> str:
    """Single display status for a unit"""
    if is_cancelled(record):
        return "cancelled"
    if record.courier_status != CourierStatus.NOT_YET_PICKED.value:
        return record.courier_status
    return record.kitchen_status


def rollup_order_status(order) -> str:
    """
    Coarse order status derived from its units.

    pending → accepted (kitchen started) → out-for-delivery (any unit picked)
    → delivered (all live units closed, at least one delivered). A unit that
    could not be delivered rolls up like a cancellation.
    """
    records = [unit.record for unit in units_of(order)]
    live = [r for r in records if not is_cancelled(r)]
    if not live:
        return "cancelled"

    if all(r.courier_status in TERMINAL_COURIER for r in live):
        if any(r.courier_status == CourierStatus.DELIVERED.value for r in live):
            return "delivered"
        return "cancelled"
    if any(r.courier_status == CourierStatus.PICKED.value for r in live):
        return "out-for-delivery"
    if any(r.kitchen_status != KitchenStatus.PENDING.value for r in live):
        return "accepted"
    return "pending"
