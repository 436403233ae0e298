import uuid
from datetime import timedelta

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import declared_attr, relationship
from sqlalchemy.sql import func

from .database import Base


def generate_public_id():
    """Generate a unique public ID for secure public access"""
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    phone = Column(String(20), nullable=True)
    role = Column(String(20), default="customer", nullable=False)  # customer, chef, delivery, admin
    # Referral wallet balance in whole rupees; only mutated together with a WalletTransaction row
    referral_wallet = Column(Integer, default=0, nullable=False)
    # Bumped on every plan create/payment; guards the customer's plan window against racing writers
    plan_version = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    orders = relationship("Order", back_populates="user", foreign_keys="Order.user_id")
    fresh_plans = relationship("FreshPlan", back_populates="user", order_by="FreshPlan.start_date")


class FulfillmentMixin:
    """
    Kitchen, courier and cancellation columns shared by every fulfillment unit.

    A QuickSip Order and a FreshPlan PlanDay carry the exact same block so the
    state machine in domain.fulfillment is written once.
    """

    # Kitchen: pending → received → done
    kitchen_status = Column(String(20), default="pending", nullable=False, index=True)
    received_time = Column(DateTime, nullable=True)
    done_time = Column(DateTime, nullable=True)

    # Courier: not-yet-picked → picked → delivered | not-delivered
    courier_status = Column(String(20), default="not-yet-picked", nullable=False, index=True)
    picked_time = Column(DateTime, nullable=True)
    delivered_time = Column(DateTime, nullable=True)
    not_delivered_time = Column(DateTime, nullable=True)
    not_delivered_reason = Column(Text, nullable=True)

    # Cancellation is orthogonal to both machines
    cancelled_at = Column(DateTime, nullable=True)
    cancelled_by_role = Column(String(20), nullable=True)
    cancellation_reason = Column(Text, nullable=True)

    # Times reported by chef/courier devices; display only, never authoritative
    client_timestamps = Column(JSON, default=dict, nullable=True)

    @declared_attr
    def chef_id(cls):
        return Column(Integer, ForeignKey("users.id"), nullable=True)

    @declared_attr
    def courier_id(cls):
        return Column(Integer, ForeignKey("users.id"), nullable=True)

    @declared_attr
    def cancelled_by_id(cls):
        return Column(Integer, ForeignKey("users.id"), nullable=True)


class Order(FulfillmentMixin, Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, nullable=False, index=True, default=generate_public_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    order_type = Column(String(20), default="quicksip", nullable=False)  # quicksip, freshplan
    # Coarse rollup: pending, accepted, out-for-delivery, delivered, cancelled
    status = Column(String(30), default="pending", nullable=False, index=True)

    # Customer details (frozen at checkout)
    customer_name = Column(String(255), nullable=False)
    customer_phone = Column(String(20), nullable=False)
    customer_address = Column(Text, nullable=False)
    customer_address_extra = Column(Text, nullable=True)
    customer_lat = Column(Float, nullable=True)
    customer_lng = Column(Float, nullable=True)

    # Money (whole rupees, never negative)
    subtotal_amount = Column(Integer, default=0, nullable=False)
    delivery_charge = Column(Integer, default=0, nullable=False)
    calculated_delivery_charge = Column(Integer, default=0, nullable=False)
    wallet_amount_used = Column(Integer, default=0, nullable=False)
    total_amount = Column(Integer, default=0, nullable=False)
    distance_km = Column(Float, nullable=True)

    # QuickSip scheduling
    delivery_date = Column(Date, nullable=True)
    delivery_time_slot = Column(String(20), nullable=True)

    # FreshPlan linkage
    # One checkout per plan
    fresh_plan_id = Column(Integer, ForeignKey("fresh_plans.id"), unique=True, nullable=True)
    is_complete_plan_checkout = Column(Boolean, default=False, nullable=False)

    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="orders", foreign_keys=[user_id])
    # Every line item of the order; FreshPlan items are additionally linked to their day
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    days = relationship(
        "PlanDay", back_populates="order", order_by="PlanDay.date", cascade="all, delete-orphan"
    )
    fresh_plan = relationship("FreshPlan", back_populates="order")


class PlanDay(FulfillmentMixin, Base):
    """One scheduled FreshPlan delivery day (a fulfillment unit)"""

    __tablename__ = "plan_days"
    __table_args__ = (UniqueConstraint("order_id", "date", name="uq_plan_day_order_date"),)

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    date = Column(Date, nullable=False, index=True)

    order = relationship("Order", back_populates="days")
    items = relationship("OrderItem", back_populates="day", cascade="all, delete-orphan")


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    day_id = Column(Integer, ForeignKey("plan_days.id"), nullable=True, index=True)

    product_id = Column(String(64), nullable=False)
    product_name = Column(String(255), nullable=True)
    category = Column(String(20), nullable=False)  # juice, shake
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Integer, nullable=False)
    customization = Column(JSON, nullable=False)
    time_slot = Column(String(20), nullable=True)

    order = relationship("Order", back_populates="items")
    day = relationship("PlanDay", back_populates="items")

    @property
    def line_total(self) -> int:
        return self.unit_price * self.quantity


class FreshPlan(Base):
    __tablename__ = "fresh_plans"

    id = Column(Integer, primary_key=True, index=True)
    public_id = Column(String(36), unique=True, nullable=False, index=True, default=generate_public_id)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    days = Column(Integer, nullable=False)
    start_date = Column(Date, nullable=False)
    # Day drafts prior to checkout: [{"date": "YYYY-MM-DD", "items": [...]}, ...]
    schedule = Column(JSON, default=list, nullable=False)

    # Flipped only by the payment collaborator
    payment_complete = Column(Boolean, default=False, nullable=False)
    paid_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, server_default=func.now())

    user = relationship("User", back_populates="fresh_plans")
    # Set once the plan is checked out (Order.fresh_plan_id points back here)
    order = relationship("Order", back_populates="fresh_plan", uselist=False)

    @property
    def end_date(self):
        """Last delivery date (inclusive)"""
        return self.start_date + timedelta(days=self.days - 1)


class Withdrawal(Base):
    __tablename__ = "withdrawals"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    upi_id = Column(String(100), nullable=False)
    status = Column(String(20), default="pending", nullable=False, index=True)  # pending, approved, rejected
    requested_at = Column(DateTime, nullable=False)
    processed_at = Column(DateTime, nullable=True)
    processed_by_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    transfer_note = Column(Text, nullable=True)

    user = relationship("User", foreign_keys=[user_id])


class WalletTransaction(Base):
    """Referral wallet ledger; ``reference`` makes every movement exactly-once"""

    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount = Column(Integer, nullable=False)  # signed: credit > 0, debit < 0
    # referral_credit, order_debit, cancellation_refund, withdrawal_hold, withdrawal_refund
    kind = Column(String(30), nullable=False)
    reference = Column(String(100), unique=True, nullable=False)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=True)
    withdrawal_id = Column(Integer, ForeignKey("withdrawals.id"), nullable=True)
    note = Column(Text, nullable=True)
    created_at = Column(DateTime, nullable=False)


class DeliverySetting(Base):
    __tablename__ = "delivery_settings"

    id = Column(Integer, primary_key=True, index=True)
    max_range_km = Column(Float, nullable=False)
    charges = Column(JSON, nullable=False)  # [{"up_to_km": 2, "charge": 10}, ...]
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
