"""SQLAlchemy ORM models."""
import uuid

from sqlalchemy import (
    BigInteger,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from offramp.core.timeutils import utcnow
from offramp.infrastructure.database.base import Base


def generate_uuid() -> str:
    return str(uuid.uuid4())


class OfframpOrder(Base):
    __tablename__ = "offramp_orders"
    __table_args__ = (
        UniqueConstraint("provider", "provider_transaction_ref", name="uq_offramp_orders_provider_ref"),
    )

    id = Column(String(36), primary_key=True, default=generate_uuid)
    provider = Column(String(20), nullable=False)
    provider_transaction_ref = Column(String(128), nullable=False, index=True)
    wallet_address = Column(String(64), nullable=False, index=True)
    deposit_amount = Column(Numeric(20, 6), nullable=False)
    local_currency = Column(String(3), nullable=False)
    total_local_amount = Column(BigInteger, nullable=False)
    recipient_amount = Column(BigInteger, nullable=False)
    platform_fee = Column(BigInteger, nullable=False)
    rate_used = Column(Numeric(20, 6), nullable=False)
    fee_fraction = Column(Numeric(8, 6), nullable=False)
    payment_method_kind = Column(String(20), nullable=False)
    payment_method = Column(Text, nullable=False)
    account_name = Column(String(150))
    canonical_status = Column(String(20), nullable=False, default="pending", index=True)
    provider_raw_status = Column(String(64))
    deposit_transaction_ref = Column(String(128), nullable=False, index=True)
    receipt_reference = Column(String(128))
    failure_reason = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    last_status_at = Column(DateTime(timezone=True))
    completed_at = Column(DateTime(timezone=True))

    events = relationship(
        "OrderStatusEvent",
        back_populates="order",
        order_by="OrderStatusEvent.id",
        cascade="all, delete-orphan",
    )


class OrderStatusEvent(Base):
    __tablename__ = "order_status_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    order_id = Column(String(36), ForeignKey("offramp_orders.id"), nullable=False, index=True)
    source = Column(String(20), nullable=False)
    raw_status = Column(String(64), nullable=False)
    from_status = Column(String(20), nullable=False)
    to_status = Column(String(20), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)

    order = relationship("OfframpOrder", back_populates="events")


class StatusSignalRecord(Base):
    __tablename__ = "status_signals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    provider = Column(String(20), nullable=False)
    provider_transaction_ref = Column(String(128), nullable=False, index=True)
    order_id = Column(String(36), ForeignKey("offramp_orders.id"), nullable=True, index=True)
    source = Column(String(20), nullable=False)
    raw_status = Column(String(64))
    canonical_status = Column(String(20))
    outcome = Column(String(20), nullable=False, index=True)
    receipt_reference = Column(String(128))
    failure_reason = Column(Text)
    payload = Column(Text)
    received_at = Column(DateTime(timezone=True), default=utcnow)


class Settlement(Base):
    __tablename__ = "settlements"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    order_id = Column(String(36), ForeignKey("offramp_orders.id"), nullable=False, unique=True)
    amount = Column(BigInteger, nullable=False)
    currency = Column(String(3), nullable=False)
    method = Column(String(20), nullable=False)
    provider_reference = Column(String(128))
    settled_at = Column(DateTime(timezone=True), nullable=False)

    order = relationship("OfframpOrder")


class DisbursementIntent(Base):
    __tablename__ = "disbursement_intents"

    id = Column(String(36), primary_key=True, default=generate_uuid)
    deposit_transaction_ref = Column(String(128), nullable=False, unique=True)
    provider = Column(String(20), nullable=False)
    local_currency = Column(String(3), nullable=False)
    request = Column(Text, nullable=False)
    status = Column(String(20), nullable=False, default="pending", index=True)  # pending, disbursed, accepted, failed
    provider_transaction_ref = Column(String(128))
    order_id = Column(String(36), ForeignKey("offramp_orders.id"), nullable=True)
    last_error = Column(Text)
    attempts = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)
