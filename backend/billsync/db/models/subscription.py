# backend/billsync/db/models/subscription.py
from sqlalchemy import Column, String, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from billsync.db.base import BaseModel


class Subscription(BaseModel):
    """Local mirror of a Stripe subscription.

    One row per ``stripe_subscription_id``; that column is the upsert conflict
    key. Rows are never deleted, canceled subscriptions stay as history.
    """
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=False, index=True)

    stripe_subscription_id = Column(String(255), unique=True, nullable=False, index=True)
    stripe_customer_id = Column(String(255), nullable=True, index=True)
    stripe_price_id = Column(String(255), nullable=True)

    status = Column(String(50), nullable=False, index=True)
    current_period_start = Column(DateTime, nullable=True)
    current_period_end = Column(DateTime, nullable=True)
    cancel_at_period_end = Column(Boolean, default=False, nullable=False)

    # Provider timestamp of the event that last wrote this row
    last_event_at = Column(DateTime, nullable=True)

    # Relationships
    tenant = relationship("Tenant", back_populates="subscriptions")
