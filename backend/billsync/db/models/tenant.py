# backend/billsync/db/models/tenant.py
from sqlalchemy import Column, String, Integer, Boolean
from sqlalchemy.orm import relationship
from billsync.db.base import BaseModel


class Tenant(BaseModel):
    """Organization that owns billing state"""
    __tablename__ = "tenants"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    name = Column(String(255), nullable=False)
    plan = Column(String(100), nullable=True)

    # Stripe linkage, set on first successful checkout and never overwritten
    stripe_customer_id = Column(String(255), unique=True, nullable=True, index=True)

    # Status: tenants are deactivated, never deleted
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    users = relationship("User", back_populates="tenant")
    subscriptions = relationship("Subscription", back_populates="tenant")
