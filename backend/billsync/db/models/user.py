# backend/billsync/db/models/user.py
from sqlalchemy import Column, String, Integer, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from billsync.core.constants import UserRole
from billsync.db.base import BaseModel


class User(BaseModel):
    """Principal belonging to exactly one tenant"""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    full_name = Column(String(255), nullable=True)

    # Subject claim issued by the identity provider; referenced from checkout metadata
    auth_user_id = Column(String(255), unique=True, nullable=True, index=True)

    # Tenant relationship
    tenant_id = Column(Integer, ForeignKey("tenants.id"), nullable=True, index=True)
    role = Column(String(50), default=UserRole.OWNER.value, nullable=False)

    # Status
    is_active = Column(Boolean, default=True, nullable=False)

    # Relationships
    tenant = relationship("Tenant", back_populates="users")
