# backend/billsync/db/models/webhook_delivery.py
from sqlalchemy import Column, String, Integer, Text, DateTime
from billsync.db.base import BaseModel


class WebhookDelivery(BaseModel):
    """Delivery ledger: one row per provider event id, counting attempts"""
    __tablename__ = "webhook_deliveries"

    id = Column(Integer, primary_key=True, autoincrement=True, index=True)
    event_id = Column(String(255), unique=True, nullable=False, index=True)
    event_type = Column(String(100), nullable=False)

    attempts = Column(Integer, default=0, nullable=False)
    status = Column(String(20), nullable=False)  # processed, failed
    outcome = Column(String(50), nullable=True)
    last_error = Column(Text, nullable=True)
    processed_at = Column(DateTime, nullable=True)
