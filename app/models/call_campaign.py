from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, JSON, Text
from sqlalchemy.sql import func
from app.db.base import Base

DEFAULT_ALLOWED_DAYS = ["mon", "tue", "wed", "thu", "fri"]


class CallCampaign(Base):
    __tablename__ = "call_campaigns"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    status = Column(String(32), nullable=False, default="draft")  # draft | scheduled | running | paused | completed | canceled

    # Calling-hours window, enforced before every outbound call
    timezone = Column(String(64), nullable=False, default="America/New_York")  # IANA name
    allowed_call_start_time = Column(String(8), nullable=False, default="09:00:00")
    allowed_call_end_time = Column(String(8), nullable=False, default="18:00:00")
    allowed_days_of_week = Column(JSON, nullable=False, default=lambda: list(DEFAULT_ALLOWED_DAYS))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
