from sqlalchemy import Column, Integer, String, ForeignKey, DateTime, Boolean
from sqlalchemy.sql import func
from app.db.base import Base


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(Integer, primary_key=True, index=True)
    # unique: one subscription row per user; status moves to "canceled" instead of deleting
    user_id = Column(String(64), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, unique=True)
    tier = Column(String(32), nullable=False, default="basic")  # basic | advanced | elite
    status = Column(String(32), nullable=False, default="trialing")  # trialing | active | past_due | canceled | paused
    stripe_customer_id = Column(String(255), nullable=True)
    stripe_subscription_id = Column(String(255), unique=True, nullable=True)
    trial_started_at = Column(DateTime(timezone=True), nullable=True)
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    current_period_start = Column(DateTime(timezone=True), nullable=True)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    cancel_at_period_end = Column(Boolean, nullable=False, default=False)
    canceled_at = Column(DateTime(timezone=True), nullable=True)  # Anchors the paid retention window
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
