from sqlalchemy import Column, String, DateTime
from sqlalchemy.sql import func
from app.db.base import Base


class Profile(Base):
    """One row per Supabase user.

    The subscription_* and trial_* columns mirror the user's row in
    ``subscriptions`` for fast reads. The subscription row wins whenever the
    two disagree.
    """
    __tablename__ = "profiles"

    id = Column(String(64), primary_key=True)  # Supabase auth user id (uuid)
    email = Column(String(255), nullable=False, index=True)
    email_normalized = Column(String(255), nullable=True, index=True)
    full_name = Column(String(255), nullable=True)
    stripe_customer_id = Column(String(255), unique=True, nullable=True)
    subscription_tier = Column(String(32), nullable=True)
    subscription_status = Column(String(32), nullable=True)
    trial_started_at = Column(DateTime(timezone=True), nullable=True)
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
