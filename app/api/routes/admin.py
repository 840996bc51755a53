"""
Admin data retention report.

Lists users whose access has ended, split into those still inside their
retention window and those past it (data eligible for purge). Report only:
the purge job that deletes data runs elsewhere.
"""
import hmac
import logging
import os
from typing import Optional
from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session
from app.core.entitlements import AccountMode
from app.db.session import get_db
from app.models.profile import Profile
from app.models.subscription import Subscription
from app.schemas.entitlements import RetentionEntry, RetentionReportResponse
from app.services.subscription_lifecycle import compute_account_mode, get_retention_status, resolve_billing_state
from app.services.subscription_sync import find_profile_drift
from app.utils.dates import isoformat_or_none, utcnow

logger = logging.getLogger(__name__)

router = APIRouter()


def verify_retention_secret(authorization: Optional[str] = Header(None)) -> None:
    secret = os.getenv("DATA_RETENTION_SECRET", "")
    if not secret:
        logger.error("DATA_RETENTION_SECRET is not set; refusing data retention request")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Data retention endpoint not configured"
        )
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized"
        )


@router.get("/data-retention", response_model=RetentionReportResponse, dependencies=[Depends(verify_retention_secret)])
def data_retention_report(db: Session = Depends(get_db)):
    now = utcnow()
    subscriptions = {s.user_id: s for s in db.query(Subscription).all()}

    in_retention, past_retention = [], []
    for profile in db.query(Profile).order_by(Profile.created_at).all():
        subscription = subscriptions.get(profile.id)
        mode = compute_account_mode(profile, subscription, now=now)
        if mode not in (AccountMode.TRIAL_EXPIRED, AccountMode.DATA_CLEARED):
            continue

        state = resolve_billing_state(profile, subscription)
        retention = get_retention_status(profile, subscription, now=now)
        entry = RetentionEntry(
            user_id=profile.id,
            tier=state.tier,
            status=state.status,
            mode=mode.value,
            retention_reason=retention.reason,
            retention_expires_at=isoformat_or_none(retention.expires_at),
            profile_drift=find_profile_drift(profile, subscription) if subscription else [],
        )
        if mode == AccountMode.DATA_CLEARED:
            past_retention.append(entry)
        else:
            in_retention.append(entry)

    logger.info(
        "Data retention report: %s in retention, %s past retention",
        len(in_retention),
        len(past_retention),
    )
    return RetentionReportResponse(
        in_retention_window=len(in_retention),
        past_retention_window=len(past_retention),
        in_retention=in_retention,
        past_retention=past_retention,
        generated_at=now.isoformat(),
    )
