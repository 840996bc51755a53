"""
Call campaign routes
Campaign creation plus the calling-hours checks the dialer runs before each call.
"""
import logging
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.dependencies.auth import get_current_user
from app.dependencies.services import get_entitlement_gate
from app.models.call_campaign import CallCampaign
from app.models.profile import Profile
from app.schemas.entitlements import (
    CallWindowDecisionResponse,
    CallWindowRequest,
    CampaignCreate,
    CampaignResponse,
    ErrorResponse,
)
from app.services.entitlement_gate import EntitlementGate
from app.services.time_window import (
    TimeWindowConfigError,
    get_time_window_summary,
    is_within_call_window,
    load_window_config,
    normalize_days,
)

logger = logging.getLogger(__name__)

router = APIRouter()


def _summary_or_none(config) -> Optional[str]:
    try:
        return get_time_window_summary(config)
    except TimeWindowConfigError:
        return None


def _decision_response(decision, config) -> CallWindowDecisionResponse:
    return CallWindowDecisionResponse(**decision.to_dict(), summary=_summary_or_none(config))


def _parse_instant(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    try:
        # fromisoformat only accepts a trailing "Z" from Python 3.11
        return datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid ISO-8601 timestamp: {value}"
        )


def _get_owned_campaign(campaign_id: int, profile: Profile, db: Session) -> CallCampaign:
    campaign = db.query(CallCampaign).filter(
        CallCampaign.id == campaign_id,
        CallCampaign.user_id == profile.id
    ).first()
    if not campaign:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Campaign not found"
        )
    return campaign


@router.post("", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
def create_campaign(
    body: CampaignCreate,
    profile: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Create a draft campaign. The calling window is validated up front."""
    try:
        load_window_config(body)
    except TimeWindowConfigError as e:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Invalid calling window: {e}"
        )

    campaign = CallCampaign(
        user_id=profile.id,
        name=body.name.strip(),
        description=body.description,
        status="draft",
        timezone=body.timezone,
        allowed_call_start_time=body.allowed_call_start_time,
        allowed_call_end_time=body.allowed_call_end_time,
        allowed_days_of_week=normalize_days(body.allowed_days_of_week),
    )
    db.add(campaign)
    db.commit()
    db.refresh(campaign)
    logger.info("Created campaign %s for user %s", campaign.id, profile.id)
    return campaign


@router.post("/call-window", response_model=CallWindowDecisionResponse)
def check_call_window(
    body: CallWindowRequest,
    profile: Profile = Depends(get_current_user),
):
    """Evaluate an ad-hoc window config, at `at` if given, else now."""
    decision = is_within_call_window(body, _parse_instant(body.at))
    return _decision_response(decision, body)


@router.get("/{campaign_id}/call-window", response_model=CallWindowDecisionResponse)
def get_campaign_call_window(
    campaign_id: int,
    profile: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    campaign = _get_owned_campaign(campaign_id, profile, db)
    return _decision_response(is_within_call_window(campaign), campaign)


@router.post(
    "/{campaign_id}/authorize-call",
    response_model=CallWindowDecisionResponse,
    responses={409: {"model": ErrorResponse}},
)
def authorize_call(
    campaign_id: int,
    profile: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    gate: EntitlementGate = Depends(get_entitlement_gate),
):
    """
    Gate an outbound call. 200 when the window is open; otherwise 409
    CALL_WINDOW_CLOSED with the reason and when the window next opens.
    """
    campaign = _get_owned_campaign(campaign_id, profile, db)
    decision = gate.can_place_call(campaign)
    return _decision_response(decision, campaign)
