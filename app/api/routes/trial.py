"""
Free trial routes
Start the Essentials trial and check whether the current user may start one.
"""
import logging
from typing import Optional

import stripe
from fastapi import APIRouter, Depends, HTTPException, status
from app.core.errors import TrialDenied
from app.dependencies.auth import get_current_user
from app.dependencies.services import get_notifier, get_trial_service
from app.models.profile import Profile
from app.schemas.entitlements import (
    ErrorResponse,
    StartTrialRequest,
    StartTrialResponse,
    TrialEligibilityResponse,
)
from app.services.billing_email import TrialEmailNotifier
from app.services.trial_service import TrialService
from app.utils.dates import isoformat_or_none

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post(
    "/start",
    response_model=StartTrialResponse,
    responses={400: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def start_trial(
    body: StartTrialRequest,
    profile: Profile = Depends(get_current_user),
    service: TrialService = Depends(get_trial_service),
    notifier: Optional[TrialEmailNotifier] = Depends(get_notifier),
):
    """
    Start a free trial for the current user.
    One trial per email address, ever; denials come back with a stable `code`.
    """
    try:
        started = service.start_trial(profile, body.tier)
    except stripe.StripeError as e:
        logger.error("Stripe error starting trial for user %s: %s", profile.id, e)
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to create trial subscription. Please try again."
        )
    except ValueError as e:
        # Missing price id or similar deployment problem
        logger.error("Trial start misconfigured for user %s: %s", profile.id, e)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=str(e)
        )

    if notifier is not None:
        notifier.send_trial_started(profile.email, started.tier, started.trial_ends_at)

    return StartTrialResponse(
        success=True,
        tier=started.tier,
        subscription_id=started.stripe_subscription_id,
        trial_started_at=isoformat_or_none(started.trial_started_at),
        trial_ends_at=isoformat_or_none(started.trial_ends_at),
    )


@router.get("/eligibility", response_model=TrialEligibilityResponse)
def get_trial_eligibility(
    profile: Profile = Depends(get_current_user),
    service: TrialService = Depends(get_trial_service),
):
    try:
        service.check_eligibility(profile.id, profile.email)
    except TrialDenied as e:
        return TrialEligibilityResponse(eligible=False, code=e.code, message=e.message)
    return TrialEligibilityResponse(eligible=True)
