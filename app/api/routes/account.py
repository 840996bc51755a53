"""
Account state routes: account mode, subscription details and agent access.
"""
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from app.core.entitlements import AGENTS, AccountMode
from app.db.session import get_db
from app.dependencies.auth import get_current_user, get_optional_user, is_admin
from app.dependencies.services import get_entitlement_gate
from app.models.profile import Profile
from app.models.subscription import Subscription
from app.schemas.entitlements import (
    AccountModeResponse,
    AgentAccessResponse,
    AgentsResponse,
    RetentionResponse,
    SubscriptionResponse,
)
from app.services.entitlement_gate import EntitlementGate
from app.services.subscription_lifecycle import (
    compute_account_mode,
    get_activation_timestamp,
    get_retention_status,
    resolve_billing_state,
    trial_days_remaining,
)
from app.utils.dates import isoformat_or_none

logger = logging.getLogger(__name__)

router = APIRouter()


def get_user_subscription(db: Session, user_id: str) -> Optional[Subscription]:
    return db.query(Subscription).filter(Subscription.user_id == user_id).first()


def _agents_for(profile: Profile, db: Session, gate: EntitlementGate):
    subscription = get_user_subscription(db, profile.id)
    mode = compute_account_mode(profile, subscription)
    tier = resolve_billing_state(profile, subscription).tier
    if is_admin(profile.email):
        return mode, tier, frozenset(AGENTS)
    return mode, tier, gate.accessible_agents(mode, tier)


@router.get("/account-mode", response_model=AccountModeResponse)
def get_account_mode(
    profile: Optional[Profile] = Depends(get_optional_user),
    db: Session = Depends(get_db),
):
    """Current account mode. Anonymous visitors are always in preview."""
    if profile is None:
        return AccountModeResponse(mode=AccountMode.PREVIEW.value)

    subscription = get_user_subscription(db, profile.id)
    mode = compute_account_mode(profile, subscription)
    return AccountModeResponse(
        mode=mode.value,
        activation_timestamp=isoformat_or_none(get_activation_timestamp(profile, subscription)),
    )


@router.get("/subscription", response_model=SubscriptionResponse)
def get_subscription(
    profile: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    gate: EntitlementGate = Depends(get_entitlement_gate),
):
    """Tier, status, mode, trial countdown and retention window for the current user."""
    subscription = get_user_subscription(db, profile.id)
    state = resolve_billing_state(profile, subscription)
    retention = get_retention_status(profile, subscription)

    return SubscriptionResponse(
        tier=state.tier,
        status=state.status,
        mode=compute_account_mode(profile, subscription).value,
        trial_ends_at=isoformat_or_none(state.trial_ends_at),
        trial_days_remaining=trial_days_remaining(profile, subscription),
        current_period_end=isoformat_or_none(state.current_period_end),
        cancel_at_period_end=bool(subscription.cancel_at_period_end) if subscription else False,
        has_used_trial=gate.eligibility.has_email_used_trial(profile.email),
        retention=RetentionResponse(
            has_retention_window=retention.has_retention_window,
            expires_at=isoformat_or_none(retention.expires_at),
            days_remaining=retention.days_remaining,
            reason=retention.reason,
            is_expired=retention.is_expired,
        ),
    )


@router.get("/agents", response_model=AgentsResponse)
def list_accessible_agents(
    profile: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    gate: EntitlementGate = Depends(get_entitlement_gate),
):
    mode, tier, agents = _agents_for(profile, db, gate)
    # Stable order for the dashboard
    return AgentsResponse(mode=mode.value, tier=tier, agents=[a for a in AGENTS if a in agents])


@router.get("/agents/{agent}/access", response_model=AgentAccessResponse)
def check_agent_access(
    agent: str,
    profile: Profile = Depends(get_current_user),
    db: Session = Depends(get_db),
    gate: EntitlementGate = Depends(get_entitlement_gate),
):
    agent = agent.lower()
    if agent not in AGENTS:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Unknown agent: {agent}"
        )

    subscription = get_user_subscription(db, profile.id)
    mode = compute_account_mode(profile, subscription)
    tier = resolve_billing_state(profile, subscription).tier
    allowed = is_admin(profile.email) or gate.can_access_agent(mode, tier, agent)
    if not allowed:
        logger.info("Agent %s denied for user %s (mode=%s, tier=%s)", agent, profile.id, mode.value, tier)
    return AgentAccessResponse(agent=agent, allowed=allowed, mode=mode.value, tier=tier)
