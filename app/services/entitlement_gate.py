"""
The decision point consulted before privileged actions: starting a trial,
placing an outbound call and using an agent.
"""
import logging
from datetime import datetime
from typing import FrozenSet, Optional

from app.core.entitlements import AGENT_ACCESS_MODES, AccountMode, get_agents_for_tier
from app.core.errors import TRIAL_ALREADY_ACTIVE, TRIAL_ALREADY_USED, CallWindowClosed, TrialDenied
from app.services.time_window import CallWindowDecision, is_within_call_window
from app.services.trial_eligibility import TrialEligibilityGuard

logger = logging.getLogger(__name__)


class EntitlementGate:
    def __init__(self, eligibility: TrialEligibilityGuard):
        self.eligibility = eligibility

    def can_start_trial(self, user_id: str, email: str, now: Optional[datetime] = None) -> None:
        """Raise TrialDenied if this user/email may not start a trial."""
        if self.eligibility.is_user_on_active_trial(user_id, now=now):
            logger.info("Trial start denied for user %s: %s", user_id, TRIAL_ALREADY_ACTIVE)
            raise TrialDenied(TRIAL_ALREADY_ACTIVE)
        if self.eligibility.has_email_used_trial(email):
            logger.info("Trial start denied for user %s: %s", user_id, TRIAL_ALREADY_USED)
            raise TrialDenied(TRIAL_ALREADY_USED)

    def can_place_call(self, campaign_config, now: Optional[datetime] = None) -> CallWindowDecision:
        """Return the allowing decision, or raise CallWindowClosed carrying the denial."""
        decision = is_within_call_window(campaign_config, now)
        if not decision.allowed:
            raise CallWindowClosed(decision)
        return decision

    def can_access_agent(self, account_mode, tier: Optional[str], agent: str) -> bool:
        return agent in self.accessible_agents(account_mode, tier)

    def accessible_agents(self, account_mode, tier: Optional[str]) -> FrozenSet[str]:
        try:
            mode = AccountMode(account_mode)
        except ValueError:
            return frozenset()
        # preview, trial-expired and data-cleared get nothing whatever the tier
        if mode not in AGENT_ACCESS_MODES:
            return frozenset()
        return get_agents_for_tier(tier)
