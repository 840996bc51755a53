import os
from enum import Enum
from typing import Dict, FrozenSet


class AccountMode(str, Enum):
    """Derived entitlement state. Recomputed on every read, never stored."""
    PREVIEW = "preview"
    TRIAL_ACTIVE = "trial-active"
    TRIAL_EXPIRED = "trial-expired"
    SUBSCRIBED = "subscribed"
    DATA_CLEARED = "data-cleared"


TIERS = ("basic", "advanced", "elite")
AGENTS = ("sync", "aloha", "studio", "insight")

# Display names used by the pricing page
TIER_LABELS: Dict[str, str] = {
    "basic": "Essentials",
    "advanced": "Professional",
    "elite": "Executive",
}

# Agent access by tier
AGENT_ACCESS_BY_TIER: Dict[str, FrozenSet[str]] = {
    "basic": frozenset({"sync"}),
    "advanced": frozenset({"sync", "aloha", "studio"}),
    "elite": frozenset({"sync", "aloha", "studio", "insight"}),
}

# Only these modes may use agents at all; the tier decides which ones
AGENT_ACCESS_MODES = frozenset({AccountMode.TRIAL_ACTIVE, AccountMode.SUBSCRIBED})

# Essentials is the only plan with a free trial
TRIAL_TIERS = frozenset({"basic"})
TRIAL_DAYS = int(os.getenv("TRIAL_DAYS", "3"))

# Data retention after access ends (days)
TRIAL_RETENTION_DAYS = 30
PAID_RETENTION_DAYS = 60

SUBSCRIPTION_STATUSES = ("trialing", "active", "past_due", "canceled", "paused")
LAPSED_STATUSES = frozenset({"canceled", "past_due", "paused"})


def get_agents_for_tier(tier: str) -> FrozenSet[str]:
    """Agents included in a tier; unknown tiers include nothing."""
    return AGENT_ACCESS_BY_TIER.get(tier or "", frozenset())
