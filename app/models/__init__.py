from app.models.profile import Profile
from app.models.subscription import Subscription
from app.models.trial_eligibility import TrialEligibility
from app.models.call_campaign import CallCampaign

__all__ = [
    "Profile",
    "Subscription",
    "TrialEligibility",
    "CallCampaign",
]
