from pydantic import BaseModel, Field
from typing import List, Literal, Optional

TierLiteral = Literal["basic", "advanced", "elite"]
AgentLiteral = Literal["sync", "aloha", "studio", "insight"]
DayLiteral = Literal["mon", "tue", "wed", "thu", "fri", "sat", "sun"]
AccountModeLiteral = Literal["preview", "trial-active", "trial-expired", "subscribed", "data-cleared"]


class ErrorResponse(BaseModel):
    error: str
    code: str
    message: Optional[str] = None


class StartTrialRequest(BaseModel):
    tier: TierLiteral


class StartTrialResponse(BaseModel):
    success: bool = True
    tier: str
    subscription_id: Optional[str] = None  # Stripe subscription id, None for local-only trials
    trial_started_at: str
    trial_ends_at: str


class TrialEligibilityResponse(BaseModel):
    eligible: bool
    code: Optional[str] = None
    message: Optional[str] = None


class AccountModeResponse(BaseModel):
    mode: AccountModeLiteral
    activation_timestamp: Optional[str] = None


class RetentionResponse(BaseModel):
    has_retention_window: bool
    expires_at: Optional[str] = None
    days_remaining: Optional[int] = None
    reason: Optional[str] = None
    is_expired: bool = False


class SubscriptionResponse(BaseModel):
    tier: Optional[str] = None
    status: Optional[str] = None
    mode: AccountModeLiteral
    trial_ends_at: Optional[str] = None
    trial_days_remaining: Optional[int] = None
    current_period_end: Optional[str] = None
    cancel_at_period_end: bool = False
    has_used_trial: bool
    retention: RetentionResponse


class AgentsResponse(BaseModel):
    mode: AccountModeLiteral
    tier: Optional[str] = None
    agents: List[str]


class AgentAccessResponse(BaseModel):
    agent: str
    allowed: bool
    mode: AccountModeLiteral
    tier: Optional[str] = None


class CallWindowConfig(BaseModel):
    """Campaign calling-hours window.

    Only the shape is validated here. The evaluator checks the values and
    denies calls for anything it cannot interpret, so a bad timezone comes
    back as a closed window rather than a 422.
    """
    timezone: str = "America/New_York"
    allowed_call_start_time: str = "09:00:00"
    allowed_call_end_time: str = "18:00:00"
    allowed_days_of_week: List[str] = Field(default_factory=lambda: ["mon", "tue", "wed", "thu", "fri"])


class CallWindowRequest(CallWindowConfig):
    at: Optional[str] = None  # ISO-8601 instant to evaluate; defaults to now


class CallWindowDecisionResponse(BaseModel):
    allowed: bool
    reason: Optional[str] = None
    next_window_opens: Optional[str] = None
    next_allowed_day: Optional[DayLiteral] = None
    summary: Optional[str] = None


class CampaignCreate(CallWindowConfig):
    name: str = Field(min_length=1, max_length=255)
    description: Optional[str] = None


class CampaignResponse(CallWindowConfig):
    id: int
    name: str
    description: Optional[str] = None
    status: str

    class Config:
        from_attributes = True


class RetentionEntry(BaseModel):
    user_id: str
    tier: Optional[str] = None
    status: Optional[str] = None
    mode: AccountModeLiteral
    retention_reason: Optional[str] = None
    retention_expires_at: Optional[str] = None
    profile_drift: List[str] = []


class RetentionReportResponse(BaseModel):
    in_retention_window: int
    past_retention_window: int
    in_retention: List[RetentionEntry]
    past_retention: List[RetentionEntry]
    generated_at: str
