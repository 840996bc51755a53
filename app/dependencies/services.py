from typing import Optional
from fastapi import Depends, Request
from sqlalchemy.orm import Session
from app.db.session import get_db
from app.services.billing import StripeBilling
from app.services.billing_email import TrialEmailNotifier
from app.services.entitlement_gate import EntitlementGate
from app.services.trial_eligibility import TrialEligibilityGuard
from app.services.trial_service import TrialService


def get_billing(request: Request) -> Optional[StripeBilling]:
    """The Stripe client built at startup; None when Stripe is not configured."""
    return getattr(request.app.state, "billing", None)


def get_notifier(request: Request) -> Optional[TrialEmailNotifier]:
    """The Resend notifier built at startup; None when email is not configured."""
    return getattr(request.app.state, "notifier", None)


def get_entitlement_gate(db: Session = Depends(get_db)) -> EntitlementGate:
    return EntitlementGate(TrialEligibilityGuard(db))


def get_trial_service(
    db: Session = Depends(get_db),
    gate: EntitlementGate = Depends(get_entitlement_gate),
    billing: Optional[StripeBilling] = Depends(get_billing),
) -> TrialService:
    return TrialService(db, gate, billing=billing)
