"""
Domain errors raised by the entitlement core.

Routes never catch these individually; app.main registers handlers that turn
them into JSON responses with the stable error codes clients branch on.
"""

# Stable codes, part of the public contract
TRIAL_ALREADY_USED = "TRIAL_ALREADY_USED"
TRIAL_ALREADY_ACTIVE = "TRIAL_ALREADY_ACTIVE"
TRIAL_NOT_AVAILABLE = "TRIAL_NOT_AVAILABLE"
SUBSCRIPTION_ALREADY_ACTIVE = "SUBSCRIPTION_ALREADY_ACTIVE"
DISPOSABLE_EMAIL = "DISPOSABLE_EMAIL"
CALL_WINDOW_CLOSED = "CALL_WINDOW_CLOSED"

_TRIAL_DENIALS = {
    TRIAL_ALREADY_USED: (
        403,
        "You have already used your free trial",
        "Each email address can only use the free trial once. Please choose a paid plan to continue.",
    ),
    TRIAL_ALREADY_ACTIVE: (
        400,
        "You already have an active trial",
        "Your free trial is still running.",
    ),
    TRIAL_NOT_AVAILABLE: (
        400,
        "Free trial is only available for Essentials plan",
        "Only the Essentials plan includes a free trial. Professional and Executive plans require immediate payment.",
    ),
    SUBSCRIPTION_ALREADY_ACTIVE: (
        400,
        "You already have an active subscription",
        "A free trial cannot be started on top of a paid subscription.",
    ),
    DISPOSABLE_EMAIL: (
        403,
        "Temporary or disposable email addresses are not allowed",
        "Please use a permanent email address to start a free trial.",
    ),
}


class EntitlementError(Exception):
    """Base class for recoverable entitlement denials."""

    code = "ENTITLEMENT_DENIED"
    status_code = 403

    def __init__(self, error: str, message: str = ""):
        super().__init__(error)
        self.error = error
        self.message = message or error

    def to_dict(self) -> dict:
        return {"error": self.error, "code": self.code, "message": self.message}


class TrialDenied(EntitlementError):
    def __init__(self, code: str):
        status_code, error, message = _TRIAL_DENIALS[code]
        super().__init__(error, message)
        self.code = code
        self.status_code = status_code


class CallWindowClosed(EntitlementError):
    """Raised when an outbound call is attempted outside the campaign window."""

    code = CALL_WINDOW_CLOSED
    status_code = 409

    def __init__(self, decision):
        super().__init__("Outside allowed calling hours", decision.reason or "")
        self.decision = decision

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["next_window_opens"] = self.decision.next_window_opens
        return data
