"""
Send the "your free trial has started" email through Resend.

One TrialEmailNotifier is built in the composition root (app.main) when
RESEND_API_KEY is set; without it there is no notifier and nothing is sent.
"""
import logging
import os
from datetime import datetime
from typing import Optional

import resend

from app.core.entitlements import TIER_LABELS

logger = logging.getLogger(__name__)


class TrialEmailNotifier:
    def __init__(
        self,
        api_key: str,
        from_email: str = "OVRSEE <billing@ovrsee.ai>",
        app_name: str = "OVRSEE",
        frontend_url: str = "http://localhost:3000",
    ):
        if not api_key:
            raise ValueError("Resend API key is required")
        # The resend SDK reads its key from the module
        resend.api_key = api_key
        self.from_email = from_email
        self.app_name = app_name
        self.frontend_url = frontend_url

    @classmethod
    def from_env(cls) -> Optional["TrialEmailNotifier"]:
        api_key = os.getenv("RESEND_API_KEY", "").strip()
        if not api_key:
            logger.info("RESEND_API_KEY is not set; trial emails are disabled")
            return None
        return cls(
            api_key,
            from_email=os.getenv("NOTIFICATIONS_FROM_EMAIL", "OVRSEE <billing@ovrsee.ai>"),
            app_name=os.getenv("APP_NAME", "OVRSEE"),
            frontend_url=os.getenv("FRONTEND_URL", "http://localhost:3000"),
        )

    def send_trial_started(
        self,
        to_email: str,
        tier: str,
        trial_ends_at: Optional[datetime] = None,
    ) -> bool:
        """
        Tell the user their trial is running and when it ends.
        Returns True if sent, False if skipped or failed.
        Does not raise; the trial is already committed when this runs.
        """
        if not to_email:
            return False

        plan = TIER_LABELS.get(tier, tier)
        end_str = trial_ends_at.strftime("%B %d, %Y") if trial_ends_at else "in a few days"

        html = f"""
        <p>Hi,</p>
        <p>Your free {self.app_name} {plan} trial has started.</p>
        <p><strong>Trial ends:</strong> {end_str}</p>
        <p>Pick a plan any time from <a href="{self.frontend_url}/account/subscription">your subscription page</a>
        to keep your agents running after the trial.</p>
        """

        try:
            resend.Emails.send({
                "from": self.from_email,
                "to": [to_email],
                "subject": f"Your {self.app_name} trial has started",
                "html": html.strip(),
            })
            logger.info("Trial started email sent to %s", to_email)
            return True
        except Exception as e:
            logger.warning("Failed to send trial started email to %s: %s", to_email, e)
            return False
