"""
Disposable/temporary email domain blocklist.

A throwaway inbox per trial would defeat the one-trial-per-email rule, so
trial starts from these domains are refused. Extra domains can be added with
DISPOSABLE_EMAIL_DOMAINS (comma separated).
"""
import logging
import os
from functools import lru_cache
from typing import FrozenSet

logger = logging.getLogger(__name__)

BLOCKLIST_PATH = os.path.join(
    os.path.dirname(__file__), "..", "data", "disposable_email_blocklist.txt"
)


@lru_cache(maxsize=1)
def load_blocklist() -> FrozenSet[str]:
    domains = set()
    if os.path.isfile(BLOCKLIST_PATH):
        with open(BLOCKLIST_PATH, "r", encoding="utf-8") as f:
            for line in f:
                line = line.strip().lower()
                if line and not line.startswith("#"):
                    domains.add(line)
    else:
        logger.warning("Disposable email blocklist not found at %s; only env domains are blocked", BLOCKLIST_PATH)

    extra = os.getenv("DISPOSABLE_EMAIL_DOMAINS", "")
    domains.update(d.strip().lower() for d in extra.split(",") if d.strip())
    logger.info("Disposable email blocklist loaded: %s domains", len(domains))
    return frozenset(domains)


def is_disposable_email(email: str) -> bool:
    """True if the email's domain, or any parent domain, is blocklisted."""
    if not email or "@" not in email:
        return False
    domain = email.strip().lower().rsplit("@", 1)[-1]
    blocklist = load_blocklist()
    parts = domain.split(".")
    # mail.mailinator.com is as disposable as mailinator.com
    return any(".".join(parts[i:]) in blocklist for i in range(len(parts) - 1))
