"""
Outgoing mail transports, picked by NOTIFICATIONS_EMAIL_PROVIDER.

`noop` (the default) means notifications are recorded but not sent;
`log` writes them to the application log for dev and staging.
"""

from __future__ import annotations

import logging
import os
from typing import Tuple

logger = logging.getLogger(__name__)


class EmailProvider:
    name = "base"

    def send(self, *, recipient: str, subject: str, template_key: str, payload: dict) -> None:
        raise NotImplementedError


class NoopProvider(EmailProvider):
    name = "noop"

    def send(self, *, recipient: str, subject: str, template_key: str, payload: dict) -> None:
        return None


class LoggingProvider(EmailProvider):
    name = "log"

    def send(self, *, recipient: str, subject: str, template_key: str, payload: dict) -> None:
        logger.info(
            "Notification delivered to log",
            extra={"recipient": recipient, "subject": subject, "template_key": template_key},
        )


_DISABLED = {"", "none", "noop", "disabled"}


def get_email_provider() -> Tuple[EmailProvider, bool]:
    """Return the configured provider and whether it actually delivers."""
    name = os.getenv("NOTIFICATIONS_EMAIL_PROVIDER", "").strip().lower()
    if name in _DISABLED:
        return NoopProvider(), False
    if name == LoggingProvider.name:
        return LoggingProvider(), True
    raise ValueError(f"Unknown notification provider {name!r}")
