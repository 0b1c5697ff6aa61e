"""
Gmail API wrapper used as the mail capability.

Sends plain-text messages from the authenticated account. Delivery is
fire-and-forget: a successful send only means Gmail accepted the message.
"""

import base64
import logging
from email.message import EmailMessage
from typing import Any, Optional

from session_signup.api.base import GoogleAPIClient

logger = logging.getLogger(__name__)


def build_message(
    to: str, subject: str, body: str, sender: Optional[str] = None
) -> dict[str, str]:
    """
    Build the raw message body expected by users.messages.send.

    Args:
        to: Recipient address
        subject: Subject line
        body: Plain-text body
        sender: Optional From address (defaults to the authenticated user)

    Returns:
        Dictionary with the base64url-encoded RFC 2822 message under "raw"
    """
    message = EmailMessage()
    message["To"] = to
    message["Subject"] = subject
    if sender:
        message["From"] = sender
    message.set_content(body)

    raw = base64.urlsafe_b64encode(message.as_bytes()).decode("ascii")
    return {"raw": raw}


class GmailAPI(GoogleAPIClient):
    """
    Gmail API wrapper for sending notifications.

    Usage:
        gmail = GmailAPI(credentials)
        gmail.send_message("jane@example.com", "Timesheet approved", "...")
    """

    api_name = "gmail"
    api_version = "v1"

    def send_message(
        self, to: str, subject: str, body: str, sender: Optional[str] = None
    ) -> str:
        """
        Send a plain-text email.

        Returns:
            Id of the sent message
        """
        message = build_message(to, subject, body, sender=sender)

        def execute_send() -> Any:
            return (
                self.service.users()
                .messages()
                .send(userId="me", body=message)
                .execute()
            )

        response = self._retry_with_backoff(execute_send, f"send_message({to})")
        message_id: str = response.get("id", "")
        logger.info(f"Sent '{subject}' to {to}")
        return message_id
