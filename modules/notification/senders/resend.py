"""
Resend Sender
==============
REST/JSON transactional email API.
"""

import logging
from typing import Optional

import httpx

from config.settings import RESEND_API_KEY, EMAIL_TIMEOUT
from common.exceptions import NotificationError
from modules.notification.senders import BaseEmailSender, EmailMessage, register_sender

logger = logging.getLogger("storefront.email.resend")

RESEND_SEND_URL = "https://api.resend.com/emails"


class ResendEmailSender(BaseEmailSender):
    name = "resend"

    def __init__(self, api_key: str = RESEND_API_KEY, timeout: float = EMAIL_TIMEOUT):
        self.api_key = api_key
        self.timeout = timeout

    def send(self, message: EmailMessage) -> Optional[str]:
        if not self.api_key:
            raise NotificationError("Email not sent: RESEND_API_KEY is not configured")

        payload = {
            "from": message.sender,
            "to": message.to,
            "subject": message.subject,
            "html": message.html,
        }
        if message.tags:
            payload["tags"] = [{"name": k, "value": v} for k, v in message.tags.items()]

        try:
            resp = httpx.post(
                RESEND_SEND_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.api_key}"},
                timeout=self.timeout,
            )
        except httpx.TimeoutException:
            raise NotificationError("Email provider did not respond")
        except httpx.HTTPError as e:
            raise NotificationError(f"Email provider unreachable: {e}")

        if resp.status_code >= 400:
            logger.error(f"Resend error: {resp.status_code} - {resp.text}")
            raise NotificationError(f"Email provider rejected the message ({resp.status_code})")

        try:
            message_id = resp.json().get("id")
        except ValueError:
            logger.error(f"Resend returned an unreadable body: {resp.status_code} - {resp.text[:200]}")
            raise NotificationError("Email provider returned an unreadable response")
        logger.info(f"Email sent via Resend to {', '.join(message.to)} (id={message_id})")
        return message_id


register_sender(ResendEmailSender())
