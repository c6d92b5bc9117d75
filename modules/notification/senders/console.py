"""
Console Sender
===============
Dev mode (no RESEND_API_KEY): logs the email instead of sending it.
"""

import logging
from typing import Optional

from modules.notification.senders import BaseEmailSender, EmailMessage, register_sender

logger = logging.getLogger("storefront.email.console")


class ConsoleEmailSender(BaseEmailSender):
    name = "console"

    def send(self, message: EmailMessage) -> Optional[str]:
        logger.info(f"[EMAIL STUB] To: {', '.join(message.to)} | Subject: {message.subject}")
        return None


register_sender(ConsoleEmailSender())
