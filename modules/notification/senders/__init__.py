"""
Email Sender Abstraction
==========================
Each sender implements send() and raises NotificationError on failure.
Registry pattern for sender lookup by name.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

logger = logging.getLogger("storefront.email")


@dataclass
class EmailMessage:
    """Rendered email ready for delivery."""
    to: List[str]
    subject: str
    html: str
    sender: str
    tags: Dict[str, str] = field(default_factory=dict)


class BaseEmailSender:
    """Abstract sender interface."""
    name: str = ""

    def send(self, message: EmailMessage) -> Optional[str]:
        """Deliver message. Returns provider message id (if any)."""
        raise NotImplementedError


# ── Registry ──

_SENDERS: Dict[str, BaseEmailSender] = {}


def register_sender(sender: BaseEmailSender):
    _SENDERS[sender.name] = sender


def get_sender(name: str) -> Optional[BaseEmailSender]:
    return _SENDERS.get(name)


def get_all_sender_names() -> List[str]:
    return list(_SENDERS.keys())
