"""
Notification Service
=====================
Order status emails: new_order (to the store) and order_approved /
order_rejected (to the customer).

Sending is synchronous and best-effort: notify() reports success as a bool
and never raises, so a mail outage can't undo an order or a status change.
"""

import logging
from typing import Optional, Dict, Any

from jinja2 import TemplateError

from config.settings import EMAIL_PROVIDER, EMAIL_FROM, STORE_ADMIN_EMAIL, STORE_NAME
from common.exceptions import NotificationError
from common.security import sanitize_input, validate_email
from common.upload import is_receipt_url
from common.templating import render_template
from modules.notification.senders import BaseEmailSender, EmailMessage, get_sender

# Import sender modules to trigger registration
import modules.notification.senders.console  # noqa: F401
import modules.notification.senders.resend   # noqa: F401

logger = logging.getLogger("storefront.notification")


class NotificationEvent:
    NEW_ORDER = "new_order"
    ORDER_APPROVED = "order_approved"
    ORDER_REJECTED = "order_rejected"


EVENT_SUBJECTS = {
    NotificationEvent.NEW_ORDER: "New Order {order_number}",
    NotificationEvent.ORDER_APPROVED: "Your order {order_number} has been approved",
    NotificationEvent.ORDER_REJECTED: "Update on your order {order_number}",
}


class StatusNotifier:

    def __init__(self, sender: Optional[BaseEmailSender] = None):
        self._sender = sender

    @property
    def sender(self) -> BaseEmailSender:
        if self._sender is None:
            self._sender = get_sender(EMAIL_PROVIDER) or get_sender("console")
        return self._sender

    @sender.setter
    def sender(self, value: Optional[BaseEmailSender]):
        self._sender = value

    # ==========================================
    # Public API
    # ==========================================

    def notify(self, event: str, order) -> bool:
        """
        Send the email for an order event.
        Returns True if delivered, False on any failure (logged).
        """
        if event not in EVENT_SUBJECTS:
            logger.error(f"Unknown notification event: {event}")
            return False

        recipient = STORE_ADMIN_EMAIL if event == NotificationEvent.NEW_ORDER else order.customer_email
        if not validate_email(recipient or ""):
            logger.warning(f"Notification {event} for {order.order_number} skipped: invalid recipient")
            return False

        try:
            message = self.build_message(event, order, recipient)
            self.sender.send(message)
        except NotificationError as e:
            logger.error(f"Notification {event} for {order.order_number} failed: {e.message}")
            return False
        except TemplateError as e:
            logger.error(f"Notification {event} for {order.order_number} could not be rendered: {e}")
            return False
        except Exception as e:
            logger.error(f"Notification {event} for {order.order_number} crashed: {e}")
            return False

        logger.info(f"Notification {event} sent for {order.order_number}")
        return True

    def build_message(self, event: str, order, recipient: str) -> EmailMessage:
        context = self._order_context(order)
        html = render_template(f"email/{event}.html", order=context)
        return EmailMessage(
            to=[recipient],
            subject=f"{STORE_NAME} - " + EVENT_SUBJECTS[event].format(order_number=context["order_number"]),
            html=html,
            sender=f"{STORE_NAME} <{EMAIL_FROM}>",
            tags={"category": event},
        )

    # ==========================================
    # Private helpers
    # ==========================================

    def _order_context(self, order) -> Dict[str, Any]:
        """Plain, sanitized view of the order for templates."""
        return {
            "order_number": sanitize_input(order.order_number, 50),
            "customer_name": sanitize_input(order.customer_name, 100),
            "customer_email": sanitize_input(order.customer_email, 254),
            "address": sanitize_input(order.address, 500),
            "phone": sanitize_input(order.phone, 20),
            "payment_method": order.payment_method_label,
            "receipt_url": order.receipt_url if is_receipt_url(order.receipt_url) else None,
            "subtotal_amount": order.subtotal_amount,
            "discount_amount": order.discount_amount,
            "total_amount": order.total_amount,
            "coupon_code": order.coupon_code,
            "items": [
                {
                    "name": sanitize_input(item.product_name, 220),
                    "quantity": item.quantity,
                    "unit_price": item.unit_price,
                    "subtotal": item.subtotal,
                }
                for item in order.items
            ],
        }


# Singleton
notifier = StatusNotifier()
