"""
Notification Manager
====================
Seller notifications: automatic price reductions, sales and payouts.

Every notification is stored in-app; when SMTP is configured a copy is
emailed from a background worker. Notification failures are logged and
never break the operation that triggered them.
"""

import smtplib
from concurrent.futures import ThreadPoolExecutor
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Callable, Dict, List, Optional

import structlog

from ..config import SmtpConfig
from ..database.store import ListingStore
from ..schema.listing import Notification, NotificationType, utcnow


logger = structlog.get_logger(__name__)

MARKETPLACE_NAMES = {
    "ebay": "eBay",
    "facebook": "Facebook Marketplace",
}

SUBJECTS = {
    NotificationType.PRICE_REDUCTION: "Price reduced: {title}",
    NotificationType.ITEM_SOLD: "Sale Alert: {title}",
    NotificationType.PAYOUT_REQUESTED: "Payout request received",
    NotificationType.PAYOUT_COMPLETED: "Payout sent",
    NotificationType.PAYOUT_REJECTED: "Payout request rejected",
}

MESSAGES = {
    NotificationType.PRICE_REDUCTION: (
        'The price for your listing "{title}" has been automatically reduced '
        "from ${previous_price} to ${new_price}."
    ),
    NotificationType.ITEM_SOLD: (
        'Your listing "{title}" has been sold on {marketplace_name} for ${price}. '
        "Payment will be processed within 24-48 hours."
    ),
    NotificationType.PAYOUT_REQUESTED: (
        "Your payout request for ${amount} has been received and is being processed."
    ),
    NotificationType.PAYOUT_COMPLETED: "Your payout of ${amount} has been sent.",
    NotificationType.PAYOUT_REJECTED: "Your payout request for ${amount} was rejected. {notes}",
}


def marketplace_display_name(marketplace: str) -> str:
    return MARKETPLACE_NAMES.get(marketplace, marketplace.title())


def render_message(notification_type: NotificationType, payload: Dict[str, Any]) -> str:
    """Fill the message template for a notification type"""
    fields = {"notes": "", **payload}
    if "marketplace" in fields and "marketplace_name" not in fields:
        fields["marketplace_name"] = marketplace_display_name(fields["marketplace"])
    return MESSAGES[notification_type].format(**fields).strip()


class NotificationManager:
    """
    Creates in-app notifications and sends email copies.

    The in-app notification is the seller-facing channel. Email goes to the
    single operator inbox in NOTIFICATION_TO_EMAIL for every seller, so each
    email names the seller it concerns.

    Args:
        store: Listing Store holding the notifications table
        smtp: SMTP settings; email is skipped when not fully configured
        clock: Returns the current UTC time
    """

    def __init__(
        self,
        store: ListingStore,
        smtp: Optional[SmtpConfig] = None,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.smtp = smtp or SmtpConfig()
        self.clock = clock
        self._executor: Optional[ThreadPoolExecutor] = None

    @property
    def email_enabled(self) -> bool:
        return self.smtp.enabled

    def notify(
        self,
        seller_id: str,
        notification_type: NotificationType,
        payload: Dict[str, Any],
        listing_id: Optional[str] = None,
    ) -> Optional[Notification]:
        """
        Store a notification and queue its email.

        Returns:
            The stored Notification, or None if it could not be created
        """
        try:
            message = render_message(notification_type, payload)
            notification = self.store.create_notification(
                Notification(
                    seller_id=seller_id,
                    type=notification_type,
                    message=message,
                    listing_id=listing_id,
                    payload={key: str(value) for key, value in payload.items()},
                    created_at=self.clock(),
                )
            )
        except Exception as e:
            logger.warning(
                "notification_failed",
                seller_id=seller_id,
                notification_type=notification_type.value,
                error=str(e),
            )
            return None

        if self.email_enabled:
            subject = SUBJECTS[notification_type].format(**{"title": "", **payload})
            body = f"Seller: {seller_id}\n\n{message}"
            self._get_executor().submit(self._send_email, subject, body)

        return notification

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="snaplist-email")
        return self._executor

    def _send_email(self, subject: str, body_text: str) -> bool:
        """
        Send an email notification.

        Returns:
            True if sent successfully
        """
        try:
            msg = MIMEMultipart("alternative")
            msg["Subject"] = subject
            msg["From"] = self.smtp.from_email
            msg["To"] = self.smtp.to_email
            msg.attach(MIMEText(body_text, "plain"))
            msg.attach(MIMEText(f"<html><body><p>{body_text}</p></body></html>", "html"))

            if self.smtp.port == 465:
                with smtplib.SMTP_SSL(self.smtp.host, self.smtp.port) as server:
                    server.login(self.smtp.username, self.smtp.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(self.smtp.host, self.smtp.port) as server:
                    server.starttls()
                    server.login(self.smtp.username, self.smtp.password)
                    server.send_message(msg)

            logger.info("notification_emailed", subject=subject)
            return True

        except (smtplib.SMTPException, OSError) as e:
            logger.warning("notification_email_failed", subject=subject, error=str(e))
            return False

    def list_notifications(self, seller_id: str, unread_only: bool = False) -> List[Notification]:
        return self.store.list_notifications(seller_id, status="unread" if unread_only else None)

    def mark_read(self, notification_id: str) -> bool:
        return self.store.mark_notification_read(notification_id, self.clock())

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
