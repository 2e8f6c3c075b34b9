"""
Notification service for waitlist messages.

Delivery is log-only: messages are formatted and written to the
application log. Notification failures never block the waitlist flow.
"""
from datetime import datetime
from typing import Optional

from loguru import logger

from ..error_handling.exceptions import NotificationError


class NotificationService:
    """
    Formats and dispatches member notifications.

    Example:
        notifier = NotificationService(app_name="Supper Club")
        notifier.notify_waitlist_spot(entry, dinner)
    """

    def __init__(self, app_name: str = "Dinner Club"):
        self.app_name = app_name
        self.sent_count = 0

    def _format_event_date(self, event_date: Optional[datetime]) -> str:
        if event_date is None:
            return "a date to be announced"
        return event_date.strftime("%A, %B %d at %I:%M %p").replace(" 0", " ")

    def _format_waitlist_message(self, recipient_name: Optional[str], dinner) -> str:
        greeting = f"Hello {recipient_name}," if recipient_name else "Hello,"
        return (
            f"{greeting} a seat just opened up at {dinner.title} "
            f"on {self._format_event_date(dinner.event_date)}. "
            f"Reply to {self.app_name} to claim it."
        )

    def dispatch(self, recipient: Optional[str], subject: str, body: str, channel: str = "log") -> None:
        """
        Deliver a message on the given channel.

        Raises:
            NotificationError: If there is no recipient to deliver to
        """
        if not recipient:
            raise NotificationError(
                f"No recipient for notification '{subject}'",
                channel=channel,
            )

        logger.info(f"[{channel}] To: {recipient} | Subject: {subject} | {body}")
        self.sent_count += 1

    def notify_waitlist_spot(self, entry, dinner) -> bool:
        """
        Tell a waitlisted member or guest that a seat is available.

        Args:
            entry: WaitlistEntry that was promoted
            dinner: Dinner the seat belongs to

        Returns:
            True if the message was dispatched, False otherwise
        """
        member = entry.member
        recipient = member.email if member is not None else entry.guest_email
        name = member.name if member is not None else entry.guest_name

        try:
            self.dispatch(
                recipient,
                subject=f"A seat opened up at {dinner.title}",
                body=self._format_waitlist_message(name, dinner),
            )
            return True
        except NotificationError as e:
            logger.warning(f"Waitlist notification for entry {entry.id} not sent: {e.message}")
            return False
