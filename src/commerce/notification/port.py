"""Notification port — abstract interface for order notifications."""

from abc import ABC, abstractmethod


class NotifierPort(ABC):
    """Delivers order outcome notifications (email, SMS, ...)."""

    @abstractmethod
    def notify(self, order: dict, outcome: str) -> None:
        """Dispatch a notification for a checkout outcome.

        Args:
            order: Summary with order_number (None for failed attempts), email
                and total.
            outcome: The transaction status value ("approved", "declined", "error").
        """
        ...
