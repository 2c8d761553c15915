"""Notifier registry and fire-and-forget dispatch.

Uses the fake notifier by default; select another adapter through the
NOTIFIER_ADAPTER environment variable.
"""

import os

import structlog

from commerce.notification.port import NotifierPort

logger = structlog.get_logger(__name__)

_notifier_instance: NotifierPort | None = None


def get_notifier() -> NotifierPort:
    global _notifier_instance
    if _notifier_instance is None:
        adapter = os.environ.get("NOTIFIER_ADAPTER", "fake")
        if adapter == "fake":
            from commerce.notification.fake_adapter import FakeNotifier

            _notifier_instance = FakeNotifier()
        else:
            raise ValueError(f"Unknown notifier adapter: {adapter}")
    return _notifier_instance


def set_notifier(notifier: NotifierPort) -> None:
    global _notifier_instance
    _notifier_instance = notifier


def reset_notifier():
    """Reset the notifier singleton (useful for testing)."""
    global _notifier_instance
    _notifier_instance = None


def dispatch(order: dict, outcome: str) -> bool:
    """Send a notification without ever failing the caller.

    Returns True when the notifier accepted the message.
    """
    try:
        get_notifier().notify(order, outcome)
    except Exception as exc:  # noqa: BLE001
        logger.error(
            "Notification dispatch failed",
            order_number=order.get("order_number"),
            outcome=outcome,
            error=str(exc),
        )
        return False

    logger.info(
        "Notification dispatched",
        order_number=order.get("order_number"),
        outcome=outcome,
    )
    return True
