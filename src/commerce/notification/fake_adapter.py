"""Fake notifier — records notifications for test assertions."""

from commerce.notification.port import NotifierPort


class FakeNotifier(NotifierPort):
    def __init__(self):
        self.sent: list[dict] = []
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"

    def configure(self, should_succeed: bool = True, failure_reason: str = "Notification delivery failed"):
        """Configure the fake adapter behavior for testing."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    def notify(self, order: dict, outcome: str) -> None:
        if not self.should_succeed:
            raise ConnectionError(self.failure_reason)
        self.sent.append({"order": order, "outcome": outcome})

    def reset(self):
        self.sent.clear()
        self.should_succeed = True
        self.failure_reason = "Notification delivery failed"
