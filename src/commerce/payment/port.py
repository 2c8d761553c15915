"""Payment gateway port (abstract interface).

Defines the contract the order factory charges through. The only adapter is
the deterministic simulator; a real gateway would implement the same port.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class TransactionStatus(Enum):
    APPROVED = "approved"
    DECLINED = "declined"
    ERROR = "error"


@dataclass(frozen=True)
class TransactionResult:
    """Outcome of a payment attempt."""

    status: TransactionStatus
    reference: str | None = None
    failure_reason: str | None = None

    @property
    def approved(self) -> bool:
        return self.status == TransactionStatus.APPROVED


class PaymentGateway(ABC):
    @abstractmethod
    def authorize(
        self,
        card_number: str,
        amount: float,
        currency: str,
        idempotency_key: str,
    ) -> TransactionResult:
        """Authorize and capture ``amount`` against the card."""
        ...
