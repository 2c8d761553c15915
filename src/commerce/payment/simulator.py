"""Deterministic transaction simulator.

Stands in for a payment gateway. The outcome depends only on the last digit
of the card number, so checkout behaviour is reproducible in tests:

    ...1 -> approved
    ...2 -> declined
    ...3 -> error
    any other digit -> approved
"""

import hashlib

from commerce.payment.port import PaymentGateway, TransactionResult, TransactionStatus

_OUTCOME_BY_LAST_DIGIT = {
    "1": TransactionStatus.APPROVED,
    "2": TransactionStatus.DECLINED,
    "3": TransactionStatus.ERROR,
}

_FAILURE_REASONS = {
    TransactionStatus.DECLINED: "Card declined",
    TransactionStatus.ERROR: "Payment processing error",
}


def simulate(card_number: str) -> TransactionStatus:
    """Classify a payment attempt from the card number alone."""
    digits = "".join(ch for ch in str(card_number) if ch.isdigit())
    if not digits:
        return TransactionStatus.APPROVED
    return _OUTCOME_BY_LAST_DIGIT.get(digits[-1], TransactionStatus.APPROVED)


class SimulatedGateway(PaymentGateway):
    """Gateway adapter backed by :func:`simulate`."""

    def authorize(
        self,
        card_number: str,
        amount: float,  # noqa: ARG002
        currency: str,  # noqa: ARG002
        idempotency_key: str,
    ) -> TransactionResult:
        status = simulate(card_number)
        if status == TransactionStatus.APPROVED:
            digest = hashlib.sha256(idempotency_key.encode("utf-8")).hexdigest()[:12]
            return TransactionResult(status=status, reference=f"sim_txn_{digest}")
        return TransactionResult(status=status, failure_reason=_FAILURE_REASONS[status])
