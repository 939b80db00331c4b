"""Configurable fake payment gateway for development and testing.

Simulates a provider without any external calls. It can be told to succeed,
fail, leave a charge pending for later verification, or stall for a while to
exercise the orchestrator's timeout.
"""

import time
from uuid import uuid4

from medflow.payments.gateway.port import ChargeResult, ChargeStatus, PaymentGateway, RefundResult


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.outcome: ChargeStatus = ChargeStatus.SUCCEEDED
        self.verify_outcome: ChargeStatus = ChargeStatus.SUCCEEDED
        self.failure_reason: str = "Payment declined"
        self.refund_succeeds: bool = True
        self.delay_seconds: float = 0.0
        self.calls: list[dict] = []

    def configure(
        self,
        outcome: ChargeStatus | str = ChargeStatus.SUCCEEDED,
        failure_reason: str = "Payment declined",
        verify_outcome: ChargeStatus | str = ChargeStatus.SUCCEEDED,
        refund_succeeds: bool = True,
        delay_seconds: float = 0.0,
    ) -> None:
        """Configure gateway behavior at runtime."""
        self.outcome = ChargeStatus(outcome)
        self.verify_outcome = ChargeStatus(verify_outcome)
        self.failure_reason = failure_reason
        self.refund_succeeds = refund_succeeds
        self.delay_seconds = delay_seconds

    def _stall(self) -> None:
        if self.delay_seconds:
            time.sleep(self.delay_seconds)

    def charge(
        self,
        amount: float,
        currency: str,
        method: str,
        phone_number: str | None,
        idempotency_key: str,
    ) -> ChargeResult:
        self.calls.append(
            {
                "method": "charge",
                "amount": amount,
                "currency": currency,
                "payment_method": method,
                "phone_number": phone_number,
                "idempotency_key": idempotency_key,
            }
        )
        self._stall()

        if self.outcome == ChargeStatus.FAILED:
            return ChargeResult(status=ChargeStatus.FAILED, failure_reason=self.failure_reason)
        return ChargeResult(status=self.outcome, transaction_ref=f"fake_txn_{uuid4().hex[:12]}")

    def verify(self, transaction_ref: str) -> ChargeResult:
        self.calls.append({"method": "verify", "transaction_ref": transaction_ref})
        self._stall()

        if self.verify_outcome == ChargeStatus.FAILED:
            return ChargeResult(
                status=ChargeStatus.FAILED,
                transaction_ref=transaction_ref,
                failure_reason=self.failure_reason,
            )
        return ChargeResult(status=self.verify_outcome, transaction_ref=transaction_ref)

    def refund(self, transaction_ref: str, amount: float, reason: str) -> RefundResult:
        self.calls.append(
            {
                "method": "refund",
                "transaction_ref": transaction_ref,
                "amount": amount,
                "reason": reason,
            }
        )
        self._stall()

        if self.refund_succeeds:
            return RefundResult(success=True, refund_ref=f"fake_ref_{uuid4().hex[:12]}")
        return RefundResult(success=False, failure_reason=self.failure_reason)
