"""Payment gateway port (abstract interface).

The core needs three things from a gateway: ``charge``, ``verify`` and
``refund``. Adapters for real providers (mobile money, card processors)
implement this contract; the protocol details stay inside the adapter.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum


class ChargeStatus(Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"  # e.g. mobile-money push awaiting the customer's PIN


@dataclass(frozen=True)
class ChargeResult:
    """Result of a charge or verification."""

    status: ChargeStatus
    transaction_ref: str | None = None
    failure_reason: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == ChargeStatus.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status == ChargeStatus.FAILED


@dataclass(frozen=True)
class RefundResult:
    success: bool
    refund_ref: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def charge(
        self,
        amount: float,
        currency: str,
        method: str,
        phone_number: str | None,
        idempotency_key: str,
    ) -> ChargeResult:
        """Ask the provider to collect ``amount``."""
        ...

    @abstractmethod
    def verify(self, transaction_ref: str) -> ChargeResult:
        """Look up the final outcome of an earlier charge."""
        ...

    @abstractmethod
    def refund(self, transaction_ref: str, amount: float, reason: str) -> RefundResult:
        """Return a settled charge to the payer."""
        ...
