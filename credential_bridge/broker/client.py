"""
Payload broker protocol: the boundary to the wallet-signing service.

An unsigned transaction descriptor is handed to the signing service,
which presents it to the user's wallet out-of-band (QR scan or deep
link) and later reports whether the user signed it.

The protocol has three operations:
    - submit(descriptor) → PayloadReference
    - subscribe(reference, on_event) → PayloadSubscription   (push)
    - poll(reference) → PayloadResolution | None             (pull)

Resolution states:
    signed=None,  resolved=False   pending (the only pending state)
    signed=True,  resolved=True    terminal: user signed
    signed=False, resolved=True    terminal: user rejected
Any other combination is a protocol error and is refused at
construction.

Push delivery guarantee: a subscription delivers at most one terminal
resolution. The first terminal event wins; later events for the same
reference are dropped.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

from credential_bridge.errors import ProtocolError
from credential_bridge.tx import TxDescriptor

# =========================================================================
# Data types
# =========================================================================


@dataclass(frozen=True)
class PayloadReference:
    """Handle for a payload created on the signing service.

    Consumed exactly once by a waiter; never reused across transactions.

    Attributes:
        id: Opaque payload UUID.
        qr_url: URL of a scannable QR image for the user's wallet.
        deep_link: URL that opens the payload in the wallet app.
        status_url: Push-status endpoint for this payload, if the
            service provided one.
    """

    id: str
    qr_url: str
    deep_link: str
    status_url: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "uuid": self.id,
            "qrUrl": self.qr_url,
            "deepLink": self.deep_link,
        }


@dataclass(frozen=True)
class PayloadResolution:
    """Status of a payload as reported by the signing service.

    Attributes:
        signed: True/False once resolved, None while pending.
        resolved: Whether the user has acted on the payload.
        transaction_id: Ledger transaction hash, when signed.
        account: r-address that signed, when reported.
        ledger_result: Engine result of the dispatched transaction,
            when the service submitted it and reported back.
    """

    signed: bool | None
    resolved: bool
    transaction_id: str | None = None
    account: str | None = None
    ledger_result: str | None = None

    def __post_init__(self) -> None:
        valid = (self.signed is None and not self.resolved) or (
            self.signed is not None and self.resolved
        )
        if not valid:
            raise ProtocolError(
                f"invalid payload state: signed={self.signed!r}, resolved={self.resolved!r}"
            )

    @classmethod
    def pending(cls) -> PayloadResolution:
        return cls(signed=None, resolved=False)

    @property
    def is_terminal(self) -> bool:
        return self.resolved

    @property
    def is_signed(self) -> bool:
        return self.signed is True

    @property
    def is_rejected(self) -> bool:
        return self.signed is False


def is_terminal(resolution: PayloadResolution) -> bool:
    return resolution.is_terminal


# =========================================================================
# Protocols
# =========================================================================


@runtime_checkable
class PayloadSubscription(Protocol):
    """Handle for a push subscription."""

    @property
    def closed(self) -> bool:
        """True once the subscription will deliver nothing further."""
        ...

    def cancel(self) -> None:
        """Stop delivering events. Idempotent."""
        ...


@runtime_checkable
class PayloadBroker(Protocol):
    """Interface for the wallet-signing service.

    Implementations must be safe for concurrent use by several in-flight
    submissions.
    """

    async def submit(self, descriptor: TxDescriptor) -> PayloadReference:
        """Create a payload for an unsigned transaction.

        Raises:
            BrokerError: If the service is unreachable or rejects the
                descriptor.
        """
        ...

    def subscribe(
        self,
        reference: PayloadReference,
        on_event: Callable[[PayloadResolution], None],
    ) -> PayloadSubscription:
        """Register a push callback for status events of one payload.

        The callback receives pending resolutions and at most one
        terminal resolution.
        """
        ...

    async def poll(self, reference: PayloadReference) -> PayloadResolution | None:
        """Fetch the current status once.

        Returns:
            The resolution, or None when the payload is unknown or
            expired upstream.

        Raises:
            BrokerError: If the service is unreachable.
        """
        ...
