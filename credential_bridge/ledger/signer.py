"""
Issuer key boundary for server-side issuance.

CredentialIssuer hands an unsigned CredentialCreate dict to a
LedgerSigner and gets back a signed blob to submit. Key material never
leaves the signer; what ships here is only the interface. Deployments
plug in a wallet seed, KMS or HSM implementation, and tests use a
FakeSigner.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class SignResult:
    """A signed transaction ready for ``LedgerClient.submit``.

    Attributes:
        signed_tx_blob_hex: Serialized signed transaction, hex.
        tx_hash: Hash of the signed transaction, 64 hex chars.
        key_id: Public key (or other public handle) that produced the
            signature. Loggable.
    """

    signed_tx_blob_hex: str
    tx_hash: str
    key_id: str


@runtime_checkable
class LedgerSigner(Protocol):
    """Signs transactions on behalf of the issuing account."""

    @property
    def account(self) -> str:
        """Issuing r-address; served by ``GET /system/issuer``."""
        ...

    @property
    def key_id(self) -> str: ...

    async def sign(self, tx_dict: dict[str, object]) -> SignResult:
        """Autofill Sequence, Fee, LastLedgerSequence and SigningPubKey,
        then sign.

        Raises:
            ValueError: The transaction cannot be signed as given.
        """
        ...
