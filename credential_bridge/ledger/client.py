"""
What the issuer and the credential query need from a rippled node.

``LedgerClient`` is a Protocol so callers never import httpx; JsonRpcClient
is the network implementation and tests pass a FakeClient.

Node-side outcomes (unknown account, engine rejection, tx not yet
validated) come back as frozen result values. Only transport failures
raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable

# =========================================================================
# Result types
# =========================================================================


@dataclass(frozen=True)
class SubmitResult:
    """Result of submitting a signed transaction blob.

    Attributes:
        accepted: Whether the node accepted the transaction for processing.
            True does NOT mean validated: just that it entered the queue.
        tx_hash: Transaction hash (64 hex chars). None if the node did not
            report one.
        engine_result: Preliminary engine result (e.g. "tesSUCCESS",
            "temBAD_FEE"). None on server-level errors.
        error_code: Machine-readable category when the server itself
            errored ("SERVER_ERROR").
        detail: Human-readable detail for diagnostics.
    """

    accepted: bool
    tx_hash: str | None = None
    engine_result: str | None = None
    error_code: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class TxStatusResult:
    """Result of querying a transaction's ledger status.

    Attributes:
        found: Whether the transaction was found at all.
        validated: Whether the transaction is in a validated ledger.
        ledger_index: Ledger sequence that included the tx, once validated.
        engine_result: Final engine result from the transaction metadata.
        error_code: Set when the query itself failed on the server.
        detail: Human-readable detail for diagnostics.
    """

    found: bool
    validated: bool = False
    ledger_index: int | None = None
    engine_result: str | None = None
    error_code: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class AccountObjectsResult:
    """Result of listing an account's ledger objects.

    Attributes:
        ok: Whether the listing completed. False on server-level errors
            (unknown account, malformed address, node not synced).
        objects: Raw ledger objects in ledger order, all pages combined.
        ledger_index: Validated ledger the listing was read from, if
            reported.
        error_code: Server error token (e.g. "actNotFound") when not ok.
        detail: Human-readable detail for diagnostics.
    """

    ok: bool
    objects: list[dict[str, Any]] = field(default_factory=list)
    ledger_index: int | None = None
    error_code: str | None = None
    detail: str | None = None


@dataclass(frozen=True)
class AccountInfoResult:
    """Result of reading an account root.

    Attributes:
        found: Whether the account exists in the validated ledger.
        account_data: The raw AccountRoot object when found.
        ledger_index: Validated ledger the entry was read from.
        error_code: Server error token when the query failed for a reason
            other than an unknown account.
        detail: Human-readable detail for diagnostics.
    """

    found: bool
    account_data: dict[str, Any] = field(default_factory=dict)
    ledger_index: int | None = None
    error_code: str | None = None
    detail: str | None = None


# =========================================================================
# Protocol
# =========================================================================


@runtime_checkable
class LedgerClient(Protocol):
    """Submit, tx status, account reads and object listing against one node."""

    async def submit(self, signed_tx_blob_hex: str) -> SubmitResult:
        """Submit a signed transaction blob."""
        ...

    async def get_tx(self, tx_hash: str) -> TxStatusResult:
        """Query the status of a previously submitted transaction."""
        ...

    async def account_objects(
        self,
        account: str,
        object_type: str = "credential",
    ) -> AccountObjectsResult:
        """List an account's ledger objects of one type from the validated ledger."""
        ...

    async def account_info(self, account: str) -> AccountInfoResult:
        """Read an account root from the validated ledger."""
        ...
