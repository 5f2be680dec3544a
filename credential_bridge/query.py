"""
Ledger query and decoder for credentials.

Read-side verification: fetch an account's credential objects from the
validated ledger, keep those whose ACCEPTED flag is set, and decode
their metadata.

    list_accepted(address) → [CredentialView, ...]
    get_one(address, credential_type, issuer) → CredentialLookup
    account_info(address) → AccountRoot dict or None

Robustness: a credential whose ``URI`` cannot be decoded is still
returned, with ``metadata=None``. Ledger failures raise QueryError.

Ordering: whatever the ledger returns; nothing is re-sorted. Every call
is a fresh, complete read.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from credential_bridge.errors import QueryError
from credential_bridge.ledger.client import LedgerClient
from credential_bridge.metadata import CredentialMetadata, metadata_or_none
from credential_bridge.tx import (
    ledger_time_to_unix,
    unix_to_ledger_time,
    validate_address,
    validate_credential_type,
)

logger = logging.getLogger(__name__)

# Ledger flag set on a credential once its subject has accepted it.
LSF_ACCEPTED = 0x00010000

CREDENTIAL_OBJECT_TYPE = "credential"


# =========================================================================
# Data types
# =========================================================================


@dataclass(frozen=True)
class CredentialView:
    """A credential ledger object with its metadata decoded.

    A credential sits in two owner directories, the issuer's and the
    subject's; ``issuer_node`` and ``subject_node`` are its page in each.
    ``owner_node`` is the page in the directory of the account that was
    queried (the subject's when no account is given).

    Attributes:
        issuer: r-address that issued the credential.
        subject: r-address the credential is about.
        credential_type: Hex-encoded credential type.
        uri: Raw ``URI`` hex, if any.
        metadata: Decoded metadata; None when absent or undecodable.
        expire: Expiration in ledger time, if any.
        flags: Raw ledger flags.
        owner_node: Page hint in the queried account's owner directory.
        issuer_node: Page hint in the issuer's owner directory.
        subject_node: Page hint in the subject's owner directory.
        previous_txn_id: Hash of the last transaction touching the object.
        previous_txn_ledger_seq: Ledger of that transaction.
        index: Ledger object ID.
    """

    issuer: str
    subject: str
    credential_type: str
    uri: str | None = None
    metadata: CredentialMetadata | None = None
    expire: int | None = None
    flags: int = 0
    owner_node: str | None = None
    issuer_node: str | None = None
    subject_node: str | None = None
    previous_txn_id: str | None = None
    previous_txn_ledger_seq: int | None = None
    index: str | None = None

    @property
    def accepted(self) -> bool:
        return (self.flags & LSF_ACCEPTED) == LSF_ACCEPTED

    @property
    def expires_at(self) -> int | None:
        """Expiration as Unix seconds, if any."""
        return ledger_time_to_unix(self.expire) if self.expire is not None else None

    def is_expired(self, now: float | None = None) -> bool:
        """True once ledger time has reached ``expire``.

        Args:
            now: Unix seconds to compare against. Defaults to the clock.
        """
        if self.expire is None:
            return False
        current = time.time() if now is None else now
        return unix_to_ledger_time(current) >= self.expire

    @classmethod
    def from_ledger_object(cls, obj: dict[str, Any], owner: str | None = None) -> CredentialView:
        """Build a view from a raw ``account_objects`` entry.

        Args:
            obj: The ledger object.
            owner: Account whose directory was listed; picks ``owner_node``.

        Metadata decode failures are logged and leave ``metadata`` None.
        """
        issuer = obj.get("Issuer", "")
        issuer_node = obj.get("IssuerNode")
        subject_node = obj.get("SubjectNode")
        owner_node = issuer_node if owner is not None and owner == issuer else subject_node

        return cls(
            issuer=issuer,
            subject=obj.get("Subject", ""),
            credential_type=obj.get("CredentialType", ""),
            uri=obj.get("URI"),
            metadata=metadata_or_none(obj.get("URI"), label=obj.get("index")),
            expire=obj.get("Expiration"),
            flags=_flags(obj),
            owner_node=owner_node if owner_node is not None else obj.get("OwnerNode"),
            issuer_node=issuer_node,
            subject_node=subject_node,
            previous_txn_id=obj.get("PreviousTxnID"),
            previous_txn_ledger_seq=obj.get("PreviousTxnLgrSeq"),
            index=obj.get("index"),
        )

    def to_dict(self) -> dict[str, object]:
        """Wire representation used by the listing endpoints."""
        return {
            "credentialType": self.credential_type,
            "issuer": self.issuer,
            "subject": self.subject,
            "uri": self.uri,
            "metadata": self.metadata.wire_dict() if self.metadata is not None else None,
            "expire": self.expire,
            "flags": self.flags,
            "ownerNode": self.owner_node,
            "issuerNode": self.issuer_node,
            "subjectNode": self.subject_node,
            "previousTxnID": self.previous_txn_id,
            "previousTxnLgrSeq": self.previous_txn_ledger_seq,
            "index": self.index,
        }


class LookupStatus(StrEnum):
    """Outcome of a single-credential lookup."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    NOT_ACCEPTED = "not_accepted"


@dataclass(frozen=True)
class CredentialLookup:
    """Tagged result of ``get_one``.

    ``credential`` is set for FOUND and NOT_ACCEPTED, None for NOT_FOUND.
    """

    status: LookupStatus
    credential: CredentialView | None = None

    @property
    def found(self) -> bool:
        return self.status == LookupStatus.FOUND

    @property
    def visible(self) -> bool:
        """True if the object exists on-ledger, accepted or not."""
        return self.status != LookupStatus.NOT_FOUND


# =========================================================================
# Query
# =========================================================================


class CredentialQuery:
    """Read-side access to credential objects.

    Args:
        client: Ledger client. Each call opens and releases its own
            connection through the client's transport.
    """

    def __init__(self, client: LedgerClient) -> None:
        self._client = client

    async def _credential_objects(self, address: str) -> list[dict[str, Any]]:
        try:
            result = await self._client.account_objects(address, CREDENTIAL_OBJECT_TYPE)
        except Exception as exc:
            raise QueryError(f"Failed to fetch credentials: {exc}") from exc

        if not result.ok:
            raise QueryError(
                f"Failed to fetch credentials: {result.detail or result.error_code}"
            )
        return result.objects

    async def list_accepted(self, address: str) -> list[CredentialView]:
        """All accepted credentials of ``address``, in ledger order.

        Raises:
            ValidationError: If address is not an r-address.
            QueryError: If the ledger read fails.
        """
        validate_address(address, "account")
        objects = await self._credential_objects(address)

        views = [
            CredentialView.from_ledger_object(obj, owner=address)
            for obj in objects
            if (_flags(obj) & LSF_ACCEPTED) == LSF_ACCEPTED
        ]
        logger.info(
            "account %s: %d accepted of %d credential objects",
            address,
            len(views),
            len(objects),
        )
        return views

    async def get_one(
        self,
        address: str,
        credential_type: str,
        issuer: str,
    ) -> CredentialLookup:
        """Look up one credential by (credential_type, issuer).

        Raises:
            ValidationError: If an address or the credential type is
                malformed.
            QueryError: If the ledger read fails.
        """
        validate_address(address, "account")
        validate_address(issuer, "issuer")
        validate_credential_type(credential_type)

        objects = await self._credential_objects(address)
        wanted_type = credential_type.upper()
        for obj in objects:
            if obj.get("Issuer") != issuer:
                continue
            if str(obj.get("CredentialType", "")).upper() != wanted_type:
                continue
            view = CredentialView.from_ledger_object(obj, owner=address)
            if view.accepted:
                return CredentialLookup(LookupStatus.FOUND, view)
            return CredentialLookup(LookupStatus.NOT_ACCEPTED, view)

        return CredentialLookup(LookupStatus.NOT_FOUND)

    async def account_info(self, address: str) -> dict[str, Any] | None:
        """The validated AccountRoot of ``address``, or None if unfunded.

        Raises:
            ValidationError: If address is not an r-address.
            QueryError: If the ledger read fails.
        """
        validate_address(address, "account")
        try:
            result = await self._client.account_info(address)
        except Exception as exc:
            raise QueryError(f"Failed to get account info: {exc}") from exc

        if result.error_code is not None:
            raise QueryError(f"Failed to get account info: {result.detail or result.error_code}")
        if not result.found:
            return None
        return result.account_data


def _flags(obj: dict[str, Any]) -> int:
    try:
        return int(obj.get("Flags", 0) or 0)
    except (TypeError, ValueError):
        return 0
