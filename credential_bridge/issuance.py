"""
Server-side credential issuance: submit-and-wait.

The issuing server holds the issuer key (behind a LedgerSigner) and
issues CredentialCreate transactions on request:

    1. Validate the request (JSON Schema, then metadata invariants).
    2. Build the unsigned CredentialCreate with the signer's account.
    3. Sign, submit.
    4. Poll ``tx`` until the transaction is in a validated ledger.

Success means validated with ``tesSUCCESS``; anything else raises
TransactionFailedError carrying the engine result. Validation problems
raise ValidationError before anything touches the network.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import jsonschema  # type: ignore[import-untyped]

from credential_bridge.errors import (
    TransactionFailedError,
    ValidationError,
    describe_engine_result,
    is_success,
)
from credential_bridge.ledger.client import LedgerClient
from credential_bridge.ledger.signer import LedgerSigner
from credential_bridge.metadata import CredentialMetadata
from credential_bridge.schema import describe_error, validate
from credential_bridge.tx import build_issue

logger = logging.getLogger(__name__)

CONFIRM_INTERVAL_S = 1.0
CONFIRM_ATTEMPTS = 20

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class IssueRequest:
    """A validated issuance request."""

    subject: str
    credential_type: str
    expire: int | None = None
    metadata: CredentialMetadata | None = None


@dataclass(frozen=True)
class IssuedCredential:
    """A CredentialCreate that reached a validated ledger with tesSUCCESS.

    Attributes:
        tx_hash: Transaction hash.
        ledger_index: Ledger that validated the transaction.
        account: Issuing r-address.
        subject: r-address the credential is about.
        credential_type: Hex-encoded credential type.
        metadata: Metadata embedded in ``URI``, if any.
    """

    tx_hash: str
    ledger_index: int | None
    account: str
    subject: str
    credential_type: str
    metadata: CredentialMetadata | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "txHash": self.tx_hash,
            "ledgerIndex": self.ledger_index,
            "account": self.account,
            "subject": self.subject,
            "credentialType": self.credential_type,
            "metadata": self.metadata.to_dict() if self.metadata is not None else None,
        }


def parse_issue_request(body: Any) -> IssueRequest:
    """Validate an issuance request body.

    Raises:
        ValidationError: Naming the first offending field.
    """
    try:
        validate(body, "api.credential_create_request")
    except jsonschema.ValidationError as exc:
        field, message = describe_error(exc)
        raise ValidationError(field, message) from exc

    raw_metadata = body.get("metadata")
    metadata = CredentialMetadata.from_dict(raw_metadata) if raw_metadata is not None else None
    return IssueRequest(
        subject=body["subject"],
        credential_type=body["credentialType"],
        expire=body.get("expire"),
        metadata=metadata,
    )


class CredentialIssuer:
    """Issues credentials from the signer's account.

    Args:
        client: Ledger client used to submit and confirm.
        signer: Holder of the issuer key.
        confirm_interval_s: Delay between validation checks.
        confirm_attempts: Validation checks before giving up.
        sleep: Injectable sleep.
    """

    def __init__(
        self,
        client: LedgerClient,
        signer: LedgerSigner,
        *,
        confirm_interval_s: float = CONFIRM_INTERVAL_S,
        confirm_attempts: int = CONFIRM_ATTEMPTS,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self._client = client
        self._signer = signer
        self._confirm_interval_s = confirm_interval_s
        self._confirm_attempts = confirm_attempts
        self._sleep = sleep

    @property
    def issuer(self) -> str:
        """The issuing r-address."""
        return self._signer.account

    async def issue_request(self, request: IssueRequest) -> IssuedCredential:
        return await self.issue(
            request.subject,
            request.credential_type,
            expire=request.expire,
            metadata=request.metadata,
        )

    async def issue(
        self,
        subject: str,
        credential_type: str,
        *,
        expire: int | None = None,
        metadata: CredentialMetadata | None = None,
    ) -> IssuedCredential:
        """Issue one credential and wait for it to be validated.

        Raises:
            ValidationError: On malformed input.
            TransactionFailedError: If signing or submission fails, or the
                transaction does not validate with tesSUCCESS.
        """
        account = self._signer.account
        tx = build_issue(account, subject, credential_type, expire=expire, metadata=metadata)

        # 1. Sign
        try:
            signed = await self._signer.sign(tx)
        except Exception as exc:
            raise TransactionFailedError(None, f"signing failed: {exc}") from exc

        # 2. Submit
        try:
            submitted = await self._client.submit(signed.signed_tx_blob_hex)
        except Exception as exc:
            raise TransactionFailedError(None, f"submit failed: {exc}") from exc

        if not submitted.accepted:
            reason = (
                describe_engine_result(submitted.engine_result)
                if submitted.engine_result
                else str(submitted.error_code)
            )
            if submitted.detail:
                reason += f": {submitted.detail}"
            raise TransactionFailedError(submitted.engine_result, f"Transaction failed: {reason}")

        tx_hash = submitted.tx_hash or signed.tx_hash
        logger.info(
            "CredentialCreate %s submitted for %s (key=%s)", tx_hash, subject, signed.key_id
        )

        # 3. Confirm
        ledger_index = await self._await_validated(tx_hash)
        logger.info("CredentialCreate %s validated in ledger %s", tx_hash, ledger_index)
        return IssuedCredential(
            tx_hash=tx_hash,
            ledger_index=ledger_index,
            account=account,
            subject=subject,
            credential_type=credential_type,
            metadata=metadata,
        )

    async def _await_validated(self, tx_hash: str) -> int | None:
        for attempt in range(1, self._confirm_attempts + 1):
            try:
                status = await self._client.get_tx(tx_hash)
            except Exception as exc:
                logger.warning("tx %s: status check %d failed: %s", tx_hash, attempt, exc)
            else:
                if status.validated:
                    if not is_success(status.engine_result):
                        raise TransactionFailedError(status.engine_result)
                    return status.ledger_index
            if attempt < self._confirm_attempts:
                await self._sleep(self._confirm_interval_s)

        raise TransactionFailedError(None, "Unable to verify transaction result")
