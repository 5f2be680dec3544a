"""
Endpoint handlers: framework-free.

Each handler returns an ``ApiResponse`` (status code + JSON envelope);
wiring them to routes is left to whichever web framework hosts them.

    GET  /system/issuer                               system_issuer()
    POST /credential                                  create_credential(body)
    GET  /credential/:id                              payload_status(payload_id)
    GET  /credentials/:address                        list_credentials(address)
    GET  /credential/:address/:credentialType/:issuer get_credential(...)

Envelopes always carry ``success``. Failures carry ``error`` (and, for
the single-credential lookup, a ``reason`` of ``not_found`` or
``not_accepted``). Malformed input → 400; downstream failure → 500.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from credential_bridge.broker.xumm import XummBroker
from credential_bridge.errors import (
    BrokerError,
    ProtocolError,
    QueryError,
    TransactionFailedError,
    ValidationError,
)
from credential_bridge.issuance import CredentialIssuer, parse_issue_request
from credential_bridge.query import CredentialQuery, LookupStatus
from credential_bridge.tx import is_valid_address

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ApiResponse:
    status_code: int
    body: dict[str, Any]


def _ok(**fields: Any) -> ApiResponse:
    return ApiResponse(200, {"success": True, **fields})


def _error(status_code: int, error: str, **fields: Any) -> ApiResponse:
    return ApiResponse(status_code, {"success": False, "error": error, **fields})


class CredentialApi:
    """Handlers for the credential endpoints.

    Args:
        query: Read-side ledger access.
        broker: Signing-service client, for payload status.
        issuer: Server-side issuer. None when no issuer key is configured;
            the issuance endpoints then answer 500.
    """

    def __init__(
        self,
        query: CredentialQuery,
        broker: XummBroker,
        issuer: CredentialIssuer | None = None,
    ) -> None:
        self._query = query
        self._broker = broker
        self._issuer = issuer

    async def system_issuer(self) -> ApiResponse:
        if self._issuer is None:
            return _error(500, "System account not configured")
        return _ok(issuer=self._issuer.issuer)

    async def create_credential(self, body: Any) -> ApiResponse:
        if self._issuer is None:
            return _error(500, "System account not configured")

        try:
            request = parse_issue_request(body)
            if not is_valid_address(request.subject):
                return _error(400, "Invalid subject address format")
            issued = await self._issuer.issue_request(request)
        except ValidationError as exc:
            return _error(400, exc.message)
        except TransactionFailedError as exc:
            logger.warning("credential issuance failed: %s", exc)
            return _error(500, str(exc))

        return _ok(**issued.to_dict())

    async def payload_status(self, payload_id: str) -> ApiResponse:
        try:
            status = await self._broker.status(payload_id)
        except (BrokerError, ProtocolError) as exc:
            logger.warning("payload %s status failed: %s", payload_id, exc)
            return _error(500, str(exc))

        if status is None:
            return _error(404, "Payload not found")
        return _ok(**status.to_dict())

    async def list_credentials(self, address: str) -> ApiResponse:
        try:
            credentials = await self._query.list_accepted(address)
        except ValidationError:
            return _error(400, "Invalid XRPL address format")
        except QueryError as exc:
            return _error(500, str(exc))

        return _ok(
            account=address,
            count=len(credentials),
            credentials=[c.to_dict() for c in credentials],
        )

    async def get_credential(self, address: str, credential_type: str, issuer: str) -> ApiResponse:
        try:
            lookup = await self._query.get_one(address, credential_type, issuer)
        except ValidationError as exc:
            return _error(400, exc.message)
        except QueryError as exc:
            return _error(500, str(exc))

        credential = lookup.credential
        if lookup.status == LookupStatus.NOT_FOUND or credential is None:
            return _error(404, "Credential not found", reason=str(LookupStatus.NOT_FOUND))
        if lookup.status == LookupStatus.NOT_ACCEPTED:
            return _error(
                404,
                "Credential exists but has not been accepted",
                reason=str(LookupStatus.NOT_ACCEPTED),
            )
        return _ok(credential=credential.to_dict())
