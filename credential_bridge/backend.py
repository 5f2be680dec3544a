"""
Issuer backend client: the orchestrator's view of the issuing server.

Two endpoints:
    GET  {base_url}/system/issuer  → {"success": true, "issuer": "r..."}
    POST {base_url}/credential     → {"success": true, "txHash": ..., "ledgerIndex": ...}
                                     or {"success": false, "error": "..."}

Error handling:
    - Unreachable backend, non-JSON bodies and shape violations raise
      BackendError.
    - An issuance the backend refused (4xx/5xx with an error envelope) is
      an expected outcome and comes back as ``IssueResult(success=False)``
      carrying the status code and the backend's message.

Each call opens and closes its own httpx.AsyncClient.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable

import httpx
import jsonschema  # type: ignore[import-untyped]

from credential_bridge.errors import BackendError
from credential_bridge.metadata import CredentialMetadata
from credential_bridge.schema import validate

logger = logging.getLogger(__name__)

DEFAULT_BACKEND_URL = "http://localhost:3001/api"


@dataclass(frozen=True)
class IssueResult:
    """Outcome of an issuance request.

    Attributes:
        success: Whether the backend issued the credential.
        status_code: HTTP status of the reply.
        tx_hash: Hash of the validated CredentialCreate, on success.
        ledger_index: Ledger that validated it, on success.
        error: Backend's message, on failure.
    """

    success: bool
    status_code: int
    tx_hash: str | None = None
    ledger_index: int | None = None
    error: str | None = None


@runtime_checkable
class IssuerBackend(Protocol):
    """What the orchestrator needs from the issuing server."""

    async def get_issuer(self) -> str: ...

    async def issue(
        self,
        subject: str,
        credential_type: str,
        *,
        metadata: CredentialMetadata | None = None,
        expire: int | None = None,
    ) -> IssueResult: ...


class HttpIssuerBackend:
    """IssuerBackend over HTTP.

    Args:
        base_url: API root of the issuing server.
        timeout_s: Request timeout in seconds.
        headers: Additional headers to include in requests.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BACKEND_URL,
        *,
        timeout_s: float = 30.0,
        headers: dict[str, str] | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._timeout_s = timeout_s
        self._headers = headers or {}

    async def get_issuer(self) -> str:
        """Fetch the issuing account's address.

        Raises:
            BackendError: If the backend is unreachable, reports failure,
                or answers with an unexpected shape.
        """
        response = await self._request("GET", "/system/issuer")
        body = _json_body(response)
        try:
            validate(body, "backend.issuer_response")
        except jsonschema.ValidationError as exc:
            raise BackendError(f"unexpected issuer response: {exc.message}") from exc

        if response.status_code >= 400 or not body["success"]:
            raise BackendError(body.get("error") or f"HTTP {response.status_code}")
        return body["issuer"]

    async def issue(
        self,
        subject: str,
        credential_type: str,
        *,
        metadata: CredentialMetadata | None = None,
        expire: int | None = None,
    ) -> IssueResult:
        """Ask the backend to issue a credential to ``subject``.

        Raises:
            BackendError: If the backend is unreachable or answers with an
                unexpected shape.
        """
        payload: dict[str, Any] = {"subject": subject, "credentialType": credential_type}
        if expire is not None:
            payload["expire"] = expire
        if metadata is not None:
            payload["metadata"] = metadata.to_dict()

        response = await self._request("POST", "/credential", json=payload)
        body = _json_body(response)
        try:
            validate(body, "backend.issue_response")
        except jsonschema.ValidationError as exc:
            raise BackendError(f"unexpected issuance response: {exc.message}") from exc

        if response.status_code >= 400 or not body["success"]:
            error = body.get("error") or f"HTTP {response.status_code}"
            logger.info("issuance for %s refused: %s", subject, error)
            return IssueResult(success=False, status_code=response.status_code, error=error)

        logger.info("issued %s to %s (tx=%s)", credential_type, subject, body.get("txHash"))
        return IssueResult(
            success=True,
            status_code=response.status_code,
            tx_hash=body.get("txHash"),
            ledger_index=body.get("ledgerIndex"),
        )

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                return await client.request(
                    method,
                    url,
                    headers={"Accept": "application/json", **self._headers},
                    **kwargs,
                )
        except httpx.TimeoutException as exc:
            raise BackendError(f"issuer backend timed out after {self._timeout_s}s") from exc
        except httpx.HTTPError as exc:
            raise BackendError(f"issuer backend unreachable: {exc}") from exc


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise BackendError(
            f"issuer backend response was not valid JSON (HTTP {response.status_code})"
        ) from exc
