"""
Xumm signing-service client: concrete PayloadBroker.

REST (platform API, authenticated by X-API-Key / X-API-Secret):
    POST /payload          {"txjson": {...}}  → uuid, next.always, refs.qr_png
    GET  /payload/{uuid}   → meta.{resolved, signed, expired, ...}, response.{txid, account}

Push (one websocket per payload, refs.websocket_status):
    {"message": "..."}           welcome, ignored
    {"opened": true}             user opened the payload → pending event
    {"signed": true|false, ...}  terminal event
    {"expired": true}            payload expired → stream ends

Lifecycle: one XummBroker per process, owned by the application context.
``open()`` creates a persistent httpx.AsyncClient; ``close()`` tears it
down (on logout or shutdown). The client holds no per-submission state,
so concurrent submissions share it safely.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Callable

import httpx
import jsonschema  # type: ignore[import-untyped]

from credential_bridge.broker.client import PayloadReference, PayloadResolution, is_terminal
from credential_bridge.broker.gate import TerminalOnce
from credential_bridge.broker.stream import StatusStream, WebsocketStatusStream
from credential_bridge.errors import BrokerError, ProtocolError
from credential_bridge.schema import validate
from credential_bridge.tx import TxDescriptor, build_sign_in

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://xumm.app/api/v1/platform"
DEFAULT_STATUS_URL = "wss://xumm.app/sign"


@dataclass(frozen=True)
class PayloadStatus:
    """Full pull-mode status of a payload.

    Attributes mirror the payload status endpoint: ``signed``, ``txid``,
    ``account``, ``dispatched``, ``resolved``, ``expired``.
    """

    signed: bool | None
    resolved: bool
    expired: bool
    dispatched: bool | None = None
    txid: str | None = None
    account: str | None = None
    dispatched_result: str | None = None

    def resolution(self) -> PayloadResolution:
        """Normalize to a PayloadResolution.

        The service reports ``signed=false`` for payloads nobody has acted
        on yet; unresolved payloads are normalized to the pending state.

        Raises:
            ProtocolError: If the status claims a signature without
                resolution, or resolution without a signed flag.
        """
        if not self.resolved:
            if self.signed:
                raise ProtocolError("payload reported signed but not resolved")
            return PayloadResolution.pending()
        return PayloadResolution(
            signed=self.signed,
            resolved=True,
            transaction_id=self.txid,
            account=self.account,
            ledger_result=self.dispatched_result,
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "signed": self.signed,
            "txid": self.txid,
            "account": self.account,
            "dispatched": self.dispatched,
            "resolved": self.resolved,
            "expired": self.expired,
        }


class XummSubscription:
    """Push subscription backed by a background task."""

    def __init__(self, task: asyncio.Task[None], deliver: TerminalOnce[PayloadResolution]) -> None:
        self._task = task
        self._deliver = deliver

    @property
    def closed(self) -> bool:
        return self._task.done() or self._deliver.closed

    def cancel(self) -> None:
        if not self._task.done():
            self._task.cancel()


class XummBroker:
    """PayloadBroker over the Xumm platform API.

    Args:
        api_key: Xumm application API key.
        api_secret: Xumm application API secret. Never logged.
        base_url: Platform API base URL.
        status_url: Base URL of per-payload status websockets, used when a
            payload reference carries no status URL of its own.
        timeout: HTTP timeout in seconds.
        stream: Injectable status stream. Defaults to WebsocketStatusStream.
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        *,
        base_url: str = DEFAULT_BASE_URL,
        status_url: str = DEFAULT_STATUS_URL,
        timeout: float = 30.0,
        stream: StatusStream | None = None,
    ) -> None:
        self._api_key = api_key
        self._api_secret = api_secret
        self._base_url = base_url.rstrip("/")
        self._status_url = status_url.rstrip("/")
        self._timeout = timeout
        self._stream = stream or WebsocketStatusStream()
        self._http: httpx.AsyncClient | None = None

    # -----------------------------------------------------------------
    # Lifecycle
    # -----------------------------------------------------------------

    @property
    def is_open(self) -> bool:
        return self._http is not None

    async def open(self) -> None:
        """Create the persistent HTTP client. Idempotent."""
        if self._http is not None:
            return
        self._http = httpx.AsyncClient(
            base_url=self._base_url,
            timeout=self._timeout,
            headers={
                "X-API-Key": self._api_key,
                "X-API-Secret": self._api_secret,
                "Content-Type": "application/json",
                "Accept": "application/json",
            },
        )
        logger.info("signing service client opened (%s)", self._base_url)

    async def close(self) -> None:
        """Close the persistent HTTP client. Idempotent."""
        if self._http is None:
            return
        http, self._http = self._http, None
        await http.aclose()
        logger.info("signing service client closed")

    async def __aenter__(self) -> XummBroker:
        await self.open()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def _client(self) -> httpx.AsyncClient:
        if self._http is None:
            raise BrokerError("signing service client is not open")
        return self._http

    # -----------------------------------------------------------------
    # PayloadBroker protocol methods
    # -----------------------------------------------------------------

    async def submit(self, descriptor: TxDescriptor) -> PayloadReference:
        """Create a payload for an unsigned transaction descriptor."""
        client = self._client()
        try:
            response = await client.post("/payload", json={"txjson": descriptor})
        except httpx.HTTPError as exc:
            raise BrokerError(f"signing service unreachable: {exc}") from exc

        if response.status_code >= 400:
            raise BrokerError(
                f"signing service rejected payload "
                f"(HTTP {response.status_code}): {_error_detail(response)}"
            )

        body = _json_body(response)
        try:
            validate(body, "xumm.payload_created")
        except jsonschema.ValidationError as exc:
            raise BrokerError(f"unexpected payload response: {exc.message}") from exc

        reference = PayloadReference(
            id=body["uuid"],
            qr_url=body["refs"]["qr_png"],
            deep_link=body["next"]["always"],
            status_url=body["refs"].get("websocket_status"),
        )
        logger.info(
            "payload %s created for %s",
            reference.id,
            descriptor.get("TransactionType"),
        )
        return reference

    async def sign_in(self) -> PayloadReference:
        """Create a SignIn payload identifying the user's wallet."""
        return await self.submit(build_sign_in())

    def subscribe(
        self,
        reference: PayloadReference,
        on_event: Callable[[PayloadResolution], None],
    ) -> XummSubscription:
        """Start listening for status events of one payload.

        Must be called from a running event loop.
        """
        url = reference.status_url or f"{self._status_url}/{reference.id}"
        deliver: TerminalOnce[PayloadResolution] = TerminalOnce(on_event, is_terminal)
        task = asyncio.get_running_loop().create_task(
            self._pump(url, reference.id, deliver),
            name=f"payload-status-{reference.id}",
        )
        return XummSubscription(task, deliver)

    async def poll(self, reference: PayloadReference) -> PayloadResolution | None:
        """Fetch the payload's status once."""
        status = await self.status(reference.id)
        if status is None:
            return None
        return status.resolution()

    async def status(self, payload_id: str) -> PayloadStatus | None:
        """Fetch the full status of a payload by id.

        Returns:
            PayloadStatus, or None when the payload is unknown or expired
            without being resolved.

        Raises:
            BrokerError: If the service is unreachable or answers with an
                unexpected shape.
        """
        client = self._client()
        try:
            response = await client.get(f"/payload/{payload_id}")
        except httpx.HTTPError as exc:
            raise BrokerError(f"signing service unreachable: {exc}") from exc

        if response.status_code == 404:
            return None
        if response.status_code >= 400:
            raise BrokerError(
                f"payload status failed (HTTP {response.status_code}): {_error_detail(response)}"
            )

        body = _json_body(response)
        try:
            validate(body, "xumm.payload_status")
        except jsonschema.ValidationError as exc:
            raise BrokerError(f"unexpected payload status: {exc.message}") from exc

        meta = body["meta"]
        if meta.get("exists") is False:
            return None
        resolved = meta["resolved"]
        expired = bool(meta.get("expired", False))
        if expired and not resolved:
            return None

        payload_response = body.get("response") or {}
        return PayloadStatus(
            signed=meta["signed"],
            resolved=resolved,
            expired=expired,
            dispatched=meta.get("dispatched"),
            txid=payload_response.get("txid"),
            account=payload_response.get("account"),
            dispatched_result=payload_response.get("dispatched_result") or None,
        )

    # -----------------------------------------------------------------
    # Push pump
    # -----------------------------------------------------------------

    async def _pump(
        self,
        url: str,
        payload_id: str,
        deliver: TerminalOnce[PayloadResolution],
    ) -> None:
        try:
            async for message in self._stream.events(url):
                if message.get("expired") is True:
                    logger.info("payload %s expired", payload_id)
                    return
                try:
                    event = event_to_resolution(message)
                except ProtocolError as exc:
                    logger.warning("payload %s: %s", payload_id, exc)
                    continue
                if event is None:
                    continue
                deliver(event)
                if deliver.closed:
                    return
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            logger.warning("status stream for payload %s dropped: %s", payload_id, exc)


# =====================================================================
# Parsing helpers (pure)
# =====================================================================


def event_to_resolution(message: dict[str, Any]) -> PayloadResolution | None:
    """Map one websocket status message to a resolution.

    Returns None for messages that carry no status (welcome, keepalive,
    ``expires_in_seconds``).
    """
    if "signed" in message:
        signed = message["signed"]
        if not isinstance(signed, bool):
            raise ProtocolError(f"signed must be a boolean, got {signed!r}")
        return PayloadResolution(
            signed=signed,
            resolved=True,
            transaction_id=message.get("txid"),
            account=message.get("account"),
        )
    if message.get("opened") is True:
        return PayloadResolution.pending()
    return None


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise BrokerError("signing service response was not valid JSON") from exc


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200] if response.text else response.reason_phrase
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return f"code={error.get('code')} reference={error.get('reference')}"
    if isinstance(error, str):
        return error
    return response.reason_phrase
