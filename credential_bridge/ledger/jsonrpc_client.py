"""
LedgerClient over rippled's JSON-RPC API.

Each call posts one request through a JsonRpcTransport and maps the reply
into the result dataclasses from ``client``. Replies are shaped
``{"result": {"status": "success" | "error", ...}}``; the methods used are
``submit`` (engine_result, accepted, tx_json), ``tx`` (validated,
ledger_index, meta), ``account_info`` (account_data) and
``account_objects`` (account_objects, marker).

The client holds no secrets and never retries; polling for validation
belongs to the issuer.
"""

from __future__ import annotations

import itertools
import logging
from typing import Any

from credential_bridge.ledger.client import (
    AccountInfoResult,
    AccountObjectsResult,
    SubmitResult,
    TxStatusResult,
)
from credential_bridge.ledger.transport import HttpxTransport, JsonRpcTransport

logger = logging.getLogger(__name__)

# rippled caps account_objects pages at 400 entries.
ACCOUNT_OBJECTS_PAGE_LIMIT = 400

# Upper bound on pages followed in one listing.
MAX_ACCOUNT_OBJECTS_PAGES = 50

_request_ids = itertools.count(1)


class JsonRpcClient:
    """Reads and writes one rippled node.

    Args:
        url: Node JSON-RPC URL, e.g. "https://s.altnet.rippletest.net:51234".
        transport: HTTP seam; HttpxTransport unless a test supplies one.
    """

    def __init__(self, url: str, transport: JsonRpcTransport | None = None) -> None:
        self._url = url
        self._transport = transport or HttpxTransport()

    @property
    def url(self) -> str:
        return self._url

    async def _call(self, method: str, params: dict[str, Any]) -> dict[str, Any]:
        payload = {
            "method": method,
            "params": [params],
            "id": next(_request_ids),
        }
        response = await self._transport.post_json(self._url, payload)
        logger.debug("%s response: %s", method, response)
        return response

    # -----------------------------------------------------------------
    # LedgerClient protocol methods
    # -----------------------------------------------------------------

    async def submit(self, signed_tx_blob_hex: str) -> SubmitResult:
        """Submit a signed transaction blob via the ``submit`` method.

        Transport exceptions propagate to the caller.
        """
        response = await self._call("submit", {"tx_blob": signed_tx_blob_hex})
        return _parse_submit_response(response)

    async def get_tx(self, tx_hash: str) -> TxStatusResult:
        """Query transaction status via the ``tx`` method.

        Transport exceptions propagate to the caller.
        """
        response = await self._call("tx", {"transaction": tx_hash, "binary": False})
        return _parse_tx_response(response)

    async def account_objects(
        self,
        account: str,
        object_type: str = "credential",
    ) -> AccountObjectsResult:
        """List an account's objects of one type from the validated ledger.

        Follows ``marker`` until the listing is exhausted, so the result
        holds every page. No pagination state survives the call.

        Transport exceptions propagate to the caller.
        """
        objects: list[dict[str, Any]] = []
        marker: Any = None
        ledger_index: int | None = None

        for _ in range(MAX_ACCOUNT_OBJECTS_PAGES):
            params: dict[str, Any] = {
                "account": account,
                "type": object_type,
                "ledger_index": ledger_index if ledger_index is not None else "validated",
                "limit": ACCOUNT_OBJECTS_PAGE_LIMIT,
            }
            if marker is not None:
                params["marker"] = marker

            response = await self._call("account_objects", params)
            page = _parse_account_objects_page(response)
            if not page.ok:
                return page

            objects.extend(page.objects)
            # Later pages must come from the same ledger as the first.
            if ledger_index is None:
                ledger_index = page.ledger_index

            marker = response.get("result", {}).get("marker")
            if marker is None:
                return AccountObjectsResult(ok=True, objects=objects, ledger_index=ledger_index)

        return AccountObjectsResult(
            ok=False,
            objects=objects,
            ledger_index=ledger_index,
            error_code="TOO_MANY_PAGES",
            detail=f"listing exceeded {MAX_ACCOUNT_OBJECTS_PAGES} pages",
        )

    async def account_info(self, account: str) -> AccountInfoResult:
        """Read an account root via ``account_info`` on the validated ledger.

        Transport exceptions propagate to the caller.
        """
        response = await self._call(
            "account_info", {"account": account, "ledger_index": "validated"}
        )
        return _parse_account_info_response(response)


# =====================================================================
# Response parsing (pure functions, no I/O)
# =====================================================================

SERVER_ERROR = "SERVER_ERROR"

# Engine results that mean the node took the blob into its queue.
_QUEUED_PREFIXES = ("tes", "ter")


def _error_detail(result: dict[str, Any]) -> str:
    return result.get("error_message") or result.get("error") or "unknown server error"


def _parse_submit_response(response: dict[str, Any]) -> SubmitResult:
    """Map a ``submit`` reply to SubmitResult.

    An error status or a missing engine_result yields accepted=False with
    SERVER_ERROR. Nodes that omit the ``accepted`` field are judged by the
    engine_result prefix.
    """
    result = response.get("result", {})
    engine_result = result.get("engine_result")

    if result.get("status") == "error" or engine_result is None:
        return SubmitResult(
            accepted=False,
            error_code=SERVER_ERROR,
            detail=(
                _error_detail(result)
                if result.get("status") == "error"
                else "no engine_result in submit response"
            ),
        )

    tx_json = result.get("tx_json")
    accepted = bool(result.get("accepted")) or engine_result.startswith(_QUEUED_PREFIXES)

    return SubmitResult(
        accepted=accepted,
        tx_hash=tx_json.get("hash") if isinstance(tx_json, dict) else None,
        engine_result=engine_result,
        detail=result.get("engine_result_message"),
    )


def _parse_tx_response(response: dict[str, Any]) -> TxStatusResult:
    """Map a ``tx`` reply to TxStatusResult.

    ``txnNotFound`` is an ordinary not-found; any other error status is
    SERVER_ERROR. ledger_index is only reported once validated.
    """
    result = response.get("result", {})

    if result.get("status") == "error":
        if result.get("error") == "txnNotFound":
            return TxStatusResult(found=False)
        return TxStatusResult(found=False, error_code=SERVER_ERROR, detail=_error_detail(result))

    meta = result.get("meta")
    validated = bool(result.get("validated"))
    return TxStatusResult(
        found=True,
        validated=validated,
        ledger_index=result.get("ledger_index") if validated else None,
        engine_result=meta.get("TransactionResult") if isinstance(meta, dict) else None,
    )


def _parse_account_info_response(response: dict[str, Any]) -> AccountInfoResult:
    """Map an ``account_info`` reply; ``actNotFound`` is an ordinary not-found."""
    result = response.get("result", {})

    if result.get("status") == "error":
        if result.get("error") == "actNotFound":
            return AccountInfoResult(found=False, detail=_error_detail(result))
        return AccountInfoResult(
            found=False,
            error_code=result.get("error") or SERVER_ERROR,
            detail=_error_detail(result),
        )

    account_data = result.get("account_data")
    if not isinstance(account_data, dict):
        return AccountInfoResult(
            found=False,
            error_code="MALFORMED_RESPONSE",
            detail="no account_data in account_info response",
        )

    return AccountInfoResult(
        found=True,
        account_data=account_data,
        ledger_index=result.get("ledger_index"),
    )


def _parse_account_objects_page(response: dict[str, Any]) -> AccountObjectsResult:
    """Map one ``account_objects`` page; server errors keep their token."""
    result = response.get("result")
    if not isinstance(result, dict):
        return AccountObjectsResult(
            ok=False,
            error_code="MALFORMED_RESPONSE",
            detail="no result in account_objects response",
        )

    if result.get("status") == "error":
        return AccountObjectsResult(
            ok=False,
            error_code=result.get("error") or SERVER_ERROR,
            detail=_error_detail(result),
        )

    objects = result.get("account_objects")
    if not isinstance(objects, list) or not all(isinstance(o, dict) for o in objects):
        return AccountObjectsResult(
            ok=False,
            error_code="MALFORMED_RESPONSE",
            detail="account_objects is missing or not a list of objects",
        )

    return AccountObjectsResult(
        ok=True,
        objects=objects,
        ledger_index=result.get("ledger_index"),
    )
