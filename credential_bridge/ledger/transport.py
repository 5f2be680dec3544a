"""
HTTP seam under the rippled JSON-RPC client.

JsonRpcClient builds request bodies and interprets results; a transport
only moves one JSON document to the node and one back. Tests replace it
with a FakeTransport that replays canned node replies.

Ledger connections are per call: HttpxTransport opens an AsyncClient for
each request and ``async with`` closes it on every exit path.
"""

from __future__ import annotations

import logging
from typing import Any, Protocol, runtime_checkable

logger = logging.getLogger(__name__)


@runtime_checkable
class JsonRpcTransport(Protocol):
    """Posts a JSON-RPC body to a rippled node."""

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        """Return the node's decoded reply.

        Any exception (refused connection, timeout, HTTP error status, a
        reply that is not a JSON object) propagates; the caller turns it
        into QueryError or a failed issuance.
        """
        ...


class HttpxTransport:
    """httpx-backed transport, one client per request.

    httpx is imported on first use so the codec and builders stay
    importable on their own.
    """

    def __init__(self, timeout: float = 30.0) -> None:
        self._timeout = timeout

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        import httpx

        logger.debug("POST %s method=%s", url, payload.get("method"))
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            response = await client.post(url, json=payload)
            response.raise_for_status()
            body = response.json()
        if not isinstance(body, dict):
            raise ValueError(f"rippled reply is not a JSON object: {type(body).__name__}")
        return body
