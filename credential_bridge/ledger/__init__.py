"""
XRPL network boundary.

Public API:

    Protocols (for dependency injection):
        - ``LedgerClient``: submit blob, query tx status, list objects.
        - ``LedgerSigner``: sign unsigned tx dict.
        - ``JsonRpcTransport``: HTTP POST seam for JSON-RPC.

    Result types:
        - ``SubmitResult``, ``TxStatusResult``, ``AccountObjectsResult``.
        - ``SignResult``.

    Concrete implementations:
        - ``JsonRpcClient``: JSON-RPC implementation of LedgerClient.
        - ``HttpxTransport``: default httpx-based transport.
"""

from credential_bridge.ledger.client import (
    AccountObjectsResult,
    LedgerClient,
    SubmitResult,
    TxStatusResult,
)
from credential_bridge.ledger.jsonrpc_client import JsonRpcClient
from credential_bridge.ledger.signer import LedgerSigner, SignResult
from credential_bridge.ledger.transport import HttpxTransport, JsonRpcTransport

__all__ = [
    "AccountObjectsResult",
    "HttpxTransport",
    "JsonRpcClient",
    "JsonRpcTransport",
    "LedgerClient",
    "LedgerSigner",
    "SignResult",
    "SubmitResult",
    "TxStatusResult",
]
