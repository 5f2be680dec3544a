"""
Wallet-signing service boundary.

Public API:
    - ``PayloadBroker`` / ``PayloadSubscription``: protocols.
    - ``PayloadReference``, ``PayloadResolution``: data types.
    - ``XummBroker``, ``PayloadStatus``: concrete client.
    - ``OneShotGate``, ``TerminalOnce``: single-resolution primitives.
    - ``StatusStream``, ``WebsocketStatusStream``: push transport seam.
"""

from credential_bridge.broker.client import (
    PayloadBroker,
    PayloadReference,
    PayloadResolution,
    PayloadSubscription,
)
from credential_bridge.broker.gate import OneShotGate, TerminalOnce
from credential_bridge.broker.stream import StatusStream, WebsocketStatusStream
from credential_bridge.broker.xumm import PayloadStatus, XummBroker

__all__ = [
    "OneShotGate",
    "PayloadBroker",
    "PayloadReference",
    "PayloadResolution",
    "PayloadStatus",
    "PayloadSubscription",
    "StatusStream",
    "TerminalOnce",
    "WebsocketStatusStream",
    "XummBroker",
]
