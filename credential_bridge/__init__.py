"""
credential-bridge: XRPL credential issuance and acceptance through a
wallet-signing service.

A credential is:
- issued by the issuer's account (CredentialCreate)
- accepted by its subject, who signs in their own wallet (CredentialAccept)
- verified by reading it back from the validated ledger

Nothing here holds a user's keys.
"""

__version__ = "0.1.0"

from credential_bridge.api import ApiResponse, CredentialApi
from credential_bridge.backend import HttpIssuerBackend, IssuerBackend, IssueResult
from credential_bridge.broker import (
    PayloadBroker,
    PayloadReference,
    PayloadResolution,
    XummBroker,
)
from credential_bridge.config import Settings, configure_logging
from credential_bridge.context import AppContext
from credential_bridge.errors import (
    BackendError,
    BrokerError,
    CredentialError,
    DecodeError,
    EngineResultClass,
    OrchestrationError,
    ProtocolError,
    QueryError,
    RejectedError,
    TransactionFailedError,
    ValidationError,
    WaitTimeoutError,
    describe_engine_result,
)
from credential_bridge.issuance import CredentialIssuer, IssuedCredential
from credential_bridge.metadata import CredentialMetadata, decode_metadata, encode_metadata
from credential_bridge.orchestrator import (
    AcceptanceAttempt,
    AcceptanceResult,
    CredentialOrchestrator,
    FailureKind,
    OrchestrationState,
    StateChange,
)
from credential_bridge.query import CredentialLookup, CredentialQuery, CredentialView, LookupStatus
from credential_bridge.tx import build_accept, build_issue, build_payment
from credential_bridge.waiter import ConfirmationWaiter, PollMode, PushMode
from credential_bridge.wallet import WalletConnection, connect_wallet

__all__ = [
    "AcceptanceAttempt",
    "AcceptanceResult",
    "ApiResponse",
    "AppContext",
    "BackendError",
    "BrokerError",
    "ConfirmationWaiter",
    "CredentialApi",
    "CredentialError",
    "CredentialIssuer",
    "CredentialLookup",
    "CredentialMetadata",
    "CredentialOrchestrator",
    "CredentialQuery",
    "CredentialView",
    "DecodeError",
    "EngineResultClass",
    "FailureKind",
    "HttpIssuerBackend",
    "IssueResult",
    "IssuedCredential",
    "IssuerBackend",
    "LookupStatus",
    "OrchestrationError",
    "OrchestrationState",
    "PayloadBroker",
    "PayloadReference",
    "PayloadResolution",
    "PollMode",
    "ProtocolError",
    "PushMode",
    "QueryError",
    "RejectedError",
    "Settings",
    "StateChange",
    "TransactionFailedError",
    "ValidationError",
    "WaitTimeoutError",
    "WalletConnection",
    "XummBroker",
    "build_accept",
    "build_issue",
    "build_payment",
    "configure_logging",
    "connect_wallet",
    "decode_metadata",
    "describe_engine_result",
    "encode_metadata",
]
