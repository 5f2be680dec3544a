"""
Credential orchestrator: issue, then have the subject accept.

One attempt walks this state machine:

    idle → creating → waitingConfirmation → awaitingUserAcceptance → done
              │               │                      │
              └───────────────┴──────────────────────┴────→ failed

    creating:
        Ask the backend for the issuer address, then ask it to issue the
        credential to the subject.
    waitingConfirmation:
        A fixed 5-second floor for ledger propagation. When a
        CredentialQuery is supplied, additionally poll until the issued
        object is visible (accepted or not).
    awaitingUserAcceptance:
        Build a CredentialAccept from the subject, submit it to the
        signing service and wait (push, 5-minute timer) for the user.

Every transition is reported through ``on_state``; failures carry a
non-empty reason and a FailureKind. The attempt is not cancellable once
started, and runs at most once.

Concurrent attempts for the same subject are not deduplicated.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from enum import StrEnum
from typing import Awaitable, Callable

from credential_bridge.backend import IssuerBackend
from credential_bridge.broker.client import PayloadBroker, PayloadReference
from credential_bridge.errors import (
    BackendError,
    BrokerError,
    OrchestrationError,
    ProtocolError,
    QueryError,
    RejectedError,
    ValidationError,
    WaitTimeoutError,
    describe_engine_result,
    is_success,
)
from credential_bridge.metadata import CredentialMetadata
from credential_bridge.query import CredentialQuery
from credential_bridge.tx import build_accept, validate_address, validate_credential_type
from credential_bridge.waiter import TRANSACTION_TIMEOUT_S, ConfirmationWaiter, PushMode

logger = logging.getLogger(__name__)

GRACE_DELAY_S = 5.0
VISIBILITY_ATTEMPTS = 5
VISIBILITY_INTERVAL_S = 2.0


# =========================================================================
# States
# =========================================================================


class OrchestrationState(StrEnum):
    IDLE = "idle"
    CREATING = "creating"
    WAITING_CONFIRMATION = "waitingConfirmation"
    AWAITING_USER_ACCEPTANCE = "awaitingUserAcceptance"
    DONE = "done"
    FAILED = "failed"


class FailureKind(StrEnum):
    """Why an attempt failed."""

    VALIDATION = "validation"
    NETWORK = "network"
    BROKER = "broker"
    TIMEOUT = "timeout"
    REJECTED = "rejected"
    TRANSACTION = "transaction"


_TRANSITIONS: dict[OrchestrationState, frozenset[OrchestrationState]] = {
    OrchestrationState.IDLE: frozenset({OrchestrationState.CREATING}),
    OrchestrationState.CREATING: frozenset(
        {OrchestrationState.WAITING_CONFIRMATION, OrchestrationState.FAILED}
    ),
    OrchestrationState.WAITING_CONFIRMATION: frozenset(
        {OrchestrationState.AWAITING_USER_ACCEPTANCE, OrchestrationState.FAILED}
    ),
    OrchestrationState.AWAITING_USER_ACCEPTANCE: frozenset(
        {OrchestrationState.DONE, OrchestrationState.FAILED}
    ),
    OrchestrationState.DONE: frozenset(),
    OrchestrationState.FAILED: frozenset(),
}

TERMINAL_STATES = frozenset({OrchestrationState.DONE, OrchestrationState.FAILED})


@dataclass(frozen=True)
class StateChange:
    """One reported transition.

    Attributes:
        state: The state entered.
        reason: Human-readable failure reason; set only for FAILED.
        kind: Failure category; set only for FAILED.
    """

    state: OrchestrationState
    reason: str | None = None
    kind: FailureKind | None = None


@dataclass(frozen=True)
class AcceptanceResult:
    """Final outcome of an attempt.

    Attributes:
        state: DONE or FAILED.
        issuer: Issuer address, once known.
        issue_tx_hash: Hash of the CredentialCreate, once issued.
        tx_hash: Hash of the signed CredentialAccept, on success.
        reference: The accept payload, once submitted.
        reason: Failure reason.
        kind: Failure category.
    """

    state: OrchestrationState
    issuer: str | None = None
    issue_tx_hash: str | None = None
    tx_hash: str | None = None
    reference: PayloadReference | None = None
    reason: str | None = None
    kind: FailureKind | None = None

    @property
    def ok(self) -> bool:
        return self.state == OrchestrationState.DONE


StateCallback = Callable[[StateChange], None]
PayloadCallback = Callable[[PayloadReference], None]
Sleep = Callable[[float], Awaitable[None]]


class _Failed(Exception):
    def __init__(self, kind: FailureKind, reason: str) -> None:
        super().__init__(reason)
        self.kind = kind
        self.reason = reason or "Unknown error"


# =========================================================================
# Attempt
# =========================================================================


class AcceptanceAttempt:
    """One issue-and-accept run for a (subject, credential type) pair.

    Created by ``CredentialOrchestrator.attempt``; drive it with ``run()``.
    """

    def __init__(
        self,
        orchestrator: CredentialOrchestrator,
        subject: str,
        credential_type: str,
        metadata: CredentialMetadata,
        on_state: StateCallback | None,
        on_payload: PayloadCallback | None,
    ) -> None:
        self._orchestrator = orchestrator
        self.subject = subject
        self.credential_type = credential_type
        self.metadata = metadata
        self._on_state = on_state
        self._on_payload = on_payload
        self._state = OrchestrationState.IDLE
        self._started = False
        self._issuer: str | None = None
        self._issue_tx_hash: str | None = None
        self._reference: PayloadReference | None = None

    @property
    def state(self) -> OrchestrationState:
        return self._state

    @property
    def finished(self) -> bool:
        return self._state in TERMINAL_STATES

    def _enter(
        self,
        state: OrchestrationState,
        reason: str | None = None,
        kind: FailureKind | None = None,
    ) -> None:
        if state not in _TRANSITIONS[self._state]:
            raise OrchestrationError(f"illegal transition {self._state} → {state}")
        logger.info("attempt %s/%s: %s → %s", self.subject, self.credential_type, self._state, state)
        self._state = state
        self._emit(StateChange(state=state, reason=reason, kind=kind))

    def _emit(self, change: StateChange) -> None:
        if self._on_state is not None:
            self._on_state(change)

    async def run(self) -> AcceptanceResult:
        """Drive the attempt to DONE or FAILED.

        Expected failures are reported in the result, not raised.

        Raises:
            OrchestrationError: If the attempt was already run.
        """
        if self._started:
            raise OrchestrationError("acceptance attempt already started")
        self._started = True
        self._emit(StateChange(state=OrchestrationState.IDLE))

        try:
            self._enter(OrchestrationState.CREATING)
            issuer = await self._create()

            self._enter(OrchestrationState.WAITING_CONFIRMATION)
            await self._await_confirmation(issuer)

            self._enter(OrchestrationState.AWAITING_USER_ACCEPTANCE)
            tx_hash = await self._accept(issuer)
        except _Failed as failure:
            logger.warning(
                "attempt %s/%s failed (%s): %s",
                self.subject,
                self.credential_type,
                failure.kind,
                failure.reason,
            )
            self._enter(OrchestrationState.FAILED, failure.reason, failure.kind)
            return self._result(reason=failure.reason, kind=failure.kind)

        self._enter(OrchestrationState.DONE)
        return self._result(tx_hash=tx_hash)

    def _result(
        self,
        tx_hash: str | None = None,
        reason: str | None = None,
        kind: FailureKind | None = None,
    ) -> AcceptanceResult:
        return AcceptanceResult(
            state=self._state,
            issuer=self._issuer,
            issue_tx_hash=self._issue_tx_hash,
            tx_hash=tx_hash,
            reference=self._reference,
            reason=reason,
            kind=kind,
        )

    # -----------------------------------------------------------------
    # Phases
    # -----------------------------------------------------------------

    async def _create(self) -> str:
        backend = self._orchestrator.backend
        try:
            issuer = self._issuer = await backend.get_issuer()
            issued = await backend.issue(
                self.subject, self.credential_type, metadata=self.metadata
            )
        except BackendError as exc:
            raise _Failed(FailureKind.NETWORK, str(exc)) from exc

        if not issued.success:
            kind = FailureKind.VALIDATION if issued.status_code == 400 else FailureKind.TRANSACTION
            raise _Failed(kind, issued.error or "Failed to create credential")
        self._issue_tx_hash = issued.tx_hash
        return issuer

    async def _await_confirmation(self, issuer: str) -> None:
        orch = self._orchestrator
        await orch.sleep(orch.grace_delay_s)
        if orch.ledger is None:
            return

        for attempt in range(1, orch.visibility_attempts + 1):
            try:
                lookup = await orch.ledger.get_one(self.subject, self.credential_type, issuer)
            except QueryError as exc:
                logger.warning("visibility check %d for %s failed: %s", attempt, self.subject, exc)
            else:
                if lookup.visible:
                    return
            if attempt < orch.visibility_attempts:
                await orch.sleep(orch.visibility_interval_s)

        raise _Failed(
            FailureKind.TRANSACTION,
            "Issued credential did not appear on the ledger",
        )

    async def _accept(self, issuer: str) -> str | None:
        orch = self._orchestrator
        try:
            descriptor = build_accept(self.subject, issuer, self.credential_type)
        except ValidationError as exc:
            raise _Failed(FailureKind.VALIDATION, exc.message) from exc

        try:
            self._reference = await orch.broker.submit(descriptor)
        except BrokerError as exc:
            raise _Failed(FailureKind.BROKER, str(exc)) from exc

        if self._on_payload is not None:
            self._on_payload(self._reference)

        try:
            resolution = await orch.waiter.wait(self._reference, PushMode(orch.accept_timeout_s))
        except RejectedError as exc:
            raise _Failed(FailureKind.REJECTED, str(exc)) from exc
        except WaitTimeoutError as exc:
            raise _Failed(FailureKind.TIMEOUT, str(exc)) from exc
        except (BrokerError, ProtocolError) as exc:
            raise _Failed(FailureKind.BROKER, str(exc)) from exc

        if resolution.ledger_result is not None and not is_success(resolution.ledger_result):
            raise _Failed(
                FailureKind.TRANSACTION,
                f"Transaction failed: {describe_engine_result(resolution.ledger_result)}",
            )
        return resolution.transaction_id


# =========================================================================
# Orchestrator
# =========================================================================


class CredentialOrchestrator:
    """Factory for acceptance attempts sharing one set of collaborators.

    Args:
        backend: Issuer backend (issuer address and issuance).
        broker: Signing service for the accept payload.
        waiter: Confirmation waiter. Defaults to one over ``broker``.
        ledger: Optional query used to wait until the issued credential
            is visible before asking the user to accept it.
        grace_delay_s: Fixed propagation delay after issuance.
        accept_timeout_s: Push wait for the user's signature.
        visibility_attempts: Visibility checks after the fixed delay.
        visibility_interval_s: Delay between visibility checks.
        sleep: Injectable sleep.
    """

    def __init__(
        self,
        backend: IssuerBackend,
        broker: PayloadBroker,
        *,
        waiter: ConfirmationWaiter | None = None,
        ledger: CredentialQuery | None = None,
        grace_delay_s: float = GRACE_DELAY_S,
        accept_timeout_s: float = TRANSACTION_TIMEOUT_S,
        visibility_attempts: int = VISIBILITY_ATTEMPTS,
        visibility_interval_s: float = VISIBILITY_INTERVAL_S,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if visibility_attempts < 1:
            raise ValueError(f"visibility_attempts must be >= 1, got: {visibility_attempts}")
        self.backend = backend
        self.broker = broker
        self.waiter = waiter or ConfirmationWaiter(broker)
        self.ledger = ledger
        self.grace_delay_s = grace_delay_s
        self.accept_timeout_s = accept_timeout_s
        self.visibility_attempts = visibility_attempts
        self.visibility_interval_s = visibility_interval_s
        self.sleep = sleep

    def attempt(
        self,
        subject: str,
        credential_type: str,
        *,
        metadata: CredentialMetadata | None = None,
        on_state: StateCallback | None = None,
        on_payload: PayloadCallback | None = None,
    ) -> AcceptanceAttempt:
        """Create an attempt. Nothing touches the network until ``run()``.

        Without metadata, the credential is labelled with the subject
        address and the credential type.

        Raises:
            ValidationError: If the subject or credential type is malformed.
        """
        validate_address(subject, "subject")
        validate_credential_type(credential_type)
        if metadata is None:
            metadata = CredentialMetadata(name=f"Credential for {subject}", type=credential_type)
        return AcceptanceAttempt(self, subject, credential_type, metadata, on_state, on_payload)

    async def accept(
        self,
        subject: str,
        credential_type: str,
        *,
        metadata: CredentialMetadata | None = None,
        on_state: StateCallback | None = None,
        on_payload: PayloadCallback | None = None,
    ) -> AcceptanceResult:
        """Create and run an attempt in one call."""
        attempt = self.attempt(
            subject,
            credential_type,
            metadata=metadata,
            on_state=on_state,
            on_payload=on_payload,
        )
        return await attempt.run()
