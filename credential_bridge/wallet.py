"""
Wallet connection through a SignIn payload.

    1. ``broker.sign_in()`` creates the SignIn payload.
    2. ``on_payload`` gets the reference so the caller can show the QR
       code or deep link.
    3. The push wait races the user's answer against the sign-in timer
       (2 minutes).
    4. The signed resolution names the wallet account. Status websockets
       often omit it; one status fetch fills it in.

Rejection and timeout propagate as RejectedError and WaitTimeoutError,
like any other wait. A signed SignIn that still names no valid account
is a ProtocolError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Protocol, runtime_checkable

from credential_bridge.broker.client import PayloadBroker, PayloadReference
from credential_bridge.errors import ProtocolError
from credential_bridge.tx import is_valid_address
from credential_bridge.waiter import SIGN_IN_TIMEOUT_S, ConfirmationWaiter, PushMode

logger = logging.getLogger(__name__)


@runtime_checkable
class SignInBroker(PayloadBroker, Protocol):
    """A payload broker that can create SignIn payloads."""

    async def sign_in(self) -> PayloadReference: ...


@dataclass(frozen=True)
class WalletConnection:
    """A wallet identified by a signed SignIn payload.

    Attributes:
        account: The wallet's r-address.
        reference: The SignIn payload the user signed.
    """

    account: str
    reference: PayloadReference


async def connect_wallet(
    broker: SignInBroker,
    *,
    waiter: ConfirmationWaiter | None = None,
    timeout_s: float = SIGN_IN_TIMEOUT_S,
    on_payload: Callable[[PayloadReference], None] | None = None,
) -> WalletConnection:
    """Ask the user to sign in and return their account.

    Raises:
        BrokerError: If the payload cannot be created or its status
            cannot be fetched.
        RejectedError: The user declined.
        WaitTimeoutError: No answer within ``timeout_s``.
        ProtocolError: The signed payload named no valid account.
    """
    reference = await broker.sign_in()
    if on_payload is not None:
        on_payload(reference)

    resolution = await (waiter or ConfirmationWaiter(broker)).wait(
        reference, PushMode(timeout_s)
    )

    account = resolution.account
    if account is None:
        fetched = await broker.poll(reference)
        account = fetched.account if fetched is not None else None

    if account is None or not is_valid_address(account):
        raise ProtocolError(f"signed sign-in payload {reference.id} named no valid account")

    logger.info("wallet %s connected via payload %s", account, reference.id)
    return WalletConnection(account=account, reference=reference)
