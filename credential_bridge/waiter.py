"""
Confirmation waiter: one awaitable result for a submitted payload.

Two modes:

    Push (``PushMode``):
        Subscribes to the broker and races the first terminal event
        against a fixed timer (2 minutes for sign-in payloads, 5 minutes
        for transaction payloads). Both sides settle the same
        ``OneShotGate``; whichever settles first wins and the other is
        discarded.

    Poll (``PollMode``):
        Polls on a fixed cadence (2 seconds) up to ``max_attempts``. Each
        cycle is poll-then-sleep, with no sleep after the last poll. The
        first resolved reply settles the wait; a rejection ends it
        immediately; exhausting the attempts is a timeout. Replies of None
        (unknown/expired payload) consume an attempt.

Outcomes:
    - signed → the terminal PayloadResolution is returned
    - rejected → RejectedError
    - no terminal resolution in time → WaitTimeoutError

Cancellation: the caller abandons a wait by cancelling the task awaiting
``wait()``. The subscription and timer are released on the way out and
no ``on_status`` callback fires afterwards. Network calls already in
flight are not recalled.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Union

from credential_bridge.broker.client import PayloadBroker, PayloadReference, PayloadResolution
from credential_bridge.broker.gate import OneShotGate
from credential_bridge.errors import RejectedError, WaitTimeoutError

logger = logging.getLogger(__name__)

SIGN_IN_TIMEOUT_S = 2 * 60.0
TRANSACTION_TIMEOUT_S = 5 * 60.0

POLL_INTERVAL_S = 2.0
POLL_MAX_ATTEMPTS = 150


@dataclass(frozen=True)
class PushMode:
    """Wait on push events, bounded by a timer."""

    timeout_s: float = TRANSACTION_TIMEOUT_S


@dataclass(frozen=True)
class PollMode:
    """Wait by polling on a fixed cadence."""

    interval_s: float = POLL_INTERVAL_S
    max_attempts: int = POLL_MAX_ATTEMPTS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got: {self.max_attempts}")
        if self.interval_s < 0:
            raise ValueError(f"interval_s must be >= 0, got: {self.interval_s}")


WaitMode = Union[PushMode, PollMode]


@dataclass(frozen=True)
class WaitStatus:
    """Progress report emitted while waiting.

    Attributes:
        reference: The payload being waited on.
        resolution: Latest resolution seen, None if the broker had none.
        attempt: Poll attempt number (1-indexed); None in push mode.
        max_attempts: Poll budget; None in push mode.
    """

    reference: PayloadReference
    resolution: PayloadResolution | None
    attempt: int | None = None
    max_attempts: int | None = None


StatusCallback = Callable[[WaitStatus], None]
Sleep = Callable[[float], Awaitable[None]]


class ConfirmationWaiter:
    """Blocks a logical flow until a payload reaches a terminal state.

    Args:
        broker: The signing-service client.
        sleep: Injectable sleep used between poll cycles.
    """

    def __init__(self, broker: PayloadBroker, *, sleep: Sleep = asyncio.sleep) -> None:
        self._broker = broker
        self._sleep = sleep

    async def wait(
        self,
        reference: PayloadReference,
        mode: WaitMode | None = None,
        *,
        on_status: StatusCallback | None = None,
    ) -> PayloadResolution:
        """Wait for a terminal resolution of ``reference``.

        Args:
            reference: Payload returned by the broker's submit.
            mode: PushMode or PollMode. Defaults to PushMode with the
                transaction timeout.
            on_status: Optional progress callback.

        Returns:
            The signed terminal resolution.

        Raises:
            RejectedError: The user declined.
            WaitTimeoutError: No terminal resolution in time.
        """
        mode = mode or PushMode()
        if isinstance(mode, PollMode):
            resolution = await self._wait_poll(reference, mode, on_status)
        else:
            resolution = await self._wait_push(reference, mode, on_status)

        if resolution.is_rejected:
            logger.info("payload %s rejected by user", reference.id)
            raise RejectedError("Transaction was rejected by user")

        logger.info("payload %s signed (txid=%s)", reference.id, resolution.transaction_id)
        return resolution

    async def _wait_push(
        self,
        reference: PayloadReference,
        mode: PushMode,
        on_status: StatusCallback | None,
    ) -> PayloadResolution:
        gate: OneShotGate[PayloadResolution] = OneShotGate()

        def on_event(resolution: PayloadResolution) -> None:
            if gate.settled:
                return
            if resolution.is_terminal:
                gate.settle(resolution)
            elif on_status is not None:
                on_status(WaitStatus(reference=reference, resolution=resolution))

        def on_timeout() -> None:
            if gate.fail(
                WaitTimeoutError(
                    f"Transaction timeout - no response received within {mode.timeout_s:g}s"
                )
            ):
                logger.info("payload %s timed out after %gs", reference.id, mode.timeout_s)

        subscription = self._broker.subscribe(reference, on_event)
        timer = asyncio.get_running_loop().call_later(mode.timeout_s, on_timeout)
        try:
            return await gate.wait()
        finally:
            timer.cancel()
            subscription.cancel()
            gate.close()

    async def _wait_poll(
        self,
        reference: PayloadReference,
        mode: PollMode,
        on_status: StatusCallback | None,
    ) -> PayloadResolution:
        for attempt in range(1, mode.max_attempts + 1):
            resolution = await self._broker.poll(reference)
            if resolution is not None and resolution.is_terminal:
                return resolution

            if on_status is not None:
                on_status(
                    WaitStatus(
                        reference=reference,
                        resolution=resolution,
                        attempt=attempt,
                        max_attempts=mode.max_attempts,
                    )
                )
            if attempt < mode.max_attempts:
                await self._sleep(mode.interval_s)

        raise WaitTimeoutError(
            f"Transaction timeout - no response received after {mode.max_attempts} attempts"
        )
