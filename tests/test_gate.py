"""
Tests for the single-resolution primitives and payload state invariants.

Test plan:
- OneShotGate: first settle wins, later settle/fail are no-ops, failure
  propagates to the waiter, close cancels an unsettled gate
- TerminalOnce: non-terminal events pass, first terminal passes,
  everything after is dropped
- PayloadResolution: only pending and the two terminal combinations
  can be constructed
"""

import asyncio

import pytest

from credential_bridge.broker.client import PayloadResolution, is_terminal
from credential_bridge.broker.gate import OneShotGate, TerminalOnce
from credential_bridge.errors import ProtocolError, WaitTimeoutError


class TestOneShotGate:
    @pytest.mark.asyncio
    async def test_first_settle_wins(self) -> None:
        gate: OneShotGate[str] = OneShotGate()
        assert gate.settle("first") is True
        assert gate.settle("second") is False
        assert gate.fail(WaitTimeoutError("late")) is False
        assert await gate.wait() == "first"

    @pytest.mark.asyncio
    async def test_failure_wins_when_first(self) -> None:
        gate: OneShotGate[str] = OneShotGate()
        assert gate.fail(WaitTimeoutError("timeout")) is True
        assert gate.settle("late") is False
        with pytest.raises(WaitTimeoutError):
            await gate.wait()

    @pytest.mark.asyncio
    async def test_settled_from_another_task(self) -> None:
        gate: OneShotGate[int] = OneShotGate()
        loop = asyncio.get_running_loop()
        loop.call_soon(gate.settle, 42)
        assert await gate.wait() == 42
        assert gate.settled is True

    @pytest.mark.asyncio
    async def test_close_unsettled(self) -> None:
        gate: OneShotGate[int] = OneShotGate()
        gate.close()
        assert gate.settled is True
        assert gate.settle(1) is False

    @pytest.mark.asyncio
    async def test_close_after_settle_keeps_value(self) -> None:
        gate: OneShotGate[int] = OneShotGate()
        gate.settle(7)
        gate.close()
        assert await gate.wait() == 7


class TestTerminalOnce:
    def test_single_terminal_delivery(self) -> None:
        seen: list[PayloadResolution] = []
        deliver = TerminalOnce(seen.append, is_terminal)

        pending = PayloadResolution.pending()
        rejected = PayloadResolution(signed=False, resolved=True)
        signed = PayloadResolution(signed=True, resolved=True, transaction_id="A" * 64)

        assert deliver(pending) is True
        assert deliver(rejected) is True
        assert deliver.closed is True
        assert deliver(signed) is False
        assert deliver(pending) is False
        assert seen == [pending, rejected]


class TestPayloadResolution:
    @pytest.mark.parametrize(
        ("signed", "resolved"),
        [(None, False), (True, True), (False, True)],
    )
    def test_valid_states(self, signed: bool | None, resolved: bool) -> None:
        PayloadResolution(signed=signed, resolved=resolved)

    @pytest.mark.parametrize(
        ("signed", "resolved"),
        [(None, True), (True, False), (False, False)],
    )
    def test_invalid_states(self, signed: bool | None, resolved: bool) -> None:
        with pytest.raises(ProtocolError):
            PayloadResolution(signed=signed, resolved=resolved)

    def test_flags(self) -> None:
        assert PayloadResolution.pending().is_terminal is False
        assert PayloadResolution(signed=True, resolved=True).is_signed is True
        assert PayloadResolution(signed=False, resolved=True).is_rejected is True
