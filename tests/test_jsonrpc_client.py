"""
Tests for the ledger JsonRpcClient: canned JSON-RPC responses, no network.

Uses a FakeTransport that returns pre-built response dicts in order,
exercising the parsing logic in jsonrpc_client.py.

Test plan:
- Submit: success parses engine_result + tx_hash, tem/tef rejected,
  ter* treated as accepted, server error, missing engine_result
- Tx: not found → found=False, found not validated, validated with
  ledger_index and engine_result, server error handled
- account_objects: single page, marker followed across pages with the
  ledger pinned to the first page's, server error token surfaced,
  malformed result, page cap
- account_info: found, actNotFound is a plain not-found, other server
  errors keep their token, missing account_data
- Transport: exceptions propagate to the caller
"""

from typing import Any

import pytest

from credential_bridge.ledger.jsonrpc_client import (
    ACCOUNT_OBJECTS_PAGE_LIMIT,
    MAX_ACCOUNT_OBJECTS_PAGES,
    JsonRpcClient,
)

URL = "http://localhost:5005"
ACCOUNT = "rPT1Sjq2YGrBMTttX4GZHjKu9dyfzbpAYe"

# ---------------------------------------------------------------------------
# Fake transport
# ---------------------------------------------------------------------------


class FakeTransport:
    """Returns canned JSON-RPC responses in order; repeats the last one."""

    def __init__(self, *responses: dict[str, Any]) -> None:
        self._responses = list(responses)
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        self.calls.append((url, payload))
        index = min(len(self.calls), len(self._responses)) - 1
        return self._responses[index]


class ErrorTransport:
    """Raises an exception on post_json to simulate transport failures."""

    def __init__(self, exc: Exception) -> None:
        self._exc = exc

    async def post_json(self, url: str, payload: dict[str, Any]) -> dict[str, Any]:
        raise self._exc


# ---------------------------------------------------------------------------
# Canned responses
# ---------------------------------------------------------------------------


def submit_response(engine_result: str, accepted: bool | None, tx_hash: str = "a" * 64) -> dict[str, Any]:
    result: dict[str, Any] = {
        "status": "success",
        "engine_result": engine_result,
        "engine_result_message": f"{engine_result} message",
        "tx_json": {"hash": tx_hash},
    }
    if accepted is not None:
        result["accepted"] = accepted
    return {"result": result}


def credential_object(n: int, flags: int = 0x00010000) -> dict[str, Any]:
    return {
        "LedgerEntryType": "Credential",
        "Issuer": "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh",
        "Subject": ACCOUNT,
        "CredentialType": "64656661756C74",
        "Flags": flags,
        "index": f"{n:064X}",
    }


def objects_page(objects: list[dict[str, Any]], *, marker: str | None = None, ledger_index: int = 100) -> dict[str, Any]:
    result: dict[str, Any] = {
        "status": "success",
        "account": ACCOUNT,
        "account_objects": objects,
        "ledger_index": ledger_index,
        "validated": True,
    }
    if marker is not None:
        result["marker"] = marker
    return {"result": result}


TX_VALIDATED = {
    "result": {
        "status": "success",
        "hash": "a" * 64,
        "validated": True,
        "ledger_index": 46447423,
        "meta": {"TransactionResult": "tesSUCCESS"},
    },
}

TX_NOT_VALIDATED = {
    "result": {
        "status": "success",
        "hash": "a" * 64,
        "validated": False,
        "ledger_index": 46447423,
        "meta": {"TransactionResult": "tesSUCCESS"},
    },
}

TX_NOT_FOUND = {
    "result": {
        "status": "error",
        "error": "txnNotFound",
        "error_message": "Transaction not found.",
    },
}

TX_SERVER_ERROR = {
    "result": {
        "status": "error",
        "error": "internalError",
        "error_message": "Internal server error.",
    },
}


# ---------------------------------------------------------------------------
# Submit
# ---------------------------------------------------------------------------


class TestSubmit:
    @pytest.mark.asyncio
    async def test_success(self) -> None:
        client = JsonRpcClient(URL, FakeTransport(submit_response("tesSUCCESS", True)))
        result = await client.submit("deadbeef")
        assert result.accepted is True
        assert result.tx_hash == "a" * 64
        assert result.engine_result == "tesSUCCESS"
        assert result.detail == "tesSUCCESS message"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("engine_result", ["temBAD_FEE", "tefPAST_SEQ"])
    async def test_rejected(self, engine_result: str) -> None:
        client = JsonRpcClient(URL, FakeTransport(submit_response(engine_result, False)))
        result = await client.submit("deadbeef")
        assert result.accepted is False
        assert result.engine_result == engine_result

    @pytest.mark.asyncio
    async def test_ter_without_accepted_field_is_accepted(self) -> None:
        client = JsonRpcClient(URL, FakeTransport(submit_response("terQUEUED", None)))
        result = await client.submit("deadbeef")
        assert result.accepted is True

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        response = {
            "result": {
                "status": "error",
                "error": "invalidParams",
                "error_message": "Missing field 'tx_blob'.",
            }
        }
        client = JsonRpcClient(URL, FakeTransport(response))
        result = await client.submit("deadbeef")
        assert result.accepted is False
        assert result.error_code == "SERVER_ERROR"
        assert result.detail is not None and "tx_blob" in result.detail

    @pytest.mark.asyncio
    async def test_missing_engine_result(self) -> None:
        client = JsonRpcClient(URL, FakeTransport({"result": {"status": "success"}}))
        result = await client.submit("deadbeef")
        assert result.accepted is False
        assert result.error_code == "SERVER_ERROR"

    @pytest.mark.asyncio
    async def test_request_payload(self) -> None:
        transport = FakeTransport(submit_response("tesSUCCESS", True))
        client = JsonRpcClient("http://example.com:5005", transport)
        await client.submit("aabbccdd")
        url, payload = transport.calls[0]
        assert url == "http://example.com:5005"
        assert payload["method"] == "submit"
        assert payload["params"][0]["tx_blob"] == "aabbccdd"


# ---------------------------------------------------------------------------
# Tx
# ---------------------------------------------------------------------------


class TestGetTx:
    @pytest.mark.asyncio
    async def test_validated(self) -> None:
        client = JsonRpcClient(URL, FakeTransport(TX_VALIDATED))
        result = await client.get_tx("a" * 64)
        assert result.found is True
        assert result.validated is True
        assert result.ledger_index == 46447423
        assert result.engine_result == "tesSUCCESS"

    @pytest.mark.asyncio
    async def test_not_validated_has_no_ledger_index(self) -> None:
        client = JsonRpcClient(URL, FakeTransport(TX_NOT_VALIDATED))
        result = await client.get_tx("a" * 64)
        assert result.found is True
        assert result.validated is False
        assert result.ledger_index is None

    @pytest.mark.asyncio
    async def test_not_found(self) -> None:
        client = JsonRpcClient(URL, FakeTransport(TX_NOT_FOUND))
        result = await client.get_tx("a" * 64)
        assert result.found is False
        assert result.error_code is None

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        client = JsonRpcClient(URL, FakeTransport(TX_SERVER_ERROR))
        result = await client.get_tx("a" * 64)
        assert result.found is False
        assert result.error_code == "SERVER_ERROR"


# ---------------------------------------------------------------------------
# account_objects
# ---------------------------------------------------------------------------


class TestAccountObjects:
    @pytest.mark.asyncio
    async def test_single_page(self) -> None:
        transport = FakeTransport(objects_page([credential_object(1), credential_object(2)]))
        client = JsonRpcClient(URL, transport)
        result = await client.account_objects(ACCOUNT)

        assert result.ok is True
        assert [o["index"] for o in result.objects] == [f"{1:064X}", f"{2:064X}"]
        assert result.ledger_index == 100

        params = transport.calls[0][1]["params"][0]
        assert params["account"] == ACCOUNT
        assert params["type"] == "credential"
        assert params["ledger_index"] == "validated"
        assert params["limit"] == ACCOUNT_OBJECTS_PAGE_LIMIT
        assert "marker" not in params

    @pytest.mark.asyncio
    async def test_follows_marker_and_pins_ledger(self) -> None:
        transport = FakeTransport(
            objects_page([credential_object(1)], marker="M1", ledger_index=100),
            objects_page([credential_object(2)], marker="M2", ledger_index=100),
            objects_page([credential_object(3)], ledger_index=100),
        )
        client = JsonRpcClient(URL, transport)
        result = await client.account_objects(ACCOUNT)

        assert result.ok is True
        assert len(result.objects) == 3
        assert len(transport.calls) == 3
        second = transport.calls[1][1]["params"][0]
        third = transport.calls[2][1]["params"][0]
        assert second["marker"] == "M1"
        assert second["ledger_index"] == 100
        assert third["marker"] == "M2"

    @pytest.mark.asyncio
    async def test_server_error_token(self) -> None:
        response = {
            "result": {
                "status": "error",
                "error": "actNotFound",
                "error_message": "Account not found.",
            }
        }
        client = JsonRpcClient(URL, FakeTransport(response))
        result = await client.account_objects(ACCOUNT)
        assert result.ok is False
        assert result.error_code == "actNotFound"
        assert result.detail == "Account not found."

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [{}, {"result": {"status": "success"}}, {"result": {"account_objects": "x"}}],
    )
    async def test_malformed(self, response: dict[str, Any]) -> None:
        client = JsonRpcClient(URL, FakeTransport(response))
        result = await client.account_objects(ACCOUNT)
        assert result.ok is False
        assert result.error_code == "MALFORMED_RESPONSE"

    @pytest.mark.asyncio
    async def test_page_cap(self) -> None:
        transport = FakeTransport(objects_page([credential_object(1)], marker="again"))
        client = JsonRpcClient(URL, transport)
        result = await client.account_objects(ACCOUNT)
        assert result.ok is False
        assert result.error_code == "TOO_MANY_PAGES"
        assert len(transport.calls) == MAX_ACCOUNT_OBJECTS_PAGES


# ---------------------------------------------------------------------------
# account_info
# ---------------------------------------------------------------------------


ACCOUNT_INFO = {
    "result": {
        "status": "success",
        "account_data": {
            "Account": ACCOUNT,
            "Balance": "100000000",
            "Sequence": 7,
            "LedgerEntryType": "AccountRoot",
        },
        "ledger_index": 46447430,
        "validated": True,
    },
}


class TestAccountInfo:
    @pytest.mark.asyncio
    async def test_found(self) -> None:
        transport = FakeTransport(ACCOUNT_INFO)
        client = JsonRpcClient(URL, transport)
        result = await client.account_info(ACCOUNT)
        assert result.found is True
        assert result.account_data["Sequence"] == 7
        assert result.ledger_index == 46447430

        _, payload = transport.calls[0]
        assert payload["method"] == "account_info"
        assert payload["params"] == [{"account": ACCOUNT, "ledger_index": "validated"}]

    @pytest.mark.asyncio
    async def test_unknown_account(self) -> None:
        response = {
            "result": {
                "status": "error",
                "error": "actNotFound",
                "error_message": "Account not found.",
            },
        }
        client = JsonRpcClient(URL, FakeTransport(response))
        result = await client.account_info(ACCOUNT)
        assert result.found is False
        assert result.error_code is None

    @pytest.mark.asyncio
    async def test_server_error(self) -> None:
        client = JsonRpcClient(URL, FakeTransport(TX_SERVER_ERROR))
        result = await client.account_info(ACCOUNT)
        assert result.found is False
        assert result.error_code == "internalError"
        assert result.detail == "Internal server error."

    @pytest.mark.asyncio
    async def test_missing_account_data(self) -> None:
        client = JsonRpcClient(URL, FakeTransport({"result": {"status": "success"}}))
        result = await client.account_info(ACCOUNT)
        assert result.found is False
        assert result.error_code == "MALFORMED_RESPONSE"


class TestTransportError:
    @pytest.mark.asyncio
    async def test_exception_propagates(self) -> None:
        client = JsonRpcClient(URL, ErrorTransport(ConnectionError("refused")))
        with pytest.raises(ConnectionError, match="refused"):
            await client.account_objects(ACCOUNT)
