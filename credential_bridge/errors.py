"""
Error taxonomy for the credential lifecycle.

Every failure the package surfaces is a ``CredentialError``. The subclasses
map one-to-one onto the user-visible failure categories:

    - ``ValidationError``: malformed input (bad address, missing field,
      out-of-range rate). Never retried.
    - ``BrokerError``: signing service unreachable or rejected the payload.
    - ``WaitTimeoutError``: no terminal resolution inside the wait window.
    - ``RejectedError``: the user declined to sign.
    - ``DecodeError``: on-ledger metadata could not be decoded. Returned
      by the codec as a value, never raised past it.
    - ``QueryError``: ledger read failed (network or malformed response).
    - ``BackendError``: issuer backend unreachable or malformed reply.
    - ``ProtocolError``: a peer reported a state combination that cannot
      exist (e.g. resolved but neither signed nor rejected).
    - ``TransactionFailedError``: a ledger transaction finished with an
      engine result other than ``tesSUCCESS``.
    - ``OrchestrationError``: caller misuse of an acceptance attempt.

XRPL engine result prefixes:
    - tes: success (tesSUCCESS)
    - tec: claimed cost, tx included but "failed"
    - tef: local failure, not forwarded
    - tem: malformed, not forwarded
    - ter: retry, maybe later

Reference:
    https://xrpl.org/docs/references/protocol/transactions/transaction-results
"""

from __future__ import annotations

from enum import StrEnum

SUCCESS_RESULT = "tesSUCCESS"


class CredentialError(Exception):
    """Base class for all credential lifecycle errors."""


class ValidationError(CredentialError, ValueError):
    """Malformed caller input.

    Attributes:
        field: Name of the offending field, for field-level messages.
    """

    def __init__(self, field: str, message: str) -> None:
        super().__init__(message)
        self.field = field
        self.message = message


class BrokerError(CredentialError):
    """The signing service was unreachable or rejected the payload."""


class WaitTimeoutError(CredentialError, TimeoutError):
    """No terminal payload resolution within the bounded wait window."""


class RejectedError(CredentialError):
    """The user explicitly declined to sign the payload."""


class DecodeError(CredentialError):
    """Credential metadata bytes could not be decoded."""


class QueryError(CredentialError):
    """A ledger read failed."""


class BackendError(CredentialError):
    """The issuer backend was unreachable or answered with an unexpected shape."""


class ProtocolError(CredentialError):
    """A peer reported an impossible state combination."""


class TransactionFailedError(CredentialError):
    """A ledger transaction did not finish with tesSUCCESS.

    Attributes:
        engine_result: The final engine result code, or None if the
            ledger never reported one.
        engine_class: Prefix class of ``engine_result``.
    """

    def __init__(self, engine_result: str | None, message: str | None = None) -> None:
        super().__init__(message or f"Transaction failed: {describe_engine_result(engine_result)}")
        self.engine_result = engine_result
        self.engine_class = classify_engine_result(engine_result)


class OrchestrationError(CredentialError):
    """An acceptance attempt was driven out of order."""


# ---------------------------------------------------------------------------
# Engine result classification
# ---------------------------------------------------------------------------


class EngineResultClass(StrEnum):
    """Coarse classes of XRPL engine results."""

    SUCCESS = "SUCCESS"
    CLAIMED = "CLAIMED"
    LOCAL_FAILURE = "LOCAL_FAILURE"
    MALFORMED = "MALFORMED"
    RETRY = "RETRY"
    UNKNOWN = "UNKNOWN"


_PREFIX_MAP: dict[str, EngineResultClass] = {
    "tec": EngineResultClass.CLAIMED,
    "tef": EngineResultClass.LOCAL_FAILURE,
    "tem": EngineResultClass.MALFORMED,
    "ter": EngineResultClass.RETRY,
}

_CLASS_NOTES: dict[EngineResultClass, str] = {
    EngineResultClass.CLAIMED: "fee claimed, not applied",
    EngineResultClass.LOCAL_FAILURE: "rejected by the node",
    EngineResultClass.MALFORMED: "malformed transaction",
    EngineResultClass.RETRY: "not applied yet, may succeed later",
}


def classify_engine_result(engine_result: str | None) -> EngineResultClass:
    """Map an XRPL engine result code to a coarse class.

    Args:
        engine_result: XRPL engine result string (e.g. "tesSUCCESS",
            "temBAD_FEE"). None means the engine never responded.

    Returns:
        EngineResultClass. UNKNOWN for unrecognized codes or None.
    """
    if engine_result is None:
        return EngineResultClass.UNKNOWN
    if engine_result == SUCCESS_RESULT:
        return EngineResultClass.SUCCESS

    for prefix, cls in _PREFIX_MAP.items():
        if engine_result.startswith(prefix):
            return cls

    return EngineResultClass.UNKNOWN


def describe_engine_result(engine_result: str | None) -> str:
    """Engine result code with its class note, for failure messages.

    >>> describe_engine_result("tecNO_TARGET")
    'tecNO_TARGET (fee claimed, not applied)'
    """
    if engine_result is None:
        return "no result"
    note = _CLASS_NOTES.get(classify_engine_result(engine_result))
    return f"{engine_result} ({note})" if note else engine_result


def is_success(engine_result: str | None) -> bool:
    """True only for the canonical success code."""
    return engine_result == SUCCESS_RESULT
