"""
XRPL transaction builders for the credential lifecycle.

Builds unsigned transaction dicts ("descriptors") in XRPL JSON format.
These are "transaction recipes": pure, deterministic, no secrets,
no network calls. Sequence, Fee, SigningPubKey and LastLedgerSequence
are submit-time concerns and are NOT included here.

Three builders:
    - ``build_issue``: CredentialCreate from issuer to subject, optionally
      carrying encoded metadata in ``URI``.
    - ``build_accept``: CredentialAccept signed by the subject.
    - ``build_payment``: plain XRP Payment with a major-unit amount
      converted to drops.

Addresses are checked against the classic-address shape
``r[A-Za-z0-9]{24,34}``. Checksums are the ledger's business.
"""

from __future__ import annotations

import math
import re
from typing import Union

from credential_bridge.errors import ValidationError
from credential_bridge.metadata import CredentialMetadata, encode_metadata

# Unsigned transaction dict in XRPL JSON format.
TxDescriptor = dict[str, object]

ADDRESS_RE = re.compile(r"^r[A-Za-z0-9]{24,34}$")

# CredentialType is a hex blob of at most 64 bytes.
_CREDENTIAL_TYPE_RE = re.compile(r"^(?:[0-9A-Fa-f]{2}){1,64}$")

DROPS_PER_XRP = 1_000_000

# Seconds between the Unix epoch and the Ripple epoch (2000-01-01T00:00:00Z).
RIPPLE_EPOCH_OFFSET = 946_684_800


# =========================================================================
# Validation helpers
# =========================================================================


def is_valid_address(value: object) -> bool:
    """True if value looks like a classic XRPL r-address."""
    return isinstance(value, str) and ADDRESS_RE.match(value) is not None


def validate_address(value: object, field: str) -> str:
    """Return value unchanged if it is an r-address.

    Raises:
        ValidationError: Naming ``field`` when value is not an r-address.
    """
    if not is_valid_address(value):
        raise ValidationError(field, f"Invalid {field} address format: {value!r}")
    return value  # type: ignore[return-value]


def validate_credential_type(value: object) -> str:
    """Return value unchanged if it is a valid hex CredentialType.

    Raises:
        ValidationError: If value is empty, not hex, odd-length, or over
            64 bytes.
    """
    if not isinstance(value, str) or not _CREDENTIAL_TYPE_RE.match(value):
        raise ValidationError(
            "credentialType",
            f"credentialType must be 1-64 bytes of hex, got: {value!r}",
        )
    return value


# =========================================================================
# Ledger time
# =========================================================================


def unix_to_ledger_time(unix_seconds: int | float) -> int:
    """Convert Unix seconds to ledger time (seconds since the Ripple epoch)."""
    return int(unix_seconds) - RIPPLE_EPOCH_OFFSET


def ledger_time_to_unix(ledger_seconds: int) -> int:
    """Convert ledger time back to Unix seconds."""
    return ledger_seconds + RIPPLE_EPOCH_OFFSET


# =========================================================================
# Builders
# =========================================================================


def build_issue(
    account: str,
    subject: str,
    credential_type: str,
    *,
    issuer: str | None = None,
    expire: int | None = None,
    metadata: CredentialMetadata | None = None,
) -> TxDescriptor:
    """Build an unsigned CredentialCreate transaction.

    Args:
        account: r-address submitting the transaction.
        subject: r-address the credential is about.
        credential_type: Hex-encoded credential type.
        issuer: Issuer r-address. Included only when it differs from
            ``account`` (third-party issuance).
        expire: Expiry in ledger time (seconds since the Ripple epoch).
        metadata: Optional metadata, encoded into ``URI``.

    Returns:
        Unsigned transaction dict.

    Raises:
        ValidationError: On a malformed address, credential type or expiry.
    """
    validate_address(account, "account")
    validate_address(subject, "subject")
    validate_credential_type(credential_type)

    tx: TxDescriptor = {
        "TransactionType": "CredentialCreate",
        "Account": account,
        "Subject": subject,
        "CredentialType": credential_type,
    }

    if issuer is not None and issuer != account:
        tx["Issuer"] = validate_address(issuer, "issuer")

    if expire is not None:
        if isinstance(expire, bool) or not isinstance(expire, int) or expire < 0:
            raise ValidationError("expire", f"expire must be a non-negative integer, got: {expire!r}")
        tx["Expiration"] = expire

    if metadata is not None:
        tx["URI"] = encode_metadata(metadata)

    return tx


def build_accept(account: str, issuer: str, credential_type: str) -> TxDescriptor:
    """Build an unsigned CredentialAccept transaction.

    Args:
        account: r-address of the subject accepting the credential.
        issuer: r-address that issued the credential.
        credential_type: Hex-encoded credential type.

    Raises:
        ValidationError: On a malformed address or credential type.
    """
    validate_address(account, "account")
    validate_address(issuer, "issuer")
    validate_credential_type(credential_type)

    return {
        "TransactionType": "CredentialAccept",
        "Account": account,
        "Issuer": issuer,
        "CredentialType": credential_type,
    }


def xrp_to_drops(amount: Union[str, int, float]) -> str:
    """Convert a major-unit XRP amount to a drops string.

    Multiplies by 1,000,000 and truncates toward zero. The float multiply
    is exact only for amounts representable at 6 decimal places without
    binary rounding error; e.g. "0.000001" gives "1" but "1.1" may give
    "1100000" or "1099999" depending on representation. Callers that need
    exact decimal handling must pass drops themselves.

    Raises:
        ValidationError: If amount is not a positive finite number.
    """
    try:
        value = float(amount)
    except (TypeError, ValueError) as exc:
        raise ValidationError("amount", f"amount must be a number, got: {amount!r}") from exc

    if isinstance(amount, bool) or not math.isfinite(value) or value <= 0:
        raise ValidationError("amount", f"amount must be a positive number, got: {amount!r}")

    return str(int(value * DROPS_PER_XRP))


def build_payment(
    source: str,
    destination: str,
    amount: Union[str, int, float],
) -> TxDescriptor:
    """Build an unsigned XRP Payment transaction.

    Args:
        source: Sending r-address.
        destination: Receiving r-address.
        amount: Amount in XRP (major units), as entered by a human.

    Raises:
        ValidationError: On malformed addresses or amount.
    """
    validate_address(source, "account")
    validate_address(destination, "destination")

    return {
        "TransactionType": "Payment",
        "Account": source,
        "Destination": destination,
        "Amount": xrp_to_drops(amount),
    }


def build_sign_in() -> TxDescriptor:
    """Build the pseudo-transaction used to identify a wallet."""
    return {"TransactionType": "SignIn"}
