"""
Tests for the credential transaction builders.

Test plan:
- Issue: shape, Issuer only for third-party issuance, Expiration when
  given, URI is the encoded metadata, no submit-time fields, determinism
- Accept: shape, both addresses validated, no URI
- Payment: drops conversion (truncation), non-positive amounts rejected
- Addresses: empty, too short, too long, wrong prefix, non-string
- Credential type: hex only, even length, at most 64 bytes
- Ledger time conversion both ways
"""

import pytest

from credential_bridge.errors import ValidationError
from credential_bridge.metadata import CredentialMetadata, encode_metadata
from credential_bridge.tx import (
    RIPPLE_EPOCH_OFFSET,
    build_accept,
    build_issue,
    build_payment,
    build_sign_in,
    is_valid_address,
    ledger_time_to_unix,
    unix_to_ledger_time,
    xrp_to_drops,
)

ISSUER = "rHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh"
SUBJECT = "rPT1Sjq2YGrBMTttX4GZHjKu9dyfzbpAYe"
THIRD = "rLHzPsX6oXkzU2qL12kHCH8G8cnZv1rBJh"
CRED_TYPE = "64656661756C74"


class TestBuildIssue:
    def test_minimal_shape(self) -> None:
        tx = build_issue(ISSUER, SUBJECT, CRED_TYPE)
        assert tx == {
            "TransactionType": "CredentialCreate",
            "Account": ISSUER,
            "Subject": SUBJECT,
            "CredentialType": CRED_TYPE,
        }

    def test_no_submit_time_fields(self) -> None:
        tx = build_issue(ISSUER, SUBJECT, CRED_TYPE)
        for key in ("Sequence", "Fee", "SigningPubKey", "LastLedgerSequence"):
            assert key not in tx

    def test_issuer_omitted_when_same_as_account(self) -> None:
        tx = build_issue(ISSUER, SUBJECT, CRED_TYPE, issuer=ISSUER)
        assert "Issuer" not in tx

    def test_issuer_included_for_third_party(self) -> None:
        tx = build_issue(ISSUER, SUBJECT, CRED_TYPE, issuer=THIRD)
        assert tx["Issuer"] == THIRD

    def test_expiration(self) -> None:
        tx = build_issue(ISSUER, SUBJECT, CRED_TYPE, expire=800_000_000)
        assert tx["Expiration"] == 800_000_000

    @pytest.mark.parametrize("expire", [-1, 1.5, True, "10"])
    def test_bad_expiration_rejected(self, expire: object) -> None:
        with pytest.raises(ValidationError) as exc_info:
            build_issue(ISSUER, SUBJECT, CRED_TYPE, expire=expire)  # type: ignore[arg-type]
        assert exc_info.value.field == "expire"

    def test_uri_is_encoded_metadata(self) -> None:
        md = CredentialMetadata(name="Resident", type=CRED_TYPE)
        tx = build_issue(ISSUER, SUBJECT, CRED_TYPE, metadata=md)
        assert tx["URI"] == encode_metadata(md)

    def test_deterministic(self) -> None:
        md = CredentialMetadata(name="Resident", type=CRED_TYPE, rate=4)
        assert build_issue(ISSUER, SUBJECT, CRED_TYPE, metadata=md) == build_issue(
            ISSUER, SUBJECT, CRED_TYPE, metadata=md
        )

    def test_bad_subject(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            build_issue(ISSUER, "nope", CRED_TYPE)
        assert exc_info.value.field == "subject"


class TestBuildAccept:
    def test_shape(self) -> None:
        tx = build_accept(SUBJECT, ISSUER, CRED_TYPE)
        assert tx == {
            "TransactionType": "CredentialAccept",
            "Account": SUBJECT,
            "Issuer": ISSUER,
            "CredentialType": CRED_TYPE,
        }

    def test_bad_issuer(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            build_accept(SUBJECT, "xHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh", CRED_TYPE)
        assert exc_info.value.field == "issuer"

    def test_bad_credential_type(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            build_accept(SUBJECT, ISSUER, "default")
        assert exc_info.value.field == "credentialType"


class TestPayment:
    @pytest.mark.parametrize(
        ("amount", "drops"),
        [("10", "10000000"), (1.5, "1500000"), (0.5, "500000"), (2, "2000000"), ("0.25", "250000")],
    )
    def test_drops(self, amount: object, drops: str) -> None:
        assert xrp_to_drops(amount) == drops  # type: ignore[arg-type]

    def test_sub_drop_truncates(self) -> None:
        assert xrp_to_drops("1.0000004") == "1000000"

    @pytest.mark.parametrize("amount", [0, -1, "0", "abc", float("inf"), True])
    def test_bad_amount(self, amount: object) -> None:
        with pytest.raises(ValidationError) as exc_info:
            xrp_to_drops(amount)  # type: ignore[arg-type]
        assert exc_info.value.field == "amount"

    def test_shape(self) -> None:
        tx = build_payment(ISSUER, SUBJECT, "1")
        assert tx == {
            "TransactionType": "Payment",
            "Account": ISSUER,
            "Destination": SUBJECT,
            "Amount": "1000000",
        }

    def test_bad_destination(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            build_payment(ISSUER, "", "1")
        assert exc_info.value.field == "destination"


class TestAddresses:
    @pytest.mark.parametrize(
        "value",
        [
            "",
            "r",
            "r" + "a" * 23,              # too short
            "r" + "a" * 35,              # too long
            "xHb9CJAWyB4rj91VRWn96DkukG4bwdtyTh",
            "rHb9CJAWyB4rj91VRWn96Dkuk-4bwdtyTh",
            None,
            12345,
        ],
    )
    def test_invalid(self, value: object) -> None:
        assert is_valid_address(value) is False

    @pytest.mark.parametrize("value", [ISSUER, SUBJECT, "r" + "a" * 24, "r" + "a" * 34])
    def test_valid(self, value: str) -> None:
        assert is_valid_address(value) is True


class TestMisc:
    def test_ledger_time_round_trip(self) -> None:
        assert unix_to_ledger_time(RIPPLE_EPOCH_OFFSET) == 0
        assert ledger_time_to_unix(unix_to_ledger_time(1_700_000_000)) == 1_700_000_000

    def test_sign_in(self) -> None:
        assert build_sign_in() == {"TransactionType": "SignIn"}
