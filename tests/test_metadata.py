"""
Tests for the credential metadata codec.

Test plan:
- Encoding: exact wire bytes for a known record (key order, nulls kept,
  no whitespace), uppercase hex, non-ASCII kept as UTF-8
- Round-trip: encode → decode gives an equal record, including unicode
  and every optional field
- Invariants: name/type required, rate bounds are inclusive [0, 5],
  bools and non-finite rates rejected
- Decoding: every failure stage (hex, UTF-8, JSON, non-object, invalid
  record) is returned as a DecodeError value, never raised
- Decoding isolation: decoding one corrupt value has no effect on the
  next
"""

import json
import logging

import pytest

from credential_bridge.errors import DecodeError, ValidationError
from credential_bridge.metadata import (
    CredentialMetadata,
    decode_metadata,
    encode_metadata,
    metadata_or_none,
    serialize_metadata,
)

RESIDENT = CredentialMetadata(name="Resident", type="64656661756C74")

RESIDENT_JSON = '{"name":"Resident","expire-date":null,"type":"64656661756C74","location":null,"rate":null}'


# ---------------------------------------------------------------------------
# Encoding
# ---------------------------------------------------------------------------


class TestEncode:
    def test_wire_bytes_for_minimal_record(self) -> None:
        assert serialize_metadata(RESIDENT) == RESIDENT_JSON.encode("utf-8")

    def test_hex_is_uppercase_of_wire_bytes(self) -> None:
        encoded = encode_metadata(RESIDENT)
        assert encoded == RESIDENT_JSON.encode("utf-8").hex().upper()
        assert encoded == encoded.upper()

    def test_key_order_is_fixed(self) -> None:
        full = CredentialMetadata(
            name="Pass",
            type="Gym",
            location="Kyoto",
            expire_date="2026-12-31",
            rate=4.5,
        )
        keys = list(json.loads(serialize_metadata(full)).keys())
        assert keys == ["name", "expire-date", "type", "location", "rate"]

    def test_non_ascii_kept_as_utf8(self) -> None:
        md = CredentialMetadata(name="京都", type="会員")
        raw = serialize_metadata(md)
        assert "京都".encode("utf-8") in raw
        assert b"\\u" not in raw


# ---------------------------------------------------------------------------
# Round-trip
# ---------------------------------------------------------------------------


class TestRoundTrip:
    def test_minimal(self) -> None:
        assert decode_metadata(encode_metadata(RESIDENT)) == RESIDENT

    def test_all_fields_and_unicode(self) -> None:
        md = CredentialMetadata(
            name="Résident ✓",
            type="居住者",
            location="Île-de-France",
            expire_date="2030-01-01",
            rate=3.25,
        )
        assert decode_metadata(encode_metadata(md)) == md

    def test_lowercase_hex_decodes(self) -> None:
        assert decode_metadata(encode_metadata(RESIDENT).lower()) == RESIDENT


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------


class TestInvariants:
    @pytest.mark.parametrize("rate", [0, 5, 0.0, 5.0, 2.5])
    def test_rate_bounds_inclusive(self, rate: float) -> None:
        assert CredentialMetadata(name="n", type="t", rate=rate).rate == rate

    @pytest.mark.parametrize("rate", [-0.01, 5.01, float("inf"), float("nan")])
    def test_rate_out_of_range_rejected(self, rate: float) -> None:
        with pytest.raises(ValidationError) as exc_info:
            CredentialMetadata(name="n", type="t", rate=rate)
        assert exc_info.value.field == "rate"

    def test_bool_rate_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CredentialMetadata(name="n", type="t", rate=True)  # type: ignore[arg-type]

    def test_missing_name_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            CredentialMetadata(name="", type="t")
        assert exc_info.value.field == "name"

    def test_missing_type_rejected(self) -> None:
        with pytest.raises(ValidationError) as exc_info:
            CredentialMetadata.from_dict({"name": "n"})
        assert exc_info.value.field == "type"

    def test_from_dict_accepts_both_expiry_keys(self) -> None:
        a = CredentialMetadata.from_dict({"name": "n", "type": "t", "expireDate": "2030"})
        b = CredentialMetadata.from_dict({"name": "n", "type": "t", "expire-date": "2030"})
        assert a == b
        assert a.expire_date == "2030"


# ---------------------------------------------------------------------------
# Decoding failures
# ---------------------------------------------------------------------------


class TestDecodeFailures:
    @pytest.mark.parametrize(
        "uri_hex",
        [
            "ZZ",                                   # not hex
            "ABC",                                  # odd length
            "7B 7D",                                # separated hex
            " 7B7D\n",                              # padded hex
            "FF",                                   # invalid UTF-8
            "7B6E",                                 # '{n', invalid JSON
            "5B5D",                                 # '[]', not an object
            '{"name":"x"}'.encode().hex(),          # missing type
            '{"name":"x","type":"t","rate":9}'.encode().hex(),
        ],
    )
    def test_returns_decode_error(self, uri_hex: str) -> None:
        assert isinstance(decode_metadata(uri_hex), DecodeError)

    def test_failure_does_not_affect_next_decode(self) -> None:
        assert isinstance(decode_metadata("FF"), DecodeError)
        assert decode_metadata(encode_metadata(RESIDENT)) == RESIDENT

    def test_metadata_or_none(self) -> None:
        assert metadata_or_none(None) is None
        assert metadata_or_none("") is None
        assert metadata_or_none("FF") is None
        assert metadata_or_none(encode_metadata(RESIDENT)) == RESIDENT

    def test_metadata_or_none_logs_corrupt_uri(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.WARNING, logger="credential_bridge.metadata"):
            assert metadata_or_none("5B5D", label="ABC123") is None
        assert "ABC123" in caplog.text
        assert "must be a JSON object" in caplog.text
