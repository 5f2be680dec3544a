"""
Credential metadata codec.

Credential descriptive metadata travels on-ledger in the credential's
``URI`` field as uppercase hex of a compact JSON object.

Format:
    {
      "name":        "Resident",
      "expire-date": "2026-12-31",    // or null
      "type":        "64656661756C74",
      "location":    "Kyoto",          // or null
      "rate":        4.5               // or null, 0 <= rate <= 5
    }

Rules:
    - Fixed key order as above (not sorted). The dash in ``expire-date``
      is part of the wire format.
    - Absent optional fields are serialized as ``null``, never omitted.
    - No whitespace; non-ASCII characters are kept as UTF-8.
    - Hex output is uppercase.

Decoding never raises. Malformed hex, invalid UTF-8, invalid JSON or a
payload that breaks the metadata invariants is returned as a
``DecodeError`` value so that one corrupt credential cannot abort a
listing.

Decoding is strict on both ends:
    - Hex must be one unbroken run of hex digits (either case) of even
      length. Spaces, newlines and other separators are malformed.
    - Well-formed JSON that is not a valid record (missing name or type,
      rate outside [0, 5]) is a DecodeError too. Readers then see
      ``metadata=None`` rather than a partial record.
"""

from __future__ import annotations

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any

from credential_bridge.errors import DecodeError, ValidationError

logger = logging.getLogger(__name__)

RATE_MIN = 0
RATE_MAX = 5

_HEX_RE = re.compile(r"[0-9A-Fa-f]*")


@dataclass(frozen=True)
class CredentialMetadata:
    """Descriptive metadata embedded in a credential.

    Attributes:
        name: Display name of the credential. Required.
        type: Credential type label. Required.
        location: Optional free-form location.
        expire_date: Optional human-readable expiry date.
        rate: Optional rating in [0, 5].
    """

    name: str
    type: str
    location: str | None = None
    expire_date: str | None = None
    rate: float | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.name, str) or not self.name:
            raise ValidationError("name", "Metadata must include name and type")
        if not isinstance(self.type, str) or not self.type:
            raise ValidationError("type", "Metadata must include name and type")
        for field_name in ("location", "expire_date"):
            value = getattr(self, field_name)
            if value is not None and not isinstance(value, str):
                raise ValidationError(field_name, f"{field_name} must be a string")
        if self.rate is not None:
            _validate_rate(self.rate)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CredentialMetadata:
        """Build metadata from a request body or a decoded wire object.

        Accepts ``expireDate`` (request bodies) and ``expire-date`` (wire).

        Raises:
            ValidationError: If required fields are missing or invalid.
        """
        expire_date = data.get("expireDate", data.get("expire-date"))
        return cls(
            name=data.get("name"),  # type: ignore[arg-type]
            type=data.get("type"),  # type: ignore[arg-type]
            location=data.get("location"),
            expire_date=expire_date,
            rate=data.get("rate"),
        )

    def to_dict(self) -> dict[str, object]:
        """Request-body (camelCase) representation."""
        return {
            "name": self.name,
            "type": self.type,
            "location": self.location,
            "expireDate": self.expire_date,
            "rate": self.rate,
        }

    def wire_dict(self) -> dict[str, object]:
        """On-ledger representation, in wire key order."""
        return {
            "name": self.name,
            "expire-date": self.expire_date,
            "type": self.type,
            "location": self.location,
            "rate": self.rate,
        }


def _validate_rate(rate: object) -> None:
    if isinstance(rate, bool) or not isinstance(rate, (int, float)):
        raise ValidationError("rate", "Rate must be a number")
    if not math.isfinite(rate):
        raise ValidationError("rate", "Rate must be a finite number")
    if rate < RATE_MIN or rate > RATE_MAX:
        raise ValidationError("rate", f"Rate must be between {RATE_MIN} and {RATE_MAX}")


# =========================================================================
# Codec
# =========================================================================


def serialize_metadata(metadata: CredentialMetadata) -> bytes:
    """Serialize metadata to compact JSON bytes in wire key order."""
    return json.dumps(
        metadata.wire_dict(),
        separators=(",", ":"),
        ensure_ascii=False,
        allow_nan=False,
    ).encode("utf-8")


def encode_metadata(metadata: CredentialMetadata) -> str:
    """Encode metadata for the credential ``URI`` field.

    Returns:
        Uppercase hex of the compact JSON bytes.
    """
    return serialize_metadata(metadata).hex().upper()


def decode_metadata(uri_hex: str) -> CredentialMetadata | DecodeError:
    """Decode a credential ``URI`` field back into metadata.

    Args:
        uri_hex: Hex string as stored on-ledger (either case).

    Returns:
        CredentialMetadata on success, or a DecodeError describing the
        first stage that failed. Never raises.
    """
    if not isinstance(uri_hex, str) or not _HEX_RE.fullmatch(uri_hex) or len(uri_hex) % 2:
        return DecodeError(f"malformed hex: {uri_hex!r:.40}")
    raw = bytes.fromhex(uri_hex)

    try:
        text = raw.decode("utf-8")
    except UnicodeDecodeError as exc:
        return DecodeError(f"invalid UTF-8: {exc}")

    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        return DecodeError(f"invalid JSON: {exc}")

    if not isinstance(data, dict):
        return DecodeError(f"metadata must be a JSON object, got {type(data).__name__}")

    try:
        return CredentialMetadata.from_dict(data)
    except ValidationError as exc:
        return DecodeError(f"invalid metadata: {exc.message}")


def metadata_or_none(uri_hex: str | None, *, label: object = None) -> CredentialMetadata | None:
    """Decode a ``URI`` field, substituting None for absent or corrupt data.

    Corrupt data is logged at warning level; ``label`` (typically the
    ledger object ID) identifies the credential in that log line.
    """
    if not uri_hex:
        return None
    result = decode_metadata(uri_hex)
    if isinstance(result, DecodeError):
        logger.warning("credential %s: failed to decode URI: %s", label, result)
        return None
    return result
