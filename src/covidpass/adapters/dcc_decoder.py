"""
DCC decoder adapter — scanned HC1 text → DecodedCertificate.

Adapter layer — implements the certificate decoding stage using:
  - base45: RFC 9285 alphanumeric decoding of the QR text
  - zlib: deflate decompression, bounded by an output ceiling
  - cbor2: COSE_Sign1 envelope and CWT claims

Pipeline (each stage fails with its own ErrorCode):

  "HC1:…"
    → strip scheme prefix             INVALID_SCHEME
    → base45 decode                   INVALID_ENCODING
    → inflate (size-capped)           INVALID_COMPRESSION
    → COSE_Sign1 → CWT claims map     INVALID_ENVELOPE
    → hcert (-260/1) → typed record   INVALID_SCHEMA
    → expiry check                    EXPIRED advisory (non-fatal)

The issuer's COSE signature is NOT verified. The envelope is opened only
to reach the payload; the output archive is re-signed downstream.
"""

from __future__ import annotations

import re
import zlib
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import Any

import base45
import cbor2
import structlog
from railway import ErrorCode, FailureDescription
from railway.result import Result

from covidpass.domain.models import (
    SCHEME_PREFIX,
    CertificateEntry,
    DecodedCertificate,
    DecodeOutcome,
    PersonName,
    RawCertificateText,
    RecoveryEntry,
    TestEntry,
    VaccinationEntry,
)
from covidpass.domain.ports import Clock

log = structlog.get_logger()

DEFAULT_MAX_PAYLOAD_BYTES = 64 * 1024

# ─────────────────────── COSE / CWT constants ───────────────────────
# COSE_Sign1 = [protected: bstr, unprotected: map, payload: bstr, signature: bstr]

_COSE_SIGN1_TAG = 18
_CWT_TAG = 61
_COSE_HEADER_KID = 4

_CLAIM_ISSUER = 1
_CLAIM_EXPIRY = 4
_CLAIM_ISSUED_AT = 6
_CLAIM_HCERT = -260
_HCERT_EU_DCC_V1 = 1

_ENTRY_KINDS = ("v", "t", "r")
_DATE_OF_BIRTH = re.compile(r"^(\d{4}(-\d{2}(-\d{2})?)?)?$")


class SchemaViolation(ValueError):
    """Raised inside the schema stage; surfaces as INVALID_SCHEMA."""


@dataclass(frozen=True, slots=True)
class _Envelope:
    protected: Mapping[Any, Any]
    unprotected: Mapping[Any, Any]
    claims: Mapping[Any, Any]

    @property
    def key_id(self) -> str | None:
        kid = self.protected.get(_COSE_HEADER_KID) or self.unprotected.get(_COSE_HEADER_KID)
        return kid.hex() if isinstance(kid, bytes) else None


# ─────────────────────── Stages 1-3: text → CBOR bytes ───────────────────────


def _strip_scheme(raw: RawCertificateText) -> Result[str]:
    text = raw.text.strip()
    if not text.startswith(SCHEME_PREFIX):
        return Result.failure(
            ErrorCode.INVALID_SCHEME,
            f"Certificate text must start with {SCHEME_PREFIX!r}",
        )
    return Result.success(text[len(SCHEME_PREFIX):])


def _decode_base45(body: str) -> Result[bytes]:
    if not body:
        return Result.failure(ErrorCode.INVALID_ENCODING, "Certificate body is empty")
    return Result.from_computation(
        lambda: base45.b45decode(body),
        ErrorCode.INVALID_ENCODING,
        "Certificate body is not valid base45",
    )


def _inflate_bounded(data: bytes, max_bytes: int) -> bytes:
    """Decompress a zlib stream, refusing to produce more than `max_bytes`."""
    inflater = zlib.decompressobj()
    output = inflater.decompress(data, max_bytes)
    if inflater.unconsumed_tail:
        raise ValueError(f"decompressed payload exceeds {max_bytes} bytes")
    if not inflater.eof:
        raise ValueError("compressed stream is truncated")
    return output


def _inflate(data: bytes, max_bytes: int) -> Result[bytes]:
    return Result.from_computation(
        lambda: _inflate_bounded(data, max_bytes),
        ErrorCode.INVALID_COMPRESSION,
        "Certificate payload could not be decompressed",
    )


# ─────────────────────── Stage 4: COSE_Sign1 envelope ───────────────────────


def _unwrap_tags(item: Any) -> Any:
    """Strip the optional CWT (61) and COSE_Sign1 (18) tags, in that order."""
    if isinstance(item, cbor2.CBORTag) and item.tag == _CWT_TAG:
        item = item.value
    if isinstance(item, cbor2.CBORTag):
        if item.tag != _COSE_SIGN1_TAG:
            raise ValueError(f"unexpected CBOR tag {item.tag}, expected COSE_Sign1")
        item = item.value
    return item


def _parse_envelope(data: bytes) -> _Envelope:
    message = _unwrap_tags(cbor2.loads(data))
    if not isinstance(message, list) or len(message) != 4:
        raise ValueError("COSE_Sign1 must be a 4-element array")

    protected_bstr, unprotected, payload, signature = message
    if not isinstance(protected_bstr, bytes):
        raise ValueError("protected header must be a byte string")
    if not isinstance(payload, bytes) or not isinstance(signature, bytes):
        raise ValueError("payload and signature must be byte strings")

    protected = cbor2.loads(protected_bstr) if protected_bstr else {}
    if not isinstance(protected, dict):
        raise ValueError("protected header must decode to a map")
    unprotected = unprotected or {}
    if not isinstance(unprotected, dict):
        raise ValueError("unprotected header must be a map")

    claims = cbor2.loads(payload)
    if not isinstance(claims, dict):
        raise ValueError("CWT payload must decode to a map")
    return _Envelope(protected=protected, unprotected=unprotected, claims=claims)


def _open_envelope(data: bytes) -> Result[_Envelope]:
    return Result.from_computation(
        lambda: _parse_envelope(data),
        ErrorCode.INVALID_ENVELOPE,
        "Certificate envelope could not be parsed",
    )


# ─────────────────────── Stage 5: claims → DecodedCertificate ───────────────────────


def _require(
    mapping: Mapping[Any, Any], key: Any, kind: type | tuple[type, ...], label: str
) -> Any:
    if key not in mapping:
        raise SchemaViolation(f"missing {label}")
    value = mapping[key]
    if not isinstance(value, kind) or isinstance(value, bool):
        raise SchemaViolation(f"{label} has unexpected type {type(value).__name__}")
    return value


def _code(mapping: Mapping[str, Any], key: str, label: str) -> str:
    value = _require(mapping, key, str, label).strip()
    if not value:
        raise SchemaViolation(f"{label} is empty")
    return value


def _optional_text(mapping: Mapping[str, Any], key: str) -> str | None:
    value = mapping.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _optional_claim(claims: Mapping[Any, Any], key: int, label: str) -> str | None:
    if key not in claims:
        return None
    return _require(claims, key, str, label).strip() or None


def _positive_int(mapping: Mapping[str, Any], key: str, label: str) -> int:
    value = _require(mapping, key, int, label)
    if value < 1:
        raise SchemaViolation(f"{label} must be positive")
    return value


def _timestamp(claims: Mapping[Any, Any], key: int, label: str) -> datetime:
    value = _require(claims, key, (int, float), label)
    try:
        return datetime.fromtimestamp(value, UTC)
    except (OverflowError, OSError, ValueError) as e:
        raise SchemaViolation(f"{label} is not a valid timestamp") from e


def _date(mapping: Mapping[str, Any], key: str, label: str) -> date:
    value = _require(mapping, key, str, label)
    try:
        return date.fromisoformat(value)
    except ValueError:
        pass
    try:
        return _to_utc(datetime.fromisoformat(value)).date()
    except ValueError as e:
        raise SchemaViolation(f"{label} is not an ISO date") from e


def _datetime(mapping: Mapping[str, Any], key: str, label: str) -> datetime:
    value = _require(mapping, key, str, label)
    try:
        return _to_utc(datetime.fromisoformat(value))
    except ValueError as e:
        raise SchemaViolation(f"{label} is not an ISO date-time") from e


def _to_utc(moment: datetime) -> datetime:
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment.astimezone(UTC)


def _person_name(nam: Mapping[str, Any]) -> PersonName:
    return PersonName(
        family_std=_code(nam, "fnt", "nam.fnt"),
        family=_optional_text(nam, "fn"),
        given=_optional_text(nam, "gn"),
        given_std=_optional_text(nam, "gnt"),
    )


def _date_of_birth(hcert: Mapping[str, Any]) -> str:
    dob = _require(hcert, "dob", str, "dob").strip()
    if not _DATE_OF_BIRTH.match(dob):
        raise SchemaViolation("dob is not an ISO (partial) date")
    return dob


def _vaccination(v: Mapping[str, Any]) -> VaccinationEntry:
    return VaccinationEntry(
        disease=_code(v, "tg", "v.tg"),
        vaccine=_code(v, "vp", "v.vp"),
        product=_code(v, "mp", "v.mp"),
        manufacturer=_code(v, "ma", "v.ma"),
        dose_number=_positive_int(v, "dn", "v.dn"),
        total_doses=_positive_int(v, "sd", "v.sd"),
        vaccinated_on=_date(v, "dt", "v.dt"),
        country=_code(v, "co", "v.co"),
        issuer=_code(v, "is", "v.is"),
        certificate_id=_code(v, "ci", "v.ci"),
    )


def _test(t: Mapping[str, Any]) -> TestEntry:
    return TestEntry(
        disease=_code(t, "tg", "t.tg"),
        test_type=_code(t, "tt", "t.tt"),
        test_result=_code(t, "tr", "t.tr"),
        sample_collected_at=_datetime(t, "sc", "t.sc"),
        country=_code(t, "co", "t.co"),
        issuer=_code(t, "is", "t.is"),
        certificate_id=_code(t, "ci", "t.ci"),
        test_name=_optional_text(t, "nm"),
        device=_optional_text(t, "ma"),
        testing_centre=_optional_text(t, "tc"),
    )


def _recovery(r: Mapping[str, Any]) -> RecoveryEntry:
    return RecoveryEntry(
        disease=_code(r, "tg", "r.tg"),
        first_positive_on=_date(r, "fr", "r.fr"),
        valid_from=_date(r, "df", "r.df"),
        valid_until=_date(r, "du", "r.du"),
        country=_code(r, "co", "r.co"),
        issuer=_code(r, "is", "r.is"),
        certificate_id=_code(r, "ci", "r.ci"),
    )


def _single_entry(hcert: Mapping[str, Any]) -> CertificateEntry:
    """Enforce exactly one entry kind holding exactly one entry."""
    present = [kind for kind in _ENTRY_KINDS if kind in hcert]
    if len(present) != 1:
        found = ", ".join(present) or "none"
        raise SchemaViolation(f"expected exactly one of v/t/r, found {found}")

    kind = present[0]
    entries = _require(hcert, kind, list, kind)
    if len(entries) != 1:
        raise SchemaViolation(f"{kind} must hold exactly one entry, found {len(entries)}")
    entry = entries[0]
    if not isinstance(entry, dict):
        raise SchemaViolation(f"{kind}[0] must be a map")

    match kind:
        case "v":
            return _vaccination(entry)
        case "t":
            return _test(entry)
        case _:
            return _recovery(entry)


def _build_certificate(envelope: _Envelope) -> DecodedCertificate:
    claims = envelope.claims
    container = _require(claims, _CLAIM_HCERT, dict, "hcert claim (-260)")
    hcert = _require(container, _HCERT_EU_DCC_V1, dict, "EU DCC v1 (-260/1)")

    return DecodedCertificate(
        issuer=_optional_claim(claims, _CLAIM_ISSUER, "issuer claim (1)"),
        issued_at=_timestamp(claims, _CLAIM_ISSUED_AT, "issued-at claim (6)"),
        expires_at=_timestamp(claims, _CLAIM_EXPIRY, "expiry claim (4)"),
        name=_person_name(_require(hcert, "nam", dict, "nam")),
        date_of_birth=_date_of_birth(hcert),
        schema_version=_code(hcert, "ver", "ver"),
        entry=_single_entry(hcert),
        key_id=envelope.key_id,
    )


def _parse_certificate(envelope: _Envelope) -> Result[DecodedCertificate]:
    return Result.from_computation(
        lambda: _build_certificate(envelope),
        ErrorCode.INVALID_SCHEMA,
        "Certificate content does not match the DCC schema",
    )


# ─────────────────────── Stage 6: expiry advisory ───────────────────────


def _assess_expiry(certificate: DecodedCertificate, clock: Clock) -> DecodeOutcome:
    if not certificate.is_expired(clock.now()):
        return DecodeOutcome(certificate=certificate)

    expired_at = certificate.expires_at.isoformat()
    advisory = FailureDescription.create(
        ErrorCode.EXPIRED,
        f"Certificate expired at {expired_at}",
        expires_at=expired_at,
    )
    return DecodeOutcome(certificate=certificate, advisories=(advisory,))


# ─────────────────────── Public Decoder Class ───────────────────────


class DccCertificateDecoder:
    """
    Decode an EU DCC QR payload into a DecodedCertificate.

    Pure computation — no I/O, no shared state. Decoding the same text
    twice yields equal certificates. Exceptions are captured per stage via
    Result.from_computation(), so every failure carries its stage's code.
    """

    def __init__(self, max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES) -> None:
        self._max_payload_bytes = max_payload_bytes

    def decode(self, raw: RawCertificateText, clock: Clock) -> Result[DecodeOutcome]:
        """
        Run the full decode pipeline.

        Returns Result[DecodeOutcome]; an expired certificate is still a
        Success, carrying an EXPIRED advisory for the caller to act on.
        """
        return (
            _strip_scheme(raw)
            .flat_map(_decode_base45)
            .flat_map(lambda compressed: _inflate(compressed, self._max_payload_bytes))
            .flat_map(_open_envelope)
            .flat_map(_parse_certificate)
            .map(lambda certificate: _assess_expiry(certificate, clock))
            .peek(_log_decoded)
            .peek_failure(
                lambda err: log.warning(
                    "decoder.failed", error_code=err.code.value, reason=err.message
                )
            )
        )


def _log_decoded(outcome: DecodeOutcome) -> None:
    certificate = outcome.certificate
    log.info(
        "decoder.complete",
        entry=type(certificate.entry).__name__,
        schema_version=certificate.schema_version,
        issuer=certificate.issuer,
        expired=outcome.is_expired,
    )
