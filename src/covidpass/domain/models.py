"""
Domain models — immutable values flowing through the pass build.

    RawCertificateText
      → DecodedCertificate (+ advisories)      decoder
      → ValueSets                              value-set resolver
      → PassFieldSet → PassDocument            field mapper
      → SignedArchive                          archive assembler

All models are frozen dataclasses. The certificate entry is a closed union
(VaccinationEntry | TestEntry | RecoveryEntry): a DecodedCertificate holds
exactly one, so the one-of-three rule is carried by the type itself.
"""

from __future__ import annotations

import unicodedata
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import StrEnum
from typing import Any

from railway import ErrorCode, FailureDescription, ResultFailures
from railway.result import Result

from covidpass.domain.colors import ColorScheme, ImageVariant

SCHEME_PREFIX = "HC1:"
PKPASS_MEDIA_TYPE = "application/vnd.apple.pkpass"
PKPASS_FILENAME = "covid.pkpass"

# Base45 has a literal space in its alphabet, so only these are scanner noise.
_SCANNER_NOISE = str.maketrans("", "", "\u00a0\r\n")


def normalize_text(text: str) -> str:
    """
    Undo what scanners and clipboards do to the payload.

    Drops non-breaking spaces and line breaks, applies NFKC (full-width
    forms become ASCII), then removes invisible format characters
    (BOM, zero-width space and joiners).
    """
    normalized = unicodedata.normalize("NFKC", text.translate(_SCANNER_NOISE))
    visible = "".join(ch for ch in normalized if unicodedata.category(ch) != "Cf")
    return visible.strip()


@dataclass(frozen=True, slots=True)
class RawCertificateText:
    """The scanned certificate string, as handed over by the capture layer."""

    text: str = field(repr=False)

    @staticmethod
    def parse(text: str | None) -> Result[RawCertificateText]:
        """Normalize `text` and enforce the HC1: prefix."""
        if text is None:
            return ResultFailures.no_input()
        normalized = normalize_text(text)
        if not normalized:
            return ResultFailures.no_input("Certificate text is empty")
        if not normalized.startswith(SCHEME_PREFIX):
            return ResultFailures.invalid_scheme(
                f"Certificate text must start with {SCHEME_PREFIX!r}"
            )
        return Result.success(RawCertificateText(normalized))

    def __str__(self) -> str:
        return self.text


# ─────────────────────── Decoded certificate ───────────────────────


@dataclass(frozen=True, slots=True)
class VaccinationEntry:
    disease: str
    vaccine: str
    product: str
    manufacturer: str
    dose_number: int
    total_doses: int
    vaccinated_on: date
    country: str
    issuer: str
    certificate_id: str

    @property
    def dose_text(self) -> str:
        return f"{self.dose_number}/{self.total_doses}"


@dataclass(frozen=True, slots=True)
class TestEntry:
    __test__ = False  # not a pytest class

    disease: str
    test_type: str
    test_result: str
    sample_collected_at: datetime
    country: str
    issuer: str
    certificate_id: str
    test_name: str | None = None
    device: str | None = None
    testing_centre: str | None = None


@dataclass(frozen=True, slots=True)
class RecoveryEntry:
    disease: str
    first_positive_on: date
    valid_from: date
    valid_until: date
    country: str
    issuer: str
    certificate_id: str


type CertificateEntry = VaccinationEntry | TestEntry | RecoveryEntry


@dataclass(frozen=True, slots=True)
class PersonName:
    """Holder name; the standardised (ICAO transliterated) family name is mandatory."""

    family_std: str
    family: str | None = None
    given: str | None = None
    given_std: str | None = None

    @property
    def display(self) -> str:
        given = self.given or self.given_std
        family = self.family or self.family_std
        return " ".join(part for part in (given, family) if part)


@dataclass(frozen=True, slots=True)
class DecodedCertificate:
    """
    Typed health certificate recovered from the QR payload.

    `date_of_birth` keeps the partial ISO form the DCC allows
    ("1964", "1964-08", "1964-08-12", or "" when unknown).
    `key_id` is the COSE kid in hex — informational, never verified.
    `issuer` is the optional CWT issuer claim, None when absent.
    """

    issuer: str | None
    issued_at: datetime
    expires_at: datetime
    name: PersonName = field(repr=False)
    date_of_birth: str = field(repr=False)
    schema_version: str
    entry: CertificateEntry
    key_id: str | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at < now


@dataclass(frozen=True, slots=True)
class DecodeOutcome:
    """Decoded certificate plus non-fatal advisories (currently only EXPIRED)."""

    certificate: DecodedCertificate
    advisories: tuple[FailureDescription, ...] = ()

    @property
    def is_expired(self) -> bool:
        return any(a.code is ErrorCode.EXPIRED for a in self.advisories)


# ─────────────────────── Value sets ───────────────────────


class ValueSetName(StrEnum):
    """Catalogs published with the DCC schema (file stem under the valuesets folder)."""

    DISEASE = "disease-agent-targeted"
    VACCINE_PROPHYLAXIS = "vaccine-prophylaxis"
    MEDICINAL_PRODUCT = "vaccine-medicinal-product"
    VACCINE_MANUFACTURER = "vaccine-mah-manf"
    TEST_TYPE = "test-type"
    TEST_MANUFACTURER = "test-manf"
    TEST_RESULT = "test-result"
    COUNTRY = "country-2-codes"


@dataclass(frozen=True, slots=True)
class ValueSetCatalog:
    """
    One catalog: code → display string.

    `lookup` never fails: codes the catalog does not know yet come back
    verbatim. Use `code in catalog` or `display()` to tell the two apart.
    """

    name: str
    entries: Mapping[str, str] = field(default_factory=dict, repr=False)
    version: str | None = None

    def __contains__(self, code: object) -> bool:
        return code in self.entries

    def __len__(self) -> int:
        return len(self.entries)

    def display(self, code: str) -> str | None:
        return self.entries.get(code)

    def lookup(self, code: str) -> str:
        return self.entries.get(code, code)


@dataclass(frozen=True, slots=True)
class ValueSets:
    """The catalogs resolved for one build, keyed by catalog name."""

    catalogs: Mapping[str, ValueSetCatalog] = field(default_factory=dict)

    @staticmethod
    def of(*catalogs: ValueSetCatalog) -> ValueSets:
        return ValueSets(catalogs={c.name: c for c in catalogs})

    def catalog(self, name: str) -> ValueSetCatalog:
        """The resolved catalog for `name`; KeyError if it was never resolved."""
        try:
            return self.catalogs[name]
        except KeyError:
            raise KeyError(f"value set {str(name)!r} was not resolved for this build") from None

    def lookup(self, name: str, code: str) -> str:
        return self.catalog(name).lookup(code)


# ─────────────────────── Pass document ───────────────────────


@dataclass(frozen=True, slots=True)
class PassField:
    key: str
    label: str
    value: str

    def to_dict(self) -> dict[str, str]:
        return {"key": self.key, "label": self.label, "value": self.value}


@dataclass(frozen=True, slots=True)
class PassFieldSet:
    """Output of the field mapper: generic-pass field groups plus colors."""

    header: tuple[PassField, ...]
    primary: tuple[PassField, ...]
    secondary: tuple[PassField, ...]
    auxiliary: tuple[PassField, ...]
    back: tuple[PassField, ...]
    colors: ColorScheme

    @property
    def image_variant(self) -> ImageVariant:
        return self.colors.image_variant

    def all_fields(self) -> tuple[PassField, ...]:
        return self.header + self.primary + self.secondary + self.auxiliary + self.back

    def value_of(self, key: str) -> str | None:
        for f in self.all_fields():
            if f.key == key:
                return f.value
        return None

    def to_dict(self) -> dict[str, list[dict[str, str]]]:
        return {
            "headerFields": [f.to_dict() for f in self.header],
            "primaryFields": [f.to_dict() for f in self.primary],
            "secondaryFields": [f.to_dict() for f in self.secondary],
            "auxiliaryFields": [f.to_dict() for f in self.auxiliary],
            "backFields": [f.to_dict() for f in self.back],
        }


@dataclass(frozen=True, slots=True)
class Barcode:
    message: str = field(repr=False)
    format: str = "PKBarcodeFormatQR"
    message_encoding: str = "utf-8"

    def to_dict(self) -> dict[str, str]:
        return {
            "message": self.message,
            "format": self.format,
            "messageEncoding": self.message_encoding,
        }


@dataclass(frozen=True, slots=True)
class PassIdentity:
    """Fixed identity of the issuing wallet-pass program."""

    pass_type_identifier: str
    team_identifier: str
    organization_name: str = "CovidPass"
    description: str = "CovidPass"
    logo_text: str = "CovidPass"


@dataclass(frozen=True, slots=True)
class PassDocument:
    """
    The complete pass definition. Built once per archive, never mutated.

    `to_dict()` yields the pass.json structure in a fixed key order.
    """

    identity: PassIdentity
    serial_number: str
    barcode: Barcode
    fields: PassFieldSet

    @property
    def colors(self) -> ColorScheme:
        return self.fields.colors

    @property
    def image_variant(self) -> ImageVariant:
        return self.fields.image_variant

    def to_dict(self) -> dict[str, Any]:
        barcode = self.barcode.to_dict()
        return {
            "passTypeIdentifier": self.identity.pass_type_identifier,
            "teamIdentifier": self.identity.team_identifier,
            "sharingProhibited": False,
            "voided": False,
            "formatVersion": 1,
            "logoText": self.identity.logo_text,
            "organizationName": self.identity.organization_name,
            "description": self.identity.description,
            "labelColor": self.colors.label_color,
            "foregroundColor": self.colors.foreground_color,
            "backgroundColor": self.colors.background_color,
            "serialNumber": self.serial_number,
            "barcodes": [barcode],
            "barcode": dict(barcode),
            "generic": self.fields.to_dict(),
        }


# ─────────────────────── Archive ───────────────────────


@dataclass(frozen=True, slots=True)
class SignatureRequest:
    """Body sent to the remote signer."""

    pass_hash: str
    use_dark_variant: bool

    def to_json(self) -> dict[str, Any]:
        return {"passHash": self.pass_hash, "useDarkVariant": self.use_dark_variant}


@dataclass(frozen=True, slots=True)
class SignedArchive:
    """Final .pkpass bytes plus what went into them."""

    content: bytes = field(repr=False)
    manifest: Mapping[str, str]
    pass_hash: str
    serial_number: str
    image_variant: ImageVariant

    media_type = PKPASS_MEDIA_TYPE
    filename = PKPASS_FILENAME


@dataclass(frozen=True, slots=True)
class PassBuild:
    """Orchestrator output: the archive and the advisories raised on the way."""

    archive: SignedArchive
    certificate: DecodedCertificate = field(repr=False)
    advisories: tuple[FailureDescription, ...] = ()
