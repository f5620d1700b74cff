"""
Pass field mapper — DecodedCertificate + ValueSets + ColorSelection → PassFieldSet.

Domain layer — pure functions. No network, no clock, no mutable state:
the same inputs always map to the same field set.

Coded values (disease, vaccine, manufacturer, test type/result, country)
are shown through the resolved value sets; codes a catalog does not know
are shown verbatim. Dates are ISO-8601 strings, never locale-formatted.
"""

from __future__ import annotations

from datetime import datetime
from uuid import uuid4

import structlog

from covidpass.domain.colors import ColorSelection
from covidpass.domain.models import (
    Barcode,
    CertificateEntry,
    DecodedCertificate,
    PassDocument,
    PassField,
    PassFieldSet,
    PassIdentity,
    RawCertificateText,
    RecoveryEntry,
    TestEntry,
    VaccinationEntry,
    ValueSetName,
    ValueSets,
)

_COMMON_CATALOGS = (ValueSetName.DISEASE, ValueSetName.COUNTRY)

log = structlog.get_logger()


def required_catalogs(entry: CertificateEntry) -> tuple[ValueSetName, ...]:
    """Catalogs the mapper consults for this entry kind."""
    match entry:
        case VaccinationEntry():
            return _COMMON_CATALOGS + (
                ValueSetName.VACCINE_PROPHYLAXIS,
                ValueSetName.MEDICINAL_PRODUCT,
                ValueSetName.VACCINE_MANUFACTURER,
            )
        case TestEntry():
            return _COMMON_CATALOGS + (
                ValueSetName.TEST_TYPE,
                ValueSetName.TEST_RESULT,
                ValueSetName.TEST_MANUFACTURER,
            )
        case RecoveryEntry():
            return _COMMON_CATALOGS
    raise TypeError(f"Unsupported certificate entry: {type(entry).__name__}")


def _iso_moment(moment: datetime) -> str:
    return moment.isoformat(timespec="minutes")


def _display(value_sets: ValueSets, name: ValueSetName, code: str) -> str:
    catalog = value_sets.catalog(name)
    if code not in catalog:
        log.info("value_sets.unknown_code", catalog=str(name), code=code)
    return catalog.lookup(code)


def _field(key: str, label: str, value: str) -> PassField:
    return PassField(key=key, label=label, value=value)


def _vaccination_fields(
    v: VaccinationEntry, value_sets: ValueSets, date_of_birth: PassField
) -> tuple[tuple[PassField, ...], tuple[PassField, ...], tuple[PassField, ...]]:
    secondary = (
        _field("dose", "Dose", v.dose_text),
        _field("dateOfVaccination", "Date of Vaccination", v.vaccinated_on.isoformat()),
    )
    auxiliary = (
        _field("vaccine", "Vaccine", _display(value_sets, ValueSetName.MEDICINAL_PRODUCT, v.product)),
        date_of_birth,
    )
    back = (
        _field(
            "vaccineType",
            "Vaccine Type",
            _display(value_sets, ValueSetName.VACCINE_PROPHYLAXIS, v.vaccine),
        ),
        _field(
            "manufacturer",
            "Manufacturer",
            _display(value_sets, ValueSetName.VACCINE_MANUFACTURER, v.manufacturer),
        ),
    )
    return secondary, auxiliary, back


def _test_fields(
    t: TestEntry, value_sets: ValueSets, date_of_birth: PassField
) -> tuple[tuple[PassField, ...], tuple[PassField, ...], tuple[PassField, ...]]:
    secondary = (
        _field("testResult", "Test Result", _display(value_sets, ValueSetName.TEST_RESULT, t.test_result)),
        _field("testDate", "Date of Sample Collection", _iso_moment(t.sample_collected_at)),
    )
    auxiliary = (
        _field("testType", "Test Type", _display(value_sets, ValueSetName.TEST_TYPE, t.test_type)),
        date_of_birth,
    )
    back: list[PassField] = []
    if t.test_name:
        back.append(_field("testName", "Test Name", t.test_name))
    if t.device:
        back.append(
            _field(
                "testManufacturer",
                "Test Manufacturer",
                _display(value_sets, ValueSetName.TEST_MANUFACTURER, t.device),
            )
        )
    if t.testing_centre:
        back.append(_field("testingCentre", "Testing Centre", t.testing_centre))
    return secondary, auxiliary, tuple(back)


def _recovery_fields(
    r: RecoveryEntry, date_of_birth: PassField
) -> tuple[tuple[PassField, ...], tuple[PassField, ...], tuple[PassField, ...]]:
    secondary = (
        _field("firstPositiveTest", "First Positive Test", r.first_positive_on.isoformat()),
        _field("validFrom", "Valid From", r.valid_from.isoformat()),
    )
    auxiliary = (
        _field("validUntil", "Valid Until", r.valid_until.isoformat()),
        date_of_birth,
    )
    return secondary, auxiliary, ()


def build_fields(
    certificate: DecodedCertificate,
    value_sets: ValueSets,
    color: ColorSelection,
) -> PassFieldSet:
    """
    Map a decoded certificate into the generic-pass field layout.

    header    certificate type
    primary   holder name
    secondary entry-specific key facts (dose, result, validity)
    auxiliary product / test type / validity end, date of birth
    back      disease, country, issuers, identifiers, expiry
    """
    entry = certificate.entry
    date_of_birth = _field("dateOfBirth", "Date of Birth", certificate.date_of_birth)

    match entry:
        case VaccinationEntry():
            kind = "Vaccination"
            secondary, auxiliary, specific_back = _vaccination_fields(entry, value_sets, date_of_birth)
        case TestEntry():
            kind = "Test"
            secondary, auxiliary, specific_back = _test_fields(entry, value_sets, date_of_birth)
        case RecoveryEntry():
            kind = "Recovery"
            secondary, auxiliary, specific_back = _recovery_fields(entry, date_of_birth)
        case _:
            raise TypeError(f"Unsupported certificate entry: {type(entry).__name__}")

    back = [
        _field("disease", "Disease or Agent", _display(value_sets, ValueSetName.DISEASE, entry.disease)),
        *specific_back,
        _field("country", "Country", _display(value_sets, ValueSetName.COUNTRY, entry.country)),
        _field("issuer", "Certificate Issuer", entry.issuer),
        _field("uvci", "Certificate Identifier", entry.certificate_id),
    ]
    if certificate.issuer is not None:
        back.append(_field("issuedBy", "Issued By", certificate.issuer))
    back.append(
        _field("expiresAt", "Certificate Valid Until", certificate.expires_at.date().isoformat())
    )

    return PassFieldSet(
        header=(_field("type", "Certificate Type", kind),),
        primary=(_field("name", "Name", certificate.name.display),),
        secondary=secondary,
        auxiliary=auxiliary,
        back=tuple(back),
        colors=color.scheme(),
    )


def build_pass_document(
    field_set: PassFieldSet,
    raw: RawCertificateText,
    identity: PassIdentity,
    serial_number: str | None = None,
) -> PassDocument:
    """
    Wrap a field set into the final pass document.

    The barcode re-encodes the scanned certificate text unchanged; the
    serial number is a fresh random UUID unless one is given.
    """
    return PassDocument(
        identity=identity,
        serial_number=serial_number or str(uuid4()),
        barcode=Barcode(message=raw.text.strip()),
        fields=field_set,
    )
