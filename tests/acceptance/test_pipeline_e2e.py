"""
End-to-end BDD acceptance tests for the covidpass pipeline.

Exercises the full build: scanned HC1 text → real decoder → real value-set
resolver → real field mapper → real archive assembler with the packaged
images. Only the two network collaborators (value-set host and signer)
are replaced by in-memory fakes.

Each test follows Given/When/Then BDD structure in its docstring.

Markers: @pytest.mark.acceptance
"""

from __future__ import annotations

import asyncio
import hashlib
import io
import json
import zipfile
from dataclasses import dataclass, field

import pytest
from railway import ErrorCode, ResultAssertions, ResultFailures
from railway.result import Result

from covidpass.adapters.dcc_decoder import DccCertificateDecoder
from covidpass.archive import PassArchiveAssembler, PassAssets
from covidpass.domain.colors import ColorSelection, ImageVariant
from covidpass.domain.models import (
    PassBuild,
    PassIdentity,
    RawCertificateText,
    SignatureRequest,
    ValueSetName,
)
from covidpass.pipeline import build_pass
from covidpass.value_sets import ValueSetResolver
from tests.dcc_fixtures import (
    FakeValueSetSource,
    FixedClock,
    lab_test_hc1,
    standard_catalogs,
    vaccination_hc1,
)

pytestmark = pytest.mark.acceptance


# ── Fake adapters (network collaborators) ────────────────────────────────────


@dataclass
class RecordingSigner:
    """Signs by hashing the request, so signatures differ per pass hash."""

    status: Result[bytes] | None = None
    requests: list[SignatureRequest] = field(default_factory=list)

    async def sign(self, request: SignatureRequest) -> Result[bytes]:
        self.requests.append(request)
        if self.status is not None:
            return self.status
        return Result.success(hashlib.sha256(request.pass_hash.encode()).digest())


# ── Helpers ──────────────────────────────────────────────────────────────────

IDENTITY = PassIdentity(pass_type_identifier="pass.example.covid", team_identifier="ABCDE12345")


async def _build(
    text: str,
    *,
    color: ColorSelection = ColorSelection.WHITE,
    source: FakeValueSetSource | None = None,
    resolver: ValueSetResolver | None = None,
    signer: RecordingSigner | None = None,
    serial_number: str | None = "acceptance-serial",
) -> Result[PassBuild]:
    source = source or FakeValueSetSource(standard_catalogs())
    return await build_pass(
        RawCertificateText(text),
        color,
        decoder=DccCertificateDecoder(),
        resolver=resolver or ValueSetResolver(source),
        assembler=PassArchiveAssembler(signer or RecordingSigner(), PassAssets.packaged()),
        identity=IDENTITY,
        clock=FixedClock(),
        serial_number=serial_number,
    )


def _members(build: PassBuild) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(build.archive.content)) as archive:
        return {name: archive.read(name) for name in archive.namelist()}


def _fields(pass_json: dict) -> dict[str, str]:
    return {
        f["key"]: f["value"]
        for group in pass_json["generic"].values()
        for f in group
    }


# ── Acceptance Tests ─────────────────────────────────────────────────────────


class TestVaccinationPass:
    """End-to-end: vaccination certificate → signed white pass."""

    async def test_pass_shows_resolved_vaccination(self) -> None:
        """
        GIVEN a valid vaccination certificate (dose 2 of 2, Comirnaty)
        AND reachable value sets and signer
        WHEN the pass is built on a white background
        THEN pass.json shows the disease and product display names
        AND the dose reads "2/2"
        AND the barcode carries the scanned text verbatim.
        """
        text = vaccination_hc1()

        build = ResultAssertions.assert_success(await _build(text))

        pass_json = json.loads(_members(build)["pass.json"])
        values = _fields(pass_json)
        assert values["disease"] == "COVID-19"
        assert values["vaccine"] == "Comirnaty"
        assert values["dose"] == "2/2"
        assert values["name"] == "Erika Musterfrau"
        assert pass_json["barcodes"][0]["message"] == text
        assert pass_json["backgroundColor"] == "rgb(255, 255, 255)"
        assert pass_json["serialNumber"] == "acceptance-serial"

    async def test_manifest_matches_every_member(self) -> None:
        """
        GIVEN a built archive
        WHEN each member except manifest.json and signature is hashed
        THEN every digest equals its manifest entry
        AND the signature is the signer's answer for the pass.json digest.
        """
        signer = RecordingSigner()
        build = ResultAssertions.assert_success(await _build(vaccination_hc1(), signer=signer))

        members = _members(build)
        manifest = json.loads(members.pop("manifest.json"))
        signature = members.pop("signature")

        assert set(manifest) == set(members)
        for name, data in members.items():
            assert manifest[name] == hashlib.sha1(data).hexdigest()
        assert signer.requests[0].pass_hash == manifest["pass.json"]
        assert signature == hashlib.sha256(manifest["pass.json"].encode()).digest()


class TestDarkPass:
    """End-to-end: dark background selects the dark image set."""

    async def test_dark_background_uses_dark_assets(self) -> None:
        """
        GIVEN a valid certificate and the color "black"
        WHEN the pass is built
        THEN the signer is asked with useDarkVariant=true
        AND the archive holds the dark image variant
        AND the foreground is white.
        """
        signer = RecordingSigner()

        build = ResultAssertions.assert_success(
            await _build(vaccination_hc1(), color=ColorSelection.BLACK, signer=signer)
        )

        members = _members(build)
        dark = PassAssets.packaged().for_variant(ImageVariant.DARK)
        assert signer.requests[0].use_dark_variant is True
        assert members["logo.png"] == dark["logo.png"]
        assert json.loads(members["pass.json"])["foregroundColor"] == "rgb(255, 255, 255)"


class TestSignerFailure:
    """End-to-end: a failing signer yields no archive."""

    async def test_signer_error_produces_no_archive(self) -> None:
        """
        GIVEN a signer answering HTTP 500
        WHEN the pass is built
        THEN the result is SIGNATURE_REQUEST_FAILED
        AND the signer was asked exactly once.
        """
        signer = RecordingSigner(
            status=ResultFailures.signature_request_failed(
                "rejected", "Signer responded with HTTP 500", status_code=500
            )
        )

        result = await _build(vaccination_hc1(), signer=signer)

        ResultAssertions.assert_failure(result, ErrorCode.SIGNATURE_REQUEST_FAILED)
        assert len(signer.requests) == 1


class TestDeterminism:
    """End-to-end: equal inputs give byte-identical archives."""

    async def test_same_input_same_bytes(self) -> None:
        """
        GIVEN the same certificate, color and serial number
        WHEN the pass is built twice
        THEN both archives are byte-for-byte identical.
        """
        first = ResultAssertions.assert_success(await _build(vaccination_hc1()))
        second = ResultAssertions.assert_success(await _build(vaccination_hc1()))

        assert first.archive.content == second.archive.content


class TestConcurrentBuilds:
    """End-to-end: many concurrent builds share one catalog fetch each."""

    async def test_each_catalog_is_fetched_once(self) -> None:
        """
        GIVEN one resolver shared by ten concurrent builds
        AND a value-set source slow enough for the builds to overlap
        WHEN vaccination and test passes are built at the same time
        THEN every build succeeds
        AND each catalog was fetched exactly once.
        """
        source = FakeValueSetSource(standard_catalogs(), delay=0.05)
        resolver = ValueSetResolver(source)
        texts = [vaccination_hc1(), lab_test_hc1()] * 5

        results = await asyncio.gather(
            *(_build(text, source=source, resolver=resolver) for text in texts)
        )

        for result in results:
            ResultAssertions.assert_success(result)
        for name in ValueSetName:
            assert source.count(name) == 1
