"""
Pipeline — the orchestrator connecting the pass-build stages.

All I/O is injected (ports and stage objects); the orchestrator only wires
stage outputs to stage inputs over the Result railway:

  RawCertificateText
    → decode(raw, clock)                         DecodeOutcome
      → expiry policy                            (advisory | EXPIRED failure)
        → resolve_all(required catalogs)         ValueSets
          → build_fields + build_pass_document   PassDocument
            → assemble(document)                 SignedArchive
              → PassBuild

Each stage returns Result[T]. The first failure short-circuits the rest:
a decode failure never reaches the network, and a value-set failure never
reaches the signer.
"""

from __future__ import annotations

from enum import StrEnum

import structlog
from railway import ErrorCode, ResultFailures
from railway.result import Result

from covidpass.adapters.dcc_decoder import DccCertificateDecoder
from covidpass.archive import PassArchiveAssembler
from covidpass.domain.colors import ColorSelection
from covidpass.domain.models import (
    DecodeOutcome,
    PassBuild,
    PassIdentity,
    RawCertificateText,
)
from covidpass.domain.ports import Clock
from covidpass.fields import build_fields, build_pass_document, required_catalogs
from covidpass.value_sets import ValueSetResolver

log = structlog.get_logger()


class ExpiryPolicy(StrEnum):
    """What an expired certificate means for the build."""

    ADVISORY = "advisory"
    REJECT = "reject"


def _apply_expiry_policy(outcome: DecodeOutcome, policy: ExpiryPolicy) -> Result[DecodeOutcome]:
    """
    ADVISORY keeps the EXPIRED advisory on a successful outcome;
    REJECT turns it into the build's failure.
    """
    for advisory in outcome.advisories:
        if advisory.code is not ErrorCode.EXPIRED:
            continue
        if policy is ExpiryPolicy.REJECT:
            log.warning("pipeline.expired_rejected", expires_at=advisory.details.get("expires_at"))
            return ResultFailures.expired(advisory.message, **advisory.details)
        log.warning("pipeline.expired_advisory", expires_at=advisory.details.get("expires_at"))
    return Result.success(outcome)


async def build_pass(
    raw: RawCertificateText,
    color: ColorSelection,
    *,
    decoder: DccCertificateDecoder,
    resolver: ValueSetResolver,
    assembler: PassArchiveAssembler,
    identity: PassIdentity,
    clock: Clock,
    expiry_policy: ExpiryPolicy = ExpiryPolicy.ADVISORY,
    serial_number: str | None = None,
) -> Result[PassBuild]:
    """
    Build one signed pass from scanned certificate text.

    Flow:
      1. Decode the HC1 payload (no I/O)
      2. Apply the expiry policy
      3. Resolve only the catalogs this entry kind needs, concurrently
      4. Map fields and wrap them in a pass document
      5. Assemble and sign the archive (one signer request)

    Returns Result[PassBuild] on success, or the first stage's failure.
    """

    async def resolve_and_assemble(outcome: DecodeOutcome) -> Result[PassBuild]:
        certificate = outcome.certificate
        value_sets = await resolver.resolve_all(required_catalogs(certificate.entry))
        document = value_sets.map(
            lambda resolved: build_pass_document(
                build_fields(certificate, resolved, color),
                raw,
                identity,
                serial_number,
            )
        )
        archive = await document.flat_map_async(assembler.assemble)
        return archive.map(
            lambda signed: PassBuild(
                archive=signed,
                certificate=certificate,
                advisories=outcome.advisories,
            )
        )

    decoded = decoder.decode(raw, clock).flat_map(
        lambda outcome: _apply_expiry_policy(outcome, expiry_policy)
    )
    return await decoded.flat_map_async(resolve_and_assemble)
