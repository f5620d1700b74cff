"""
Archive assembler — PassDocument → signed .pkpass bytes.

Steps:
  1. Serialize pass.json canonically (fixed key order, compact separators)
  2. SHA-1 every member: pass.json and the four variant images
  3. Build manifest.json from those digests
  4. Ask the external signer for a detached signature over the pass hash
  5. Zip everything in the wallet platform's member order

The zip is deterministic: fixed member order and fixed timestamps, so the
same document, assets, and signature always give the same bytes. If the
signer fails, no archive is produced.
"""

from __future__ import annotations

import hashlib
import io
import json
import zipfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from importlib import resources
from typing import Any

import structlog
from railway.result import Result

from covidpass.domain.colors import ImageVariant
from covidpass.domain.models import PassDocument, SignatureRequest, SignedArchive
from covidpass.domain.ports import PassSigner

log = structlog.get_logger()

PASS_JSON = "pass.json"
MANIFEST_JSON = "manifest.json"
SIGNATURE = "signature"
IMAGE_MEMBERS = ("icon.png", "icon@2x.png", "logo.png", "logo@2x.png")

# Earliest timestamp a zip header can carry.
_FIXED_DATE_TIME = (1980, 1, 1, 0, 0, 0)


def canonical_json(document: Mapping[str, Any]) -> bytes:
    """Compact UTF-8 JSON keeping the mapping's own key order."""
    return json.dumps(document, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def sha1_hex(data: bytes) -> str:
    return hashlib.sha1(data).hexdigest()


@dataclass(frozen=True, slots=True)
class PassAssets:
    """The four icon/logo images for each variant, keyed by member name."""

    images: Mapping[ImageVariant, Mapping[str, bytes]] = field(repr=False)

    @classmethod
    def packaged(cls) -> PassAssets:
        """Load the images shipped in covidpass/assets/{dark,light}/."""
        root = resources.files("covidpass") / "assets"
        images = {
            variant: {name: (root / variant.value / name).read_bytes() for name in IMAGE_MEMBERS}
            for variant in ImageVariant
        }
        return cls(images=images)

    def for_variant(self, variant: ImageVariant) -> Mapping[str, bytes]:
        return self.images[variant]


def build_manifest(members: Mapping[str, bytes]) -> dict[str, str]:
    """member path → lowercase hex SHA-1 of its bytes."""
    return {path: sha1_hex(data) for path, data in members.items()}


def write_zip(members: Mapping[str, bytes]) -> bytes:
    """Deflated zip of `members` in iteration order with fixed timestamps."""
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path, data in members.items():
            info = zipfile.ZipInfo(path, date_time=_FIXED_DATE_TIME)
            info.compress_type = zipfile.ZIP_DEFLATED
            info.external_attr = 0o644 << 16
            archive.writestr(info, data)
    return buffer.getvalue()


class PassArchiveAssembler:
    """
    Assemble and sign a .pkpass archive.

    The signer is a trust boundary: one request per assembly, never retried
    here. Its failure is returned as-is (SIGNATURE_REQUEST_FAILED).
    """

    def __init__(self, signer: PassSigner, assets: PassAssets) -> None:
        self._signer = signer
        self._assets = assets

    async def assemble(self, document: PassDocument) -> Result[SignedArchive]:
        pass_json = canonical_json(document.to_dict())
        variant = document.image_variant

        members: dict[str, bytes] = {PASS_JSON: pass_json}
        members.update(self._assets.for_variant(variant))
        manifest = build_manifest(members)
        pass_hash = manifest[PASS_JSON]

        request = SignatureRequest(
            pass_hash=pass_hash,
            use_dark_variant=variant is ImageVariant.DARK,
        )
        log.info("archive.signing", variant=variant.value, members=len(members))

        signed = await self._signer.sign(request)
        return signed.map(
            lambda signature: self._package(document, members, manifest, signature, pass_hash)
        )

    def _package(
        self,
        document: PassDocument,
        members: dict[str, bytes],
        manifest: dict[str, str],
        signature: bytes,
        pass_hash: str,
    ) -> SignedArchive:
        content = write_zip(
            {**members, MANIFEST_JSON: canonical_json(manifest), SIGNATURE: signature}
        )
        log.info("archive.assembled", size_bytes=len(content))
        return SignedArchive(
            content=content,
            manifest=manifest,
            pass_hash=pass_hash,
            serial_number=document.serial_number,
            image_variant=document.image_variant,
        )
