"""
Configuration — typed, validated settings loaded from environment/.env.

Uses pydantic-settings to:
  - Load from environment variables (12-factor app)
  - Fall back to .env file
  - Validate types and constraints at startup

Only AppSettings is a BaseSettings instance. Sub-settings are plain BaseModel
classes populated via env_nested_delimiter="__": SIGNER__URL maps to
signer.url, PASS_IDENTITY__TEAM_IDENTIFIER to pass_identity.team_identifier,
CAPTURE__MAX_UPLOAD_BYTES to capture.max_upload_bytes.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from covidpass.adapters.dcc_decoder import DEFAULT_MAX_PAYLOAD_BYTES
from covidpass.adapters.http_client import DEFAULT_VALUE_SETS_URL
from covidpass.adapters.qr_extractor import (
    DEFAULT_MAX_PIXELS,
    DEFAULT_MAX_UPLOAD_BYTES,
    DEFAULT_RENDER_SCALE,
)
from covidpass.domain.models import PassIdentity
from covidpass.pipeline import ExpiryPolicy

_ENV_FILE = Path(__file__).parent.parent.parent / ".env"


class SignerSettings(BaseModel):
    """Remote signing service that countersigns every pass."""

    url: str = Field(description="Signer base URL; requests go to {url}/sign")
    timeout_seconds: float = Field(default=30, gt=0)

    @field_validator("url")
    @classmethod
    def validate_url(cls, value: str) -> str:
        stripped = value.strip().rstrip("/")
        if not stripped.startswith(("http://", "https://")):
            raise ValueError(f"Signer URL must be http(s), got {value!r}")
        return stripped


class ValueSetSettings(BaseModel):
    """Public source of the DCC value-set catalogs."""

    base_url: str = Field(default=DEFAULT_VALUE_SETS_URL)


class PassIdentitySettings(BaseModel):
    """Wallet-pass program identity written into every pass.json."""

    pass_type_identifier: str = Field(min_length=1)
    team_identifier: str = Field(min_length=1)
    organization_name: str = "CovidPass"
    description: str = "CovidPass"
    logo_text: str = "CovidPass"

    def to_identity(self) -> PassIdentity:
        return PassIdentity(
            pass_type_identifier=self.pass_type_identifier,
            team_identifier=self.team_identifier,
            organization_name=self.organization_name,
            description=self.description,
            logo_text=self.logo_text,
        )


class DecoderSettings(BaseModel):
    """
    Decoder limits and policy.

    max_payload_bytes caps the inflated CBOR payload.
    expiry_policy: "advisory" builds expired certificates with a warning,
    "reject" refuses them.
    """

    max_payload_bytes: int = Field(default=DEFAULT_MAX_PAYLOAD_BYTES, ge=1024)
    expiry_policy: ExpiryPolicy = ExpiryPolicy.ADVISORY


class CaptureSettings(BaseModel):
    """
    Limits on uploaded images and PDFs.

    max_upload_bytes caps the request body or file read from disk;
    max_image_pixels caps every decoded frame and rendered PDF page.
    """

    max_upload_bytes: int = Field(default=DEFAULT_MAX_UPLOAD_BYTES, ge=1024)
    max_image_pixels: int = Field(default=DEFAULT_MAX_PIXELS, ge=1_000_000)
    render_scale: float = Field(default=DEFAULT_RENDER_SCALE, gt=0, le=8)


class AppSettings(BaseSettings):
    """
    Root application settings — aggregates all sub-settings.

    Load order (highest priority first):
      1. Environment variables
      2. .env file
      3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    signer: SignerSettings
    pass_identity: PassIdentitySettings
    value_sets: ValueSetSettings = Field(default_factory=lambda: ValueSetSettings())
    decoder: DecoderSettings = Field(default_factory=lambda: DecoderSettings())
    capture: CaptureSettings = Field(default_factory=lambda: CaptureSettings())

    http_timeout_seconds: int = Field(default=30, ge=1)
    log_level: str = Field(default="INFO")
    retry_attempts: int = Field(default=1, ge=1, le=10)
