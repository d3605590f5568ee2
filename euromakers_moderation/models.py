from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .text import is_http_url

Decision = Literal["auto-merge", "manual-review", "reject"]

SUBMISSION_TYPE = "software-submission"
PLACEHOLDER_LOGO = "/images/placeholder.svg"


class CamelModel(BaseModel):
    # Hand-off files use the web application's camelCase keys.
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class UploadedLogo(CamelModel):
    mime_type: str
    data_base64: str
    file_name: str | None = None


class SubmissionPayload(CamelModel):
    """Submission as parsed out of the moderation issue.

    Only the fields the scorer cannot default are required; shape and size
    rules are enforced earlier by the issue parser.
    """

    # The parser measures str(value), so numbers are accepted as text here too.
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        coerce_numbers_to_str=True,
    )

    submission_type: str | None = None
    submitted_at: str | None = None
    id: str | None = None
    name: str
    website: str
    logo_url: str | None = None
    # Older payloads carried the logo URL under "logo".
    logo: str | None = None
    # Kept loose: a malformed upload is dropped by the scorer, never fatal.
    uploaded_logo: Any = None
    country: str
    category: str
    description: str
    long_description: str
    features: list[str]
    evidence_urls: list[str]
    submitter_email_masked: str | None = None


class NormalizedEntry(CamelModel):
    id: str
    name: str
    description: str
    category: str
    country: str
    logo: str = PLACEHOLDER_LOGO
    website: str
    long_description: str
    features: list[str] = Field(default_factory=list)


class ScoreBreakdown(CamelModel):
    schema_validity: int = Field(0, ge=0, le=20)
    website_reachability: int = Field(0, ge=0, le=20)
    evidence_reachability: int = Field(0, ge=0, le=15)
    european_origin: int = Field(0, ge=0, le=15)
    duplicate_domain: int = Field(0, ge=0, le=10)
    content_quality: int = Field(0, ge=0, le=10)
    spam_heuristics: int = Field(0, ge=0, le=10)

    def total(self) -> int:
        return sum(self.model_dump().values())


class ModerationResult(CamelModel):
    score: int
    decision: Decision
    reasons: list[str] = Field(default_factory=list)
    breakdown: ScoreBreakdown
    normalized_category: str
    submitted_logo_url: str | None = None
    submitted_uploaded_logo: UploadedLogo | None = None
    normalized_entry: NormalizedEntry
    target_path: str | None = None
    generated_assets: list[str] | None = None


class SoftwareRecord(CamelModel):
    """A published catalog file as the website reads it."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore", strict=True)

    id: str = Field(min_length=1)
    name: str = Field(min_length=1)
    description: str = Field(min_length=10)
    country: str = Field(min_length=1)
    logo: str
    website: str
    long_description: str = Field(min_length=50)
    features: list[str] = Field(min_length=1)
    is_featured: bool | None = None
    feature_reason: str | None = None
    feature_priority: float | None = Field(None, ge=1, le=10)

    @field_validator("logo")
    @classmethod
    def _logo_under_images(cls, value: str) -> str:
        if not value.startswith("/images/"):
            raise ValueError("Logo path should start with /images/")
        return value

    @field_validator("website")
    @classmethod
    def _website_is_url(cls, value: str) -> str:
        if not is_http_url(value):
            raise ValueError("Website must be a valid URL")
        return value


class ExistingSoftware(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    website: str
    hostname: str
