"""Extract and validate the submission payload embedded in a moderation issue.

The issue text is untrusted. Only one fenced JSON block is read from it, and
every field is checked before the payload is handed to the scorer.
"""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any

from .errors import PayloadValidationError
from .handoff import write_json
from .models import SUBMISSION_TYPE
from .text import is_http_url

logger = logging.getLogger(__name__)

MAX_ISSUE_BODY_CHARS = 50000
MAX_PAYLOAD_BLOCK_CHARS = 25000
MAX_TEXT_LENGTH = 5000
MAX_ID_LENGTH = 80
MAX_URL_LENGTH = 300
MAX_FEATURES = 8
MAX_EVIDENCE_URLS = 3
MAX_LOGO_UPLOAD_BASE64_LENGTH = 30000

BASE64_RE = re.compile(r"^[A-Za-z0-9+/=]+$")

_PAYLOAD_SECTION_RE = re.compile(r"## Payload.*?```json\s*(.*?)```", re.IGNORECASE | re.DOTALL)
_ANY_JSON_FENCE_RE = re.compile(r"```json\s*(.*?)```", re.IGNORECASE | re.DOTALL)


def _normalize(value: Any) -> str:
    return "" if value is None else str(value).strip()


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise PayloadValidationError(message)


def _validate_text_field(payload: dict[str, Any], field: str, min_len: int, max_len: int) -> None:
    value = _normalize(payload.get(field))
    _require(len(value) >= min_len, f"{field} must be at least {min_len} characters")
    _require(len(value) <= max_len, f"{field} must be at most {max_len} characters")


def _validate_uploaded_logo(uploaded_logo: Any) -> None:
    _require(isinstance(uploaded_logo, dict), "uploadedLogo must be an object")
    _require(len(_normalize(uploaded_logo.get("mimeType"))) > 0, "uploadedLogo.mimeType is required")

    data = _normalize(uploaded_logo.get("dataBase64"))
    _require(len(data) > 0, "uploadedLogo.dataBase64 is required")
    _require(len(data) <= MAX_LOGO_UPLOAD_BASE64_LENGTH, "uploadedLogo.dataBase64 is too large")
    _require(bool(BASE64_RE.fullmatch(data)), "uploadedLogo.dataBase64 must be base64 encoded")

    if "fileName" in uploaded_logo:
        _require(
            len(_normalize(uploaded_logo.get("fileName"))) <= 120,
            "uploadedLogo.fileName must be at most 120 characters",
        )


def validate_payload(payload: Any) -> None:
    """Raise PayloadValidationError naming the first rule ``payload`` breaks."""
    _require(isinstance(payload, dict), "Payload must be a JSON object")
    submission_type = payload.get("submissionType")
    _require(submission_type == SUBMISSION_TYPE, f"Unsupported submissionType: {submission_type}")

    _validate_text_field(payload, "id", 1, MAX_ID_LENGTH)
    _validate_text_field(payload, "name", 2, 120)
    _validate_text_field(payload, "country", 2, 80)
    _validate_text_field(payload, "category", 2, 80)
    _validate_text_field(payload, "description", 10, 250)
    _validate_text_field(payload, "longDescription", 50, MAX_TEXT_LENGTH)

    website = _normalize(payload.get("website"))
    _require(len(website) <= MAX_URL_LENGTH, f"website must be at most {MAX_URL_LENGTH} characters")
    _require(is_http_url(website), "website must be a valid http/https URL")

    features = payload.get("features")
    _require(isinstance(features, list), "features must be an array")
    _require(len(features) >= 2, "features must contain at least 2 items")
    _require(len(features) <= MAX_FEATURES, f"features must contain at most {MAX_FEATURES} items")
    for feature in features:
        value = _normalize(feature)
        _require(len(value) >= 2, "each feature must be at least 2 characters")
        _require(len(value) <= 80, "each feature must be at most 80 characters")

    evidence_urls = payload.get("evidenceUrls")
    _require(isinstance(evidence_urls, list), "evidenceUrls must be an array")
    _require(len(evidence_urls) >= 1, "evidenceUrls must contain at least 1 URL")
    _require(
        len(evidence_urls) <= MAX_EVIDENCE_URLS,
        f"evidenceUrls must contain at most {MAX_EVIDENCE_URLS} URLs",
    )
    for evidence_url in evidence_urls:
        value = _normalize(evidence_url)
        _require(
            len(value) <= MAX_URL_LENGTH,
            f"each evidence URL must be at most {MAX_URL_LENGTH} characters",
        )
        _require(is_http_url(value), "each evidence URL must be a valid http/https URL")

    if "logoUrl" in payload:
        logo_url = _normalize(payload.get("logoUrl"))
        _require(len(logo_url) <= MAX_URL_LENGTH, f"logoUrl must be at most {MAX_URL_LENGTH} characters")
        if logo_url:
            _require(is_http_url(logo_url), "logoUrl must be a valid http/https URL")

    if "uploadedLogo" in payload:
        _validate_uploaded_logo(payload["uploadedLogo"])

    if "submitterEmailMasked" in payload:
        _validate_text_field(payload, "submitterEmailMasked", 3, 120)
    if "submittedAt" in payload:
        _validate_text_field(payload, "submittedAt", 10, 64)


def extract_payload_block(body: str) -> str:
    if not body:
        raise PayloadValidationError("Issue body is empty")
    if len(body) > MAX_ISSUE_BODY_CHARS:
        raise PayloadValidationError(f"Issue body exceeds {MAX_ISSUE_BODY_CHARS} characters")

    match = _PAYLOAD_SECTION_RE.search(body) or _ANY_JSON_FENCE_RE.search(body)
    if not match or not match.group(1):
        raise PayloadValidationError("No JSON payload block found in issue body")

    block = match.group(1)
    if len(block) > MAX_PAYLOAD_BLOCK_CHARS:
        raise PayloadValidationError(f"Payload block exceeds {MAX_PAYLOAD_BLOCK_CHARS} characters")
    return block


def parse_issue_body(body: str) -> dict[str, Any]:
    block = extract_payload_block(body)
    try:
        payload = json.loads(block.strip())
    except json.JSONDecodeError as exc:
        raise PayloadValidationError(f"Failed to parse issue payload JSON: {exc}") from exc

    validate_payload(payload)
    return payload


def parse_issue_file(body_file: str | Path, output_file: str | Path) -> dict[str, Any]:
    try:
        body = Path(body_file).read_text(encoding="utf-8")
    except UnicodeDecodeError as exc:
        raise PayloadValidationError(f"Issue body is not valid UTF-8: {exc}") from exc
    payload = parse_issue_body(body)
    write_json(output_file, payload)
    logger.info("Validated submission %r", payload.get("id"))
    return payload
