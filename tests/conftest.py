from __future__ import annotations

import copy
from typing import Any, Callable

import httpx
import pytest

from euromakers_moderation.config import ModerationSettings
from euromakers_moderation.models import ModerationResult, NormalizedEntry, ScoreBreakdown

PUBLIC_IP = "93.184.216.34"

VALID_PAYLOAD: dict[str, Any] = {
    "submissionType": "software-submission",
    "submittedAt": "2026-10-01T09:30:00.000Z",
    "id": "privacy-tool",
    "name": "Privacy Tool",
    "website": "https://example.com",
    "country": "Germany",
    "category": "security",
    "description": "Encrypted file sharing built and hosted in Germany.",
    "longDescription": (
        "Privacy Tool lets teams share documents with end-to-end encryption. "
        "All servers run in Frankfurt, metadata is minimised and the company "
        "publishes a yearly transparency report for its customers."
    ),
    "features": [
        "End-to-end encryption",
        "Hosted in the EU",
        "Open source clients",
    ],
    "evidenceUrls": [
        "https://example.com/about",
        "https://example.com/press",
    ],
    "submitterEmailMasked": "j***@example.com",
}


@pytest.fixture
def make_payload() -> Callable[..., dict[str, Any]]:
    def _make(**overrides: Any) -> dict[str, Any]:
        payload = copy.deepcopy(VALID_PAYLOAD)
        payload.update(overrides)
        return payload

    return _make


@pytest.fixture
def public_resolver() -> Callable[[str], list[str]]:
    return lambda hostname: [PUBLIC_IP]


@pytest.fixture
def settings() -> ModerationSettings:
    return ModerationSettings(reachability_timeout_s=5, logo_timeout_s=5)


@pytest.fixture
def make_result() -> Callable[..., ModerationResult]:
    def _make(**entry_overrides: Any) -> ModerationResult:
        entry = NormalizedEntry(
            id="privacy-tool",
            name="Privacy Tool",
            description="Encrypted file sharing built and hosted in Germany.",
            category="security",
            country="Germany",
            website="https://example.com",
            long_description=VALID_PAYLOAD["longDescription"],
            features=list(VALID_PAYLOAD["features"]),
        )
        entry = entry.model_copy(update=entry_overrides)
        breakdown = ScoreBreakdown(
            schema_validity=20,
            website_reachability=20,
            evidence_reachability=15,
            european_origin=10,
            duplicate_domain=10,
            content_quality=10,
            spam_heuristics=10,
        )
        return ModerationResult(
            score=breakdown.total(),
            decision="auto-merge",
            reasons=[],
            breakdown=breakdown,
            normalized_category=entry.category,
            normalized_entry=entry,
            target_path=f"data/software/{entry.category}/{entry.id}.json",
        )

    return _make


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it was asked to send."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)


@pytest.fixture
def recording_transport() -> type[RecordingTransport]:
    return RecordingTransport
