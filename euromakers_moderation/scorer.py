"""Trust scoring for submitted catalog entries.

The score is the sum of seven independent heuristics. Each heuristic is a pure
function of the normalized submission, the reachability probe results and the
existing-catalog index, and returns its points plus the reasons it wants to
record. Network access happens only through the ``is_reachable`` callable.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Iterable, NamedTuple

import httpx

from .config import ModerationSettings
from .handoff import read_model, write_model
from .models import (
    Decision,
    ExistingSoftware,
    ModerationResult,
    NormalizedEntry,
    ScoreBreakdown,
    SubmissionPayload,
    UploadedLogo,
)
from .safe_fetch import Resolver, build_client, check_url_reachable, resolve_host
from .text import (
    build_safe_target_path,
    extract_hostname,
    is_http_url,
    is_slug,
    normalize_whitespace,
    slugify,
    top_level_domain,
)

logger = logging.getLogger(__name__)

AUTO_MERGE_THRESHOLD = 90
MANUAL_REVIEW_THRESHOLD = 70

EUROPEAN_COUNTRIES = frozenset({
    "albania",
    "andorra",
    "armenia",
    "austria",
    "azerbaijan",
    "belarus",
    "belgium",
    "bosnia and herzegovina",
    "bulgaria",
    "croatia",
    "cyprus",
    "czech republic",
    "denmark",
    "estonia",
    "finland",
    "france",
    "georgia",
    "germany",
    "greece",
    "hungary",
    "iceland",
    "ireland",
    "italy",
    "kosovo",
    "latvia",
    "liechtenstein",
    "lithuania",
    "luxembourg",
    "malta",
    "moldova",
    "monaco",
    "montenegro",
    "netherlands",
    "north macedonia",
    "norway",
    "poland",
    "portugal",
    "romania",
    "san marino",
    "serbia",
    "slovakia",
    "slovenia",
    "spain",
    "sweden",
    "switzerland",
    "ukraine",
    "united kingdom",
    "vatican city",
    "multiple eu countries",
    "eu",
    "european union",
})

ALLOWED_CATEGORIES = frozenset({
    "artificial-intelligence",
    "cloud",
    "marketing",
    "productivity",
    "communication",
    "design",
    "developer-tools",
    "entertainment",
    "finance",
    "office",
    "personal-finances",
    "search-engine",
    "security",
    "web-analytics",
    "web-browsers",
})

EU_TLDS = frozenset({
    "at", "be", "bg", "hr", "cy", "cz", "dk", "ee", "fi", "fr", "de",
    "gr", "hu", "ie", "it", "lv", "lt", "lu", "mt", "nl", "pl", "pt",
    "ro", "sk", "si", "es", "se", "eu", "ch", "no", "is", "uk",
})

SPAM_KEYWORDS = (
    "casino",
    "betting",
    "viagra",
    "porn",
    "adult",
    "crypto giveaway",
    "earn money fast",
    "double your money",
    "loan guarantee",
    "hot singles",
)

ALLOWED_LOGO_MIME_TYPES = frozenset({
    "image/png",
    "image/jpeg",
    "image/jpg",
    "image/webp",
    "image/svg+xml",
    "image/gif",
    "image/x-icon",
    "image/vnd.microsoft.icon",
})
MAX_LOGO_UPLOAD_BASE64_LENGTH = 30000
MAX_SCHEMA_FEATURE_LENGTH = 50

_BASE64_RE = re.compile(r"^[A-Za-z0-9+/=]+$")
_COMPANY_EVIDENCE_RE = re.compile(r"about|company|team|imprint|legal", re.IGNORECASE)
_REPEATED_CHAR_RE = re.compile(r"(.)\1{4,}")
_CAPS_RUN_RE = re.compile(r"[A-Z]{5,}")

REASON_INVALID_LOGO_URL = "Submitted logo URL was invalid; placeholder logo will be used."
REASON_INVALID_UPLOAD = "Uploaded logo file was invalid; placeholder logo will be used."
REASON_SCHEMA_INCOMPLETE = "Schema quality checks are incomplete."
REASON_WEBSITE_UNREACHABLE = "Website could not be reached during moderation checks."
REASON_EVIDENCE_UNREACHABLE = "One or more evidence URLs were unreachable."
REASON_NOT_EUROPEAN = "Country is not in the European allowlist."
REASON_DUPLICATE_ID = "Software ID already exists in the directory."
REASON_DUPLICATE_HOST = "Website domain already exists in the directory."
REASON_WEAK_CONTENT = "Content quality signals are weak for automatic merge."
REASON_SPAM = "Spam keyword patterns were detected."
REASON_MANUAL_REVIEW = "Submission requires manual reviewer approval."
REASON_ESSENTIAL_FAILED = "Submission failed one or more required schema checks."
REASON_BELOW_THRESHOLD = "Submission did not meet moderation thresholds."


class ComponentScore(NamedTuple):
    points: int
    reasons: list[str]


@dataclass
class NormalizedSubmission:
    entry: NormalizedEntry
    evidence_urls: list[str]
    target_path: str | None
    logo_url: str = ""
    uploaded_logo: UploadedLogo | None = None
    reasons: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class Reachability:
    website: bool
    evidence: tuple[bool, ...]


def _js_round(value: float) -> int:
    # Half-up; round() rounds halves to even.
    return int(value + 0.5)


def normalize_logo_url(value: Any) -> str:
    normalized = normalize_whitespace(value)
    return normalized if normalized and is_http_url(normalized) else ""


def normalize_uploaded_logo(value: Any) -> UploadedLogo | None:
    if not isinstance(value, dict):
        return None

    mime_type = normalize_whitespace(value.get("mimeType")).lower()
    data = normalize_whitespace(value.get("dataBase64"))
    file_name = normalize_whitespace(value.get("fileName"))

    if not mime_type or not data:
        return None
    if mime_type not in ALLOWED_LOGO_MIME_TYPES:
        return None
    if len(data) > MAX_LOGO_UPLOAD_BASE64_LENGTH or not _BASE64_RE.fullmatch(data):
        return None

    return UploadedLogo(mime_type=mime_type, data_base64=data, file_name=file_name or None)


def normalize_submission(payload: SubmissionPayload) -> NormalizedSubmission:
    category = slugify(payload.category)
    entry = NormalizedEntry(
        id=slugify(payload.id or payload.name),
        name=normalize_whitespace(payload.name),
        description=normalize_whitespace(payload.description),
        category=category,
        country=normalize_whitespace(payload.country),
        website=normalize_whitespace(payload.website),
        long_description=normalize_whitespace(payload.long_description),
        features=[f for f in (normalize_whitespace(x) for x in payload.features) if f],
    )

    reasons: list[str] = []
    submitted_logo = payload.logo_url or payload.logo
    logo_url = normalize_logo_url(submitted_logo)
    if submitted_logo and not logo_url:
        reasons.append(REASON_INVALID_LOGO_URL)

    uploaded_logo = normalize_uploaded_logo(payload.uploaded_logo)
    if payload.uploaded_logo and uploaded_logo is None:
        reasons.append(REASON_INVALID_UPLOAD)

    return NormalizedSubmission(
        entry=entry,
        evidence_urls=[u for u in (normalize_whitespace(x) for x in payload.evidence_urls) if u],
        target_path=build_safe_target_path(category, entry.id),
        logo_url=logo_url,
        uploaded_logo=uploaded_logo,
        reasons=reasons,
    )


def _iter_json_files(directory: Path) -> Iterable[Path]:
    for path in sorted(directory.rglob("*.json")):
        if path.is_file():
            yield path


def load_existing_software(directory: str | Path) -> list[ExistingSoftware]:
    root = Path(directory)
    if not root.is_dir():
        logger.warning("Software directory %s not found; duplicate checks see an empty catalog", root)
        return []

    existing: list[ExistingSoftware] = []
    for path in _iter_json_files(root):
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.debug("Skipping unreadable catalog file %s: %s", path, exc)
            continue
        if not isinstance(data, dict):
            continue
        website = normalize_whitespace(data.get("website"))
        existing.append(ExistingSoftware(
            id=normalize_whitespace(data.get("id")).lower(),
            website=website,
            hostname=extract_hostname(website) if website else "",
        ))
    return existing


def probe_reachability(sub: NormalizedSubmission, is_reachable: Callable[[str], bool]) -> Reachability:
    website = is_reachable(sub.entry.website)
    # Evidence URLs are probed one at a time, in submission order.
    evidence = tuple(is_reachable(url) for url in sub.evidence_urls)
    return Reachability(website=website, evidence=evidence)


def is_duplicate_id(sub: NormalizedSubmission, existing: list[ExistingSoftware]) -> bool:
    return bool(sub.entry.id) and any(item.id == sub.entry.id for item in existing)


def schema_checks(sub: NormalizedSubmission) -> list[bool]:
    entry = sub.entry
    return [
        bool(entry.id) and is_slug(entry.id),
        len(entry.name) >= 2,
        10 <= len(entry.description) <= 250,
        50 <= len(entry.long_description) <= 5000,
        2 <= len(entry.features) <= 8,
        all(len(f) <= MAX_SCHEMA_FEATURE_LENGTH for f in entry.features),
        is_http_url(entry.website),
        1 <= len(sub.evidence_urls) <= 3,
        all(is_http_url(u) for u in sub.evidence_urls),
        entry.category in ALLOWED_CATEGORIES,
        len(entry.country) > 0,
        sub.target_path is not None,
    ]


def essential_checks(sub: NormalizedSubmission, existing: list[ExistingSoftware]) -> list[bool]:
    """Checks whose failure rejects the submission whatever it scores.

    A failed schema_checks entry only costs points.
    """
    entry = sub.entry
    return [
        bool(entry.id) and is_slug(entry.id),
        entry.category in ALLOWED_CATEGORIES,
        len(entry.name) >= 2,
        is_http_url(entry.website),
        1 <= len(sub.evidence_urls) <= 3 and all(is_http_url(u) for u in sub.evidence_urls),
        sub.target_path is not None,
        not is_duplicate_id(sub, existing),
    ]


def score_schema_validity(sub: NormalizedSubmission) -> ComponentScore:
    checks = schema_checks(sub)
    points = _js_round(sum(checks) / len(checks) * 20)
    return ComponentScore(points, [REASON_SCHEMA_INCOMPLETE] if points < 20 else [])


def score_website_reachability(reach: Reachability) -> ComponentScore:
    if reach.website:
        return ComponentScore(20, [])
    return ComponentScore(0, [REASON_WEBSITE_UNREACHABLE])


def score_evidence_reachability(reach: Reachability) -> ComponentScore:
    if not reach.evidence:
        return ComponentScore(0, [REASON_EVIDENCE_UNREACHABLE])
    points = _js_round(sum(reach.evidence) / len(reach.evidence) * 15)
    return ComponentScore(points, [REASON_EVIDENCE_UNREACHABLE] if points < 15 else [])


def score_european_origin(sub: NormalizedSubmission) -> ComponentScore:
    points = 0
    reasons: list[str] = []
    if sub.entry.country.lower() in EUROPEAN_COUNTRIES:
        points += 10
    else:
        reasons.append(REASON_NOT_EUROPEAN)

    tlds = [top_level_domain(sub.entry.website)] + [top_level_domain(u) for u in sub.evidence_urls]
    if any(tld in EU_TLDS for tld in tlds):
        points += 5
    return ComponentScore(points, reasons)


def score_duplicate_domain(sub: NormalizedSubmission, existing: list[ExistingSoftware]) -> ComponentScore:
    if is_duplicate_id(sub, existing):
        return ComponentScore(0, [REASON_DUPLICATE_ID])
    hostname = extract_hostname(sub.entry.website)
    if hostname and any(item.hostname == hostname for item in existing):
        return ComponentScore(3, [REASON_DUPLICATE_HOST])
    return ComponentScore(10, [])


def score_content_quality(sub: NormalizedSubmission) -> ComponentScore:
    entry = sub.entry
    points = 10
    if len(entry.description) < 30:
        points -= 2
    if len(entry.long_description) < 140:
        points -= 2
    if len(entry.features) < 3:
        points -= 2
    if len({f.lower() for f in entry.features}) != len(entry.features):
        points -= 2
    if not any(_COMPANY_EVIDENCE_RE.search(u) for u in sub.evidence_urls):
        points -= 2
    points = max(0, points)
    return ComponentScore(points, [REASON_WEAK_CONTENT] if points < 8 else [])


def score_spam_heuristics(sub: NormalizedSubmission) -> ComponentScore:
    entry = sub.entry
    combined = " ".join([entry.name, entry.description, entry.long_description, " ".join(entry.features)])
    lowered = combined.lower()

    points = 10
    reasons: list[str] = []
    if any(keyword in lowered for keyword in SPAM_KEYWORDS):
        points -= 6
        reasons.append(REASON_SPAM)
    if _REPEATED_CHAR_RE.search(lowered):
        points -= 2
    if lowered.count("!") > 10:
        points -= 1
    # Shouting is only visible before lowercasing.
    if len(_CAPS_RUN_RE.findall(combined)) > 3:
        points -= 1
    return ComponentScore(max(0, points), reasons)


def decide(score: int) -> Decision:
    if score >= AUTO_MERGE_THRESHOLD:
        return "auto-merge"
    if score >= MANUAL_REVIEW_THRESHOLD:
        return "manual-review"
    return "reject"


def score_submission(
    payload: SubmissionPayload,
    existing: list[ExistingSoftware],
    *,
    is_reachable: Callable[[str], bool],
) -> ModerationResult:
    sub = normalize_submission(payload)
    reach = probe_reachability(sub, is_reachable)
    reasons = list(sub.reasons)

    components = {
        "schema_validity": score_schema_validity(sub),
        "website_reachability": score_website_reachability(reach),
        "evidence_reachability": score_evidence_reachability(reach),
        "european_origin": score_european_origin(sub),
        "duplicate_domain": score_duplicate_domain(sub, existing),
        "content_quality": score_content_quality(sub),
        "spam_heuristics": score_spam_heuristics(sub),
    }
    for component in components.values():
        reasons.extend(component.reasons)

    breakdown = ScoreBreakdown(**{name: c.points for name, c in components.items()})
    score = breakdown.total()

    decision = decide(score)
    if decision == "manual-review":
        reasons.append(REASON_MANUAL_REVIEW)

    if not all(essential_checks(sub, existing)):
        decision = "reject"
        if REASON_ESSENTIAL_FAILED not in reasons:
            reasons.append(REASON_ESSENTIAL_FAILED)

    if decision == "reject" and not reasons:
        reasons.append(REASON_BELOW_THRESHOLD)

    return ModerationResult(
        score=score,
        decision=decision,
        reasons=reasons,
        breakdown=breakdown,
        normalized_category=sub.entry.category,
        submitted_logo_url=sub.logo_url or None,
        submitted_uploaded_logo=sub.uploaded_logo,
        normalized_entry=sub.entry,
        target_path=sub.target_path,
    )


def score_file(
    input_file: str | Path,
    output_file: str | Path,
    software_dir: str | Path,
    settings: ModerationSettings,
    *,
    transport: httpx.BaseTransport | None = None,
    resolver: Resolver = resolve_host,
) -> ModerationResult:
    payload = read_model(input_file, SubmissionPayload)
    existing = load_existing_software(software_dir)
    logger.info("Loaded %d existing catalog entries from %s", len(existing), software_dir)

    with build_client(settings.user_agent, transport=transport) as client:
        def is_reachable(url: str) -> bool:
            ok = check_url_reachable(
                url,
                client=client,
                timeout_s=settings.reachability_timeout_s,
                resolver=resolver,
            )
            logger.info("Reachability %s: %s", url, "ok" if ok else "unreachable")
            return ok

        result = score_submission(payload, existing, is_reachable=is_reachable)

    write_model(output_file, result)
    return result
