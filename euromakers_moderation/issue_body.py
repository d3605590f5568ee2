from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .errors import PayloadValidationError
from .handoff import read_json


def mask_email(email: str) -> str:
    local, _, domain = (email or "").partition("@")
    if not local or not domain:
        return "redacted"
    return f"{local[0]}***@{domain}"


def build_submission_issue_body(payload: dict[str, Any]) -> str:
    """Render the moderation issue for a submission.

    The payload goes into a ``## Payload`` JSON fence; it is kept on one line
    when an uploaded logo makes it large.
    """
    uploaded_logo = payload.get("uploadedLogo")
    if uploaded_logo:
        payload_json = json.dumps(payload, ensure_ascii=False, separators=(",", ":"))
        logo_line = f"provided via upload ({uploaded_logo.get('mimeType')})"
    else:
        payload_json = json.dumps(payload, ensure_ascii=False, indent=2)
        logo_line = payload.get("logoUrl") or "not provided"

    lines = [
        "## New Software Submission",
        "",
        f"- **Name:** {payload.get('name')}",
        f"- **ID:** {payload.get('id')}",
        f"- **Website:** {payload.get('website')}",
        f"- **Logo:** {logo_line}",
        f"- **Country:** {payload.get('country')}",
        f"- **Category:** {payload.get('category')}",
        f"- **Submitter Email:** {payload.get('submitterEmailMasked')}",
        f"- **Submitted At:** {payload.get('submittedAt')}",
        "",
        "## Evidence URLs",
        *(f"- {url}" for url in payload.get("evidenceUrls") or []),
        "",
        "## Payload",
        "```json",
        payload_json,
        "```",
    ]
    return "\n".join(lines)


def render_issue_file(input_file: str | Path, output_file: str | Path) -> str:
    payload = read_json(input_file)
    if not isinstance(payload, dict):
        raise PayloadValidationError("Payload must be a JSON object")
    body = build_submission_issue_body(payload)
    Path(output_file).write_text(body + "\n", encoding="utf-8")
    return body
