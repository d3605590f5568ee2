"""Store the submitted logo next to the site's other images.

A broken or unsafe logo never blocks publication: every failure falls back to
the placeholder image and is only logged.
"""
from __future__ import annotations

import base64
import binascii
import logging
import posixpath
import re
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

import httpx

from .config import ModerationSettings
from .errors import LogoError, ModerationError, PathSafetyError
from .handoff import read_model, write_model
from .models import PLACEHOLDER_LOGO, ModerationResult, UploadedLogo
from .safe_fetch import Resolver, build_client, open_with_safe_redirects, resolve_host
from .text import is_slug

logger = logging.getLogger(__name__)

DEFAULT_MAX_BYTES = 4 * 1024 * 1024

MIME_EXTENSION_MAP = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/jpg": "jpg",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "image/x-icon": "ico",
    "image/vnd.microsoft.icon": "ico",
    "image/gif": "gif",
}

ALLOWED_EXTENSIONS = frozenset({"png", "jpg", "jpeg", "webp", "svg", "ico", "gif"})

_REMOTE_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


def is_remote_url(value: str | None) -> bool:
    return bool(_REMOTE_URL_RE.match((value or "").strip()))


def normalize_extension(ext: str | None) -> str:
    cleaned = (ext or "").lower()
    if cleaned.startswith("."):
        cleaned = cleaned[1:]
    return "jpg" if cleaned == "jpeg" else cleaned


def extension_from_url(url: str) -> str:
    try:
        path = urlsplit(url).path
    except ValueError:
        return ""
    return normalize_extension(PurePosixPath(path).suffix)


def extension_from_content_type(content_type: str | None) -> str:
    mime = (content_type or "").split(";", 1)[0].strip().lower()
    return normalize_extension(MIME_EXTENSION_MAP.get(mime, ""))


def _asset_path(images_dir: Path, file_name: str) -> str:
    if not images_dir.is_absolute():
        return posixpath.normpath(posixpath.join(images_dir.as_posix(), file_name))
    try:
        return (images_dir / file_name).relative_to(Path.cwd()).as_posix()
    except ValueError:
        return (images_dir / file_name).as_posix()


def persist_logo(
    result: ModerationResult,
    *,
    images_dir: str | Path,
    extension: str,
    data: bytes,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> str:
    """Write ``data`` as the entry's icon and point the entry at it.

    Returns the generated asset path, which is also recorded in
    ``result.generated_assets``.
    """
    entry = result.normalized_entry
    if not is_slug(entry.id):
        raise PathSafetyError("Invalid entry id for logo output path", context={"id": entry.id})
    if extension not in ALLOWED_EXTENSIONS:
        raise LogoError(f"Unsupported logo image extension: {extension or 'unknown'}")
    if not data:
        raise LogoError("Downloaded file is empty")
    if len(data) > max_bytes:
        raise LogoError(f"Downloaded file exceeds max size ({max_bytes} bytes)")

    file_name = f"{entry.id}_icon.{extension}"
    images_root = Path(images_dir).resolve()
    output_path = (images_root / file_name).resolve()
    if output_path.parent != images_root:
        raise PathSafetyError("Refusing to write logo outside images directory", context={"path": str(output_path)})

    images_root.mkdir(parents=True, exist_ok=True)
    output_path.write_bytes(data)

    entry.logo = f"/images/{file_name}"
    generated = _asset_path(Path(images_dir), file_name)
    if result.generated_assets is None:
        result.generated_assets = []
    if generated not in result.generated_assets:
        result.generated_assets.append(generated)
    return generated


def decode_uploaded_logo(upload: UploadedLogo) -> tuple[str, bytes]:
    extension = normalize_extension(MIME_EXTENSION_MAP.get(upload.mime_type.lower(), ""))
    encoded = upload.data_base64.strip()
    # Browsers may drop the trailing padding.
    encoded += "=" * (-len(encoded) % 4)
    try:
        data = base64.b64decode(encoded)
    except (binascii.Error, ValueError) as exc:
        raise LogoError(f"Uploaded logo is not valid base64: {exc}") from exc
    return extension, data


def download_logo(
    url: str,
    *,
    client: httpx.Client,
    max_bytes: int,
    timeout_s: float,
    resolver: Resolver = resolve_host,
) -> tuple[str, bytes]:
    response = open_with_safe_redirects(
        client,
        url,
        method="GET",
        timeout_s=timeout_s,
        resolver=resolver,
    )
    try:
        if not response.is_success:
            raise LogoError(f"HTTP {response.status_code}")

        extension = extension_from_content_type(response.headers.get("content-type")) or extension_from_url(url)

        chunks: list[bytes] = []
        size = 0
        for chunk in response.iter_bytes():
            size += len(chunk)
            if size > max_bytes:
                raise LogoError(f"Downloaded file exceeds max size ({max_bytes} bytes)")
            chunks.append(chunk)
        return extension, b"".join(chunks)
    finally:
        response.close()


def _use_placeholder(result: ModerationResult, message: str, exc: Exception) -> None:
    result.normalized_entry.logo = PLACEHOLDER_LOGO
    logger.warning("%s; using placeholder logo: %s", message, exc)


def resolve_logo(
    result: ModerationResult,
    *,
    images_dir: str | Path,
    settings: ModerationSettings,
    max_bytes: int = DEFAULT_MAX_BYTES,
    transport: httpx.BaseTransport | None = None,
    resolver: Resolver = resolve_host,
) -> str:
    """Materialize the logo for ``result`` in place; returns a summary line."""
    entry = result.normalized_entry
    upload = result.submitted_uploaded_logo

    if upload is not None and upload.mime_type and upload.data_base64:
        try:
            extension, data = decode_uploaded_logo(upload)
            generated = persist_logo(
                result, images_dir=images_dir, extension=extension, data=data, max_bytes=max_bytes
            )
        except (ModerationError, OSError) as exc:
            _use_placeholder(result, "Uploaded logo processing failed", exc)
            return "Uploaded logo processing failed; using placeholder logo."
        return f"Stored uploaded logo to {generated}"

    submitted = (result.submitted_logo_url or entry.logo or "").strip()
    if not is_remote_url(submitted):
        return "No remote logo URL found. Skipped logo download."

    try:
        with build_client(settings.user_agent, transport=transport) as client:
            extension, data = download_logo(
                submitted,
                client=client,
                max_bytes=max_bytes,
                timeout_s=settings.logo_timeout_s,
                resolver=resolver,
            )
        generated = persist_logo(
            result, images_dir=images_dir, extension=extension, data=data, max_bytes=max_bytes
        )
    except (ModerationError, httpx.HTTPError, httpx.InvalidURL, OSError) as exc:
        _use_placeholder(result, "Logo download failed", exc)
        return "Logo download failed; using placeholder logo."
    return f"Downloaded logo to {generated}"


def resolve_logo_file(
    input_file: str | Path,
    output_file: str | Path,
    *,
    images_dir: str | Path,
    settings: ModerationSettings,
    max_bytes: int = DEFAULT_MAX_BYTES,
    transport: httpx.BaseTransport | None = None,
    resolver: Resolver = resolve_host,
) -> str:
    result = read_model(input_file, ModerationResult)
    if not result.normalized_entry.id:
        raise LogoError("Invalid moderation score input: missing normalizedEntry")

    summary = resolve_logo(
        result,
        images_dir=images_dir,
        settings=settings,
        max_bytes=max_bytes,
        transport=transport,
        resolver=resolver,
    )
    write_model(output_file, result)
    return summary
