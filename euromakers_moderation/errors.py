from __future__ import annotations

from typing import Any, Mapping


class ModerationError(Exception):
    """Base for every fatal or caught error raised by the pipeline."""

    code = "moderation_error"

    def __init__(self, message: str, *, context: Mapping[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = dict(context or {})

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "error_code": self.code,
            "error_message": self.message,
            "error_context": self.context,
        }


class PayloadValidationError(ModerationError, ValueError):
    code = "payload_invalid"


class UnsafeUrlError(ModerationError):
    code = "unsafe_url"


class TooManyRedirectsError(ModerationError):
    code = "too_many_redirects"


class FetchTimeoutError(ModerationError):
    code = "fetch_timeout"


class LogoError(ModerationError):
    code = "logo_invalid"


class PathSafetyError(ModerationError):
    code = "unsafe_path"


class CatalogValidationError(ModerationError):
    code = "catalog_invalid"
