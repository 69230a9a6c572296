from __future__ import annotations

from dataclasses import dataclass

from ..errors import PipelineError, invalid_argument


_FRIENDLY_REJECTIONS = {
    "text/html": "URL returned an HTML page, not an image",
    "application/json": "URL returned JSON, not an image",
}


@dataclass(frozen=True)
class DeclaredContent:
    content_type: str
    content_length: int | None


def _megabytes(size: int) -> str:
    return f"{size / (1024 * 1024):.2f}"


def _too_large(size: int, limit: int) -> PipelineError:
    return invalid_argument(f"Image too large: {_megabytes(size)}MB (max {limit // (1024 * 1024)}MB)")


def _parse_length(raw: str | None) -> int | None:
    if raw is None:
        return None
    try:
        return int(raw.strip())
    except ValueError:
        return None


def check_declared(headers, allowed_types, limit: int) -> DeclaredContent | PipelineError:
    """Validate the response headers before any of the body is read."""
    raw_type = headers.get("content-type") or ""
    content_type = raw_type.split(";", 1)[0].strip().lower()
    if not content_type:
        return invalid_argument("No content-type header. Cannot verify this is an image.")
    if content_type not in allowed_types:
        return invalid_argument(_FRIENDLY_REJECTIONS.get(content_type, f"Not an image ({content_type})"))

    content_length = _parse_length(headers.get("content-length"))
    if content_length is not None and content_length > limit:
        return _too_large(content_length, limit)
    return DeclaredContent(content_type=content_type, content_length=content_length)


def check_downloaded(data: bytes, limit: int) -> bytes | PipelineError:
    """Validate the actual byte count; catches missing or understated content-length."""
    if len(data) == 0:
        return invalid_argument("Downloaded file is empty (0 bytes)")
    if len(data) > limit:
        # The fetcher stops reading one byte past the limit, so the real size is unknown
        return invalid_argument(f"Image too large: more than {limit // (1024 * 1024)}MB downloaded (max {limit // (1024 * 1024)}MB)")
    return data
