from __future__ import annotations

from dataclasses import dataclass
from urllib.parse import urlsplit

from ..errors import PipelineError, invalid_argument


MAX_ID_LENGTH = 128


@dataclass(frozen=True)
class ImportImageRequest:
    workspace_id: str
    date_id: str
    image_url: str


def _check_id(value: str, field: str) -> PipelineError | None:
    # Ids become storage path segments and record keys
    if value in (".", "..") or "/" in value or "\\" in value:
        return invalid_argument(f"{field} must not contain path separators")
    if len(value) > MAX_ID_LENGTH:
        return invalid_argument(f"{field} must be at most {MAX_ID_LENGTH} characters")
    if any(ord(ch) < 32 or ord(ch) == 127 for ch in value):
        return invalid_argument(f"{field} must not contain control characters")
    return None


def parse_import_request(payload) -> ImportImageRequest | PipelineError:
    """Build the typed request from a decoded JSON payload.

    Only the shape is checked here; the URL syntax is checked by
    ``validate_image_url`` once the caller's membership is known.
    """
    if not isinstance(payload, dict):
        return invalid_argument("Request body must be a JSON object")

    values = {}
    for field in ("workspaceId", "dateId", "imageUrl"):
        value = payload.get(field)
        if not value or not isinstance(value, str):
            return invalid_argument(f"{field} is required")
        values[field] = value

    for field in ("workspaceId", "dateId"):
        problem = _check_id(values[field], field)
        if problem:
            return problem

    return ImportImageRequest(
        workspace_id=values["workspaceId"],
        date_id=values["dateId"],
        image_url=values["imageUrl"],
    )


def validate_image_url(image_url: str) -> str | PipelineError:
    """Accept only absolute http/https URLs with a host."""
    error = invalid_argument(f'Invalid imageUrl format: "{image_url}". Must be a valid http/https URL.')
    if image_url != image_url.strip() or any(ch.isspace() for ch in image_url):
        return error
    try:
        parts = urlsplit(image_url)
        # .port raises ValueError on out-of-range or non-numeric ports
        parts.port
    except ValueError:
        return error
    if parts.scheme not in ("http", "https") or not parts.hostname:
        return error
    return image_url
