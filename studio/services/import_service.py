"""Import an image from a remote URL into a workspace's asset store.

Stages run strictly in order and the first ``PipelineError`` ends the
import: identity, request shape, membership, URL syntax, fetch, declared
headers, body, actual size, dimensions, naming, upload, Asset record,
PostDay pointer. The whole import runs inside ``IMPORT_BUDGET_SECONDS``;
the fetch deadline is carved out of it and the budget is checked again
before each write.

Upload, Asset record and PostDay update are separate commits. A failure
after the upload leaves an orphaned blob (or an Asset no PostDay points
to); nothing here cleans that up, see ``reconciliation``.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass

from flask import current_app

from ..errors import ErrorKind, PipelineError, failed_precondition
from . import asset_recorder
from .authorization import authorize_importer, require_principal
from .blob_store import TOKENS_METADATA_KEY, BlobStore, build_download_url
from .content_validation import check_declared, check_downloaded
from .fetcher import Deadline, FetchPolicy, RemoteFetcher
from .identifiers import name_asset
from .image_service import read_dimensions
from .request_validation import parse_import_request, validate_image_url


logger = logging.getLogger(__name__)

EXTENSION_KEY = "image_import"


@dataclass(frozen=True)
class ImportSettings:
    max_bytes: int
    allowed_types: tuple
    cache_control: str
    storage_host: str
    budget_seconds: float = 60.0

    @classmethod
    def from_config(cls, config) -> "ImportSettings":
        return cls(
            max_bytes=int(config["MAX_IMPORT_MB"]) * 1024 * 1024,
            allowed_types=tuple(config["ALLOWED_IMPORT_TYPES"]),
            cache_control=config["STORAGE_CACHE_CONTROL"],
            storage_host=config["STORAGE_HOST"],
            budget_seconds=float(config["IMPORT_BUDGET_SECONDS"]),
        )


@dataclass(frozen=True)
class ImportResult:
    asset_id: str
    download_url: str
    storage_path: str

    def to_dict(self) -> dict:
        return {"success": True, "assetId": self.asset_id, "downloadUrl": self.download_url}


def _cancelled(cancel_event) -> bool:
    return cancel_event is not None and cancel_event.is_set()


class ImageImportService:
    def __init__(
        self,
        fetcher: RemoteFetcher,
        blob_store: BlobStore,
        settings: ImportSettings,
        clock=time.time_ns,
        monotonic=time.monotonic,
    ):
        self.fetcher = fetcher
        self.blob_store = blob_store
        self.settings = settings
        self._clock = clock
        self._monotonic = monotonic

    def import_from_url(self, user, payload, cancel_event: threading.Event | None = None) -> ImportResult | PipelineError:
        outcome = self._run(user, payload, cancel_event)
        if isinstance(outcome, PipelineError):
            level = logging.ERROR if outcome.kind is ErrorKind.INTERNAL else logging.WARNING
            logger.log(level, "image import failed", extra={"kind": outcome.kind.value, "reason": outcome.message})
        else:
            logger.info("image imported", extra={"asset_id": outcome.asset_id, "path": outcome.storage_path})
        return outcome

    def _over_budget(self, budget: Deadline, cancel_event, stage: str) -> PipelineError | None:
        if _cancelled(cancel_event):
            return failed_precondition("Import cancelled")
        if budget.expired:
            logger.warning("import budget exhausted", extra={"stage": stage, "budget": budget.seconds})
            return failed_precondition(f"Import budget of {budget.seconds:g}s exceeded before {stage}")
        return None

    def _run(self, user, payload, cancel_event) -> ImportResult | PipelineError:
        budget = Deadline(self.settings.budget_seconds, clock=self._monotonic)

        uid = require_principal(user)
        if isinstance(uid, PipelineError):
            return uid

        import_request = parse_import_request(payload)
        if isinstance(import_request, PipelineError):
            return import_request

        member = authorize_importer(uid, import_request.workspace_id)
        if isinstance(member, PipelineError):
            return member

        image_url = validate_image_url(import_request.image_url)
        if isinstance(image_url, PipelineError):
            return image_url

        fetched = self._fetch(image_url, budget, cancel_event)
        if isinstance(fetched, PipelineError):
            return fetched
        content_type, data = fetched

        # Decoding may fail on a valid-looking body; do it before anything is written
        dimensions = read_dimensions(data) or (None, None)

        stopped = self._over_budget(budget, cancel_event, "upload")
        if stopped is not None:
            return stopped

        name = name_asset(image_url, content_type, self._clock())
        storage_path = name.storage_path(import_request.workspace_id, import_request.date_id)
        uploaded = self.blob_store.upload(
            storage_path,
            data,
            content_type=content_type,
            cache_control=self.settings.cache_control,
            metadata={
                TOKENS_METADATA_KEY: name.download_token,
                "originalUrl": image_url,
                "uploadedBy": uid,
            },
        )
        if isinstance(uploaded, PipelineError):
            return uploaded

        stopped = self._over_budget(budget, cancel_event, "recording the asset")
        if stopped is not None:
            return stopped

        download_url = build_download_url(
            self.settings.storage_host, self.blob_store.bucket_name, storage_path, name.download_token
        )
        asset = asset_recorder.create_asset(
            id=name.identifier,
            workspace_id=import_request.workspace_id,
            date_id=import_request.date_id,
            storage_path=storage_path,
            download_url=download_url,
            download_token=name.download_token,
            original_url=image_url,
            content_type=content_type,
            size=len(data),
            file_name=name.file_name,
            width=dimensions[0],
            height=dimensions[1],
            created_by=uid,
        )
        if isinstance(asset, PipelineError):
            return asset

        pointed = asset_recorder.point_post_day(asset)
        if isinstance(pointed, PipelineError):
            return pointed

        return ImportResult(asset_id=name.identifier, download_url=download_url, storage_path=storage_path)

    def _fetch(self, image_url: str, budget: Deadline, cancel_event) -> tuple[str, bytes] | PipelineError:
        deadline = self.fetcher.start_deadline(budget)
        response = self.fetcher.open(image_url, deadline)
        if isinstance(response, PipelineError):
            return response
        watchdog = self.fetcher.watch(response, deadline, cancel_event)
        try:
            declared = check_declared(response.headers, self.settings.allowed_types, self.settings.max_bytes)
            if isinstance(declared, PipelineError):
                return declared
            body = self.fetcher.read_body(response, self.settings.max_bytes, deadline, cancel_event)
            if isinstance(body, PipelineError):
                return body
        finally:
            watchdog.stop()
            response.close()

        data = check_downloaded(body, self.settings.max_bytes)
        if isinstance(data, PipelineError):
            return data
        return declared.content_type, data


def init_import_service(app, blob_store: BlobStore, session=None) -> ImageImportService:
    fetcher = RemoteFetcher(FetchPolicy.from_config(app.config), session=session)
    service = ImageImportService(fetcher, blob_store, ImportSettings.from_config(app.config))
    app.extensions[EXTENSION_KEY] = service
    return service


def get_import_service() -> ImageImportService:
    return current_app.extensions[EXTENSION_KEY]
