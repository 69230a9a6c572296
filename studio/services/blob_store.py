"""Blob storage backends for imported assets.

Objects are addressed by ``bucket`` + ``path`` and carry a content type, a
cache-control directive and free-form string metadata (where the capability
token lives, under ``firebaseStorageDownloadTokens``).
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from urllib.parse import quote

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PipelineError, internal
from ..extensions import db
from ..models import StoredObject


logger = logging.getLogger(__name__)

TOKENS_METADATA_KEY = "firebaseStorageDownloadTokens"
METADATA_SUFFIX = ".metadata.json"


def build_download_url(host: str, bucket_name: str, storage_path: str, download_token: str) -> str:
    # Same characters as JavaScript's encodeURIComponent leaves alone
    encoded_path = quote(storage_path, safe="!~*'()")
    return f"https://{host}/v0/b/{bucket_name}/o/{encoded_path}?alt=media&token={download_token}"


@dataclass
class StoredBlob:
    path: str
    data: bytes
    content_type: str
    cache_control: str | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def download_tokens(self) -> list[str]:
        raw = self.metadata.get(TOKENS_METADATA_KEY) or ""
        return [t.strip() for t in raw.split(",") if t.strip()]


class BlobStore:
    """Interface shared by the storage backends.

    Objects are write-once: ``save`` raises if ``path`` is already taken, so
    an identifier collision can never replace another asset's bytes or token.
    """

    def __init__(self, bucket_name: str):
        self.bucket_name = bucket_name

    def save(self, path: str, data: bytes, *, content_type: str, cache_control: str | None, metadata: dict) -> None:
        raise NotImplementedError

    def load(self, path: str) -> StoredBlob | None:
        raise NotImplementedError

    def list_paths(self, prefix: str = "") -> list[str]:
        raise NotImplementedError

    def delete(self, path: str) -> None:
        raise NotImplementedError

    def upload(self, path: str, data: bytes, *, content_type: str, cache_control: str | None, metadata: dict) -> None | PipelineError:
        """``save`` with storage failures turned into an Internal pipeline error."""
        try:
            self.save(path, data, content_type=content_type, cache_control=cache_control, metadata=metadata)
        except (OSError, ValueError, SQLAlchemyError) as exc:
            logger.error("blob upload failed", extra={"stage": "upload", "path": path, "error": str(exc)})
            return internal(f"Failed to upload image to storage: {exc}")
        return None


class DatabaseBlobStore(BlobStore):
    def save(self, path, data, *, content_type, cache_control, metadata):
        # Insert only: the unique (bucket, path) constraint rejects a second write
        obj = StoredObject(
            bucket=self.bucket_name,
            path=path,
            content_type=content_type,
            cache_control=cache_control,
            custom_metadata=dict(metadata),
            size=len(data),
            data=data,
        )
        db.session.add(obj)
        try:
            db.session.commit()
        except SQLAlchemyError:
            db.session.rollback()
            raise

    def load(self, path):
        obj = StoredObject.query.filter_by(bucket=self.bucket_name, path=path).first()
        if obj is None:
            return None
        return StoredBlob(
            path=obj.path,
            data=obj.data,
            content_type=obj.content_type,
            cache_control=obj.cache_control,
            metadata=dict(obj.custom_metadata or {}),
        )

    def list_paths(self, prefix=""):
        rows = (
            db.session.query(StoredObject.path)
            .filter(StoredObject.bucket == self.bucket_name, StoredObject.path.startswith(prefix, autoescape=True))
            .order_by(StoredObject.path.asc())
            .all()
        )
        return [row.path for row in rows]

    def delete(self, path):
        StoredObject.query.filter_by(bucket=self.bucket_name, path=path).delete()
        db.session.commit()


class FilesystemBlobStore(BlobStore):
    def __init__(self, bucket_name: str, root_dir: str):
        super().__init__(bucket_name)
        self.root = os.path.abspath(os.path.join(root_dir, bucket_name))

    def _full_path(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, path))
        if os.path.commonpath([full, self.root]) != self.root or full == self.root:
            raise ValueError(f"Object path escapes the bucket: {path!r}")
        return full

    @staticmethod
    def _write_atomic(target: str, payload: bytes) -> None:
        fd, tmp_path = tempfile.mkstemp(dir=os.path.dirname(target), prefix=".upload-")
        try:
            with os.fdopen(fd, "wb") as fh:
                fh.write(payload)
            os.replace(tmp_path, target)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def save(self, path, data, *, content_type, cache_control, metadata):
        target = self._full_path(path)
        if os.path.exists(target) or os.path.exists(target + METADATA_SUFFIX):
            raise FileExistsError(f"Object already exists: {path}")
        os.makedirs(os.path.dirname(target), exist_ok=True)
        sidecar = json.dumps(
            {"contentType": content_type, "cacheControl": cache_control, "metadata": dict(metadata)},
            sort_keys=True,
        ).encode("utf-8")
        # Sidecar first: a blob without its sidecar is never visible to load()
        self._write_atomic(target + METADATA_SUFFIX, sidecar)
        try:
            self._write_atomic(target, data)
        except OSError:
            os.unlink(target + METADATA_SUFFIX)
            raise

    def load(self, path):
        try:
            target = self._full_path(path)
        except ValueError:
            return None
        if not os.path.isfile(target) or not os.path.isfile(target + METADATA_SUFFIX):
            return None
        with open(target + METADATA_SUFFIX, "rb") as fh:
            meta = json.load(fh)
        with open(target, "rb") as fh:
            data = fh.read()
        return StoredBlob(
            path=path,
            data=data,
            content_type=meta.get("contentType") or "application/octet-stream",
            cache_control=meta.get("cacheControl"),
            metadata=meta.get("metadata") or {},
        )

    def list_paths(self, prefix=""):
        paths = []
        for dirpath, _dirnames, filenames in os.walk(self.root):
            for name in filenames:
                if name.endswith(METADATA_SUFFIX) or name.startswith(".upload-"):
                    continue
                rel = os.path.relpath(os.path.join(dirpath, name), self.root).replace(os.sep, "/")
                if rel.startswith(prefix):
                    paths.append(rel)
        return sorted(paths)

    def delete(self, path):
        target = self._full_path(path)
        for candidate in (target, target + METADATA_SUFFIX):
            if os.path.exists(candidate):
                os.unlink(candidate)


def create_blob_store(config) -> BlobStore:
    backend = config.get("STORAGE_BACKEND", "database")
    bucket = config["STORAGE_BUCKET"]
    if backend == "database":
        return DatabaseBlobStore(bucket)
    if backend == "filesystem":
        return FilesystemBlobStore(bucket, config.get("UPLOADS_DIR", "./uploads"))
    raise RuntimeError(f"Unknown STORAGE_BACKEND: {backend!r}")


def init_blob_store(app) -> BlobStore:
    store = create_blob_store(app.config)
    app.extensions["blob_store"] = store
    return store


def get_blob_store() -> BlobStore:
    return current_app.extensions["blob_store"]
