from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass


CONTENT_TYPE_TO_EXT = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/webp": "webp",
    "image/gif": "gif",
}

IDENTIFIER_LENGTH = 16


def asset_identifier(image_url: str, timestamp: int) -> str:
    # URL + time, not the bytes: re-importing the same URL yields a new id
    digest = hashlib.sha256((image_url + str(timestamp)).encode("utf-8")).hexdigest()
    return digest[:IDENTIFIER_LENGTH]


def new_download_token() -> str:
    return str(uuid.uuid4())


def extension_for(content_type: str) -> str:
    return CONTENT_TYPE_TO_EXT.get(content_type, "jpg")


@dataclass(frozen=True)
class AssetName:
    identifier: str
    download_token: str
    extension: str

    @property
    def file_name(self) -> str:
        return f"{self.identifier}.{self.extension}"

    def storage_path(self, workspace_id: str, date_id: str) -> str:
        return f"assets/{workspace_id}/{date_id}/{self.file_name}"


def name_asset(image_url: str, content_type: str, timestamp: int) -> AssetName:
    return AssetName(
        identifier=asset_identifier(image_url, timestamp),
        download_token=new_download_token(),
        extension=extension_for(content_type),
    )
