from __future__ import annotations

import logging
from dataclasses import dataclass, field

from ..extensions import db
from ..models import Asset, PostDay
from .blob_store import BlobStore


logger = logging.getLogger(__name__)


@dataclass
class ReconcileReport:
    orphaned_blobs: list[str] = field(default_factory=list)
    unreferenced_assets: list[tuple[str, str]] = field(default_factory=list)
    purged_blobs: list[str] = field(default_factory=list)


def find_orphaned_blobs(store: BlobStore) -> list[str]:
    """Stored objects under assets/ that no Asset record describes."""
    recorded = {path for (path,) in db.session.query(Asset.storage_path).all()}
    return [path for path in store.list_paths("assets/") if path not in recorded]


def find_unreferenced_assets() -> list[tuple[str, str]]:
    """(workspace_id, asset_id) of Assets that no PostDay currently points at."""
    referenced = {
        (workspace_id, asset_id)
        for workspace_id, asset_id in db.session.query(PostDay.workspace_id, PostDay.image_asset_id)
        .filter(PostDay.image_asset_id.isnot(None))
        .all()
    }
    rows = db.session.query(Asset.workspace_id, Asset.id).order_by(Asset.workspace_id, Asset.created_at).all()
    return [(ws, aid) for ws, aid in rows if (ws, aid) not in referenced]


def reconcile(store: BlobStore, purge: bool = False) -> ReconcileReport:
    report = ReconcileReport(
        orphaned_blobs=find_orphaned_blobs(store),
        unreferenced_assets=find_unreferenced_assets(),
    )
    if purge:
        # Asset records are immutable; only blobs without a record are removed
        for path in report.orphaned_blobs:
            store.delete(path)
            report.purged_blobs.append(path)
            logger.info("purged orphaned blob", extra={"path": path})
    return report
