from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError

from ..errors import PipelineError, internal
from ..extensions import db
from ..models import Asset, PostDay


logger = logging.getLogger(__name__)


def create_asset(**fields) -> Asset | PipelineError:
    """Insert the immutable Asset record. Its blob is already stored."""
    asset = Asset(**fields)
    db.session.add(asset)
    try:
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        # The uploaded blob stays behind without a record
        logger.error(
            "asset record write failed",
            extra={"stage": "record", "workspace_id": fields.get("workspace_id"), "asset_id": fields.get("id"), "error": str(exc)},
        )
        return internal(f"Failed to create asset document: {exc}")
    return asset


def point_post_day(asset: Asset) -> None | PipelineError:
    """Point the asset's PostDay at it: one unconditional UPDATE, last write wins."""
    stmt = (
        update(PostDay)
        .where(PostDay.workspace_id == asset.workspace_id, PostDay.date_id == asset.date_id)
        .values(
            image_asset_id=asset.id,
            image_url=asset.download_url,
            original_image_url=asset.original_url,
            updated_at=datetime.utcnow(),
        )
    )
    try:
        result = db.session.execute(stmt)
        if result.rowcount == 0:
            db.session.rollback()
            return internal(f"Failed to update post_day document: no post day {asset.date_id} in workspace {asset.workspace_id}")
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error(
            "post day update failed",
            extra={"stage": "record", "workspace_id": asset.workspace_id, "date_id": asset.date_id, "error": str(exc)},
        )
        return internal(f"Failed to update post_day document: {exc}")
    return None
