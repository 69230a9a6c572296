from datetime import datetime
from flask_login import UserMixin
from .extensions import db, login_manager


IMPORT_ROLES = ("owner", "admin", "editor")


class User(db.Model, UserMixin):
    __tablename__ = "users"
    # Opaque principal id issued by the identity provider
    id = db.Column(db.String(128), primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=True)
    name = db.Column(db.String(120), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    memberships = db.relationship("Member", backref="user", lazy=True)


@login_manager.user_loader
def load_user(user_id):
    return db.session.get(User, user_id)


class Workspace(db.Model):
    __tablename__ = "workspaces"
    id = db.Column(db.String(128), primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    owner_uid = db.Column(db.String(128), db.ForeignKey("users.id"), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    members = db.relationship("Member", backref="workspace", lazy=True)
    post_days = db.relationship("PostDay", backref="workspace", lazy=True)
    assets = db.relationship("Asset", backref="workspace", lazy=True)


class Member(db.Model):
    __tablename__ = "workspace_members"
    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(db.String(128), db.ForeignKey("workspaces.id"), nullable=False)
    user_id = db.Column(db.String(128), db.ForeignKey("users.id"), nullable=False)
    role = db.Column(db.String(50), default="viewer", nullable=False)  # owner|admin|editor|viewer
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("workspace_id", "user_id", name="uq_workspace_members_workspace_user"),
    )

    @property
    def can_import_images(self) -> bool:
        return self.role in IMPORT_ROLES


class PostDay(db.Model):
    __tablename__ = "post_days"
    id = db.Column(db.Integer, primary_key=True)
    workspace_id = db.Column(db.String(128), db.ForeignKey("workspaces.id"), nullable=False)
    date_id = db.Column(db.String(128), nullable=False)
    status = db.Column(db.String(20), default="input", nullable=False)  # input|generated|edited|sent|error
    starter_text = db.Column(db.Text, nullable=True)
    image_asset_id = db.Column(db.String(16), nullable=True)
    image_url = db.Column(db.Text, nullable=True)
    original_image_url = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("workspace_id", "date_id", name="uq_post_days_workspace_date"),
    )


class Asset(db.Model):
    """Immutable record of one imported blob."""

    __tablename__ = "assets"
    workspace_id = db.Column(db.String(128), db.ForeignKey("workspaces.id"), primary_key=True)
    id = db.Column(db.String(16), primary_key=True)
    date_id = db.Column(db.String(128), nullable=False)
    storage_path = db.Column(db.String(512), unique=True, nullable=False)
    download_url = db.Column(db.Text, nullable=False)
    download_token = db.Column(db.String(64), nullable=False)
    original_url = db.Column(db.Text, nullable=False)
    content_type = db.Column(db.String(50), nullable=False)
    size = db.Column(db.Integer, nullable=False)
    file_name = db.Column(db.String(64), nullable=False)
    width = db.Column(db.Integer, nullable=True)
    height = db.Column(db.Integer, nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    created_by = db.Column(db.String(128), nullable=False)

    __table_args__ = (
        db.Index("ix_assets_workspace_date", "workspace_id", "date_id"),
    )


class StoredObject(db.Model):
    __tablename__ = "stored_objects"
    id = db.Column(db.Integer, primary_key=True)
    bucket = db.Column(db.String(255), nullable=False)
    path = db.Column(db.String(512), nullable=False)
    content_type = db.Column(db.String(50), nullable=False)
    cache_control = db.Column(db.String(120), nullable=True)
    custom_metadata = db.Column(db.JSON, nullable=True)
    size = db.Column(db.Integer, nullable=False)
    data = db.Column(db.LargeBinary, nullable=False)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)

    __table_args__ = (
        db.UniqueConstraint("bucket", "path", name="uq_stored_objects_bucket_path"),
    )
