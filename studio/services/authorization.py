from __future__ import annotations

from ..errors import PipelineError, permission_denied, unauthenticated
from ..models import Member


def require_principal(user) -> str | PipelineError:
    """Return the caller's uid, or Unauthenticated when there is none."""
    if user is None or not getattr(user, "is_authenticated", False):
        return unauthenticated("Must be authenticated")
    return user.get_id()


def authorize_importer(uid: str, workspace_id: str) -> Member | PipelineError:
    member = Member.query.filter_by(workspace_id=workspace_id, user_id=uid).first()
    if not member:
        return permission_denied("Not a member of this workspace")
    if not member.can_import_images:
        return permission_denied("Insufficient permissions to import images")
    return member
