from datetime import date, timedelta
from .extensions import db
from .models import User, Workspace, Member, PostDay


DEMO_WORKSPACE = "demo-workspace"


def run_seed(days: int = 7):
    """Create a demo workspace with one member per role and a week of post days."""
    db.create_all()

    users = {
        "owner": ("demo-owner", "owner@demo.com", "Owner"),
        "editor": ("demo-editor", "editor@demo.com", "Editor"),
        "viewer": ("demo-viewer", "viewer@demo.com", "Viewer"),
    }
    for uid, email, name in users.values():
        if not db.session.get(User, uid):
            db.session.add(User(id=uid, email=email, name=name))
    db.session.flush()

    ws = db.session.get(Workspace, DEMO_WORKSPACE)
    if not ws:
        ws = Workspace(id=DEMO_WORKSPACE, name="Demo Workspace", owner_uid=users["owner"][0])
        db.session.add(ws)
        db.session.flush()

    for role, (uid, _, _) in users.items():
        if not Member.query.filter_by(workspace_id=ws.id, user_id=uid).first():
            db.session.add(Member(workspace_id=ws.id, user_id=uid, role=role))

    start = date.today()
    for offset in range(days):
        date_id = (start + timedelta(days=offset)).isoformat()
        if not PostDay.query.filter_by(workspace_id=ws.id, date_id=date_id).first():
            db.session.add(PostDay(workspace_id=ws.id, date_id=date_id))

    db.session.commit()
    return ws
