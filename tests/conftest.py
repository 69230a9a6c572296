"""Shared fixtures: an app on in-memory SQLite and a fake HTTP session."""

from __future__ import annotations

import io

import pytest
import requests
from flask import g
from flask.testing import FlaskClient
from requests.structures import CaseInsensitiveDict

from studio import create_app
from studio.extensions import db
from studio.models import Member, PostDay, User, Workspace
from studio.services.import_service import get_import_service


WORKSPACE_ID = "ws1"
DATE_ID = "2024-06-01"
IMAGE_URL = "https://example.com/a.png"


class CountingBody(io.BytesIO):
    """Response body that records how many times it was read."""

    def __init__(self, data: bytes):
        super().__init__(data)
        self.reads = 0

    def read(self, *args):
        self.reads += 1
        return super().read(*args)


class BrokenBody(io.RawIOBase):
    """Response body whose stream fails mid-download."""

    def __init__(self, first_chunk: bytes):
        self._first = first_chunk
        self.reads = 0

    def read(self, size=-1):
        self.reads += 1
        if self.reads == 1:
            return self._first
        raise ConnectionResetError("connection reset by peer")


def make_response(status=200, body=b"", headers=None, reason="OK", url=IMAGE_URL, raw=None):
    response = requests.Response()
    response.status_code = status
    response.reason = reason
    response.headers = CaseInsensitiveDict(headers or {})
    response.raw = raw if raw is not None else CountingBody(body)
    response.url = url
    return response


class FakeHTTPSession:
    """Stands in for requests.Session; maps URLs to canned responses or errors."""

    def __init__(self):
        self.routes = {}
        self.calls = []
        self.max_redirects = 30
        self.closed = False

    def add(self, url, response=None, error=None):
        self.routes[url] = (response, error)
        return response

    def add_image(self, url=IMAGE_URL, body=b"\x89PNG\r\n\x1a\n" + b"\0" * 64, content_type="image/png", headers=None):
        all_headers = {"Content-Type": content_type, "Content-Length": str(len(body))}
        all_headers.update(headers or {})
        return self.add(url, make_response(body=body, headers=all_headers))

    def get(self, url, **kwargs):
        self.calls.append((url, kwargs))
        response, error = self.routes[url]
        if error is not None:
            raise error
        return response

    def close(self):
        self.closed = True


@pytest.fixture
def app(tmp_path):
    app = create_app(
        {
            "TESTING": True,
            "SECRET_KEY": "test-secret",
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "WTF_CSRF_ENABLED": False,
            "RATELIMIT_ENABLED": False,
            "STORAGE_BACKEND": "database",
            "STORAGE_BUCKET": "test-bucket",
            "UPLOADS_DIR": str(tmp_path / "uploads"),
        }
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


class FreshIdentityClient(FlaskClient):
    """Test client whose requests do not share Flask-Login's cached user.

    The ``app`` fixture keeps one app context pushed for the whole test, so
    ``g`` would otherwise carry ``_login_user`` from one request to the next.
    """

    def open(self, *args, **kwargs):
        g.pop("_login_user", None)
        return super().open(*args, **kwargs)


@pytest.fixture
def client(app):
    app.test_client_class = FreshIdentityClient
    return app.test_client()


@pytest.fixture
def fake_http(app):
    session = FakeHTTPSession()
    get_import_service().fetcher.session = session
    return session


@pytest.fixture
def service(app):
    return get_import_service()


@pytest.fixture
def users(app):
    """One user per role in ws1, plus one outsider; ws1 has a post day for DATE_ID."""
    roles = ["owner", "admin", "editor", "viewer"]
    created = {}
    for role in roles + ["outsider"]:
        user = User(id=f"uid-{role}", email=f"{role}@example.com", name=role.title())
        db.session.add(user)
        created[role] = user
    db.session.add(Workspace(id=WORKSPACE_ID, name="Workspace One", owner_uid="uid-owner"))
    db.session.flush()
    for role in roles:
        db.session.add(Member(workspace_id=WORKSPACE_ID, user_id=f"uid-{role}", role=role))
    db.session.add(PostDay(workspace_id=WORKSPACE_ID, date_id=DATE_ID))
    db.session.commit()
    return created


@pytest.fixture
def login(client):
    def _login(uid: str):
        with client.session_transaction() as sess:
            sess["_user_id"] = uid
            sess["_fresh"] = True

    return _login


def import_payload(image_url=IMAGE_URL, workspace_id=WORKSPACE_ID, date_id=DATE_ID):
    return {"workspaceId": workspace_id, "dateId": date_id, "imageUrl": image_url}
