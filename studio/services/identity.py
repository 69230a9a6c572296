"""Resolve the calling user for requests that do not carry a session cookie.

Flask-Login tries the session first and falls back to ``load_user_from_request``:

- ``Authorization: Bearer <token>``: a token minted by ``issue_token`` and
  signed with ``SECRET_KEY`` through itsdangerous, valid for
  ``AUTH_TOKEN_MAX_AGE`` seconds.
- ``AUTH_TRUSTED_HEADER``: when configured, an identity proxy in front of
  the app sets this header to the caller's uid.

Either way the uid must name an existing ``User``; anything else leaves the
request anonymous and the pipeline answers Unauthenticated.
"""

from __future__ import annotations

import logging

from flask import current_app
from itsdangerous import BadSignature, URLSafeTimedSerializer

from ..extensions import db, login_manager
from ..models import User


logger = logging.getLogger(__name__)


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=current_app.config["AUTH_TOKEN_SALT"])


def issue_token(uid: str) -> str:
    return _serializer().dumps({"uid": uid})


def bearer_token(request) -> str | None:
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


def uid_from_token(token: str) -> str | None:
    try:
        data = _serializer().loads(token, max_age=current_app.config["AUTH_TOKEN_MAX_AGE"])
    except BadSignature as exc:
        # SignatureExpired is a BadSignature too
        logger.info("rejected bearer token", extra={"stage": "auth", "error": type(exc).__name__})
        return None
    uid = data.get("uid") if isinstance(data, dict) else None
    return uid if isinstance(uid, str) and uid else None


@login_manager.request_loader
def load_user_from_request(request):
    token = bearer_token(request)
    if token is not None:
        uid = uid_from_token(token)
        return db.session.get(User, uid) if uid else None

    header = current_app.config.get("AUTH_TRUSTED_HEADER")
    if header:
        uid = request.headers.get(header, "").strip()
        if uid:
            return db.session.get(User, uid)
    return None
