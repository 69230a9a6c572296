from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user
from flask_wtf.csrf import generate_csrf

from ..errors import PipelineError
from ..extensions import csrf, limiter
from ..services.cancellation import ClientDisconnectMonitor
from ..services.identity import bearer_token
from ..services.import_service import get_import_service


api_bp = Blueprint("api", __name__, url_prefix="/api")


@api_bp.route("/import-image-from-url", methods=["POST"])
@csrf.exempt
@limiter.limit(lambda: current_app.config["IMPORT_RATELIMIT"])
def import_image_from_url():
    """
    Import the image at ``imageUrl`` into the workspace and point the
    ``dateId`` post day at it.

    Body: {"workspaceId": ..., "dateId": ..., "imageUrl": ...}

    Session-cookie callers must send the X-CSRFToken header; bearer-token
    callers carry no ambient credentials and skip the CSRF check.
    """
    if current_app.config.get("WTF_CSRF_ENABLED", True) and bearer_token(request) is None:
        csrf.protect()

    payload = request.get_json(silent=True)
    monitor = ClientDisconnectMonitor(request.environ, interval=current_app.config["IMPORT_DISCONNECT_POLL_SECONDS"])
    with monitor as cancel_event:
        outcome = get_import_service().import_from_url(current_user, payload, cancel_event=cancel_event)
    if isinstance(outcome, PipelineError):
        return jsonify(outcome.to_dict()), outcome.kind.http_status
    return jsonify(outcome.to_dict())


@api_bp.route("/csrf-token")
def csrf_token():
    # JSON clients echo this back in the X-CSRFToken header
    return jsonify({"csrfToken": generate_csrf()})
