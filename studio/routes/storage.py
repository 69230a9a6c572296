import hmac

from flask import Blueprint, Response, abort, jsonify, request

from ..errors import error_body
from ..services.blob_store import get_blob_store


storage_bp = Blueprint("storage", __name__)


@storage_bp.route("/v0/b/<bucket>/o/<path:object_path>")
def serve_object(bucket: str, object_path: str):
    """
    Serve a stored object to anyone holding its download token.

    Same URL shape as the download URLs recorded on assets, so a
    STORAGE_HOST pointing at this app resolves them directly.
    """
    store = get_blob_store()
    if bucket != store.bucket_name:
        abort(404)
    if request.args.get("alt") != "media":
        return jsonify(error_body("invalid-argument", "Only alt=media downloads are supported")), 400

    blob = store.load(object_path)
    if blob is None:
        abort(404)

    token = request.args.get("token") or ""
    if not token or not any(hmac.compare_digest(token, known) for known in blob.download_tokens):
        return jsonify(error_body("permission-denied", "Invalid or missing download token")), 403

    response = Response(blob.data, mimetype=blob.content_type)
    if blob.cache_control:
        response.headers["Cache-Control"] = blob.cache_control
    return response
