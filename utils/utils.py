import logging
from functools import wraps

from flask import request, jsonify, g

from utils.tokens import decode_jwt

logger = logging.getLogger(__name__)


def _request_token():
    token = request.cookies.get("access_token")
    if token:
        return token
    header = request.headers.get("Authorization", "")
    if header.startswith("Bearer "):
        return header[len("Bearer "):].strip()
    return None


def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _request_token()
        if not token:
            logger.debug("No access token on request")
            return jsonify({"error": "Unauthorized"}), 401

        decoded = decode_jwt(token)
        if not decoded or decoded.get("user_id") is None:
            return jsonify({"error": "Invalid token"}), 401

        g.user = decoded
        return f(*args, **kwargs)

    return decorated_function
