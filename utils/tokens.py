import datetime
import logging

import jwt
from flask import current_app, g

logger = logging.getLogger(__name__)


def _secret_key():
    return current_app.config["SECRET_KEY"]


def get_jwt_token(user_data, expires_in=datetime.timedelta(hours=24)):
    """Generate JWT token with user payload"""
    if not user_data:
        raise ValueError("User data must be provided to generate JWT token")

    expiration = datetime.datetime.now(datetime.timezone.utc) + expires_in
    payload = {"exp": expiration, **user_data}
    return jwt.encode(payload, _secret_key(), algorithm="HS256")


def decode_jwt(token):
    """Decode and validate JWT token and store user in `g`."""
    try:
        payload = jwt.decode(token, _secret_key(), algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        logger.info("Token expired")
        return None
    except jwt.InvalidTokenError:
        logger.info("Invalid token provided")
        return None
    g.user = payload
    return payload
