# Overview: Request decorators for API routes.

import hmac
from functools import wraps

from flask import current_app, jsonify, request


def require_auth(f):
    """
    Require the shared API bearer token.

    When API_TOKEN is not configured the API is open (local development,
    tests). Otherwise returns 401 if:
    - No Authorization header, or not a Bearer header
    - The token does not match API_TOKEN
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("API_TOKEN")
        if not expected:
            return f(*args, **kwargs)

        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        if not hmac.compare_digest(token.encode(), expected.encode()):
            return jsonify({"error": "Invalid or expired token"}), 401

        return f(*args, **kwargs)

    return decorated_function
