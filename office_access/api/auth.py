"""
API-key guard for the administrator endpoints.
"""

import hmac
from functools import wraps

from flask import current_app, jsonify, request


def api_key_required(f):
    """Decorator that rejects requests without a matching X-API-Key header."""
    @wraps(f)
    def decorated(*args, **kwargs):
        supplied = request.headers.get("X-API-Key", "")
        if not supplied:
            return jsonify({"error": "API key is missing"}), 401

        expected = current_app.config["ADMIN_API_KEY"]
        if not hmac.compare_digest(supplied.encode(), expected.encode()):
            return jsonify({"error": "Invalid API key"}), 401

        return f(*args, **kwargs)

    return decorated
