"""
Flask application factory and server entry-point.
"""

import os
import sys
import traceback

from flask import Flask
from flask_cors import CORS

from office_access.config import DEFAULT_TIMEZONE, get_env
from office_access.database import init_engine
from office_access.api.routes import register_routes


def create_app(engine=None, admin_api_key=None):
    """Build and return a fully configured Flask application."""
    app = Flask(__name__)
    CORS(app)

    app.config["ADMIN_API_KEY"] = admin_api_key or get_env("ACCESS_ADMIN_API_KEY")

    # ── Initialise shared resources ──────────────────────────────────
    if engine is None:
        try:
            print("[init] Initializing database connection...")
            engine = init_engine()
            print("[init] ✓ API server ready")
        except Exception as e:
            print(f"[FATAL] Failed to initialize: {e}", file=sys.stderr)
            traceback.print_exc()
            sys.exit(1)

    # ── Register routes ──────────────────────────────────────────────
    register_routes(app, engine)

    return app


def main():
    """Run the development server."""
    print("=" * 60)
    print("Office Access – Decision Service")
    print("=" * 60)

    app = create_app()

    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "8000"))
    debug = os.getenv("FLASK_ENV") == "development"

    print(f"\n[server] Starting Flask API on {host}:{port}")
    print(f"[server] Debug mode: {debug}")
    print(f"[server] Login restriction default time zone: {DEFAULT_TIMEZONE}")
    print("\nAPI Endpoints:")
    print(f"  - POST   http://{host}:{port}/api/login/authorize")
    print(f"  - POST   http://{host}:{port}/api/scope/resolve")
    print(f"  - POST   http://{host}:{port}/api/users/validate")
    print(f"  - POST   http://{host}:{port}/api/users")
    print(f"  - GET    http://{host}:{port}/api/users")
    print(f"  - PUT    http://{host}:{port}/api/users/<user_id>")
    print(f"  - DELETE http://{host}:{port}/api/users/<user_id>")
    print(f"  - POST   http://{host}:{port}/api/users/<user_id>/deactivate")
    print(f"  - GET    http://{host}:{port}/api/users/<user_id>/permissions")
    print(f"  - GET    http://{host}:{port}/api/report")
    print(f"  - GET    http://{host}:{port}/health")
    print("\n" + "=" * 60)

    app.run(host=host, port=port, debug=debug, threaded=True)


if __name__ == "__main__":
    main()
