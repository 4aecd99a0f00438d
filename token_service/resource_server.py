from datetime import datetime, timezone

from flask import Flask, g, jsonify, request

from .guard import ResourceGuard
from .settings import load_settings
from .signing import load_verification_key
from .validator import TokenValidator


# Operations served by this API and the scope each one requires
OPERATIONS = {
    "list_data": {
        "description": "Read the protected data set.",
        "required_scope": "read:data",
    },
    "create_data": {
        "description": "Add an item to the protected data set.",
        "required_scope": "write:data",
    },
}

SAMPLE_DATA = [
    {"id": 1, "name": "Item 1", "value": 100},
    {"id": 2, "name": "Item 2", "value": 200},
    {"id": 3, "name": "Item 3", "value": 300},
]


def create_app(settings=None, key=None):
    """Resource server: an API protected by scoped bearer tokens."""
    app = Flask(__name__)
    if settings is None:
        settings = load_settings(app)
    if key is None:
        key = load_verification_key(settings)

    validator = TokenValidator.from_settings(settings, key.verifying_only())
    guard = ResourceGuard(validator, realm=settings.audience)

    @app.route("/.well-known/oauth-protected-resource")
    def protected_resource_metadata():
        """Advertise the trusted authorization server (RFC 9728)"""
        return jsonify(
            {
                "resource": settings.audience,
                "authorization_servers": [settings.issuer],
                "bearer_methods_supported": ["header"],
                "scopes_supported": sorted(
                    {op["required_scope"] for op in OPERATIONS.values()}
                ),
            }
        )

    @app.route("/api/data", methods=["GET"])
    @guard.require_scope(OPERATIONS["list_data"]["required_scope"])
    def list_data():
        return jsonify(
            {
                "message": "This is protected data",
                "accessed_by": g.claims.client_id,
                "granted_scope": g.claims.scope,
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "data": SAMPLE_DATA,
            }
        )

    @app.route("/api/data", methods=["POST"])
    @guard.require_scope(OPERATIONS["create_data"]["required_scope"])
    def create_data():
        item = request.get_json(silent=True)
        if not isinstance(item, dict) or item.get("id") is None:
            return jsonify({"error": "Request body must be a JSON object with an id"}), 400

        app.logger.info(f"Item {item['id']} created by {g.claims.client_id}")
        return (
            jsonify(
                {
                    "message": "Data created successfully",
                    "created_by": g.claims.client_id,
                    "item": item,
                }
            ),
            201,
            {"Location": f"/api/data/{item['id']}"},
        )

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy"})

    return app


def main():
    # TLS is required outside local development (OAuth 2.1)
    create_app().run(port=5000, debug=True)


if __name__ == "__main__":
    main()
