from flask import Flask, abort, jsonify, request

from .clients import ClientRegistry
from .introspection import Introspector
from .issuer import INVALID_REQUEST, TokenIssuer, TokenRequest, TokenRequestError
from .settings import load_settings
from .signing import TokenSigner, load_signing_key
from .validator import TokenValidator


def create_app(settings=None, key=None):
    """Authorization server: token issuance and introspection."""
    app = Flask(__name__)
    if settings is None:
        settings = load_settings(app)
    if key is None:
        key = load_signing_key(settings)

    registry = ClientRegistry(settings.clients)
    issuer = TokenIssuer.from_settings(settings, registry, TokenSigner(key))
    introspector = Introspector(TokenValidator.from_settings(settings, key.verifying_only()))

    @app.errorhandler(TokenRequestError)
    def token_request_error(e):
        headers = {"Cache-Control": "no-store", "Pragma": "no-cache"}
        if e.status_code == 401:
            headers["WWW-Authenticate"] = f'Basic realm="{settings.issuer}"'
        return jsonify(e.to_dict()), e.status_code, headers

    @app.route("/.well-known/oauth-authorization-server")
    def metadata():
        """Authorization server metadata (RFC 8414)"""
        base = request.host_url.rstrip("/")
        document = {
            "issuer": settings.issuer,
            "token_endpoint": f"{base}/oauth/token",
            "introspection_endpoint": f"{base}/oauth/introspect",
            "grant_types_supported": ["client_credentials"],
            "token_endpoint_auth_methods_supported": [
                "client_secret_post",
                "client_secret_basic",
            ],
            "scopes_supported": list(settings.allowed_scopes),
            "response_types_supported": ["token"],
        }
        if not key.is_symmetric:
            document["jwks_uri"] = f"{base}/.well-known/jwks.json"
        return jsonify(document)

    @app.route("/.well-known/jwks.json")
    def jwks():
        jwk = key.public_jwk()
        if jwk is None:
            # Shared secrets are never published.
            abort(404)
        return jsonify({"keys": [jwk]})

    @app.route("/oauth/token", methods=["POST"])
    def issue_token():
        """
        Client credentials grant (RFC 6749 section 4.4)
        Accepts grant_type, client_id, client_secret and scope as a form body.
        """
        if request.form:
            data = request.form
        else:
            data = request.get_json(silent=True)
            if data is None:
                data = {}
            elif not isinstance(data, dict):
                raise TokenRequestError(INVALID_REQUEST)
        auth = request.authorization
        basic = None
        if auth is not None and auth.type == "basic":
            basic = {"username": auth.username, "password": auth.password}

        issued = issuer.issue(TokenRequest.from_form(data, basic_auth=basic))
        app.logger.info(f"Token issued to {issued.claims.client_id} (scope: {issued.scope!r})")

        return jsonify(issued.to_response()), 200, {"Cache-Control": "no-store", "Pragma": "no-cache"}

    @app.route("/oauth/introspect", methods=["POST"])
    def introspect():
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            data = request.form
        return jsonify(introspector.introspect(data.get("token")))

    @app.route("/health")
    def health():
        return jsonify({"status": "healthy"})

    return app


def main():
    # TLS is required outside local development (OAuth 2.1)
    create_app().run(port=5001, debug=True)


if __name__ == "__main__":
    main()
