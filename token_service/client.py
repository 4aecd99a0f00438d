import json
import os
from datetime import datetime, timezone

import jwt
import requests
import urllib3


# --- Client settings ---
AUTH_SERVER_URL = os.environ.get("TOKEN_SERVICE_AUTH_URL", "http://localhost:5001")
RESOURCE_SERVER_URL = os.environ.get("TOKEN_SERVICE_API_URL", "http://localhost:5000")
CLIENT_ID = os.environ.get("TOKEN_SERVICE_CLIENT_ID", "service-client-1")
CLIENT_SECRET = os.environ.get("TOKEN_SERVICE_CLIENT_SECRET", "secret123")
VERIFY_TLS = os.environ.get("TOKEN_SERVICE_VERIFY_TLS", "1") != "0"

if not VERIFY_TLS:
    # Local demos against self-signed certificates only
    urllib3.disable_warnings(urllib3.exceptions.InsecureRequestWarning)


class TokenRequestFailed(Exception):
    def __init__(self, status_code, error):
        super().__init__(f"{status_code}: {error}")
        self.status_code = status_code
        self.error = error


def get_token(client_id, client_secret, scope, auth_url=AUTH_SERVER_URL, session=requests):
    """Request an access token with the client credentials grant."""
    print(f"\n---> Requesting a token for {client_id} (scope: {scope})")

    response = session.post(
        f"{auth_url}/oauth/token",
        data={
            "grant_type": "client_credentials",
            "client_id": client_id,
            "client_secret": client_secret,
            "scope": scope,
        },
        verify=VERIFY_TLS,
    )
    if response.status_code != 200:
        error = response.json().get("error", "unknown_error")
        print(f"Token request failed: {response.status_code} {error}")
        raise TokenRequestFailed(response.status_code, error)
    return response.json()


def inspect_token(access_token):
    """Decode a token for display. The signature is NOT checked here."""
    header = jwt.get_unverified_header(access_token)
    claims = jwt.decode(access_token, options={"verify_signature": False})
    return header, claims


def call_api(endpoint, token=None, method="GET", data=None, api_url=RESOURCE_SERVER_URL,
             session=requests):
    """Call the resource server, optionally with a bearer token."""
    headers = {"Authorization": f"Bearer {token}"} if token else {}
    url = f"{api_url}{endpoint}"

    if method == "GET":
        response = session.get(url, headers=headers, verify=VERIFY_TLS)
    else:
        response = session.post(url, headers=headers, json=data, verify=VERIFY_TLS)

    print(f"[{response.status_code}] {method} {endpoint}")
    if "WWW-Authenticate" in response.headers:
        print(f"WWW-Authenticate: {response.headers['WWW-Authenticate']}")
    try:
        print(json.dumps(response.json(), indent=2, ensure_ascii=False))
    except ValueError:
        pass
    return response


def main():
    # --- Flow 1: normal client credentials flow ---
    print("--- Client credentials flow ---")
    token = get_token(CLIENT_ID, CLIENT_SECRET, "read:data write:data")
    print(f"Token type: {token['token_type']}, expires in {token['expires_in']}s")
    print(f"Granted scope: {token['scope']}")

    header, claims = inspect_token(token["access_token"])
    print(f"Header: {header}")
    for name, value in claims.items():
        print(f"  {name}: {value}")
    expires_at = datetime.fromtimestamp(claims["exp"], tz=timezone.utc)
    remaining = expires_at - datetime.now(timezone.utc)
    print(f"Token expires in {remaining.total_seconds() / 60:.1f} minutes")

    call_api("/api/data", token["access_token"])
    call_api(
        "/api/data",
        token["access_token"],
        method="POST",
        data={"id": 4, "name": "Item 4", "value": 400},
    )

    # --- Flow 2: requests that must be refused ---
    print("\n\n--- Refused requests ---")
    # No token at all: 401
    call_api("/api/data")
    # Read-only token used for a write: 403
    read_only = get_token(CLIENT_ID, CLIENT_SECRET, "read:data")
    call_api("/api/data", read_only["access_token"], method="POST", data={"id": 5})
    # Wrong secret: invalid_client
    try:
        get_token(CLIENT_ID, "not-the-secret", "read:data")
    except TokenRequestFailed as e:
        print(f"Expected failure: {e.error}")


if __name__ == "__main__":
    main()
