"""
Unit tests for signing keys and TokenSigner.
"""

import hashlib
import hmac
import json

import jwt
import pytest
from jwt.utils import base64url_encode

from token_service.settings import ConfigurationError, Settings
from token_service.signing import (
    SigningKey,
    TokenSigner,
    load_signing_key,
    load_verification_key,
)


PAYLOAD = {"client_id": "service-client-1", "scope": "read:data"}


def _segment(data):
    return base64url_encode(json.dumps(data).encode("utf-8")).decode("ascii")


class TestSigningKey:
    """Test cases for SigningKey construction."""

    def test_symmetric_key_needs_32_bytes(self):
        with pytest.raises(ConfigurationError):
            SigningKey.symmetric("too-short")
        key = SigningKey.symmetric("k" * 32)
        assert key.algorithm == "HS256"
        assert key.is_symmetric

    def test_rsa_key_needs_2048_bits(self):
        with pytest.raises(ConfigurationError):
            SigningKey.generate_rsa(key_size=1024)

    def test_rsa_pem_round_trip(self, rsa_key):
        private = SigningKey.from_rsa_pem(private_pem=rsa_key.private_pem())
        public = SigningKey.from_rsa_pem(public_pem=rsa_key.public_pem())

        assert private.can_sign
        assert not public.can_sign
        assert public.public_pem() == rsa_key.public_pem()

    def test_rsa_pem_garbage(self):
        with pytest.raises(ConfigurationError):
            SigningKey.from_rsa_pem(public_pem="-----BEGIN PUBLIC KEY-----\nnope\n")
        with pytest.raises(ConfigurationError):
            SigningKey.from_rsa_pem()

    def test_verifying_only(self, rsa_key, hmac_key):
        assert rsa_key.verifying_only().private is None
        assert hmac_key.verifying_only() is hmac_key

    def test_public_jwk(self, rsa_key, hmac_key):
        jwk = rsa_key.public_jwk()

        assert jwk["kty"] == "RSA"
        assert jwk["alg"] == "RS256"
        assert jwk["use"] == "sig"
        assert "n" in jwk and "e" in jwk
        assert "d" not in jwk
        assert hmac_key.public_jwk() is None


class TestTokenSigner:
    """Test cases for TokenSigner."""

    def test_sign_records_algorithm(self, hmac_key):
        token = TokenSigner(hmac_key).sign(PAYLOAD)

        assert jwt.get_unverified_header(token) == {"alg": "HS256", "typ": "JWT"}

    def test_hmac_signature_is_deterministic(self, hmac_key):
        signer = TokenSigner(hmac_key)

        assert signer.sign(PAYLOAD) == signer.sign(PAYLOAD)

    @pytest.mark.parametrize("key_fixture", ["hmac_key", "rsa_key"])
    def test_sign_and_verify(self, request, key_fixture):
        key = request.getfixturevalue(key_fixture)
        token = TokenSigner(key).sign(PAYLOAD)

        assert TokenSigner(key.verifying_only()).verify(token) is True

    def test_verify_only_key_cannot_sign(self, rsa_key):
        with pytest.raises(ConfigurationError):
            TokenSigner(rsa_key.verifying_only()).sign(PAYLOAD)

    def test_wrong_key(self, hmac_key, rsa_key):
        hmac_token = TokenSigner(hmac_key).sign(PAYLOAD)
        rsa_token = TokenSigner(rsa_key).sign(PAYLOAD)

        assert TokenSigner(SigningKey.symmetric("z" * 32)).verify(hmac_token) is False
        assert TokenSigner(SigningKey.generate_rsa()).verify(rsa_token) is False
        assert TokenSigner(rsa_key).verify(hmac_token, ["HS256", "RS256"]) is False

    def test_algorithm_outside_allow_list(self, hmac_key):
        token = TokenSigner(hmac_key).sign(PAYLOAD)

        assert TokenSigner(hmac_key).verify(token, ["RS256"]) is False
        assert TokenSigner(hmac_key).verify(token, []) is False

    @pytest.mark.parametrize("token", [None, 42, "", "abc", "a.b", "a.b.c", "x.y.z.w"])
    def test_malformed_input_never_raises(self, hmac_key, token):
        assert TokenSigner(hmac_key).verify(token) is False

    def test_public_key_used_as_hmac_secret(self, rsa_key):
        # RS256 -> HS256 confusion: HMAC over the token with the public PEM as secret.
        signing_input = f"{_segment({'alg': 'HS256', 'typ': 'JWT'})}.{_segment(PAYLOAD)}"
        digest = hmac.new(
            rsa_key.public_pem().encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256
        ).digest()
        token = f"{signing_input}.{base64url_encode(digest).decode('ascii')}"

        assert TokenSigner(rsa_key.verifying_only()).verify(token, ["RS256", "HS256"]) is False

    def test_non_canonical_signature_encoding(self, hmac_key):
        token = TokenSigner(hmac_key).sign(PAYLOAD)
        head, _, signature = token.rpartition(".")
        # 43 chars: the last one carries two unused bits.
        alphabet = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_"
        last = alphabet.index(signature[-1])
        tampered = signature[:-1] + alphabet[last ^ 0b01]

        assert TokenSigner(hmac_key).verify(f"{head}.{tampered}") is False


class TestKeyLoading:
    """Test cases for loading keys from settings."""

    def test_hmac_from_settings(self):
        key = load_signing_key(Settings(signing_secret="s" * 32))

        assert key.private == b"s" * 32
        assert load_verification_key(Settings(signing_secret="s" * 32)) == key

    def test_hmac_secret_required(self):
        with pytest.raises(ConfigurationError):
            load_signing_key(Settings(signing_secret=None))

    def test_rsa_from_files(self, tmp_path, rsa_key):
        private_path = tmp_path / "jwtRS256.key"
        public_path = tmp_path / "jwtRS256.key.pub"
        private_path.write_text(rsa_key.private_pem())
        public_path.write_text(rsa_key.public_pem())
        settings = Settings(
            algorithm="RS256",
            private_key_path=str(private_path),
            public_key_path=str(public_path),
        )

        signing = load_signing_key(settings)
        verifying = load_verification_key(settings)

        assert signing.can_sign
        assert not verifying.can_sign
        assert TokenSigner(verifying).verify(TokenSigner(signing).sign(PAYLOAD)) is True

    def test_missing_key_file(self, tmp_path):
        settings = Settings(algorithm="RS256", public_key_path=str(tmp_path / "missing.pub"))

        with pytest.raises(ConfigurationError):
            load_verification_key(settings)
