"""JWT signing and verification tests."""

import jwt
import pytest

from stemquiz.auth.jwt import create_access_token, verify_token
from stemquiz.config import get_settings


class TestAccessToken:
    def test_round_trip_claims(self):
        payload = verify_token(create_access_token(42, "ada"))
        assert payload["sub"] == "42"
        assert payload["username"] == "ada"
        assert payload["iss"] == get_settings().jwt_issuer
        assert payload["type"] == "access"

    def test_wrong_type_rejected(self):
        with pytest.raises(jwt.InvalidTokenError, match="Expected token type"):
            verify_token(create_access_token(42, "ada"), expected_type="refresh")

    def test_garbage_rejected(self):
        with pytest.raises(jwt.InvalidTokenError):
            verify_token("not.a.token")
