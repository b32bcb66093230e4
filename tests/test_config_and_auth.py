"""Tests de configuración, tokens y códigos de confirmación"""
import re

import pytest
from pydantic import ValidationError
from starlette.requests import Request

from app.core.config import Settings
from app.core.security import create_access_token
from shared.auth.dependencies import is_scanner
from shared.auth.jwt_handler import decode_token, claims_to_user
from shared.utils.confirmation_codes import generate_confirmation_code
from shared.utils.rate_limiter import get_user_identifier


class TestSettings:
    def test_refresh_must_precede_expiry(self):
        with pytest.raises(ValidationError):
            Settings(QR_TTL_SECONDS=30, QR_REFRESH_SECONDS=30)

    def test_rate_limit_storage_defaults_to_redis(self):
        settings = Settings(RATE_LIMIT_STORAGE_URI="", REDIS_URL="redis://cache:6379/1")

        assert settings.rate_limit_storage == "redis://cache:6379/1"

    def test_rate_limit_storage_override(self):
        settings = Settings(RATE_LIMIT_STORAGE_URI="memory://")

        assert settings.rate_limit_storage == "memory://"


class TestTokens:
    def test_roundtrip(self):
        token = create_access_token("door-staff-1", role="scanner")

        user = claims_to_user(decode_token(token))

        assert user == {"user_id": "door-staff-1", "email": "door-staff-1@example.com", "role": "scanner"}
        assert is_scanner(user)

    def test_bad_token(self):
        assert decode_token("not.a.token") is None

    def test_role_from_app_metadata(self):
        user = claims_to_user({"sub": "abc", "app_metadata": {"role": "coordinator"}})

        assert user["role"] == "coordinator"
        assert is_scanner(user)

    def test_missing_subject(self):
        assert claims_to_user({"email": "x@example.com"}) is None

    def test_plain_user_is_not_scanner(self):
        assert not is_scanner({"user_id": "u", "role": "user"})


class TestConfirmationCodes:
    def test_format(self):
        code = generate_confirmation_code()

        assert re.fullmatch(r"TAM-[A-HJ-NP-Z2-9]{6}", code)

    def test_custom_prefix(self):
        assert generate_confirmation_code("GIG").startswith("GIG-")


def _request(headers: dict) -> Request:
    return Request({
        "type": "http",
        "method": "POST",
        "path": "/api/v1/tickets/scan",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": ("10.0.0.5", 51000),
    })


class TestRateLimitKey:
    def test_authenticated_scanner_keyed_by_user(self):
        token = create_access_token("door-staff-1", role="scanner")

        assert get_user_identifier(_request({"Authorization": f"Bearer {token}"})) == "user:door-staff-1"

    def test_invalid_token_falls_back_to_ip(self):
        assert get_user_identifier(_request({"Authorization": "Bearer junk"})) == "ip:10.0.0.5"

    def test_forwarded_ip_wins(self):
        request = _request({"X-Forwarded-For": "203.0.113.7, 10.0.0.1"})

        assert get_user_identifier(request) == "ip:203.0.113.7"
