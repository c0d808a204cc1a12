"""
Test suite for TOTP utility functions.

- sign_jwt / verify_jwt
- generate_secret, generate_totp, verify_totp, CharSetTOTP
- get_host_url, generate_magic_link
- mask_otp, mask_email, token_fingerprint

Run all tests:
    pytest tests/core/test_utils.py -v
"""

import pyotp
import pytest

from totp_auth.core.enums import TOTPAlgorithm
from totp_auth.core.exceptions.types import (
    ExpiredTokenException,
    InvalidTokenException,
    MagicLinkHostException,
)
from totp_auth.core.schemas.totp import (
    MagicLinkGenerationOptions,
    TOTPGenerationOptions,
    TOTPParams,
)
from totp_auth.core.utils import (
    CharSetTOTP,
    generate_magic_link,
    generate_secret,
    generate_totp,
    get_host_url,
    mask_email,
    mask_otp,
    sign_jwt,
    token_fingerprint,
    verify_jwt,
    verify_totp,
)

ALPHANUMERIC = "ABCDEFGHIJKLMNOPQRSTUVWXYZ0123456789"


class TestSignAndVerifyJWT:

    def test_round_trip_returns_original_claims(self):
        payload = {"secret": "ABC", "digits": 6, "period": 60}

        token = sign_jwt(payload, expires_in=60, secret="s3cret")
        claims = verify_jwt(token, "s3cret")

        assert claims == payload

    def test_payload_is_not_mutated(self):
        payload = {"digits": 6}

        sign_jwt(payload, expires_in=60, secret="s3cret")

        assert payload == {"digits": 6}

    def test_expired_token(self):
        token = sign_jwt({"digits": 6}, expires_in=-10, secret="s3cret")

        with pytest.raises(ExpiredTokenException):
            verify_jwt(token, "s3cret")

    def test_expired_token_is_an_invalid_token(self):
        token = sign_jwt({"digits": 6}, expires_in=-10, secret="s3cret")

        with pytest.raises(InvalidTokenException):
            verify_jwt(token, "s3cret")

    def test_wrong_secret(self):
        token = sign_jwt({"digits": 6}, expires_in=60, secret="s3cret")

        with pytest.raises(InvalidTokenException) as exc_info:
            verify_jwt(token, "other")

        assert not isinstance(exc_info.value, ExpiredTokenException)

    @pytest.mark.parametrize("token", ["", None, "not-a-jwt", "a.b.c"])
    def test_malformed_or_missing_token(self, token):
        with pytest.raises(InvalidTokenException):
            verify_jwt(token, "s3cret")

    def test_none_payload_raises(self):
        with pytest.raises(ValueError, match="Payload cannot be None"):
            sign_jwt(None, expires_in=60, secret="s3cret")

    def test_empty_secret_raises(self):
        with pytest.raises(ValueError, match="Secret cannot be None or empty"):
            sign_jwt({"digits": 6}, expires_in=60, secret="")


class TestGenerateTOTP:

    def test_generate_secret_is_base32(self):
        secret = generate_secret()

        assert len(secret) == 32
        assert set(secret) <= set("ABCDEFGHIJKLMNOPQRSTUVWXYZ234567")
        assert generate_secret() != secret

    def test_default_code_is_six_digits(self):
        code, params = generate_totp(TOTPGenerationOptions())

        assert len(code) == 6
        assert code.isdigit()
        assert params.digits == 6
        assert params.period == 60
        assert params.algorithm == TOTPAlgorithm.SHA1

    def test_params_never_contain_code(self):
        code, params = generate_totp(TOTPGenerationOptions())

        assert "code" not in params.model_dump()
        assert code not in params.model_dump().values()

    def test_generates_secret_when_unset(self):
        _, first = generate_totp(TOTPGenerationOptions())
        _, second = generate_totp(TOTPGenerationOptions())

        assert first.secret != second.secret

    def test_given_secret_is_honored(self):
        secret = generate_secret()

        code, params = generate_totp(TOTPGenerationOptions(secret=secret))

        assert params.secret == secret
        assert pyotp.TOTP(secret, interval=60).verify(code, valid_window=1)

    @pytest.mark.parametrize("digits", [4, 8, 10])
    def test_digits(self, digits):
        code, _ = generate_totp(TOTPGenerationOptions(digits=digits))

        assert len(code) == digits

    def test_custom_char_set(self):
        code, params = generate_totp(
            TOTPGenerationOptions(char_set=ALPHANUMERIC, digits=8)
        )

        assert len(code) == 8
        assert set(code) <= set(ALPHANUMERIC)
        assert params.char_set == ALPHANUMERIC


class TestVerifyTOTP:

    @pytest.mark.parametrize(
        "algorithm", [TOTPAlgorithm.SHA1, TOTPAlgorithm.SHA256, TOTPAlgorithm.SHA512]
    )
    def test_generated_code_verifies(self, algorithm):
        code, params = generate_totp(TOTPGenerationOptions(algorithm=algorithm))

        assert verify_totp(code, params) is True

    def test_surrounding_whitespace_is_ignored(self):
        code, params = generate_totp(TOTPGenerationOptions())

        assert verify_totp(f" {code} ", params) is True

    def test_wrong_code(self):
        code, params = generate_totp(TOTPGenerationOptions())
        wrong = "".join(str((int(ch) + 1) % 10) for ch in code)

        assert verify_totp(wrong, params) is False

    @pytest.mark.parametrize("code", [None, ""])
    def test_missing_code(self, code):
        _, params = generate_totp(TOTPGenerationOptions())

        assert verify_totp(code, params) is False

    def test_code_checked_against_embedded_parameters(self):
        secret = generate_secret()
        params = TOTPParams(secret=secret, digits=8, period=30)

        code = pyotp.TOTP(secret, digits=8, interval=30).now()

        assert verify_totp(code, params) is True
        assert verify_totp(code[:6], params) is False

    def test_alphanumeric_code_verifies(self):
        code, params = generate_totp(TOTPGenerationOptions(char_set=ALPHANUMERIC))

        assert verify_totp(code, params) is True


class TestCharSetTOTP:

    def test_decimal_char_set_matches_pyotp(self):
        secret = generate_secret()
        standard = pyotp.TOTP(secret, digits=6, interval=30)
        custom = CharSetTOTP(secret, char_set="0123456789", digits=6, interval=30)

        for counter in (0, 1, 59, 1_000_000):
            assert custom.generate_otp(counter) == standard.generate_otp(counter)

    def test_characters_come_from_char_set(self):
        totp = CharSetTOTP(generate_secret(), char_set="AB", digits=10)

        code = totp.generate_otp(42)

        assert len(code) == 10
        assert set(code) <= {"A", "B"}

    def test_negative_counter_rejected(self):
        totp = CharSetTOTP(generate_secret(), char_set=ALPHANUMERIC)

        with pytest.raises(ValueError):
            totp.generate_otp(-1)


class TestGetHostURL:

    def test_forwarded_host_wins(self, request_factory):
        request = request_factory(
            "GET", "/", headers={"x-forwarded-host": "app.example.com"}
        )

        assert get_host_url(request) == "https://app.example.com"

    def test_localhost_uses_http(self, request_factory):
        request = request_factory("GET", "/", host="localhost:3000")

        assert get_host_url(request) == "http://localhost:3000"

    def test_other_hosts_use_https(self, request_factory):
        request = request_factory("GET", "/", host="example.com")

        assert get_host_url(request) == "https://example.com"

    def test_missing_host(self, request_factory):
        request = request_factory("GET", "/", host=None)

        with pytest.raises(MagicLinkHostException, match="Could not determine host."):
            get_host_url(request)


class TestGenerateMagicLink:

    def test_configured_host(self):
        options = MagicLinkGenerationOptions(host_url="https://example.com/")

        link = generate_magic_link(options, "totp", "123456")

        assert link == "https://example.com/magic-link?totp=123456"

    def test_inferred_host(self, request_factory):
        options = MagicLinkGenerationOptions(callback_path="/auth/link")
        request = request_factory("POST", "/login", host="localhost:8000")

        link = generate_magic_link(options, "code", "ABC123", request)

        assert link == "http://localhost:8000/auth/link?code=ABC123"

    def test_code_is_url_encoded(self):
        options = MagicLinkGenerationOptions(host_url="https://example.com")

        link = generate_magic_link(options, "totp", "A+B/C")

        assert link == "https://example.com/magic-link?totp=A%2BB%2FC"

    def test_disabled(self, request_factory):
        options = MagicLinkGenerationOptions(enabled=False)

        assert generate_magic_link(options, "totp", "123456", request_factory()) is None

    def test_no_host_available(self):
        with pytest.raises(MagicLinkHostException):
            generate_magic_link(MagicLinkGenerationOptions(), "totp", "123456")


class TestMasking:

    @pytest.mark.parametrize(
        "otp, expected",
        [("123456", "1****6"), ("ABCD", "A**D"), ("12", "12"), ("1", "1")],
    )
    def test_mask_otp(self, otp, expected):
        assert mask_otp(otp) == expected

    @pytest.mark.parametrize(
        "email, expected",
        [
            ("alice@example.com", "a***@example.com"),
            ("b@x.io", "b***@x.io"),
            ("no-at-sign", "n***"),
            (None, "<none>"),
            ("", "<none>"),
        ],
    )
    def test_mask_email(self, email, expected):
        assert mask_email(email) == expected

    def test_token_fingerprint(self):
        fingerprint = token_fingerprint("header.payload.signature")

        assert len(fingerprint) == 12
        assert fingerprint == token_fingerprint("header.payload.signature")
        assert fingerprint != token_fingerprint("header.payload.other")
        assert "payload" not in fingerprint

    def test_token_fingerprint_of_missing_token(self):
        assert token_fingerprint(None) == "<none>"
