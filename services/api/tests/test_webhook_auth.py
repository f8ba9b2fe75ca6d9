"""
Tests for callback JWT verification.

Run with: pytest tests/test_webhook_auth.py -v
"""
import time

import jwt
import pytest

from core.errors import Unauthorized
from core.webhook_auth import extract_bearer, sign_payload, verify_callback_token

SECRET = "shared-secret"
BODY = {"status": 2, "key": "doc1:v1", "url": "https://docs.test/cache/doc1.docx"}


class TestNoSecretConfigured:
    def test_trusts_caller(self):
        assert verify_callback_token(BODY, None, None) == BODY
        assert verify_callback_token(BODY, None, "") == BODY

    def test_ignores_garbage_header(self):
        assert verify_callback_token(BODY, "Bearer nonsense", None) == BODY


class TestSecretConfigured:
    def test_missing_credential_rejected(self):
        with pytest.raises(Unauthorized):
            verify_callback_token(BODY, None, SECRET)

    def test_wrong_secret_rejected(self):
        token = sign_payload({"payload": BODY}, "other-secret")
        with pytest.raises(Unauthorized):
            verify_callback_token(BODY, f"Bearer {token}", SECRET)

    def test_tampered_token_rejected(self):
        token = sign_payload({"payload": BODY}, SECRET)
        with pytest.raises(Unauthorized):
            verify_callback_token(BODY, f"Bearer {token[:-2]}xx", SECRET)

    def test_expired_token_rejected(self):
        token = jwt.encode({"payload": BODY, "exp": int(time.time()) - 60}, SECRET, algorithm="HS256")
        with pytest.raises(Unauthorized):
            verify_callback_token(BODY, f"Bearer {token}", SECRET)

    def test_header_token_payload_claim_wins(self):
        """The signed payload is authoritative, not the (unsigned) body."""
        signed = {"status": 6, "key": "doc1:v2", "url": "https://docs.test/x.docx"}
        token = sign_payload({"payload": signed}, SECRET)
        out = verify_callback_token({"status": 2, "key": "evil:v1"}, f"Bearer {token}", SECRET)
        assert out == signed

    def test_body_token(self):
        """In-body token mode: claims are the payload itself."""
        token = sign_payload(BODY, SECRET)
        out = verify_callback_token({**BODY, "token": token}, None, SECRET)
        assert out["key"] == "doc1:v1"
        assert out["status"] == 2


class TestExtractBearer:
    def test_variants(self):
        assert extract_bearer("Bearer abc") == "abc"
        assert extract_bearer("bearer abc") == "abc"
        assert extract_bearer("abc") == "abc"
        assert extract_bearer("") is None
        assert extract_bearer(None) is None
        assert extract_bearer("Bearer   ") is None
