"""Tests for webhook signature verification."""

import hashlib
import hmac

import pytest

from maintainer_firewall.common import InvalidSignatureError, MisconfiguredError
from maintainer_firewall.intake import require_valid_signature, verify_signature


class TestVerifySignature:
    """Tests for verify_signature."""

    def test_verify_signature_valid(self):
        """Test signature verification with valid signature."""
        secret = "test-secret"
        payload = b'{"action": "opened"}'
        signature = "sha256=" + hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()

        assert verify_signature(payload, signature, secret) is True

    def test_verify_signature_invalid(self):
        """Test signature verification with invalid signature."""
        assert verify_signature(b'{"action": "opened"}', "sha256=invalid", "test-secret") is False

    def test_verify_signature_missing_prefix(self):
        """Test signature without sha256= prefix."""
        secret = "test-secret"
        payload = b"{}"
        digest = hmac.new(secret.encode(), payload, hashlib.sha256).hexdigest()

        assert verify_signature(payload, digest, secret) is False

    def test_verify_signature_body_changed(self):
        """A signature for one body does not verify another."""
        secret = "test-secret"
        signature = "sha256=" + hmac.new(secret.encode(), b'{"a": 1}', hashlib.sha256).hexdigest()

        assert verify_signature(b'{"a": 2}', signature, secret) is False


class TestRequireValidSignature:
    """Tests for require_valid_signature."""

    def test_accepts_matching_signature(self):
        payload = b'{"zen": "Keep it logically awesome."}'
        signature = "sha256=" + hmac.new(b"s3cret", payload, hashlib.sha256).hexdigest()

        require_valid_signature(payload, signature, "s3cret")

    @pytest.mark.parametrize("secret", [None, "", "   "])
    def test_missing_secret_is_misconfiguration(self, secret):
        with pytest.raises(MisconfiguredError):
            require_valid_signature(b"{}", "sha256=abc", secret)

    @pytest.mark.parametrize("signature", [None, "", "sha1=abc", "abc"])
    def test_missing_or_malformed_header(self, signature):
        with pytest.raises(InvalidSignatureError, match="missing or invalid"):
            require_valid_signature(b"{}", signature, "s3cret")

    def test_wrong_signature(self):
        with pytest.raises(InvalidSignatureError, match="verification failed"):
            require_valid_signature(b"{}", "sha256=" + "0" * 64, "s3cret")
