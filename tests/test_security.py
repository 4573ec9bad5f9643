"""
Unit tests for password hashing.
"""

import pytest

from book_api.security import hash_password, verify_password


class TestPasswordHashing:
    """Test cases for hash_password and verify_password."""

    @pytest.mark.parametrize("password", ["pw", "correct horse battery staple", "pässwörd", "x" * 60])
    def test_hash_verifies(self, password):
        digest = hash_password(password, rounds=4)
        assert digest != password
        assert verify_password(password, digest)

    def test_wrong_password_rejected(self):
        digest = hash_password("secret", rounds=4)
        assert verify_password("not-secret", digest) is False

    def test_hash_is_salted(self):
        """Hashing the same password twice gives different digests."""
        assert hash_password("same", rounds=4) != hash_password("same", rounds=4)

    def test_cost_factor_in_digest(self):
        digest = hash_password("pw", rounds=5)
        assert digest.startswith("$2b$05$")

    def test_malformed_digest_returns_false(self):
        assert verify_password("pw", "not-a-bcrypt-hash") is False
