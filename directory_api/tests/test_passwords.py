"""
Tests for PBKDF2 password hashing
"""
import pytest

from directory_api.auth.passwords import hash_password, verify_password


class TestPasswordHashing:

    def test_round_trip(self):
        stored = hash_password("secret123", iterations=1000)

        assert stored.startswith("pbkdf2_sha256$1000$")
        assert verify_password("secret123", stored) is True
        assert verify_password("secret124", stored) is False

    def test_salted(self):
        assert hash_password("secret123", iterations=1000) != hash_password("secret123", iterations=1000)

    @pytest.mark.parametrize("stored", [
        None,
        "",
        "not-a-hash",
        "bcrypt$1000$c2FsdA==$a2V5",
        "pbkdf2_sha256$many$c2FsdA==$a2V5",
        "pbkdf2_sha256$0$c2FsdA==$a2V5",
        "pbkdf2_sha256$1000$***$a2V5",
        "pbkdf2_sha256$1000$c2FsdA==$a2V",
    ])
    def test_malformed_hash_is_a_mismatch(self, stored):
        assert verify_password("secret123", stored) is False


class TestLoginWithBrokenHash:

    def test_login_is_401_not_500(self, test_client, test_db, test_user):
        test_user.password_hash = "pbkdf2_sha256$1000$%%%$%%%"
        test_db.commit()

        response = test_client.post("/api/v1/auth/login", json={
            "email": test_user.email,
            "password": "password123",
        })

        assert response.status_code == 401
        assert response.json()["error"]["code"] == "INVALID_CREDENTIALS"
