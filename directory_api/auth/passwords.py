"""
Password hashing with PBKDF2-HMAC-SHA256

Stored format: ``pbkdf2_sha256$<iterations>$<salt b64>$<hash b64>``
"""
import base64
import binascii
import os

from cryptography.exceptions import InvalidKey
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC

from directory_api.core.config import get_settings

ALGORITHM = "pbkdf2_sha256"
SALT_BYTES = 16
KEY_LENGTH = 32


def _kdf(salt: bytes, iterations: int) -> PBKDF2HMAC:
    return PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=salt,
        iterations=iterations,
    )


def hash_password(password: str, iterations: int = None) -> str:
    iterations = iterations or get_settings().password_hash_iterations
    salt = os.urandom(SALT_BYTES)
    key = _kdf(salt, iterations).derive(password.encode("utf-8"))
    return "{}${}${}${}".format(
        ALGORITHM,
        iterations,
        base64.b64encode(salt).decode("ascii"),
        base64.b64encode(key).decode("ascii"),
    )


def verify_password(password: str, stored_hash: str) -> bool:
    try:
        algorithm, iterations, salt_b64, key_b64 = stored_hash.split("$")
    except (AttributeError, ValueError):
        return False
    if algorithm != ALGORITHM:
        return False

    try:
        salt = base64.b64decode(salt_b64, validate=True)
        expected = base64.b64decode(key_b64, validate=True)
        rounds = int(iterations)
    except (binascii.Error, ValueError):
        return False
    if rounds < 1:
        return False

    try:
        _kdf(salt, rounds).verify(password.encode("utf-8"), expected)
        return True
    except InvalidKey:
        return False
