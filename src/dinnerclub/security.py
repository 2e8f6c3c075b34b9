"""
Password hashing and signed session tokens.

Tokens are compact HS256 JWTs; passwords are PBKDF2-SHA256 hashes stored
as ``pbkdf2:sha256:<iterations>$<salt hex>$<key hex>``.
"""
import base64
import hashlib
import hmac
import json
import os
import time
from typing import Any, Dict

PBKDF2_ITERATIONS = 600_000
HASH_PREFIX = f"pbkdf2:sha256:{PBKDF2_ITERATIONS}$"


def _b64url(data: bytes) -> bytes:
    return base64.urlsafe_b64encode(data).rstrip(b"=")


def _b64url_decode(data: str) -> bytes:
    padded = data + "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(padded)


def encode_token(payload: Dict[str, Any], secret: str) -> str:
    header = {"alg": "HS256", "typ": "JWT"}
    header_b64 = _b64url(json.dumps(header, separators=(",", ":")).encode())
    payload_b64 = _b64url(json.dumps(payload, separators=(",", ":")).encode())
    signing_input = header_b64 + b"." + payload_b64
    signature = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    return (signing_input + b"." + _b64url(signature)).decode()


def decode_token(token: str, secret: str) -> Dict[str, Any]:
    """
    Verify a token's signature and expiry and return its payload.

    Raises:
        ValueError: If the token is malformed, forged or expired
    """
    parts = token.split(".")
    if len(parts) != 3:
        raise ValueError("Invalid token")

    signing_input = (parts[0] + "." + parts[1]).encode()
    expected_sig = hmac.new(secret.encode(), signing_input, hashlib.sha256).digest()
    try:
        actual_sig = _b64url_decode(parts[2])
        payload = json.loads(_b64url_decode(parts[1]))
    except (ValueError, TypeError) as e:
        raise ValueError("Invalid token") from e

    if not hmac.compare_digest(expected_sig, actual_sig):
        raise ValueError("Invalid token signature")

    if not isinstance(payload, dict) or payload.get("exp", 0) < time.time():
        raise ValueError("Token expired")

    return payload


def issue_token(member_id: int, email: str, role: str, secret: str, ttl_days: int = 7) -> str:
    return encode_token(
        {
            "sub": str(member_id),
            "email": email,
            "role": role,
            "exp": int(time.time()) + ttl_days * 24 * 60 * 60,
        },
        secret,
    )


def hash_password(password: str) -> str:
    """Hash a password with PBKDF2-SHA256 and a random salt."""
    salt = os.urandom(16)
    dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, PBKDF2_ITERATIONS)
    return f"{HASH_PREFIX}{salt.hex()}${dk.hex()}"


def verify_password(password: str, hash_string: str) -> bool:
    """Verify a password against a PBKDF2 hash string."""
    if not hash_string or not hash_string.startswith(HASH_PREFIX):
        return False
    try:
        salt_hex, _, dk_hex = hash_string[len(HASH_PREFIX):].partition("$")
        salt = bytes.fromhex(salt_hex)
        expected_dk = bytes.fromhex(dk_hex)
    except ValueError:
        return False

    actual_dk = hashlib.pbkdf2_hmac("sha256", password.encode(), salt, PBKDF2_ITERATIONS)
    return hmac.compare_digest(expected_dk, actual_dk)
