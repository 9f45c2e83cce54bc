"""Service API keys for the X-API-Key channel.

Only the SHA-256 digest is stored; the plaintext key is shown once.
"""

import hashlib
import secrets

API_KEY_PREFIX = "punt_"


def generate_api_key() -> str:
    return API_KEY_PREFIX + secrets.token_urlsafe(32)


def hash_api_key(api_key: str) -> str:
    return hashlib.sha256(api_key.encode("utf-8")).hexdigest()
