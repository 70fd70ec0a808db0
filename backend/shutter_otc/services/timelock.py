"""Time-lock encryption oracle client (NanoShutter HTTP API).

The oracle encrypts a plaintext so that it cannot be decrypted before a
given unix timestamp, and decrypts ciphertexts once that timestamp has
passed. Both calls are a single JSON request/response:

    POST /encrypt/with_time  {"cypher_text": ..., "timestamp": ...}   -> {"message": ciphertext}
    POST /decrypt/with_time  {"encrypted_msg": ..., "timestamp": ...} -> {"message": plaintext}
"""

import logging
from typing import Optional, Protocol

import httpx

from shutter_otc.config import settings
from shutter_otc.errors import DecryptionFailure, EncryptionFailure

logger = logging.getLogger(__name__)


class TimelockOracle(Protocol):
    def encrypt(self, plaintext: str, unlock_time: int) -> str: ...

    def decrypt(self, ciphertext: str, unlock_time: int) -> str: ...


class ShutterClient:
    """Synchronous NanoShutter client. Safe to share between threads."""

    def __init__(
        self,
        base_url: str,
        *,
        timeout_s: float = 10.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._timeout_s = float(timeout_s)
        self._transport = transport

    def _post_message(self, path: str, body: dict) -> str:
        with httpx.Client(base_url=self._base_url, transport=self._transport) as client:
            response = client.post(path, json=body, timeout=self._timeout_s)
            response.raise_for_status()
            decoded = response.json()
        message = decoded.get("message") if isinstance(decoded, dict) else None
        if not isinstance(message, str):
            raise ValueError(f"oracle response from {path} has no 'message' string")
        return message

    def encrypt(self, plaintext: str, unlock_time: int) -> str:
        try:
            return self._post_message(
                "/encrypt/with_time",
                {"cypher_text": plaintext, "timestamp": int(unlock_time)},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Shutter encrypt failed (unlock=%s): %s", unlock_time, e)
            raise EncryptionFailure(str(e)) from e

    def decrypt(self, ciphertext: str, unlock_time: int) -> str:
        try:
            return self._post_message(
                "/decrypt/with_time",
                {"encrypted_msg": ciphertext, "timestamp": int(unlock_time)},
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("Shutter decrypt failed (unlock=%s): %s", unlock_time, e)
            raise DecryptionFailure(str(e)) from e


def get_oracle() -> TimelockOracle:
    """FastAPI dependency returning the configured oracle client."""
    return ShutterClient(settings.SHUTTER_API_URL, timeout_s=settings.ORACLE_TIMEOUT_SECONDS)
