"""Signed, time-limited URLs for chat attachments.

Attachments are referenced by an opaque storage path; a reader gets a URL
carrying an expiry and an HMAC over ``path:expires``. The file bytes
themselves are served by whatever sits behind STORAGE_BASE_URL.
"""

import hashlib
import hmac
import os
import time
from datetime import datetime
from typing import Optional, Tuple
from urllib.parse import quote, urlencode

SIGNED_URL_TTL_SECONDS = 3600


def _secret() -> bytes:
    return os.getenv("STORAGE_SIGNING_SECRET", "dev-storage-secret").encode()


def _base_url() -> str:
    return os.getenv("STORAGE_BASE_URL", "/storage").rstrip("/")


def build_storage_path(message_id: int, file_name: str, now: Optional[float] = None) -> str:
    """``chat-files/{message_id}-{ms timestamp}.{ext}``"""
    ts = int((now if now is not None else time.time()) * 1000)
    ext = file_name.rsplit(".", 1)[-1] if "." in file_name else "bin"
    return f"chat-files/{message_id}-{ts}.{ext}"


def _signature(path: str, expires: int) -> str:
    return hmac.new(_secret(), f"{path}:{expires}".encode(), hashlib.sha256).hexdigest()


def create_signed_url(path: str, expires_in: int = SIGNED_URL_TTL_SECONDS, now: Optional[float] = None) -> Tuple[str, datetime]:
    expires = int(now if now is not None else time.time()) + expires_in
    query = urlencode({"expires": expires, "signature": _signature(path, expires)})
    return f"{_base_url()}/{quote(path)}?{query}", datetime.utcfromtimestamp(expires)


def verify_signed_url(path: str, expires: int, signature: str, now: Optional[float] = None) -> bool:
    if int(now if now is not None else time.time()) > expires:
        return False
    return hmac.compare_digest(_signature(path, expires), signature)
