"""HMAC signature verification for inbound provider webhooks."""
from __future__ import annotations

import base64
import hmac
from hashlib import sha256
from typing import Literal

SignatureEncoding = Literal["hex", "base64"]


def compute_signature(raw_body: bytes, secret: str, encoding: SignatureEncoding = "hex") -> str:
    digest = hmac.new(secret.encode("utf-8"), raw_body, sha256)
    if encoding == "base64":
        return base64.b64encode(digest.digest()).decode("ascii")
    return digest.hexdigest()


def verify(
    raw_body: bytes,
    signature_header: str | None,
    secret: str,
    encoding: SignatureEncoding = "hex",
) -> bool:
    """Check ``signature_header`` against an HMAC-SHA256 of the unparsed body.

    The caller decides what an empty ``secret`` means; here it never verifies.
    """
    if not secret or not signature_header:
        return False
    expected = compute_signature(raw_body, secret, encoding)
    return hmac.compare_digest(signature_header.strip().encode("utf-8"), expected.encode("utf-8"))
