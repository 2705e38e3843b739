from __future__ import annotations

import base64
import hmac
from hashlib import sha256

from webhook_service.services.signatures import compute_signature, verify

BODY = b'{"event":"payment.captured","payload":{"payment":{"entity":{"id":"pay_1"}}}}'


def test_hex_signature_matches_hmac_sha256():
    expected = hmac.new(b"secret", BODY, sha256).hexdigest()
    assert compute_signature(BODY, "secret") == expected
    assert verify(BODY, expected, "secret")


def test_base64_signature_matches_hmac_sha256():
    expected = base64.b64encode(hmac.new(b"secret", BODY, sha256).digest()).decode()
    assert compute_signature(BODY, "secret", "base64") == expected
    assert verify(BODY, expected, "secret", "base64")


def test_signature_is_over_raw_bytes():
    signature = compute_signature(BODY, "secret")
    reformatted = BODY.replace(b":", b": ")
    assert not verify(reformatted, signature, "secret")


def test_wrong_secret_or_signature_fails():
    signature = compute_signature(BODY, "secret")
    assert not verify(BODY, signature, "other-secret")
    assert not verify(BODY, "0" * len(signature), "secret")
    assert not verify(BODY, compute_signature(BODY, "secret", "base64"), "secret", "hex")


def test_missing_header_or_secret_never_verifies():
    signature = compute_signature(BODY, "secret")
    assert not verify(BODY, None, "secret")
    assert not verify(BODY, "", "secret")
    assert not verify(BODY, signature, "")
