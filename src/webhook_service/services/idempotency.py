"""Content-addressed idempotency keys for webhook payloads."""
from __future__ import annotations

import hashlib
import json
from typing import Any


def canonical_json(payload: Any) -> str:
    return json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False, default=str)


def idempotency_key(payload: Any) -> str:
    """SHA-256 of the canonical JSON; key order and whitespace do not matter."""
    return hashlib.sha256(canonical_json(payload).encode("utf-8")).hexdigest()
