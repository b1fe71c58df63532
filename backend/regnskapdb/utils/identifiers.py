from __future__ import annotations

import os
import time
import uuid


def generate_uuid7() -> str:
    """
    Generate a UUIDv7 string (time-ordered).

    Used as the primary key default for every table so ids sort roughly
    by creation time across tenants.
    """
    ts_ms = int(time.time() * 1000)
    raw = bytearray(ts_ms.to_bytes(6, "big", signed=False) + os.urandom(10))
    raw[6] = (raw[6] & 0x0F) | 0x70  # version 7
    raw[8] = (raw[8] & 0x3F) | 0x80  # RFC 4122 variant
    return str(uuid.UUID(bytes=bytes(raw)))


def short_ref(value: str, length: int = 8) -> str:
    """
    Return a short, human-readable reference for an id (dashes removed).

    Takes the tail: the head of a UUIDv7 is its timestamp and repeats for
    ids minted close together.
    """
    cleaned = (value or "").replace("-", "").strip()
    return cleaned[-length:] if length > 0 else ""
