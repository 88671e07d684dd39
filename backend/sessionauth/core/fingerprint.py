"""Requester fingerprint binding a session to the device that opened it."""

import hashlib

from fastapi import Request


def compute_fingerprint(remote_address: str | None, user_agent: str | None) -> str:
    """SHA256 hex of "<remote address> <user agent>". Missing parts hash as empty strings."""
    raw = f"{remote_address or ''} {user_agent or ''}"
    return hashlib.sha256(raw.encode("utf-8")).hexdigest()


def request_fingerprint(request: Request) -> str:
    host = request.client.host if request.client else None
    return compute_fingerprint(host, request.headers.get("user-agent"))
