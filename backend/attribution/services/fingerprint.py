"""Hashed IP / User-Agent fingerprints used for fallback session correlation.

Raw client values only ever pass through this module; everything persisted
or compared downstream is a salted SHA-256 hex digest.
"""

import hashlib
from dataclasses import dataclass

from starlette.requests import Request


def hash_value(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _salted(value: str | None, salt: str) -> str | None:
    if not value:
        return None
    return hash_value(f"{salt}{value}".encode())


@dataclass(frozen=True)
class Fingerprint:
    ip_hash: str | None = None
    ua_hash: str | None = None

    @classmethod
    def from_raw(
        cls, client_ip: str | None, user_agent: str | None, *, salt: str = ""
    ) -> "Fingerprint":
        return cls(ip_hash=_salted(client_ip, salt), ua_hash=_salted(user_agent, salt))

    @property
    def is_complete(self) -> bool:
        return self.ip_hash is not None and self.ua_hash is not None


def client_ip_from_request(request: Request) -> str | None:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client is not None:
        return request.client.host
    return None
