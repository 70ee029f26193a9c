from __future__ import annotations

import hmac
from collections.abc import Iterable
from urllib.parse import urlsplit

from fastapi import Header, HTTPException, status

from pagegen.config import settings

_HTTP_SCHEMES = {"http", "https"}


def validate_http_url(candidate: str | None) -> str | None:
    if not candidate or not isinstance(candidate, str):
        return None
    try:
        parsed = urlsplit(candidate.strip())
    except ValueError:
        return None
    if parsed.scheme.lower() not in _HTTP_SCHEMES or not parsed.hostname:
        return None
    return parsed.geturl()


def url_hostname(url: str) -> str | None:
    try:
        hostname = urlsplit(url).hostname
    except ValueError:
        return None
    return hostname.lower() if hostname else None


def is_domain_allowed(url: str, allowed_domains: Iterable[str]) -> bool:
    hostname = url_hostname(url)
    if not hostname:
        return False
    allowed = {domain.strip().lower() for domain in allowed_domains if domain.strip()}
    return hostname in allowed


def require_internal_api_token(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> None:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Bearer authorization header",
        )
    token = authorization[7:].strip()
    if not hmac.compare_digest(token, settings.PAGEGEN_INTERNAL_API_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid internal API token",
        )
