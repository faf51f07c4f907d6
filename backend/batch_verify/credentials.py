"""
Credentials: the persisted API key and the short-lived anti-forgery token.

The API key is user-supplied and stored on disk. The anti-forgery token is
scraped from the upstream page and cached in memory for a few minutes.
"""
from __future__ import annotations

import json
import re
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Optional

import httpx

from shared.utils.http_client import BatchHTTPClient
from shared.utils.logging import get_logger
from shared.utils.metrics import CSRF_TOKEN_FETCHES

logger = get_logger(__name__)

CSRF_TOKEN_PATTERN = re.compile(r"""CSRF_TOKEN\s*=\s*["']([^"']+)["']""")
NOT_SET_LABEL = "未设置"


def mask_credential(value: str) -> str:
    """Show the first 8 and last 4 characters of a key, or the not-set label."""
    if not value:
        return NOT_SET_LABEL
    return f"{value[:8]}...{value[-4:]}"


class CredentialStore:
    """Persistent key-value slot for the API key, backed by a JSON file."""

    def __init__(self, path: Path, key: str = "batch_verify_api_key") -> None:
        self._path = Path(path)
        self._key = key

    def _read_all(self) -> dict[str, str]:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return {}
        except OSError as exc:
            logger.warning("credential_store_unreadable", path=str(self._path), error=str(exc))
            return {}
        try:
            data = json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("credential_store_corrupt", path=str(self._path))
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")

    def load(self) -> str:
        value = self._read_all().get(self._key, "")
        return value if isinstance(value, str) else ""

    def save(self, value: str) -> bool:
        """
        Persist ``value`` after trimming. Blank input leaves the stored key untouched.

        Returns:
            True if a key was written.
        """
        key = value.strip()
        if not key:
            return False
        data = self._read_all()
        data[self._key] = key
        self._write_all(data)
        logger.info("credential_saved", path=str(self._path))
        return True

    def clear(self) -> None:
        data = self._read_all()
        if data.pop(self._key, None) is not None:
            self._write_all(data)


@dataclass(frozen=True)
class CachedToken:
    value: str
    fetched_at_ms: float


@dataclass(frozen=True)
class TokenFetchResult:
    """Outcome of one upstream lookup. ``value`` is None when the lookup failed."""
    value: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.value is not None


def _now_ms() -> float:
    return time.time() * 1000


class CsrfTokenCache:
    """
    Single-slot cache for the anti-forgery token.

    A token younger than ``ttl_s`` is returned without network I/O. Otherwise one
    GET is made to the upstream page; any failure degrades to an empty token.
    """

    def __init__(
        self,
        http: BatchHTTPClient,
        upstream_path: str = "/upstream/",
        ttl_s: float = 300.0,
        clock_ms: Callable[[], float] = _now_ms,
    ) -> None:
        self._http = http
        self._upstream_path = upstream_path
        self._ttl_ms = ttl_s * 1000
        self._clock_ms = clock_ms
        self._cached: Optional[CachedToken] = None

    @property
    def cached(self) -> Optional[CachedToken]:
        return self._cached

    def _fresh(self) -> Optional[str]:
        if self._cached and self._clock_ms() - self._cached.fetched_at_ms < self._ttl_ms:
            return self._cached.value
        return None

    def invalidate(self) -> None:
        self._cached = None

    async def fetch(self) -> TokenFetchResult:
        """Fetch the upstream page once and scan it for the token."""
        try:
            resp = await self._http.get(self._upstream_path)
        except httpx.HTTPError as exc:
            return TokenFetchResult(error=f"{type(exc).__name__}: {exc}")
        if not resp.is_success:
            return TokenFetchResult(error=f"HTTP {resp.status_code}")
        match = CSRF_TOKEN_PATTERN.search(resp.text)
        if not match:
            return TokenFetchResult(error="token not found in upstream page")
        return TokenFetchResult(value=match.group(1))

    async def get_token(self) -> str:
        """Return a usable token, or "" when none could be obtained."""
        cached = self._fresh()
        if cached is not None:
            CSRF_TOKEN_FETCHES.labels(result="cached").inc()
            return cached

        result = await self.fetch()
        if not result.ok:
            CSRF_TOKEN_FETCHES.labels(result="failed").inc()
            logger.warning("csrf_token_fetch_failed", error=result.error)
            return ""

        self._cached = CachedToken(value=result.value, fetched_at_ms=self._clock_ms())
        CSRF_TOKEN_FETCHES.labels(result="fetched").inc()
        logger.info("csrf_token_fetched")
        return result.value
